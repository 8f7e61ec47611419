"""
Transition engine tests.

Verifies:
- Allowed and refused status moves
- Selling creates exactly one sale; a second sale is refused
- Sold units never move again
- A refused intent leaves no partial writes
- Assignment changes ride along with status changes
"""

import pytest

from stocktrack.extensions import db
from stocktrack.errors import AlreadySoldError, InvalidTransitionError, NotFoundError, ValidationError
from stocktrack.models import Sale, Unit, UnitAssignment
from stocktrack.services import sales_service, transition_service
from stocktrack.services.intents import ChangeIntent
from stocktrack.services.transition_service import apply_intent, can_transition


def _sell(unit_id, seller="A1", **extra):
    return apply_intent(ChangeIntent(unit_id=unit_id, target_status="sold", sold_by_user_id=seller, **extra))


class TestCanTransition:

    @pytest.mark.parametrize("from_status,to_status", [
        ("in_store", "in_hand"),
        ("in_store", "sold"),
        ("in_hand", "sold"),
        ("in_store", "in_store"),
        ("in_hand", "in_hand"),
    ])
    def test_allowed(self, from_status, to_status):
        assert can_transition(from_status, to_status)

    @pytest.mark.parametrize("from_status,to_status", [
        ("in_hand", "in_store"),
        ("sold", "in_store"),
        ("sold", "in_hand"),
        ("sold", "sold"),
        ("in_store", "returned"),
    ])
    def test_refused(self, from_status, to_status):
        assert not can_transition(from_status, to_status)


class TestApplyIntent:

    def test_hand_out_then_sell_scenario(self, unit):
        """in_store -> in_hand with team T1, then sold unpaid, then paid once."""
        applied = apply_intent(ChangeIntent(
            unit_id=unit.id, target_status="in_hand", assign_team_id="T1", assign_team_name="Team One",
        ))
        assert applied.status_changed
        assert applied.previous_status == "in_store"
        assert applied.unit.status == "in_hand"
        assert applied.unit.assigned_team_id == "T1"
        assert applied.assignment.team_name == "Team One"

        applied = _sell(unit.id, seller="A1", payment_status="unpaid")
        assert applied.unit.status == "sold"
        assert applied.sale.sale_code == "SL-000001"
        assert applied.sale.sold_by_user_id == "A1"
        assert applied.sale.is_paid is False
        assert applied.sale.paid_at is None

        paid = sales_service.mark_paid(applied.sale.id)
        first_paid_at = paid.paid_at
        assert paid.is_paid is True
        assert first_paid_at is not None

        again = sales_service.mark_paid(applied.sale.id)
        assert again.is_paid is True
        assert again.paid_at == first_paid_at

        # Assignment survives the sale
        assert UnitAssignment.query.filter_by(unit_id=unit.id).one().team_id == "T1"

    def test_sell_directly_from_store_paid(self, unit):
        applied = _sell(unit.id, payment_status="paid", package_choice="premium", customer_phone="0555")
        assert applied.sale.is_paid is True
        assert applied.sale.paid_at is not None
        assert applied.sale.has_package is True
        assert applied.sale.package_type == "premium"
        assert applied.sale.customer_phone == "0555"

    def test_package_none_means_no_package(self, unit):
        applied = _sell(unit.id, package_choice="none")
        assert applied.sale.has_package is False
        assert applied.sale.package_type is None

    def test_second_sale_refused(self, unit):
        first = _sell(unit.id, seller="A1")
        with pytest.raises(AlreadySoldError) as exc:
            _sell(unit.id, seller="A2")

        assert exc.value.details["sale_code"] == first.sale.sale_code
        assert Sale.query.filter_by(unit_id=unit.id).count() == 1
        assert Sale.query.filter_by(unit_id=unit.id).one().sold_by_user_id == "A1"

    @pytest.mark.parametrize("target", ["in_hand", "in_store"])
    def test_sold_unit_never_moves(self, unit, target):
        _sell(unit.id)
        with pytest.raises(InvalidTransitionError):
            apply_intent(ChangeIntent(unit_id=unit.id, target_status=target))

        assert db.session.get(Unit, unit.id).status == "sold"

    def test_in_hand_back_to_store_refused(self, unit):
        apply_intent(ChangeIntent(unit_id=unit.id, target_status="in_hand"))
        with pytest.raises(InvalidTransitionError) as exc:
            apply_intent(ChangeIntent(unit_id=unit.id, target_status="in_store"))

        assert exc.value.details == {"unit_id": unit.id, "from_status": "in_hand", "to_status": "in_store"}

    def test_same_status_is_noop(self, unit):
        applied = apply_intent(ChangeIntent(unit_id=unit.id, target_status="in_store"))
        assert not applied.status_changed
        assert applied.unit.status == "in_store"

    def test_assignment_only_keeps_status(self, unit):
        applied = apply_intent(ChangeIntent(unit_id=unit.id, assign_user_id="U9", assign_user_name="Nine"))
        assert not applied.status_changed
        assert applied.unit.status == "in_store"
        assert applied.unit.assigned_user_id == "U9"
        assert applied.assignment.user_assigned_at is not None

    def test_assignment_allowed_after_sale(self, unit):
        _sell(unit.id)
        applied = apply_intent(ChangeIntent(unit_id=unit.id, assign_team_id="T2"))
        assert applied.unit.status == "sold"
        assert applied.assignment.team_id == "T2"

    def test_refused_intent_writes_nothing(self, unit):
        """A refused status change must not keep the assignment it carried."""
        apply_intent(ChangeIntent(unit_id=unit.id, target_status="in_hand"))
        with pytest.raises(InvalidTransitionError):
            apply_intent(ChangeIntent(unit_id=unit.id, target_status="in_store", assign_team_id="T5"))

        assert UnitAssignment.query.filter_by(unit_id=unit.id).first() is None
        assert db.session.get(Unit, unit.id).assigned_team_id is None

    def test_failed_sale_keeps_sale_code_sequence(self, make_unit):
        u1 = make_unit()
        u2 = make_unit()
        _sell(u1.id)
        with pytest.raises(AlreadySoldError):
            _sell(u1.id)
        applied = _sell(u2.id)
        assert applied.sale.sale_code == "SL-000002"

    def test_unknown_unit(self, db_session):
        with pytest.raises(NotFoundError):
            apply_intent(ChangeIntent(unit_id=99999, target_status="in_hand"))

    def test_sell_without_seller_rejected(self, unit):
        with pytest.raises(ValidationError):
            apply_intent(ChangeIntent(unit_id=unit.id, target_status="sold"))
        assert Sale.query.count() == 0

    def test_applied_change_serializes(self, unit):
        data = _sell(unit.id).to_dict()
        assert data["unit"]["status"] == "sold"
        assert data["previous_status"] == "in_store"
        assert data["sale"]["sale_code"] == "SL-000001"
        assert data["assignment"] is None


class TestApplyIntentLocked:

    def test_does_not_commit(self, db_session, unit):
        transition_service.apply_intent_locked(
            ChangeIntent(unit_id=unit.id, target_status="sold", sold_by_user_id="A1")
        )
        db_session.rollback()

        assert Sale.query.count() == 0
        assert db.session.get(Unit, unit.id).status == "in_store"
