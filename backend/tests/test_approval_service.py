"""
Approval queue tests.

Verifies:
- Submitting snapshots the unit and stores the intent, nothing else changes
- Approval replays the intent against the live unit
- A stale approval is refused, stays pending and records last_error
- Rejection never touches units or sales
- Deciding twice raises AlreadyDecidedError
"""

import pytest

from stocktrack.extensions import db
from stocktrack.errors import AlreadyDecidedError, AlreadySoldError, InvalidTransitionError, NotFoundError, ValidationError
from stocktrack.models import PendingUpdate, Sale, Unit
from stocktrack.services import approval_service
from stocktrack.services.intents import ChangeIntent
from stocktrack.services.transition_service import apply_intent


def _propose_sale(unit, requested_by="F1", **extra):
    return approval_service.submit(
        unit.id,
        ChangeIntent(unit_id=unit.id, target_status="sold", **extra),
        requested_by,
        requested_by_name="Field One",
    )


class TestSubmit:

    def test_snapshot_and_no_side_effects(self, unit):
        pending = _propose_sale(unit, customer_phone="0711")

        assert pending.decision == "pending"
        assert pending.smartcard == unit.smartcard
        assert pending.status_at_request == "in_store"
        assert pending.intent["target_status"] == "sold"
        assert pending.intent["customer_phone"] == "0711"
        assert db.session.get(Unit, unit.id).status == "in_store"
        assert Sale.query.count() == 0

    def test_seller_defaults_to_requester(self, unit):
        pending = _propose_sale(unit, requested_by="F2")
        assert pending.intent["sold_by_user_id"] == "F2"

    def test_requires_requester(self, unit):
        with pytest.raises(ValidationError):
            approval_service.submit(unit.id, ChangeIntent(unit_id=unit.id, target_status="in_hand"), "")

    def test_shape_checked_up_front(self, unit):
        with pytest.raises(ValidationError):
            approval_service.submit(unit.id, ChangeIntent(unit_id=unit.id), "F1")
        assert PendingUpdate.query.count() == 0

    def test_unknown_unit(self, db_session):
        with pytest.raises(NotFoundError):
            approval_service.submit(777, ChangeIntent(unit_id=777, target_status="in_hand"), "F1")


class TestApprove:

    def test_approve_applies_intent(self, unit):
        pending = _propose_sale(unit, payment_status="paid")

        applied = approval_service.approve(pending.id, "ADMIN")

        assert applied.sale is not None
        assert applied.sale.sold_by_user_id == "F1"
        assert applied.sale.is_paid is True
        decided = approval_service.get_pending_update(pending.id)
        assert decided.decision == "approved"
        assert decided.decided_by == "ADMIN"
        assert decided.decided_at is not None
        assert decided.last_error is None

    def test_stale_approval_stays_pending(self, unit):
        pending = _propose_sale(unit)
        apply_intent(ChangeIntent(unit_id=unit.id, target_status="sold", sold_by_user_id="A1"))

        with pytest.raises(AlreadySoldError):
            approval_service.approve(pending.id, "ADMIN")

        refreshed = approval_service.get_pending_update(pending.id)
        assert refreshed.decision == "pending"
        assert refreshed.decided_by is None
        assert refreshed.last_error.startswith("already_sold")
        assert Sale.query.filter_by(unit_id=unit.id).count() == 1
        assert Sale.query.filter_by(unit_id=unit.id).one().sold_by_user_id == "A1"

    def test_malformed_stored_intent_records_error(self, unit):
        pending = _propose_sale(unit)
        pending.intent = dict(pending.intent, customer_phone={"n": 711})
        db.session.commit()

        with pytest.raises(ValidationError):
            approval_service.approve(pending.id, "ADMIN")

        refreshed = approval_service.get_pending_update(pending.id)
        assert refreshed.decision == "pending"
        assert refreshed.last_error.startswith("validation_error")
        assert Sale.query.count() == 0

    def test_refused_transition_rolls_back_everything(self, unit):
        apply_intent(ChangeIntent(unit_id=unit.id, target_status="in_hand"))
        pending = approval_service.submit(
            unit.id,
            ChangeIntent(unit_id=unit.id, target_status="in_store", assign_team_id="T1"),
            "F1",
        )

        with pytest.raises(InvalidTransitionError):
            approval_service.approve(pending.id, "ADMIN")

        refreshed = db.session.get(Unit, unit.id)
        assert refreshed.status == "in_hand"
        assert refreshed.assigned_team_id is None
        assert approval_service.get_pending_update(pending.id).decision == "pending"

    def test_approve_twice(self, unit):
        pending = _propose_sale(unit)
        approval_service.approve(pending.id, "ADMIN")

        with pytest.raises(AlreadyDecidedError):
            approval_service.approve(pending.id, "ADMIN")
        assert Sale.query.count() == 1

    def test_approve_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            approval_service.approve(31337, "ADMIN")


class TestReject:

    def test_reject_has_no_side_effects(self, unit):
        pending = _propose_sale(unit)

        rejected = approval_service.reject(pending.id, "ADMIN", note="  wrong unit  ")

        assert rejected.decision == "rejected"
        assert rejected.decided_by == "ADMIN"
        assert rejected.decision_note == "wrong unit"
        assert db.session.get(Unit, unit.id).status == "in_store"
        assert Sale.query.count() == 0

    def test_decided_requests_are_final(self, unit):
        pending = _propose_sale(unit)
        approval_service.reject(pending.id, "ADMIN")

        with pytest.raises(AlreadyDecidedError):
            approval_service.reject(pending.id, "ADMIN")
        with pytest.raises(AlreadyDecidedError):
            approval_service.approve(pending.id, "ADMIN")

        refreshed = approval_service.get_pending_update(pending.id)
        assert refreshed.decision == "rejected"
        assert refreshed.last_error is None


class TestListing:

    def test_pending_and_decided_lists(self, make_unit):
        u1 = make_unit(smartcard="CARD-ALPHA")
        u2 = make_unit()
        u3 = make_unit()
        p1 = _propose_sale(u1)
        p2 = _propose_sale(u2)
        p3 = _propose_sale(u3)
        approval_service.reject(p3.id, "ADMIN")

        assert [p.id for p in approval_service.list_pending()] == [p2.id, p1.id]
        assert [p.id for p in approval_service.list_pending(search="alpha")] == [p1.id]
        assert [p.id for p in approval_service.list_pending(search="field one")] == [p2.id, p1.id]
        assert [p.id for p in approval_service.list_decided()] == [p3.id]

    def test_decided_limit(self, app, make_unit):
        ids = []
        for _ in range(3):
            pending = _propose_sale(make_unit())
            approval_service.reject(pending.id, "ADMIN")
            ids.append(pending.id)

        assert len(approval_service.list_decided(2)) == 2

        app.config["DECIDED_HISTORY_LIMIT"] = 1
        try:
            assert [p.id for p in approval_service.list_decided()] == [ids[-1]]
        finally:
            app.config["DECIDED_HISTORY_LIMIT"] = 20
