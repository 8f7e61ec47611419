# Overview: Service-layer transition engine; the only path that changes unit status and creates sales.

"""
Unit Lifecycle Transition Engine

================================================================================
PURPOSE: Turn a ChangeIntent into one consistent change across units, sales
and assignments
================================================================================

STATE MACHINE:
    in_store -> in_hand -> sold
    in_store ----------->  sold

    in_store: received, sitting in the store
    in_hand:  handed to a team / field user
    sold:     TERMINAL for status. A sale row exists; payment may still
              move unpaid -> paid.

RULES:
1. sold -> anything is refused (InvalidTransitionError)
2. in_hand -> in_store is refused (no backwards movement)
3. Same-status intents are a no-op, except sold -> sold which means a second
   sale and is refused (AlreadySoldError)
4. Assignment changes are allowed in any status and never change status
5. Everything one intent does commits together or not at all
6. All writes for a unit run inside unit_scope(unit_id); approvals use the
   same scope, so a replayed intent is re-validated against live state

================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import AlreadySoldError, InvalidTransitionError, NotFoundError
from ..models import Unit, Sale, UnitAssignment, UNIT_STATUSES
from . import assignment_service, inventory_service, sales_service
from .concurrency import lock_for_update, run_with_retry, unit_scope
from .intents import ChangeIntent, is_set


VALID_TRANSITIONS = {
    ("in_store", "in_hand"),
    ("in_store", "sold"),
    ("in_hand", "sold"),
}


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check if a status change is allowed by the lifecycle rules.

    Same-status is allowed (no-op) for every status except sold.
    """
    if from_status not in UNIT_STATUSES or to_status not in UNIT_STATUSES:
        return False
    if from_status == to_status:
        return to_status != "sold"
    return (from_status, to_status) in VALID_TRANSITIONS


@dataclass
class AppliedChange:
    unit: Unit
    previous_status: str
    status_changed: bool
    sale: Sale | None = None
    assignment: UnitAssignment | None = None

    def to_dict(self) -> dict:
        return {
            "unit": self.unit.to_dict(),
            "previous_status": self.previous_status,
            "status_changed": self.status_changed,
            "sale": self.sale.to_dict() if self.sale is not None else None,
            "assignment": self.assignment.to_dict() if self.assignment is not None else None,
        }


def apply_intent_locked(intent: ChangeIntent) -> AppliedChange:
    """
    Apply an intent without committing. Caller holds unit_scope(intent.unit_id)
    and owns the transaction (commit on success, rollback on any error).

    Raises:
        NotFoundError, InvalidTransitionError, AlreadySoldError, ValidationError
    """
    intent.validate()

    unit = lock_for_update(db.session.query(Unit).filter_by(id=intent.unit_id)).first()
    if unit is None:
        raise NotFoundError(f"Unit {intent.unit_id} not found", details={"unit_id": intent.unit_id})

    previous_status = unit.status
    status_changed = False
    sale = None
    assignment = None

    if intent.sells:
        existing = sales_service.sale_for_unit(unit.id)
        if existing is not None or unit.status == "sold":
            raise AlreadySoldError(
                f"Unit {unit.id} is already sold",
                details={
                    "unit_id": unit.id,
                    "sale_code": existing.sale_code if existing is not None else None,
                },
            )

        sale = sales_service.create_sale_locked(
            unit.id,
            sold_by_user_id=intent.sold_by_user_id,
            customer_phone=intent.customer_phone if is_set(intent.customer_phone) else None,
            package_choice=intent.package_choice if is_set(intent.package_choice) else None,
            is_paid=intent.is_paid,
        )
        inventory_service.set_status(unit, "sold")
        status_changed = True

    elif is_set(intent.target_status) and intent.target_status != unit.status:
        if not can_transition(unit.status, intent.target_status):
            raise InvalidTransitionError(
                f"Cannot move unit {unit.id} from '{unit.status}' to '{intent.target_status}'",
                details={
                    "unit_id": unit.id,
                    "from_status": unit.status,
                    "to_status": intent.target_status,
                },
            )
        inventory_service.set_status(unit, intent.target_status)
        status_changed = True

    if intent.has_assignment:
        assignment = assignment_service.upsert_assignment(
            unit,
            team_id=intent.assign_team_id,
            team_name=intent.assign_team_name,
            user_id=intent.assign_user_id,
            user_name=intent.assign_user_name,
        )

    db.session.flush()
    return AppliedChange(
        unit=unit,
        previous_status=previous_status,
        status_changed=status_changed,
        sale=sale,
        assignment=assignment,
    )


def apply_intent(intent: ChangeIntent) -> AppliedChange:
    """
    Apply an intent atomically under the unit's scope.

    Transient DB failures are retried (run_with_retry); domain errors are not.
    A unique-constraint hit on sales.unit_id (another process sold the unit
    first) is reported as AlreadySoldError; other integrity errors propagate.
    """
    intent.validate()

    def _op():
        with unit_scope(intent.unit_id):
            try:
                applied = apply_intent_locked(intent)
                db.session.commit()
            except IntegrityError as exc:
                db.session.rollback()
                raise_if_sold(intent.unit_id, exc)
                raise
            except Exception:
                db.session.rollback()
                raise

        _log_applied(applied)
        return applied

    return run_with_retry(_op)


def raise_if_sold(unit_id: int, exc: IntegrityError) -> None:
    """After rollback: report a lost sale race as AlreadySoldError."""
    existing = sales_service.sale_for_unit(unit_id)
    if existing is not None:
        raise AlreadySoldError(
            f"Unit {unit_id} is already sold",
            details={"unit_id": unit_id, "sale_code": existing.sale_code},
        ) from exc


def _log_applied(applied: AppliedChange) -> None:
    unit = applied.unit
    if applied.sale is not None:
        current_app.logger.info(
            "Unit %s sold as %s (paid=%s)", unit.id, applied.sale.sale_code, applied.sale.is_paid
        )
    elif applied.status_changed:
        current_app.logger.info(
            "Unit %s moved %s -> %s", unit.id, applied.previous_status, unit.status
        )
    if applied.assignment is not None:
        current_app.logger.info(
            "Unit %s assigned team=%s user=%s",
            unit.id, applied.assignment.team_id, applied.assignment.user_id,
        )
