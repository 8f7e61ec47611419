# Overview: Service-layer operations for the assignment index (unit -> team / field user).

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import EngineError, NotFoundError, ValidationError
from ..models import Unit, UnitAssignment
from stocktrack.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry, unit_scope
from .intents import UNSET, is_set


def get_assignment(unit_id: int) -> UnitAssignment | None:
    return UnitAssignment.query.filter_by(unit_id=unit_id).first()


def upsert_assignment(
    unit: Unit,
    *,
    team_id=UNSET,
    team_name=UNSET,
    user_id=UNSET,
    user_name=UNSET,
) -> UnitAssignment:
    """
    Merge assignment fields into the unit's record. Caller holds the unit
    scope and commits.

    UNSET leaves a side untouched; None clears it (and its name). Status is
    never read or written here. The ids are mirrored onto the unit row.
    """
    if not is_set(team_id) and not is_set(user_id):
        raise ValidationError("Assignment needs team_id or user_id")

    now = utcnow()
    record = get_assignment(unit.id)
    if record is None:
        record = UnitAssignment(unit_id=unit.id, assigned_at=now)
        db.session.add(record)

    if is_set(team_id):
        record.team_id = team_id
        record.team_name = (team_name if is_set(team_name) else None) if team_id is not None else None
        record.assigned_at = now
        unit.assigned_team_id = team_id

    if is_set(user_id):
        record.user_id = user_id
        record.user_name = (user_name if is_set(user_name) else None) if user_id is not None else None
        record.user_assigned_at = now if user_id is not None else None
        unit.assigned_user_id = user_id

    unit.updated_at = now
    db.session.flush()
    return record


def assign_unit(unit_id: int, **assignment) -> UnitAssignment:
    """Assign one unit in its own transaction."""
    def _op():
        with unit_scope(unit_id):
            try:
                unit = lock_for_update(db.session.query(Unit).filter_by(id=unit_id)).first()
                if unit is None:
                    raise NotFoundError(f"Unit {unit_id} not found", details={"unit_id": unit_id})
                record = upsert_assignment(unit, **assignment)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            return record

    return run_with_retry(_op)


def assign_many(unit_ids: list[int], **assignment) -> list:
    """
    Apply the same assignment to many units, one transaction per unit.

    Continue-on-error: a failing unit is reported, the rest still apply.
    """
    from .bulk_service import BulkItemResult

    if not is_set(assignment.get("team_id", UNSET)) and not is_set(assignment.get("user_id", UNSET)):
        raise ValidationError("Assignment needs team_id or user_id")

    results = []
    for unit_id in dict.fromkeys(unit_ids):
        try:
            assign_unit(unit_id, **assignment)
            results.append(BulkItemResult(unit_id=unit_id, ok=True))
        except EngineError as exc:
            results.append(BulkItemResult.failed(unit_id, exc))

    failed = sum(1 for r in results if not r.ok)
    current_app.logger.info("Bulk assign: %d ok, %d failed", len(results) - failed, failed)
    return results
