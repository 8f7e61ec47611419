# Overview: Service-layer operations for the inventory store; encapsulates unit queries and writes.

"""
Inventory Store

Authoritative table of physical units and their lifecycle status.

RULES:
- Units are created in_store unless the importer says otherwise.
- set_status() is internal: the transition service is its only caller.
- Every mutation stamps updated_at.
- delete_units() is a data-entry correction tool, not a lifecycle step.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Unit, UnitAssignment, Sale, PendingUpdate, UNIT_STATUSES, UNIT_KINDS
from stocktrack.time_utils import utcnow
from .concurrency import unit_scope


CREATE_FIELDS = ("batch_number", "smartcard", "serial_number", "kind", "status", "region_id")
LIST_FILTERS = ("status", "kind", "region_id", "assigned_team_id", "assigned_user_id", "batch_number")


def get_unit(unit_id: int) -> Unit:
    unit = db.session.get(Unit, unit_id)
    if unit is None:
        raise NotFoundError(f"Unit {unit_id} not found", details={"unit_id": unit_id})
    return unit


def list_units(filters: dict | None = None, *, limit: int = 500) -> list[Unit]:
    """
    List units newest-first.

    Supported filters: status, kind, region_id, assigned_team_id,
    assigned_user_id, batch_number. Unknown keys raise ValidationError.
    """
    filters = filters or {}
    unknown = [k for k in filters if k not in LIST_FILTERS]
    if unknown:
        raise ValidationError(f"Unknown filter: {', '.join(sorted(unknown))}")

    if "status" in filters and filters["status"] not in UNIT_STATUSES:
        raise ValidationError(f"Invalid status '{filters['status']}'")
    if "kind" in filters and filters["kind"] not in UNIT_KINDS:
        raise ValidationError(f"Invalid kind '{filters['kind']}'")

    q = Unit.query
    for key, value in filters.items():
        if value is None:
            continue
        q = q.filter(getattr(Unit, key) == value)

    q = q.order_by(Unit.created_at.desc(), Unit.id.desc())
    return q.limit(limit).all()


def find_unit(code: str) -> Unit | None:
    """Exact lookup by smartcard or serial number (oldest match wins)."""
    code = (code or "").strip()
    if not code:
        raise ValidationError("code is required")

    return (
        Unit.query
        .filter(or_(Unit.smartcard == code, Unit.serial_number == code))
        .order_by(Unit.id.asc())
        .first()
    )


def _build_unit(row: dict) -> Unit:
    if not isinstance(row, dict):
        raise ValidationError("Unit row must be an object")

    unknown = [k for k in row if k not in CREATE_FIELDS]
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    values = {}
    for key in CREATE_FIELDS:
        raw = row.get(key)
        values[key] = str(raw).strip() if raw is not None else None

    for required in ("smartcard", "serial_number"):
        if not values[required]:
            raise ValidationError(f"{required} is required")

    values["kind"] = values["kind"] or "full_set"
    if values["kind"] not in UNIT_KINDS:
        raise ValidationError(f"Invalid kind '{values['kind']}'. Must be one of: {', '.join(UNIT_KINDS)}")

    # A unit cannot be created already sold: there would be no sale row.
    values["status"] = values["status"] or "in_store"
    if values["status"] not in ("in_store", "in_hand"):
        raise ValidationError("New units must start in_store or in_hand")

    return Unit(**values)


def create_unit(
    *,
    smartcard: str,
    serial_number: str,
    kind: str = "full_set",
    batch_number: str | None = None,
    region_id: str | None = None,
    status: str = "in_store",
) -> Unit:
    unit = _build_unit({
        "smartcard": smartcard,
        "serial_number": serial_number,
        "kind": kind,
        "batch_number": batch_number,
        "region_id": region_id,
        "status": status,
    })
    db.session.add(unit)
    db.session.commit()
    return unit


def create_units(rows: list[dict]) -> list[Unit]:
    """
    Insert validated import rows. All-or-nothing: one bad row rejects the batch.

    Raises:
        ValidationError: with details.row = index of the first bad row
    """
    if not rows:
        raise ValidationError("No units to create")

    units = []
    for index, row in enumerate(rows):
        try:
            units.append(_build_unit(row))
        except ValidationError as exc:
            raise ValidationError(f"Row {index}: {exc}", details={"row": index})

    db.session.add_all(units)
    db.session.commit()
    current_app.logger.info("Created %d units", len(units))
    return units


def set_status(unit: Unit, status: str) -> None:
    """
    Write a unit's status. Caller holds the unit scope and commits.

    Internal to the transition service: no rule checks here.
    """
    unit.status = status
    unit.updated_at = utcnow()


def inventory_stats() -> dict:
    """Counts per status, overall and split by kind."""
    rows = (
        db.session.query(Unit.status, Unit.kind, db.func.count(Unit.id))
        .group_by(Unit.status, Unit.kind)
        .all()
    )

    def _empty():
        return {status: 0 for status in UNIT_STATUSES}

    stats = {"total": 0, "by_status": _empty(), "by_kind": {kind: _empty() for kind in UNIT_KINDS}}
    for status, kind, count in rows:
        stats["total"] += count
        stats["by_status"][status] = stats["by_status"].get(status, 0) + count
        stats["by_kind"].setdefault(kind, _empty())[status] = count
    return stats


def delete_units(unit_ids: list[int]) -> int:
    """
    Hard-delete units with no transition checks (data-entry correction).

    Removes each unit's sale, assignment and pending updates with it. One
    transaction per unit; missing ids are skipped. Irreversible; callers
    confirm out-of-band.

    Returns:
        Number of units deleted
    """
    deleted = 0
    for unit_id in dict.fromkeys(unit_ids):
        with unit_scope(unit_id):
            if db.session.get(Unit, unit_id) is None:
                continue
            try:
                Sale.query.filter_by(unit_id=unit_id).delete(synchronize_session=False)
                UnitAssignment.query.filter_by(unit_id=unit_id).delete(synchronize_session=False)
                PendingUpdate.query.filter_by(unit_id=unit_id).delete(synchronize_session=False)
                Unit.query.filter_by(id=unit_id).delete(synchronize_session=False)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        deleted += 1

    current_app.logger.warning("Deleted %d units (requested %d)", deleted, len(unit_ids))
    return deleted
