# Overview: Service-layer approval queue; non-privileged proposals replayed through the transition engine.

"""
Approval Queue

WHY THIS EXISTS:
- Field users may only *propose* stock changes; an admin applies them
- A proposal stores the ChangeIntent, not the resulting values
- Approval replays the intent against the LIVE unit through the same
  transition engine entry point, so a proposal that went stale (unit sold
  by another path, moved on, deleted) is re-validated instead of trusted

DECISIONS:
    pending -> approved   (intent applied in the same transaction)
    pending -> rejected   (no inventory/sale side effects)

    approved/rejected are terminal; deciding again raises AlreadyDecidedError.

ENGINE REFUSAL ON APPROVE:
    The request stays pending and the engine error is returned to the
    approver. last_error is recorded (separate transaction) so the queue
    shows why the last attempt failed.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import AlreadyDecidedError, EngineError, NotFoundError, ValidationError
from ..models import PendingUpdate
from stocktrack.time_utils import utcnow
from . import inventory_service, transition_service
from .concurrency import lock_for_update, run_with_retry, unit_scope
from .intents import ChangeIntent


def get_pending_update(pending_update_id: int) -> PendingUpdate:
    pending = db.session.get(PendingUpdate, pending_update_id)
    if pending is None:
        raise NotFoundError(
            f"Pending update {pending_update_id} not found",
            details={"pending_update_id": pending_update_id},
        )
    return pending


def submit(
    unit_id: int,
    intent: ChangeIntent,
    requested_by: str,
    *,
    requested_by_name: str | None = None,
) -> PendingUpdate:
    """
    Queue an intent for approval and snapshot the unit as it is now.

    The intent is shape-validated up front; lifecycle rules are only checked
    at approval time against the live unit. A sale proposal without a seller
    records the requester as the seller.
    """
    if not requested_by:
        raise ValidationError("requested_by is required")

    intent.unit_id = unit_id
    if intent.sells and not intent.sold_by_user_id:
        intent.sold_by_user_id = requested_by
    intent.validate()

    unit = inventory_service.get_unit(unit_id)

    pending = PendingUpdate(
        unit_id=unit.id,
        smartcard=unit.smartcard,
        serial_number=unit.serial_number,
        kind=unit.kind,
        status_at_request=unit.status,
        intent=intent.to_dict(),
        requested_by=requested_by,
        requested_by_name=requested_by_name,
        requested_at=utcnow(),
        decision="pending",
    )
    db.session.add(pending)
    db.session.commit()

    current_app.logger.info(
        "Pending update %s submitted for unit %s by %s", pending.id, unit.id, requested_by
    )
    return pending


def list_pending(*, search: str | None = None) -> list[PendingUpdate]:
    """
    Pending requests, newest first.

    search: case-insensitive substring on smartcard, serial number or
    requester name.
    """
    q = PendingUpdate.query.filter_by(decision="pending")

    term = (search or "").strip()
    if term:
        like = f"%{term.lower()}%"
        q = q.filter(db.or_(
            db.func.lower(PendingUpdate.smartcard).like(like),
            db.func.lower(PendingUpdate.serial_number).like(like),
            db.func.lower(PendingUpdate.requested_by_name).like(like),
        ))

    return q.order_by(PendingUpdate.requested_at.desc(), PendingUpdate.id.desc()).all()


def list_decided(limit: int | None = None) -> list[PendingUpdate]:
    """Approved and rejected requests, most recently requested first."""
    if limit is None:
        limit = current_app.config.get("DECIDED_HISTORY_LIMIT", 20)

    return (
        PendingUpdate.query
        .filter(PendingUpdate.decision != "pending")
        .order_by(PendingUpdate.requested_at.desc(), PendingUpdate.id.desc())
        .limit(limit)
        .all()
    )


def _require_pending(pending: PendingUpdate) -> None:
    if pending.decision != "pending":
        raise AlreadyDecidedError(
            f"Pending update {pending.id} was already {pending.decision}",
            details={"pending_update_id": pending.id, "decision": pending.decision},
        )


def approve(pending_update_id: int, approver_id: str) -> transition_service.AppliedChange:
    """
    Approve a pending request by replaying its intent.

    Runs inside the unit's scope, the same one direct intents use. The
    decision and the applied change commit together.

    Raises:
        NotFoundError: request (or its unit) missing
        AlreadyDecidedError: request not pending
        EngineError subclasses: the replayed intent was refused; the request
            stays pending
    """
    unit_id = get_pending_update(pending_update_id).unit_id

    def _op():
        with unit_scope(unit_id):
            try:
                pending = lock_for_update(
                    db.session.query(PendingUpdate).filter_by(id=pending_update_id)
                ).first()
                if pending is None:
                    raise NotFoundError(
                        f"Pending update {pending_update_id} not found",
                        details={"pending_update_id": pending_update_id},
                    )
                _require_pending(pending)

                intent = ChangeIntent.from_dict(pending.intent, unit_id=pending.unit_id)
                applied = transition_service.apply_intent_locked(intent)

                pending.decision = "approved"
                pending.decided_by = approver_id
                pending.decided_at = utcnow()
                pending.last_error = None
                db.session.commit()
            except IntegrityError as exc:
                db.session.rollback()
                transition_service.raise_if_sold(unit_id, exc)
                raise
            except Exception:
                db.session.rollback()
                raise
            return applied

    try:
        applied = run_with_retry(_op)
    except AlreadyDecidedError:
        raise
    except EngineError as exc:
        _record_failure(pending_update_id, exc)
        current_app.logger.warning(
            "Approval of pending update %s refused: %s", pending_update_id, exc
        )
        raise

    current_app.logger.info(
        "Pending update %s approved by %s", pending_update_id, approver_id
    )
    return applied


def _record_failure(pending_update_id: int, exc: EngineError) -> None:
    pending = db.session.get(PendingUpdate, pending_update_id)
    if pending is None or pending.decision != "pending":
        return
    pending.last_error = f"{exc.code}: {exc}"[:255]
    db.session.commit()


def reject(pending_update_id: int, approver_id: str, *, note: str | None = None) -> PendingUpdate:
    """
    Reject a pending request. Never touches units, sales or assignments.

    Takes the unit's scope so it cannot interleave with an approval of the
    same request.
    """
    unit_id = get_pending_update(pending_update_id).unit_id

    def _op():
        with unit_scope(unit_id):
            try:
                pending = lock_for_update(
                    db.session.query(PendingUpdate).filter_by(id=pending_update_id)
                ).first()
                if pending is None:
                    raise NotFoundError(
                        f"Pending update {pending_update_id} not found",
                        details={"pending_update_id": pending_update_id},
                    )
                _require_pending(pending)

                pending.decision = "rejected"
                pending.decided_by = approver_id
                pending.decided_at = utcnow()
                pending.decision_note = (note or "").strip()[:255] or None
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            return pending

    pending = run_with_retry(_op)
    current_app.logger.info("Pending update %s rejected by %s", pending_update_id, approver_id)
    return pending
