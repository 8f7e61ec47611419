# Overview: Service-layer bulk operations; per-unit fan-out with continue-on-error results.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import EngineError, ValidationError
from . import assignment_service, inventory_service, transition_service
from .intents import UNSET, ChangeIntent


@dataclass
class BulkItemResult:
    unit_id: int
    ok: bool
    error_code: str | None = None
    error: str | None = None

    @classmethod
    def failed(cls, unit_id: int, exc: EngineError) -> "BulkItemResult":
        return cls(unit_id=unit_id, ok=False, error_code=exc.code, error=str(exc))

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "ok": self.ok,
            "error_code": self.error_code,
            "error": self.error,
        }


def summarize(results: list[BulkItemResult]) -> dict:
    succeeded = sum(1 for r in results if r.ok)
    return {
        "results": [r.to_dict() for r in results],
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }


def bulk_set_status(
    unit_ids: list[int],
    status: str,
    *,
    sold_by_user_id: str | None = None,
    payment_status: str | None = None,
) -> list[BulkItemResult]:
    """
    Move many units to one status through the transition engine.

    Units are processed one at a time, each in its own transaction. A unit
    that fails (AlreadySold, InvalidTransition, NotFound) is reported and the
    batch continues. Results keep input order; duplicate ids run once.
    """
    if not unit_ids:
        raise ValidationError("unit_ids is required")

    def _intent(unit_id):
        intent = ChangeIntent(unit_id=unit_id, target_status=status)
        if status == "sold" or sold_by_user_id is not None:
            intent.sold_by_user_id = sold_by_user_id
        if payment_status is not None:
            intent.payment_status = payment_status
        return intent

    # Shape errors (bad status, no seller, sale fields without a sale) fail
    # the whole call, not each item.
    _intent(unit_ids[0]).validate()

    results = []
    for unit_id in dict.fromkeys(unit_ids):
        intent = _intent(unit_id)
        try:
            transition_service.apply_intent(intent)
            results.append(BulkItemResult(unit_id=unit_id, ok=True))
        except EngineError as exc:
            results.append(BulkItemResult.failed(unit_id, exc))

    failed = sum(1 for r in results if not r.ok)
    current_app.logger.info(
        "Bulk status -> %s: %d ok, %d failed", status, len(results) - failed, failed
    )
    return results


def bulk_assign(
    unit_ids: list[int],
    *,
    team_id=UNSET,
    team_name=UNSET,
    user_id=UNSET,
    user_name=UNSET,
) -> list[BulkItemResult]:
    """Assign many units to a team and/or field user (merge per unit)."""
    if not unit_ids:
        raise ValidationError("unit_ids is required")

    return assignment_service.assign_many(
        unit_ids,
        team_id=team_id,
        team_name=team_name,
        user_id=user_id,
        user_name=user_name,
    )


def delete_many(unit_ids: list[int]) -> int:
    """Hard delete (no transition checks). See inventory_service.delete_units."""
    if not unit_ids:
        raise ValidationError("unit_ids is required")
    return inventory_service.delete_units(unit_ids)
