# Overview: ChangeIntent, the unit of work passed to the transition service and stored by the approval queue.

"""
A ChangeIntent names exactly the fields a caller wants to change on one unit.

Every optional field defaults to UNSET ("don't touch"). For the assignment
fields an explicit None is meaningful: it clears that side of the
assignment. Serialization keeps the distinction: to_dict() emits only
present fields (None included) and from_dict() treats a missing key as
UNSET and a null value as None.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any

from ..errors import ValidationError
from ..models import UNIT_STATUSES


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

PAYMENT_STATUSES = ("paid", "unpaid")
NO_PACKAGE = "none"

SALE_FIELDS = ("payment_status", "package_choice", "customer_phone", "sold_by_user_id")
TEXT_FIELDS = (
    "package_choice",
    "customer_phone",
    "sold_by_user_id",
    "assign_team_id",
    "assign_team_name",
    "assign_user_id",
    "assign_user_name",
)


def is_set(value) -> bool:
    return value is not UNSET


@dataclass
class ChangeIntent:
    unit_id: int
    target_status: Any = UNSET
    payment_status: Any = UNSET
    package_choice: Any = UNSET
    customer_phone: Any = UNSET
    sold_by_user_id: Any = UNSET
    assign_team_id: Any = UNSET
    assign_team_name: Any = UNSET
    assign_user_id: Any = UNSET
    assign_user_name: Any = UNSET

    @property
    def sells(self) -> bool:
        return self.target_status == "sold"

    @property
    def has_assignment(self) -> bool:
        return is_set(self.assign_team_id) or is_set(self.assign_user_id)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    def validate(self) -> None:
        """
        Shape checks that need no database access.

        Raises:
            ValidationError: unknown status/payment value, a non-text value
                in a text field, selling without a seller, sale fields on a
                non-sale intent, or an intent that changes nothing.
        """
        if self.unit_id is None:
            raise ValidationError("unit_id is required")

        for name in TEXT_FIELDS:
            value = getattr(self, name)
            if is_set(value) and value is not None and not isinstance(value, str):
                raise ValidationError(f"{name} must be a string or null", details={"field": name})

        if is_set(self.target_status) and self.target_status not in UNIT_STATUSES:
            raise ValidationError(
                f"Invalid target_status '{self.target_status}'. Must be one of: {', '.join(UNIT_STATUSES)}"
            )

        if is_set(self.payment_status) and self.payment_status not in PAYMENT_STATUSES:
            raise ValidationError(
                f"Invalid payment_status '{self.payment_status}'. Must be one of: {', '.join(PAYMENT_STATUSES)}"
            )

        if self.sells:
            if not self.sold_by_user_id:
                raise ValidationError("sold_by_user_id is required when target_status is 'sold'")
        else:
            stray = [name for name in SALE_FIELDS if is_set(getattr(self, name))]
            if stray:
                raise ValidationError(
                    f"Sale fields require target_status 'sold': {', '.join(stray)}",
                    details={"fields": stray},
                )

        for id_field, name_field in (("assign_team_id", "assign_team_name"), ("assign_user_id", "assign_user_name")):
            if is_set(getattr(self, name_field)) and not is_set(getattr(self, id_field)):
                raise ValidationError(f"{name_field} requires {id_field}")

        if not is_set(self.target_status) and not self.has_assignment:
            raise ValidationError("Intent has no changes")

    def to_dict(self) -> dict:
        data = {"unit_id": self.unit_id}
        for f in fields(self):
            if f.name == "unit_id":
                continue
            value = getattr(self, f.name)
            if is_set(value):
                data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, payload: dict, *, unit_id: int | None = None) -> "ChangeIntent":
        """
        Build an intent from JSON. Unknown keys are rejected.

        unit_id, when given, overrides (and must agree with) payload["unit_id"].
        """
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        allowed = {f.name for f in fields(cls)}
        unknown = sorted(k for k in payload if k not in allowed)
        if unknown:
            raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

        payload_unit = payload.get("unit_id")
        if unit_id is not None and payload_unit is not None and _as_int(payload_unit) != unit_id:
            raise ValidationError("unit_id in body does not match the target unit")
        resolved = unit_id if unit_id is not None else payload_unit
        if resolved is None:
            raise ValidationError("unit_id is required")

        kwargs = {k: v for k, v in payload.items() if k != "unit_id"}
        for key in ("customer_phone", "package_choice", "assign_team_name", "assign_user_name"):
            if isinstance(kwargs.get(key), str):
                kwargs[key] = kwargs[key].strip() or None
        return cls(unit_id=_as_int(resolved), **kwargs)


def _as_int(value) -> int:
    if isinstance(value, bool):
        raise ValidationError("unit_id must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("unit_id must be an integer")
