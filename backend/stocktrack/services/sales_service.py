"""
Sale Ledger - one row per sold unit.

WHY: The sale is the commercial record of a unit leaving stock. It is
created only by the transition service (inside the same transaction that
moves the unit to "sold"); this module owns sale codes, payment and the
read views over the ledger.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Sale, DocumentSequence
from stocktrack.time_utils import utcnow, days_since
from .concurrency import lock_for_update, run_with_retry, unit_scope
from .intents import NO_PACKAGE


SALE_CODE_SEQUENCE = "SALE"
SALE_CODE_PREFIX = "SL"


def next_sale_code(*, pad: int = 6) -> str:
    """
    Allocate the next sale code inside the caller's transaction.

    The sequence row is bumped with a single UPDATE (row-locked until the
    caller commits). The first allocation inserts the row in a savepoint so
    a concurrent first insert does not roll back the caller's work.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == SALE_CODE_SEQUENCE)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=SALE_CODE_SEQUENCE, next_number=2))
            return f"{SALE_CODE_PREFIX}-{1:0{pad}d}"
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=SALE_CODE_SEQUENCE)
        .scalar()
    )
    return f"{SALE_CODE_PREFIX}-{current - 1:0{pad}d}"


def create_sale_locked(
    unit_id: int,
    *,
    sold_by_user_id: str,
    customer_phone: str | None = None,
    package_choice: str | None = None,
    is_paid: bool = False,
) -> Sale:
    """
    Insert the sale row for a unit. Caller holds the unit scope, has checked
    that no sale exists, and commits.
    """
    now = utcnow()
    has_package = package_choice not in (None, "", NO_PACKAGE)

    sale = Sale(
        sale_code=next_sale_code(),
        unit_id=unit_id,
        sold_by_user_id=sold_by_user_id,
        customer_phone=customer_phone or None,
        has_package=has_package,
        package_type=package_choice if has_package else None,
        is_paid=bool(is_paid),
        sold_at=now,
        paid_at=now if is_paid else None,
    )
    db.session.add(sale)
    db.session.flush()
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def sale_for_unit(unit_id: int) -> Sale | None:
    return Sale.query.filter_by(unit_id=unit_id).first()


def list_sales(
    *,
    is_paid: bool | None = None,
    sold_by_user_id: str | None = None,
    limit: int = 500,
) -> list[Sale]:
    """Sales newest-first, optionally filtered by payment state or seller."""
    q = Sale.query
    if is_paid is not None:
        q = q.filter(Sale.is_paid.is_(is_paid))
    if sold_by_user_id is not None:
        q = q.filter_by(sold_by_user_id=sold_by_user_id)
    q = q.order_by(Sale.sold_at.desc(), Sale.id.desc())
    return q.limit(limit).all()


def list_unpaid_sales(*, limit: int = 500) -> list[dict]:
    """
    Unpaid sales with their age, oldest debt first.

    Each entry is the sale dict plus "days_unpaid".
    """
    now = utcnow()
    rows = []
    for sale in list_sales(is_paid=False, limit=limit):
        data = sale.to_dict(include_unit=True)
        data["days_unpaid"] = days_since(sale.sold_at, now=now)
        rows.append(data)
    rows.sort(key=lambda r: r["days_unpaid"], reverse=True)
    return rows


def mark_paid(sale_id: int) -> Sale:
    """
    Flip a sale to paid.

    - NotFoundError if the sale does not exist
    - already paid: returned unchanged (paid_at is never rewritten)
    - otherwise is_paid=True, paid_at=now
    """
    sale = get_sale(sale_id)
    unit_id = sale.unit_id

    def _op():
        with unit_scope(unit_id):
            try:
                locked = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
                if locked is None:
                    raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})

                if locked.is_paid:
                    db.session.rollback()
                    return locked

                locked.is_paid = True
                locked.paid_at = utcnow()
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise

            current_app.logger.info("Sale %s marked paid", locked.sale_code)
            return locked

    return run_with_retry(_op)


def update_sale_details(
    sale_id: int,
    *,
    customer_phone: str | None = None,
    package_choice: str | None = None,
    fields_present: set[str] | None = None,
) -> Sale:
    """
    Edit commercial fields of an existing sale.

    Payment is not editable here: it only moves through mark_paid().
    fields_present lists which keyword arguments the caller actually sent,
    so None can mean "clear" (customer_phone) rather than "leave alone".
    """
    present = fields_present if fields_present is not None else {
        name for name, value in (("customer_phone", customer_phone), ("package_choice", package_choice))
        if value is not None
    }
    unknown = present - {"customer_phone", "package_choice"}
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    if not present:
        raise ValidationError("No sale fields to update")
    for name, value in (("customer_phone", customer_phone), ("package_choice", package_choice)):
        if name in present and value is not None and not isinstance(value, str):
            raise ValidationError(f"{name} must be a string or null", details={"field": name})

    sale = get_sale(sale_id)
    unit_id = sale.unit_id

    def _op():
        with unit_scope(unit_id):
            try:
                locked = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
                if locked is None:
                    raise NotFoundError(f"Sale {sale_id} not found", details={"sale_id": sale_id})

                if "customer_phone" in present:
                    locked.customer_phone = (customer_phone or "").strip() or None
                if "package_choice" in present:
                    has_package = package_choice not in (None, "", NO_PACKAGE)
                    locked.has_package = has_package
                    locked.package_type = package_choice if has_package else None

                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            return locked

    return run_with_retry(_op)
