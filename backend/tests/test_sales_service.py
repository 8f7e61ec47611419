"""
Sale ledger tests.

Verifies:
- Sale codes are sequential and zero-padded
- mark_paid is idempotent and never reverts payment
- Sale detail edits never touch payment
- Unpaid listing reports age, oldest first
"""

from datetime import timedelta

import pytest

from stocktrack.extensions import db
from stocktrack.errors import NotFoundError, ValidationError
from stocktrack.models import Sale
from stocktrack.services import sales_service
from stocktrack.services.intents import ChangeIntent
from stocktrack.services.transition_service import apply_intent
from stocktrack.time_utils import utcnow


def _sell(unit_id, **extra):
    return apply_intent(ChangeIntent(unit_id=unit_id, target_status="sold", sold_by_user_id="A1", **extra)).sale


def test_sale_codes_are_sequential(make_unit):
    codes = [_sell(make_unit().id).sale_code for _ in range(3)]
    assert codes == ["SL-000001", "SL-000002", "SL-000003"]


def test_mark_paid_sets_paid_at_once(unit):
    sale = _sell(unit.id)
    paid = sales_service.mark_paid(sale.id)
    first = paid.paid_at

    again = sales_service.mark_paid(sale.id)
    assert again.is_paid is True
    assert again.paid_at == first


def test_mark_paid_on_paid_sale_keeps_original_time(unit):
    sale = _sell(unit.id, payment_status="paid")
    original = sale.paid_at
    assert sales_service.mark_paid(sale.id).paid_at == original


def test_mark_paid_unknown_sale(db_session):
    with pytest.raises(NotFoundError):
        sales_service.mark_paid(12345)


def test_update_sale_details(unit):
    sale = _sell(unit.id, customer_phone="0700", package_choice="basic")

    updated = sales_service.update_sale_details(
        sale.id, customer_phone=None, package_choice="none", fields_present={"customer_phone", "package_choice"},
    )
    assert updated.customer_phone is None
    assert updated.has_package is False
    assert updated.package_type is None
    assert updated.is_paid is False


def test_update_sale_details_leaves_absent_fields(unit):
    sale = _sell(unit.id, customer_phone="0700")
    updated = sales_service.update_sale_details(sale.id, package_choice="gold")
    assert updated.customer_phone == "0700"
    assert updated.package_type == "gold"


def test_update_sale_details_refuses_payment_fields(unit):
    sale = _sell(unit.id)
    with pytest.raises(ValidationError, match="Field not allowed: is_paid"):
        sales_service.update_sale_details(sale.id, fields_present={"is_paid"})
    assert db.session.get(Sale, sale.id).is_paid is False


def test_list_sales_filters(make_unit):
    paid = _sell(make_unit().id, payment_status="paid")
    unpaid = _sell(make_unit().id)

    assert [s.id for s in sales_service.list_sales(is_paid=True)] == [paid.id]
    assert [s.id for s in sales_service.list_sales(is_paid=False)] == [unpaid.id]
    assert len(sales_service.list_sales(sold_by_user_id="A1")) == 2
    assert sales_service.list_sales(sold_by_user_id="nobody") == []


def test_list_unpaid_sales_oldest_first(db_session, make_unit):
    recent = _sell(make_unit().id)
    old = _sell(make_unit().id)
    _sell(make_unit().id, payment_status="paid")

    old.sold_at = utcnow() - timedelta(days=10)
    db_session.commit()

    rows = sales_service.list_unpaid_sales()
    assert [r["id"] for r in rows] == [old.id, recent.id]
    assert rows[0]["days_unpaid"] == 10
    assert rows[1]["days_unpaid"] == 0
    assert rows[0]["unit"]["smartcard"]


def test_sale_for_unit(unit):
    assert sales_service.sale_for_unit(unit.id) is None
    sale = _sell(unit.id)
    assert sales_service.sale_for_unit(unit.id).id == sale.id
