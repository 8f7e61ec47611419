"""Inventory store: creation, lookup, filtering and stats."""

import pytest

from stocktrack.errors import NotFoundError, ValidationError
from stocktrack.models import Unit
from stocktrack.services import inventory_service


def test_create_unit_defaults(db_session):
    unit = inventory_service.create_unit(smartcard=" SC1 ", serial_number="SN1")
    assert unit.status == "in_store"
    assert unit.kind == "full_set"
    assert unit.smartcard == "SC1"
    assert unit.version_id == 1


def test_create_units_is_all_or_nothing(db_session):
    rows = [
        {"smartcard": "SC1", "serial_number": "SN1"},
        {"smartcard": "SC2", "serial_number": ""},
    ]
    with pytest.raises(ValidationError) as exc:
        inventory_service.create_units(rows)

    assert exc.value.details == {"row": 1}
    assert Unit.query.count() == 0


@pytest.mark.parametrize("row", [
    {"smartcard": "SC1", "serial_number": "SN1", "status": "sold"},
    {"smartcard": "SC1", "serial_number": "SN1", "kind": "antenna"},
    {"smartcard": "SC1", "serial_number": "SN1", "colour": "red"},
])
def test_create_units_rejects_bad_rows(db_session, row):
    with pytest.raises(ValidationError):
        inventory_service.create_units([row])


def test_duplicate_identifiers_allowed_and_oldest_wins(make_unit):
    first = make_unit(smartcard="DUP", serial_number="S-A")
    make_unit(smartcard="DUP", serial_number="S-B")

    assert inventory_service.find_unit("DUP").id == first.id
    assert inventory_service.find_unit("S-B").serial_number == "S-B"
    assert inventory_service.find_unit("missing") is None


def test_find_unit_requires_code(db_session):
    with pytest.raises(ValidationError):
        inventory_service.find_unit("  ")


def test_get_unit_not_found(db_session):
    with pytest.raises(NotFoundError) as exc:
        inventory_service.get_unit(404)
    assert exc.value.details == {"unit_id": 404}


def test_list_units_filters(make_unit):
    a = make_unit(kind="decoder_only", region_id="R1")
    b = make_unit(status="in_hand", region_id="R1")
    make_unit(region_id="R2")

    assert [u.id for u in inventory_service.list_units({"region_id": "R1"})] == [b.id, a.id]
    assert [u.id for u in inventory_service.list_units({"kind": "decoder_only"})] == [a.id]
    assert [u.id for u in inventory_service.list_units({"status": "in_hand"})] == [b.id]
    assert len(inventory_service.list_units(limit=2)) == 2


def test_list_units_rejects_unknown_filters(db_session):
    with pytest.raises(ValidationError):
        inventory_service.list_units({"colour": "red"})
    with pytest.raises(ValidationError):
        inventory_service.list_units({"status": "lost"})


def test_inventory_stats(make_unit):
    make_unit()
    make_unit(status="in_hand")
    make_unit(kind="decoder_only")

    stats = inventory_service.inventory_stats()
    assert stats["total"] == 3
    assert stats["by_status"] == {"in_store": 2, "in_hand": 1, "sold": 0}
    assert stats["by_kind"]["decoder_only"] == {"in_store": 1, "in_hand": 0, "sold": 0}
    assert stats["by_kind"]["full_set"]["in_hand"] == 1
