import uuid

import pytest

from railpay.apps.ledger.identifiers import IdentifierMapper, to_ledger_id
from railpay.apps.ledger.models import LedgerIdentifier
from railpay.exceptions import IdentifierCollision

FIRST = uuid.UUID("0123456789abcdef0000000000000001")
SAME_PREFIX = uuid.UUID("0123456789abcdefffffffffffffffff")


def test_ledger_id_is_first_16_hex_digits():
    assert to_ledger_id(FIRST) == 0x0123456789ABCDEF
    assert to_ledger_id(str(FIRST)) == to_ledger_id(FIRST)


def test_ledger_id_fits_uint64():
    assert to_ledger_id(uuid.UUID(int=(1 << 128) - 1)) == (1 << 64) - 1


@pytest.mark.django_db
def test_register_is_idempotent():
    mapper = IdentifierMapper()
    assert mapper.register("route", FIRST) == mapper.register("route", FIRST)
    assert LedgerIdentifier.objects.filter(namespace="route").count() == 1


@pytest.mark.django_db
def test_register_raises_on_collision_and_keeps_first_mapping():
    mapper = IdentifierMapper()
    ledger_id = mapper.register("ticket", FIRST)

    with pytest.raises(IdentifierCollision) as exc:
        mapper.register("ticket", SAME_PREFIX)

    assert exc.value.ledger_id == ledger_id
    assert exc.value.existing == FIRST
    assert mapper.resolve("ticket", ledger_id) == FIRST


@pytest.mark.django_db
def test_namespaces_are_independent():
    mapper = IdentifierMapper()
    mapper.register("route", FIRST)
    assert mapper.register("ticket", SAME_PREFIX) == to_ledger_id(SAME_PREFIX)
    assert mapper.resolve("route", to_ledger_id(FIRST)) == FIRST
    assert mapper.resolve("ticket", to_ledger_id(FIRST)) == SAME_PREFIX


@pytest.mark.django_db
def test_resolve_unknown_returns_none():
    assert IdentifierMapper().resolve("pass", 42) is None
