import uuid

import pytest

from railpay.apps.audit.models import AdminLog
from railpay.apps.ledger.types import TicketStatus
from railpay.apps.settlement.services import PendingPersist
from railpay.apps.settlement.services.persist import persist_validation
from railpay.apps.tickets.models import Ticket
from railpay.apps.tickets.qr import build_qr_payload, parse_qr_payload
from railpay.exceptions import (
    AlreadyValidated,
    LedgerRejected,
    NotAuthorized,
    PreconditionNotMet,
    ResourceNotFound,
)

pytestmark = pytest.mark.django_db


@pytest.fixture
def ticket(coordinator, passenger, route):
    return coordinator.buy_ticket(passenger, route.id)


def test_qr_payload_round_trip():
    ticket_id = uuid.uuid4()
    assert build_qr_payload(ticket_id) == f"railpay:ticket:{ticket_id}"
    assert parse_qr_payload(build_qr_payload(ticket_id)) == ticket_id
    assert parse_qr_payload(f"railpay:pass:{ticket_id}") is None
    assert parse_qr_payload("railpay:ticket:not-a-uuid") is None


def test_validate_marks_ticket_used(coordinator, ledger, ticket):
    validated = coordinator.validate_ticket(ticket.qr_payload)

    assert validated.status == "used"
    assert validated.validated_at is not None
    assert validated.validation_tx_hash == ledger.submitted[-1].tx_hash
    assert ledger.tickets[ticket.ledger_token_id].status == TicketStatus.USED


def test_second_validation_is_rejected_without_ledger_call(coordinator, ledger, ticket):
    first = coordinator.validate_ticket(ticket.qr_payload)
    submitted = len(ledger.submitted)

    with pytest.raises(AlreadyValidated) as exc:
        coordinator.validate_ticket(ticket.qr_payload)

    assert exc.value.validated_at == first.validated_at
    assert len(ledger.submitted) == submitted
    ticket.refresh_from_db()
    assert ticket.status == "used"


def test_revert_on_ticket_used_on_chain_heals_mirror(coordinator, ledger, ticket):
    # validated by another gate whose mirror write never happened
    ledger.validate_ticket(ticket.ledger_token_id)

    with pytest.raises(AlreadyValidated):
        coordinator.validate_ticket(ticket.qr_payload)

    ticket.refresh_from_db()
    assert ticket.status == "used"
    assert ticket.validated_at is not None


def test_revert_on_valid_ticket_propagates(coordinator, ledger, ticket):
    ledger.fail_submit = LedgerRejected("validateTicket reverted")

    with pytest.raises(LedgerRejected):
        coordinator.validate_ticket(ticket.qr_payload)

    ticket.refresh_from_db()
    assert ticket.status == "valid"


def test_staff_scan_writes_audit_entry(coordinator, ledger, ticket, staff):
    coordinator.validate_ticket(ticket.qr_payload, actor=staff, device_id="gate-3")

    entry = AdminLog.objects.get(action_type="ticket_validated")
    assert entry.actor == staff
    assert entry.resource_id == str(ticket.id)
    assert entry.metadata["device_id"] == "gate-3"
    assert entry.metadata["tx_hash"] == ledger.submitted[-1].tx_hash
    assert "gate-3" in entry.description


def test_passenger_cannot_scan(coordinator, ledger, ticket, passenger):
    with pytest.raises(NotAuthorized):
        coordinator.validate_ticket(ticket.qr_payload, actor=passenger)
    assert len(ledger.submitted) == 1


@pytest.mark.parametrize("payload", ["", "ticket:123", "railpay:ticket:xyz"])
def test_malformed_qr_is_rejected(coordinator, payload):
    with pytest.raises(PreconditionNotMet) as exc:
        coordinator.validate_ticket(payload)
    assert exc.value.reason == "invalid_qr"


def test_unknown_ticket_is_not_found(coordinator):
    with pytest.raises(ResourceNotFound):
        coordinator.validate_ticket(build_qr_payload(uuid.uuid4()))


def test_expired_ticket_is_rejected(coordinator, ledger, ticket):
    Ticket.objects.filter(pk=ticket.pk).update(status="expired")

    with pytest.raises(PreconditionNotMet) as exc:
        coordinator.validate_ticket(ticket.qr_payload)
    assert exc.value.reason == "ticket_expired"
    assert len(ledger.submitted) == 1


def test_concurrent_validation_persist_keeps_first_timestamp(coordinator, ticket):
    validated = coordinator.validate_ticket(ticket.qr_payload)
    racing = PendingPersist(
        kind="validation",
        reference=None,
        profile_id=str(ticket.owner_id),
        record_id=str(ticket.id),
        tx_hash="0x" + "ff" * 32,
        block_number=None,
        ledger_id=ticket.ledger_token_id,
    )

    with pytest.raises(AlreadyValidated):
        persist_validation(racing)

    ticket.refresh_from_db()
    assert ticket.validated_at == validated.validated_at
    assert ticket.validation_tx_hash == validated.validation_tx_hash
