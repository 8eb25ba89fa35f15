from datetime import timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from railpay.apps.audit.models import AdminLog
from railpay.apps.audit.services import record_admin_action
from railpay.apps.passes.models import Pass
from railpay.apps.payments.models import Payment
from railpay.apps.tickets.models import Ticket

pytestmark = pytest.mark.django_db

TX = "0x" + "aa" * 32


@pytest.fixture
def ticket(passenger, route):
    return Ticket.objects.create(
        owner=passenger,
        route=route,
        price=Decimal("10"),
        travel_time=timezone.now() + timedelta(hours=2),
        ledger_tx_hash=TX,
        ledger_token_id=5,
    )


@pytest.mark.parametrize(
    "pass_class, duration",
    [("daily", timedelta(hours=24)), ("weekly", timedelta(days=7)), ("monthly", timedelta(days=30))],
)
def test_pass_window_is_derived_from_class(passenger, pass_class, duration):
    starts = timezone.now()
    travel_pass = Pass.objects.create(
        owner=passenger,
        pass_class=pass_class,
        starts_at=starts,
        expires_at=starts + timedelta(days=365),
    )
    assert travel_pass.expires_at - travel_pass.starts_at == duration


def test_pass_is_immutable_except_status(passenger):
    travel_pass = Pass.objects.create(owner=passenger, pass_class="daily")

    travel_pass.status = "expired"
    travel_pass.save(update_fields=["status"])

    travel_pass.expires_at += timedelta(days=1)
    with pytest.raises(ValueError):
        travel_pass.save()
    with pytest.raises(ValueError):
        travel_pass.delete()


def test_ticket_used_requires_validated_at(ticket):
    with pytest.raises(IntegrityError), transaction.atomic():
        Ticket.objects.filter(pk=ticket.pk).update(status="used")


def test_ticket_validated_at_requires_used(ticket):
    with pytest.raises(IntegrityError), transaction.atomic():
        Ticket.objects.filter(pk=ticket.pk).update(validated_at=timezone.now())


def test_ticket_token_requires_mint_tx(passenger, route):
    with pytest.raises(IntegrityError), transaction.atomic():
        Ticket.objects.create(
            owner=passenger, route=route, price=Decimal("1"), travel_time=timezone.now(), ledger_token_id=6
        )


def test_ticket_is_never_deleted(ticket):
    assert ticket.display_status == "valid"
    with pytest.raises(ValueError):
        ticket.delete()


def test_ticket_past_travel_time_displays_expired(ticket, settings):
    settings.TICKET_EXPIRY_GRACE_HOURS = 1
    ticket.travel_time = timezone.now() - timedelta(hours=2)
    assert ticket.is_past_travel
    assert ticket.display_status == "expired"


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
def test_payment_amount_must_be_positive(passenger, ticket, amount):
    with pytest.raises(IntegrityError), transaction.atomic():
        Payment.objects.create(payer=passenger, ticket=ticket, amount=amount)


def test_payment_needs_exactly_one_target(passenger, ticket):
    travel_pass = Pass.objects.create(owner=passenger, pass_class="daily")
    with pytest.raises(IntegrityError), transaction.atomic():
        Payment.objects.create(payer=passenger, ticket=ticket, travel_pass=travel_pass, amount=Decimal("1"))
    with pytest.raises(IntegrityError), transaction.atomic():
        Payment.objects.create(payer=passenger, amount=Decimal("1"))


def test_payment_receipt_id_is_unique_and_immutable(passenger, ticket):
    Payment.objects.create(payer=passenger, ticket=ticket, amount=Decimal("1"), ledger_receipt_id=1)
    with pytest.raises(IntegrityError), transaction.atomic():
        Payment.objects.create(payer=passenger, ticket=ticket, amount=Decimal("2"), ledger_receipt_id=1)

    payment = Payment.objects.get(ledger_receipt_id=1)
    payment.ledger_receipt_id = 2
    with pytest.raises(ValueError):
        payment.save()
    with pytest.raises(ValueError):
        payment.delete()


def test_admin_log_is_append_only(admin_profile):
    entry = record_admin_action(admin_profile, "fare_updated", "route", "r-1", "changed", {"old": "1"})

    entry.description = "rewritten"
    with pytest.raises(ValueError):
        entry.save()
    with pytest.raises(ValueError):
        entry.delete()
    assert AdminLog.objects.get().description == "changed"


def test_wallet_address_is_stored_lowercase(make_profile):
    profile = make_profile()
    profile.wallet_address = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
    profile.save()
    profile.refresh_from_db()
    assert profile.wallet_address == "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
