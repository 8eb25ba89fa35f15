from datetime import timedelta
from io import StringIO
from unittest import mock

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from railpay.apps.ledger.types import EventKind
from railpay.apps.passes.models import Pass
from railpay.apps.passes.tasks import expire_passes
from railpay.apps.reconciliation.models import ReconciliationRun
from railpay.apps.reconciliation.tasks import reconcile_chain_events
from railpay.apps.tickets.models import Ticket
from railpay.apps.tickets.tasks import expire_tickets
from railpay.exceptions import LedgerUnavailable

pytestmark = pytest.mark.django_db


def test_expire_passes(coordinator, passenger):
    stale = coordinator.buy_pass(passenger, "daily")
    fresh = coordinator.buy_pass(passenger, "monthly")
    Pass.objects.filter(pk=stale.pk).update(
        starts_at=timezone.now() - timedelta(days=1, minutes=1),
        expires_at=timezone.now() - timedelta(minutes=1),
    )

    assert expire_passes() == 1
    assert Pass.objects.get(pk=stale.pk).status == "expired"
    assert Pass.objects.get(pk=fresh.pk).status == "active"
    assert expire_passes() == 0


def test_expire_tickets_respects_grace(coordinator, passenger, route, settings):
    settings.TICKET_EXPIRY_GRACE_HOURS = 2
    old = coordinator.buy_ticket(passenger, route.id)
    recent = coordinator.buy_ticket(passenger, route.id)
    used = coordinator.buy_ticket(passenger, route.id)
    coordinator.validate_ticket(used.qr_payload)

    Ticket.objects.filter(pk=old.pk).update(travel_time=timezone.now() - timedelta(hours=3))
    Ticket.objects.filter(pk__in=[recent.pk, used.pk]).update(travel_time=timezone.now() - timedelta(hours=1))

    assert expire_tickets() == 1
    assert Ticket.objects.get(pk=old.pk).status == "expired"
    assert Ticket.objects.get(pk=recent.pk).status == "valid"
    assert Ticket.objects.get(pk=used.pk).status == "used"


def test_reconcile_task(ledger, passenger):
    ledger.issue_pass(passenger.wallet_address, 1, 7 * 24 * 3600)

    with mock.patch("railpay.apps.reconciliation.services.runs.ledger_reader_from_settings", return_value=ledger):
        result = reconcile_chain_events.apply(kwargs={"from_block": 0}).get()

    assert result["events_processed"][EventKind.PASS_ISSUED.value]["applied"] == 1
    assert result["block_range"] == {"from": 0, "to": ledger.block, "current": ledger.block}
    assert ReconciliationRun.objects.get().trigger == "task"
    assert Pass.objects.get().pass_class == "weekly"


def test_reconcile_command(ledger, passenger):
    ledger.issue_pass(passenger.wallet_address, 0, 24 * 3600)
    out = StringIO()

    with mock.patch("railpay.apps.reconciliation.services.runs.ledger_reader_from_settings", return_value=ledger):
        call_command("reconcile_chain_events", "--from-block", "0", stdout=out)

    assert "Applied 1 events." in out.getvalue()
    assert ReconciliationRun.objects.get().trigger == "command"


def test_reconcile_command_unreachable():
    with mock.patch(
        "railpay.apps.reconciliation.services.runs.ledger_reader_from_settings",
        side_effect=LedgerUnavailable("connection refused"),
    ):
        with pytest.raises(CommandError, match="Ledger unreachable"):
            call_command("reconcile_chain_events", stdout=StringIO())


def test_reconcile_command_inverted_range(ledger):
    with mock.patch("railpay.apps.reconciliation.services.runs.ledger_reader_from_settings", return_value=ledger):
        with pytest.raises(CommandError):
            call_command("reconcile_chain_events", "--from-block", "50", "--to-block", "10", stdout=StringIO())
