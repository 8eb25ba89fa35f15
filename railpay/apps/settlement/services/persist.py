"""
Mirror writes for confirmed ledger transactions.

Every writer is keyed on the chain-assigned id first and the pre-chosen
record id second, so running one twice (retry, or after the reconciler got
there first) returns the existing row.
"""

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
import logging
import uuid

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from railpay.apps.passes.models import PASS_DURATIONS, Pass
from railpay.apps.payments.models import Payment
from railpay.apps.tickets.models import Ticket
from railpay.exceptions import AlreadyValidated
from .attempts import PendingPersist

logger = logging.getLogger(__name__)


def _uuid(value):
    if value is None or isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def _fill_ledger_id(model, field: str, record_id, ledger_id) -> None:
    """Set the chain-assigned id on a row written before it was known."""
    if ledger_id is None:
        return
    filled = model.objects.filter(pk=record_id, **{f"{field}__isnull": True}).update(**{field: ledger_id})
    if filled:
        logger.warning(f"{model.__name__} {record_id}: recorded ledger id {ledger_id}")


def persist_ticket(pending: PendingPersist) -> Ticket:
    request = pending.payload
    record_id = _uuid(pending.record_id)
    if pending.ledger_id is not None:
        existing = Ticket.objects.filter(ledger_token_id=pending.ledger_id).first()
        if existing is not None:
            if existing.route_id is None and request.get("route_id"):
                existing.route_id = _uuid(request["route_id"])
                existing.save(update_fields=["route"])
            logger.info(f"Ticket for token {pending.ledger_id} already mirrored as {existing.id}")
            return existing

    if Ticket.objects.filter(pk=record_id).exists():
        _fill_ledger_id(Ticket, "ledger_token_id", record_id, pending.ledger_id)
        return Ticket.objects.get(pk=record_id)

    return Ticket.objects.create(
        id=record_id,
        owner_id=_uuid(pending.profile_id),
        route_id=_uuid(request["route_id"]),
        seat_label=request.get("seat_label") or "",
        ticket_type=request.get("ticket_type", "single"),
        price=Decimal(request["price"]),
        travel_time=parse_datetime(request["travel_time"]),
        ledger_tx_hash=pending.tx_hash,
        ledger_token_id=pending.ledger_id,
    )


def persist_pass(pending: PendingPersist) -> Pass:
    pass_class = pending.payload["pass_class"]
    record_id = _uuid(pending.record_id)
    if pending.ledger_id is not None:
        existing = Pass.objects.filter(ledger_pass_id=pending.ledger_id).first()
        if existing is not None:
            logger.info(f"Pass {pending.ledger_id} already mirrored as {existing.id}")
            return existing

    if Pass.objects.filter(pk=record_id).exists():
        _fill_ledger_id(Pass, "ledger_pass_id", record_id, pending.ledger_id)
        return Pass.objects.get(pk=record_id)

    expires_at = pending.event_args.get("expiresAt")
    if expires_at:
        # the chain fixes the expiry; the start is derived from it
        starts_at = datetime.fromtimestamp(int(expires_at), tz=dt_timezone.utc) - PASS_DURATIONS[pass_class]
    else:
        starts_at = timezone.now()

    return Pass.objects.create(
        id=record_id,
        owner_id=_uuid(pending.profile_id),
        pass_class=pass_class,
        starts_at=starts_at,
        ledger_tx_hash=pending.tx_hash,
        ledger_pass_id=pending.ledger_id,
    )


def persist_payment(pending: PendingPersist) -> Payment:
    request = pending.payload
    record_id = _uuid(pending.record_id)
    if pending.ledger_id is not None:
        existing = Payment.objects.filter(ledger_receipt_id=pending.ledger_id).first()
        if existing is not None:
            return existing

    payment = (
        Payment.objects.filter(pk=record_id).first()
        or Payment.objects.filter(reference=pending.reference).first()
    )
    if payment is not None:
        _fill_ledger_id(Payment, "ledger_receipt_id", payment.pk, pending.ledger_id)
        return Payment.objects.get(pk=payment.pk)

    return Payment.objects.create(
        id=record_id,
        payer_id=_uuid(pending.profile_id),
        ticket_id=_uuid(request.get("ticket_id")),
        travel_pass_id=_uuid(request.get("pass_id")),
        amount=Decimal(request["amount"]),
        currency=request.get("currency") or "ETH",
        method=request.get("method") or "blockchain",
        ledger_tx_hash=pending.tx_hash,
        ledger_receipt_id=pending.ledger_id,
        reference=pending.reference,
        reference_hash=request.get("reference_hash", ""),
        metadata={
            "msg_value": request.get("msg_value") or "0",
            "block_number": pending.block_number,
        },
    )


def persist_validation(pending: PendingPersist) -> Ticket:
    validated_at = timezone.now()
    updated = Ticket.objects.filter(pk=_uuid(pending.record_id), status="valid").update(
        status="used",
        validated_at=validated_at,
        validation_tx_hash=pending.tx_hash,
    )
    ticket = Ticket.objects.get(pk=_uuid(pending.record_id))
    if not updated and ticket.validation_tx_hash != pending.tx_hash:
        raise AlreadyValidated(ticket.id, ticket.validated_at)
    return ticket


PERSISTERS = {
    "ticket": persist_ticket,
    "pass": persist_pass,
    "payment": persist_payment,
    "validation": persist_validation,
}
