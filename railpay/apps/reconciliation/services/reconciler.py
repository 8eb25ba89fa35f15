"""
Event reconciler

Scans a block range for every RailPay event kind and applies what the mirror
is missing. Each event is looked up by its natural key (token id, pass id or
receipt id) first, so scanning the same range twice, or two scans racing
over overlapping ranges, never applies an event twice: the unique
constraints on those keys turn a racing insert into an ``IntegrityError``
that is counted as a skip.

Per-event failures are logged and counted. Only losing the ledger
connection raises.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from typing import Callable, Dict, Optional, Tuple
import logging

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from web3 import Web3

from railpay.apps.ledger.identifiers import IdentifierMapper
from railpay.apps.ledger.types import EventKind, LedgerEvent, PassType, TicketStatus
from railpay.apps.passes.models import PASS_CLASSES, PASS_DURATIONS, Pass
from railpay.apps.payments.models import Payment
from railpay.apps.settlement.models import SettlementAttempt
from railpay.apps.settlement.services import PendingPersist
from railpay.apps.settlement.services.attempts import transition
from railpay.apps.settlement.services.persist import PERSISTERS
from railpay.apps.tickets.models import Ticket
from railpay.apps.users.services.wallets import profile_for_address
from railpay.exceptions import LedgerError, LedgerUnavailable, PreconditionNotMet

logger = logging.getLogger(__name__)

APPLIED = "applied"
SKIPPED = "skipped"
UNRESOLVED = "unresolved"
FAILED = "failed"

ETH_QUANTUM = Decimal("0.00000001")

# Settlement attempt kind that produces each event
ATTEMPT_KINDS = {
    EventKind.TICKET_MINTED: "ticket",
    EventKind.PASS_ISSUED: "pass",
    EventKind.PAYMENT_MADE: "payment",
    EventKind.PASS_PAYMENT_MADE: "payment",
}


def wei_to_eth(value: int) -> Decimal:
    return Decimal(Web3.from_wei(int(value), "ether")).quantize(ETH_QUANTUM)


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


@dataclass
class KindReport:
    applied: int = 0
    skipped: int = 0
    unresolved: int = 0
    failed: int = 0
    error: str = ""

    def count(self, outcome: str):
        setattr(self, outcome, getattr(self, outcome) + 1)


@dataclass
class ReconciliationReport:
    from_block: int
    to_block: int
    current_block: int
    kinds: Dict[str, KindReport] = field(default_factory=dict)

    @property
    def total_applied(self) -> int:
        return sum(k.applied for k in self.kinds.values())

    @property
    def total_failed(self) -> int:
        return sum(k.failed for k in self.kinds.values())

    def to_dict(self) -> Dict[str, object]:
        return {
            "block_range": {"from": self.from_block, "to": self.to_block, "current": self.current_block},
            "events_processed": {name: asdict(k) for name, k in self.kinds.items()},
            "total_processed": self.total_applied,
            "total_failed": self.total_failed,
        }


class EventReconciler:
    def __init__(self, reader, mapper: Optional[IdentifierMapper] = None):
        """
        Args:
            reader: ``LedgerReader`` (never a signing client)
            mapper: Resolves ledger route/ticket ids back to UUIDs
        """
        self.reader = reader
        self.mapper = mapper or IdentifierMapper()
        # kind -> (already mirrored?, apply)
        self.handlers: Dict[EventKind, Tuple[Callable, Callable]] = {
            EventKind.TICKET_MINTED: (self._ticket_exists, self._apply_ticket_minted),
            EventKind.TICKET_VALIDATED: (self._ticket_used, self._apply_ticket_validated),
            EventKind.PASS_ISSUED: (self._pass_exists, self._apply_pass_issued),
            EventKind.PAYMENT_MADE: (self._payment_exists, self._apply_payment_made),
            EventKind.PASS_PAYMENT_MADE: (self._payment_exists, self._apply_pass_payment_made),
        }

    def scan(
        self,
        from_block: Optional[int] = None,
        to_block: Optional[int] = None,
        window: Optional[int] = None,
    ) -> ReconciliationReport:
        """
        Apply every event in ``[from_block, to_block]``. Defaults to the last
        ``window`` (RECONCILE_BLOCK_WINDOW) blocks up to the chain head.

        Raises:
            LedgerUnavailable: the ledger cannot be reached
            PreconditionNotMet: the block range is empty or negative
        """
        current_block = self.reader.block_number()
        to_block = current_block if to_block is None else int(to_block)
        window = settings.RECONCILE_BLOCK_WINDOW if window is None else int(window)
        from_block = max(0, to_block - window) if from_block is None else int(from_block)
        if from_block < 0 or from_block > to_block:
            raise PreconditionNotMet(
                "invalid_block_range",
                f"Invalid block range {from_block}..{to_block}",
                from_block=from_block,
                to_block=to_block,
            )

        report = ReconciliationReport(from_block, to_block, current_block)
        for kind in self.handlers:
            report.kinds[kind.value] = self._scan_kind(kind, from_block, to_block)

        logger.info(
            f"Reconciled blocks {from_block}..{to_block}: "
            f"{report.total_applied} applied, {report.total_failed} failed"
        )
        return report

    def _scan_kind(self, kind: EventKind, from_block: int, to_block: int) -> KindReport:
        counts = KindReport()
        try:
            events = self.reader.get_events(kind, from_block, to_block)
        except LedgerUnavailable:
            raise
        except LedgerError as e:
            logger.error(f"Could not read {kind.value} events in {from_block}..{to_block}: {e}")
            counts.error = str(e)
            return counts

        exists, apply = self.handlers[kind]
        for event in events:
            try:
                if exists(event):
                    outcome = SKIPPED
                else:
                    with transaction.atomic():
                        outcome = apply(event)
            except IntegrityError as e:
                outcome = self._after_conflict(event, exists, e)
            except LedgerUnavailable:
                raise
            except Exception as e:
                logger.exception(f"Failed to apply {kind.value} in tx {event.tx_hash}: {e}")
                outcome = FAILED
            counts.count(outcome)

        if events:
            logger.info(
                f"{kind.value}: {counts.applied} applied, {counts.skipped} skipped, "
                f"{counts.unresolved} unresolved, {counts.failed} failed"
            )
        return counts

    def _after_conflict(self, event: LedgerEvent, exists: Callable, error: IntegrityError) -> str:
        try:
            if exists(event):
                # a concurrent scan or settlement inserted it first
                return SKIPPED
        except DatabaseError as e:
            logger.error(f"{event.kind.value} in tx {event.tx_hash}: lookup after conflict failed: {e}")
            return FAILED
        logger.error(f"{event.kind.value} in tx {event.tx_hash} violated a constraint: {error}")
        return FAILED

    # ============================================================
    # NATURAL KEYS
    # ============================================================

    def _ticket_exists(self, event: LedgerEvent) -> bool:
        return Ticket.objects.filter(ledger_token_id=event.args["tokenId"]).exists()

    def _ticket_used(self, event: LedgerEvent) -> bool:
        return Ticket.objects.filter(ledger_token_id=event.args["tokenId"], status="used").exists()

    def _pass_exists(self, event: LedgerEvent) -> bool:
        return Pass.objects.filter(ledger_pass_id=event.args["passId"]).exists()

    def _payment_exists(self, event: LedgerEvent) -> bool:
        return Payment.objects.filter(ledger_receipt_id=event.args["receiptId"]).exists()

    # ============================================================
    # SETTLEMENTS THAT NEVER PERSISTED
    # ============================================================

    def _complete_attempt(self, event: LedgerEvent, ledger_id: int) -> bool:
        """
        Finish a settlement whose transaction this event belongs to, using
        the record id and request it was started with. Persisted attempts
        are included, since their row may still lack the ledger id.
        """
        attempt = SettlementAttempt.objects.filter(tx_hash=event.tx_hash, kind=ATTEMPT_KINDS[event.kind]).first()
        if attempt is None:
            return False

        pending = PendingPersist(
            kind=attempt.kind,
            reference=attempt.reference,
            profile_id=str(attempt.profile_id),
            record_id=str(attempt.record_id),
            tx_hash=event.tx_hash,
            block_number=event.block_number,
            ledger_id=ledger_id,
            event_args=dict(event.args),
            payload=dict(attempt.payload or {}),
        )
        record = PERSISTERS[attempt.kind](pending)
        transition(
            attempt,
            "persisted",
            block_number=event.block_number,
            ledger_id=ledger_id,
            event_args=dict(event.args),
            record_id=record.pk,
            error="",
        )
        logger.warning(f"Settlement {attempt.reference} completed from {event.kind.value} in tx {event.tx_hash}")
        return True

    def _fill_by_tx_hash(self, model, field: str, event: LedgerEvent, ledger_id: int) -> bool:
        """Record the ledger id on a row mirrored from this tx without one."""
        filled = model.objects.filter(ledger_tx_hash=event.tx_hash, **{f"{field}__isnull": True}).update(
            **{field: ledger_id}
        )
        if filled:
            logger.warning(f"{event.kind.value} in tx {event.tx_hash}: recorded ledger id {ledger_id} on existing row")
        return bool(filled)

    # ============================================================
    # APPLY
    # ============================================================

    def _apply_ticket_minted(self, event: LedgerEvent) -> str:
        token_id = event.args["tokenId"]
        if self._complete_attempt(event, token_id):
            return APPLIED
        if self._fill_by_tx_hash(Ticket, "ledger_token_id", event, token_id):
            return APPLIED

        owner = profile_for_address(event.args["to"])
        if owner is None:
            logger.debug(f"TicketMinted {token_id}: no profile for {event.args['to']}")
            return UNRESOLVED

        info = self.reader.ticket_info(token_id)
        route_id = self.mapper.resolve("route", event.args["routeId"])
        used = info.status == TicketStatus.USED
        status = "used" if used else ("expired" if info.status == TicketStatus.REFUNDED else "valid")

        Ticket.objects.create(
            owner=owner,
            route_id=route_id,
            seat_label=(info.seat or "")[:16],
            price=wei_to_eth(event.args["price"]),
            travel_time=_from_timestamp(info.travel_time),
            status=status,
            validated_at=timezone.now() if used else None,
            ledger_tx_hash=event.tx_hash,
            ledger_token_id=token_id,
        )
        return APPLIED

    def _apply_ticket_validated(self, event: LedgerEvent) -> str:
        token_id = event.args["tokenId"]
        ticket = Ticket.objects.filter(ledger_token_id=token_id).first()
        if ticket is None:
            return UNRESOLVED

        updated = (
            Ticket.objects.filter(pk=ticket.pk)
            .exclude(status="used")
            .update(status="used", validated_at=timezone.now(), validation_tx_hash=event.tx_hash)
        )
        return APPLIED if updated else SKIPPED

    def _apply_pass_issued(self, event: LedgerEvent) -> str:
        pass_id = event.args["passId"]
        if self._complete_attempt(event, pass_id):
            return APPLIED
        if self._fill_by_tx_hash(Pass, "ledger_pass_id", event, pass_id):
            return APPLIED

        owner = profile_for_address(event.args["owner"])
        if owner is None:
            return UNRESOLVED

        pass_class = PASS_CLASSES[PassType(event.args["passType"])]
        expires_at = _from_timestamp(event.args["expiresAt"])
        Pass.objects.create(
            owner=owner,
            pass_class=pass_class,
            starts_at=expires_at - PASS_DURATIONS[pass_class],
            status="active" if expires_at > timezone.now() else "expired",
            ledger_tx_hash=event.tx_hash,
            ledger_pass_id=pass_id,
        )
        return APPLIED

    def _apply_payment_made(self, event: LedgerEvent) -> str:
        receipt_id = event.args["receiptId"]
        if self._complete_attempt(event, receipt_id):
            return APPLIED
        if self._fill_by_tx_hash(Payment, "ledger_receipt_id", event, receipt_id):
            return APPLIED

        payer = profile_for_address(event.args["payer"])
        if payer is None:
            return UNRESOLVED

        ledger_ticket_id = event.args["ticketId"]
        ticket = Ticket.objects.filter(ledger_token_id=ledger_ticket_id).first()
        if ticket is None:
            object_id = self.mapper.resolve("ticket", ledger_ticket_id)
            ticket = Ticket.objects.filter(pk=object_id).first() if object_id else None
        if ticket is None:
            logger.debug(f"PaymentMade {receipt_id}: ticket {ledger_ticket_id} not mirrored")
            return UNRESOLVED

        amount = wei_to_eth(event.args["amount"])
        if amount <= 0:
            logger.warning(f"PaymentMade {receipt_id} has amount {event.args['amount']} wei; not mirrored")
            return UNRESOLVED

        Payment.objects.create(
            payer=payer,
            ticket=ticket,
            amount=amount,
            currency="ETH",
            method="blockchain",
            ledger_tx_hash=event.tx_hash,
            ledger_receipt_id=receipt_id,
            metadata={
                "payer": event.args["payer"],
                "ticket_id": ledger_ticket_id,
                "msg_value": str(wei_to_eth(event.args.get("msgValue", 0))),
                "block_number": event.block_number,
            },
        )
        return APPLIED

    def _apply_pass_payment_made(self, event: LedgerEvent) -> str:
        # the event names a pass type, not a pass; only our own settlements can be matched
        if self._complete_attempt(event, event.args["receiptId"]):
            return APPLIED
        return UNRESOLVED
