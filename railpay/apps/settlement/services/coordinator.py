"""
Settlement Coordinator

Runs each purchase, payment and validation as a strict sequence:

    preconditions → submit (ledger write) → confirm → persist (mirror row)

Nothing is written to the mirror before the ledger confirms, and a
confirmed transaction whose mirror write fails is reported with a
``PendingPersist`` so the write can be retried without touching the ledger
again.
"""

from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional
import logging

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from web3 import Web3

from railpay.apps.audit.services import record_admin_action
from railpay.apps.ledger.identifiers import IdentifierMapper
from railpay.apps.ledger.types import ConfirmedTransaction, TransactionHandle
from railpay.apps.passes.models import PASS_DURATIONS, PASS_TYPES, Pass
from railpay.apps.payments.models import Payment
from railpay.apps.routes.services import get_route_fare
from railpay.apps.settlement.models import SettlementAttempt
from railpay.apps.tickets.models import Ticket
from railpay.apps.tickets.qr import parse_qr_payload
from railpay.exceptions import (
    AlreadyValidated,
    LedgerError,
    LedgerRejected,
    LedgerTimeout,
    LedgerUnavailable,
    NotAuthorized,
    PersistAfterSettlementFailed,
    PreconditionNotMet,
    ResourceNotFound,
    SettlementCancelled,
)
from . import attempts
from .attempts import CancelToken, PendingPersist
from .persist import PERSISTERS

logger = logging.getLogger(__name__)

TICKET_TYPES = ("single", "return")
DEFAULT_TRAVEL_OFFSET = timedelta(hours=1)

RECORD_MODELS = {"ticket": Ticket, "pass": Pass, "payment": Payment}

# Mirror rows of these kinds are keyed on the id the chain assigns
LEDGER_ID_KINDS = ("ticket", "pass", "payment")


def _positive_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise PreconditionNotMet("invalid_amount", "Amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise PreconditionNotMet("invalid_amount", "Amount must be greater than zero")
    return amount


class SettlementCoordinator:
    def __init__(
        self,
        ledger,
        confirmations: Optional[int] = None,
        confirm_timeout: Optional[float] = None,
        accept_self_attested: Optional[bool] = None,
        mapper: Optional[IdentifierMapper] = None,
    ):
        """
        Args:
            ledger: ``LedgerClient`` (or anything with the same surface)
            confirmations: Block depth required before persisting
            confirm_timeout: Seconds to wait for that depth
            accept_self_attested: Let self-attested identities buy
                (defaults to RAILPAY_ACCEPT_SELF_ATTESTED)
        """
        self.ledger = ledger
        self.confirmations = settings.LEDGER_CONFIRMATIONS if confirmations is None else confirmations
        self.confirm_timeout = settings.LEDGER_CONFIRM_TIMEOUT if confirm_timeout is None else confirm_timeout
        self.accept_self_attested = (
            settings.RAILPAY_ACCEPT_SELF_ATTESTED if accept_self_attested is None else accept_self_attested
        )
        self.mapper = mapper or IdentifierMapper()

    # ============================================================
    # PRECONDITIONS
    # ============================================================

    def _check_purchaser(self, profile):
        if profile is None or not profile.is_active:
            raise PreconditionNotMet("profile_inactive", "User profile not found or inactive")
        if not profile.identity_accepted(self.accept_self_attested):
            raise PreconditionNotMet(
                "identity_not_verified",
                "NIN verification required. Please verify your NIN before purchasing.",
            )
        if not profile.wallet_address:
            raise PreconditionNotMet(
                "wallet_missing", "Wallet address not found. Please connect your wallet."
            )

    # ============================================================
    # PURCHASES
    # ============================================================

    def buy_ticket(
        self,
        profile,
        route_id,
        travel_time=None,
        seat_label: str = "",
        ticket_type: str = "single",
        reference: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Ticket:
        """Mint a ticket on-chain and mirror it. Returns the Ticket."""
        self._check_purchaser(profile)
        if ticket_type not in TICKET_TYPES:
            raise PreconditionNotMet("invalid_ticket_type", 'ticket_type must be "single" or "return"')

        fare = get_route_fare(route_id)
        if not fare.active:
            raise PreconditionNotMet("route_inactive", "Route is not active")
        price = _positive_amount(fare.price)

        client_request = {
            "route_id": str(fare.route_id),
            "travel_time": travel_time.isoformat() if travel_time else None,
            "seat_label": seat_label or "",
            "ticket_type": ticket_type,
        }
        request = dict(
            client_request,
            travel_time=(travel_time or timezone.now() + DEFAULT_TRAVEL_OFFSET).isoformat(),
            price=str(price),
        )
        attempt = attempts.begin_attempt("ticket", profile, reference, request, client_request)
        route_ledger_id = self.mapper.register("route", fare.route_id)

        # a resumed attempt keeps the price and travel time it started with
        stored = attempt.payload

        def submit() -> TransactionHandle:
            return self.ledger.mint_ticket(
                profile.wallet_address,
                route_ledger_id,
                Web3.to_wei(Decimal(stored["price"]), "ether"),
                int(parse_datetime(stored["travel_time"]).timestamp()),
                stored["seat_label"],
            )

        return self._settle(attempt, submit, cancel)

    def buy_pass(
        self,
        profile,
        pass_class: str,
        reference: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Pass:
        self._check_purchaser(profile)
        pass_class = (pass_class or "").lower()
        if pass_class not in PASS_DURATIONS:
            raise PreconditionNotMet(
                "invalid_pass_type", 'pass_type must be "daily", "weekly", or "monthly"'
            )

        attempt = attempts.begin_attempt("pass", profile, reference, {"pass_class": pass_class})
        duration_seconds = int(PASS_DURATIONS[pass_class].total_seconds())

        def submit() -> TransactionHandle:
            return self.ledger.issue_pass(profile.wallet_address, PASS_TYPES[pass_class], duration_seconds)

        return self._settle(attempt, submit, cancel)

    def pay(
        self,
        profile,
        reference: str,
        amount,
        ticket_id=None,
        pass_id=None,
        msg_value=0,
        currency: str = "ETH",
        method: str = "blockchain",
        cancel: Optional[CancelToken] = None,
    ):
        """
        Record a payment for exactly one ticket or pass on-chain and mirror
        it. ``reference`` is the client's idempotency token.
        """
        if not reference:
            raise PreconditionNotMet("reference_required", "Payments require a reference")
        self._check_purchaser(profile)
        if (ticket_id is None) == (pass_id is None):
            raise PreconditionNotMet("invalid_target", "Provide exactly one of ticket_id or pass_id")
        amount = _positive_amount(amount)
        try:
            msg_value = Decimal(str(msg_value or 0))
        except (InvalidOperation, TypeError):
            raise PreconditionNotMet("invalid_amount", "msg_value must be a number")
        if not msg_value.is_finite() or msg_value < 0:
            raise PreconditionNotMet("invalid_amount", "msg_value cannot be negative")

        ledger_kwargs = {}
        if ticket_id is not None:
            ticket = Ticket.objects.filter(pk=ticket_id, owner=profile).first()
            if ticket is None:
                raise ResourceNotFound("Ticket not found")
            ledger_ticket_id = ticket.ledger_token_id
            if ledger_ticket_id is None:
                ledger_ticket_id = self.mapper.register("ticket", ticket.id)
            ledger_kwargs["ticket_id"] = ledger_ticket_id
        else:
            travel_pass = Pass.objects.filter(pk=pass_id, owner=profile).first()
            if travel_pass is None:
                raise ResourceNotFound("Pass not found")
            ledger_kwargs["pass_type"] = travel_pass.pass_type

        reference_hash = Web3.keccak(text=f"{profile.id}:{reference}")
        request = {
            "ticket_id": str(ticket_id) if ticket_id is not None else None,
            "pass_id": str(pass_id) if pass_id is not None else None,
            "amount": str(amount),
            "msg_value": str(msg_value),
            "currency": currency or "ETH",
            "method": method or "blockchain",
            "reference_hash": Web3.to_hex(reference_hash),
        }
        attempt = attempts.begin_attempt("payment", profile, reference, request)

        def submit() -> TransactionHandle:
            return self.ledger.record_payment(
                reference_hash,
                Web3.to_wei(amount, "ether"),
                Web3.to_wei(msg_value, "ether"),
                **ledger_kwargs,
            )

        return self._settle(attempt, submit, cancel)

    # ============================================================
    # PROTOCOL
    # ============================================================

    def _settle(self, attempt: SettlementAttempt, submit: Callable[[], TransactionHandle], cancel=None):
        if attempt.status == "persisted":
            return self._load_record(attempt)
        if attempt.status == "confirmed" and (attempt.ledger_id is not None or attempt.kind not in LEDGER_ID_KINDS):
            return self._persist(PendingPersist.from_attempt(attempt), attempt)
        # a confirmed attempt without its ledger id re-reads the receipt below

        handle = attempts.pending_handle(attempt)
        if handle is None:
            if cancel is not None and cancel.cancelled:
                attempts.record_failure(attempt, SettlementCancelled("cancelled before submit"))
                raise SettlementCancelled("Settlement cancelled before submit", reference=attempt.reference)
            attempts.claim_for_submit(attempt)
            try:
                handle = submit()
            except LedgerError as e:
                logger.error(f"Settlement {attempt.reference}: submit failed: {e}")
                attempts.record_failure(attempt, e)
                raise
            attempts.record_submitted(attempt, handle)

        confirmed = self._confirm(attempt, handle)
        attempts.record_confirmed(attempt, confirmed)
        pending = PendingPersist.from_confirmed(
            attempt.kind, attempt.reference, attempt.profile_id, attempt.record_id, confirmed, attempt.payload
        )
        return self._persist(pending, attempt)

    def _confirm(self, attempt: SettlementAttempt, handle: TransactionHandle) -> ConfirmedTransaction:
        try:
            return self.ledger.confirm(handle, self.confirmations, self.confirm_timeout)
        except (LedgerTimeout, LedgerUnavailable) as e:
            # the transaction may still land; a retry resumes at confirm
            logger.warning(f"Settlement {attempt.reference}: confirmation of {handle.tx_hash} not reached: {e}")
            attempts.record_failure(attempt, e, status="submitted")
            e.tx_hash = e.tx_hash or handle.tx_hash
            e.context["tx_hash"] = e.tx_hash
            e.context["reference"] = attempt.reference
            raise
        except LedgerError as e:
            logger.error(f"Settlement {attempt.reference}: {handle.tx_hash} failed: {e}")
            attempts.record_failure(attempt, e)
            raise

    def _persist(self, pending: PendingPersist, attempt: Optional[SettlementAttempt] = None):
        if pending.kind in LEDGER_ID_KINDS and pending.ledger_id is None:
            # confirmed, but the event carrying the id was not decoded; the
            # reconciler completes the attempt from the event by tx hash
            logger.error(
                f"Settlement {pending.reference}: {pending.tx_hash} confirmed without a ledger id; not persisted"
            )
            error = PersistAfterSettlementFailed(pending, pending.tx_hash)
            if attempt is not None:
                attempts.record_failure(attempt, error, status="confirmed")
            raise error

        writer = PERSISTERS[pending.kind]
        try:
            with transaction.atomic():
                record = writer(pending)
                if attempt is not None:
                    attempts.transition(attempt, "persisted", record_id=record.pk, error="")
        except DatabaseError as e:
            logger.error(
                f"Persist after settlement failed for {pending.kind} {pending.reference or pending.record_id} "
                f"(tx {pending.tx_hash}): {e}"
            )
            raise PersistAfterSettlementFailed(pending, pending.tx_hash, cause=e) from e
        logger.info(f"Persisted {pending.kind} {record.pk} for tx {pending.tx_hash}")
        return record

    def _load_record(self, attempt: SettlementAttempt):
        return RECORD_MODELS[attempt.kind].objects.get(pk=attempt.record_id)

    def retry_persist(self, pending: PendingPersist):
        """Write the mirror row for an already-confirmed transaction. Never touches the ledger."""
        attempt = None
        if pending.reference:
            attempt = SettlementAttempt.objects.filter(reference=pending.reference).first()
            if attempt is not None and attempt.status == "persisted":
                return self._load_record(attempt)
        return self._persist(pending, attempt)

    def retry_reference(self, reference: str, profile=None):
        """
        Resume a settlement by reference: persisted attempts return their
        record, confirmed ones are persisted, submitted ones confirmed and
        persisted. Nothing is resubmitted.

        With ``profile``, only that profile's attempts (or any, for staff)
        are visible.
        """
        attempt = SettlementAttempt.objects.filter(reference=reference).first()
        if attempt is not None and profile is not None and not profile.is_staff_member:
            if attempt.profile_id != profile.id:
                attempt = None
        if attempt is None:
            raise ResourceNotFound(f"No settlement with reference {reference}")
        if attempt.status in ("persisted", "confirmed"):
            return self._settle(attempt, submit=None)
        if attempt.status == "submitted" and attempt.tx_hash:
            return self._settle(attempt, submit=None)
        raise PreconditionNotMet(
            "nothing_to_retry",
            f"Settlement is {attempt.status}; submit the original request again",
            reference=reference,
        )

    # ============================================================
    # VALIDATION
    # ============================================================

    def validate_ticket(self, qr_payload: str, actor=None, device_id: Optional[str] = None, cancel=None) -> Ticket:
        """
        Mark the ticket in ``qr_payload`` used, on-chain then in the mirror.

        ``actor`` is the scanning staff member's profile for gate scans; the
        scan is written to the admin audit log.

        Raises:
            AlreadyValidated: the ticket (or its token on-chain) is already used
        """
        if actor is not None and not actor.is_staff_member:
            raise NotAuthorized("Unauthorized. Admin or staff access required.")

        ticket_id = parse_qr_payload(qr_payload)
        if ticket_id is None:
            raise PreconditionNotMet(
                "invalid_qr", "Invalid QR payload format. Expected format: railpay:ticket:<ticket_id>"
            )
        ticket = Ticket.objects.filter(pk=ticket_id).first()
        if ticket is None:
            raise ResourceNotFound("Ticket not found")
        if ticket.status == "used" or ticket.validated_at:
            raise AlreadyValidated(ticket.id, ticket.validated_at)
        if ticket.status != "valid":
            raise PreconditionNotMet(f"ticket_{ticket.status}", f"Ticket is {ticket.status}")
        if ticket.ledger_token_id is None:
            raise PreconditionNotMet("ticket_not_on_ledger", "Ticket has no ledger token")
        if cancel is not None and cancel.cancelled:
            raise SettlementCancelled("Validation cancelled before submit")

        try:
            handle = self.ledger.validate_ticket(ticket.ledger_token_id)
            confirmed = self.ledger.confirm(handle, self.confirmations, self.confirm_timeout)
        except LedgerRejected as e:
            self._heal_if_used_on_chain(ticket, e)
            raise

        pending = PendingPersist.from_confirmed(
            "validation", None, ticket.owner_id, ticket.id, confirmed, {"device_id": device_id}
        )
        ticket = self._persist(pending)

        if actor is not None:
            record_admin_action(
                actor,
                "ticket_validated",
                "ticket",
                ticket.id,
                f"Ticket validated via QR scan{f' (device: {device_id})' if device_id else ''}",
                {
                    "device_id": device_id,
                    "tx_hash": confirmed.tx_hash,
                    "token_id": ticket.ledger_token_id,
                    "route_id": str(ticket.route_id) if ticket.route_id else None,
                },
            )
        return ticket

    def _heal_if_used_on_chain(self, ticket: Ticket, error: LedgerRejected):
        """A revert on a ticket the chain already marks used means the mirror is behind."""
        try:
            info = self.ledger.ticket_info(ticket.ledger_token_id)
        except LedgerError as e:
            logger.warning(f"Could not read ticket {ticket.ledger_token_id} after revert: {e}")
            return
        if not info.is_used:
            return

        validated_at = timezone.now()
        Ticket.objects.filter(pk=ticket.pk, status="valid").update(status="used", validated_at=validated_at)
        ticket.refresh_from_db()
        logger.warning(f"Ticket {ticket.id} (token {ticket.ledger_token_id}) was already used on-chain; mirror healed")
        raise AlreadyValidated(ticket.id, ticket.validated_at) from error
