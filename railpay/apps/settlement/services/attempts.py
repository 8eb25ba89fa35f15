"""
Settlement attempt bookkeeping: idempotency references, state transitions
and the ``PendingPersist`` handed back when the mirror write fails.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional
import hashlib
import json
import logging
import threading
import uuid

from django.db import DatabaseError, IntegrityError, transaction

from railpay.apps.ledger.types import ConfirmedTransaction, TransactionHandle, TxKind
from railpay.apps.settlement.models import SettlementAttempt
from railpay.exceptions import PreconditionNotMet

logger = logging.getLogger(__name__)


class CancelToken:
    """Checked once, just before the ledger write. Ignored afterwards."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class PendingPersist:
    kind: str  # ticket | pass | payment | validation
    reference: Optional[str]
    profile_id: str
    record_id: str
    tx_hash: str
    block_number: Optional[int]
    ledger_id: Optional[int]
    event_args: Dict[str, Any] = field(default_factory=dict)
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingPersist":
        return cls(**data)

    @classmethod
    def from_confirmed(cls, kind, reference, profile_id, record_id, confirmed: ConfirmedTransaction, payload):
        return cls(
            kind=kind,
            reference=reference,
            profile_id=str(profile_id),
            record_id=str(record_id),
            tx_hash=confirmed.tx_hash,
            block_number=confirmed.block_number,
            ledger_id=confirmed.ledger_id,
            event_args=confirmed.event_args,
            payload=dict(payload),
        )

    @classmethod
    def from_attempt(cls, attempt: SettlementAttempt) -> "PendingPersist":
        return cls(
            kind=attempt.kind,
            reference=attempt.reference,
            profile_id=str(attempt.profile_id),
            record_id=str(attempt.record_id),
            tx_hash=attempt.tx_hash,
            block_number=attempt.block_number,
            ledger_id=attempt.ledger_id,
            event_args=dict(attempt.event_args or {}),
            payload=dict(attempt.payload or {}),
        )


def request_hash(kind: str, profile_id, request: Dict[str, Any]) -> str:
    body = json.dumps({"kind": kind, "profile": str(profile_id), "request": request}, sort_keys=True, default=str)
    return hashlib.sha256(body.encode()).hexdigest()


def begin_attempt(
    kind: str,
    profile,
    reference: Optional[str],
    request: Dict[str, Any],
    client_request: Optional[Dict[str, Any]] = None,
) -> SettlementAttempt:
    """
    Fetch or create the attempt for ``reference``. Without a reference a
    fresh one is generated so the attempt can still be retried later.

    ``request`` is stored with the attempt and drives every later step;
    ``client_request`` (default: ``request``) is what the caller actually
    sent and is what a repeated reference must match.

    Raises:
        PreconditionNotMet: the reference was already used for a different request
    """
    digest = request_hash(kind, profile.pk, request if client_request is None else client_request)
    reference = reference or f"{kind}-{uuid.uuid4().hex}"

    try:
        with transaction.atomic():
            attempt, created = SettlementAttempt.objects.get_or_create(
                reference=reference,
                defaults={
                    "kind": kind,
                    "profile": profile,
                    "request_hash": digest,
                    "payload": request,
                    "record_id": uuid.uuid4(),
                },
            )
    except IntegrityError:
        attempt, created = SettlementAttempt.objects.get(reference=reference), False

    if created:
        logger.info(f"Settlement {reference}: new {kind} attempt")
        return attempt

    if attempt.request_hash != digest:
        raise PreconditionNotMet(
            "reference_conflict",
            "Reference was already used for a different request",
            reference=reference,
        )

    if attempt.status == "failed":
        # nothing reached the chain; start over under the same reference
        SettlementAttempt.objects.filter(pk=attempt.pk, status="failed").update(
            status="pending", tx_hash="", tx_kind="", error=""
        )
        attempt.refresh_from_db()
        logger.info(f"Settlement {reference}: restarting failed attempt")
    else:
        logger.info(f"Settlement {reference}: resuming attempt in state {attempt.status}")
    return attempt


def claim_for_submit(attempt: SettlementAttempt) -> None:
    """Move pending → submitting; only one caller wins."""
    claimed = SettlementAttempt.objects.filter(pk=attempt.pk, status="pending").update(status="submitting")
    if not claimed:
        raise PreconditionNotMet(
            "settlement_in_progress",
            "Another request is settling this reference",
            reference=attempt.reference,
        )
    attempt.status = "submitting"
    logger.info(f"Settlement {attempt.reference}: pending → submitting")


def transition(attempt: SettlementAttempt, status: str, **fields) -> None:
    old = attempt.status
    attempt.status = status
    for name, value in fields.items():
        setattr(attempt, name, value)
    attempt.save(update_fields=["status", "updated_at", *fields.keys()])
    logger.info(f"Settlement {attempt.reference}: {old} → {status} tx={attempt.tx_hash or '-'}")


def record_submitted(attempt: SettlementAttempt, handle: TransactionHandle) -> None:
    transition(attempt, "submitted", tx_kind=handle.kind.value, tx_hash=handle.tx_hash, error="")


def record_confirmed(attempt: SettlementAttempt, confirmed: ConfirmedTransaction) -> None:
    """Best effort: a database outage here must not hide the confirmed transaction."""
    try:
        transition(
            attempt,
            "confirmed",
            block_number=confirmed.block_number,
            ledger_id=confirmed.ledger_id,
            event_args=confirmed.event_args,
        )
    except DatabaseError as e:
        logger.error(f"Settlement {attempt.reference}: could not record confirmation of {confirmed.tx_hash}: {e}")


def record_failure(attempt: SettlementAttempt, error: Exception, status: str = "failed") -> None:
    try:
        transition(attempt, status, error=f"{type(error).__name__}: {error}")
    except DatabaseError as e:
        logger.error(f"Settlement {attempt.reference}: could not record failure {error}: {e}")


def pending_handle(attempt: SettlementAttempt) -> Optional[TransactionHandle]:
    if attempt.tx_hash and attempt.tx_kind:
        return TransactionHandle(TxKind(attempt.tx_kind), attempt.tx_hash)
    return None
