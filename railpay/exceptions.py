"""
RailPay error hierarchy

Every error carries a stable ``code`` (returned to API clients), a
``retryable`` flag and the HTTP status the views answer with.
"""

from typing import Optional


class RailPayError(Exception):
    code = "railpay_error"
    retryable = False
    http_status = 500

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context

    def as_dict(self) -> dict:
        payload = {"success": False, "code": self.code, "message": self.message}
        payload.update({k: v for k, v in self.context.items() if v is not None})
        return payload


# ============================================================
# SETTLEMENT
# ============================================================

class SettlementError(RailPayError):
    code = "settlement_error"


class PreconditionNotMet(SettlementError):
    """Raised before any ledger call; the request must be fixed, not retried."""

    code = "precondition_not_met"
    http_status = 400

    def __init__(self, reason: str, message: str = "", **context):
        super().__init__(message or reason, reason=reason, **context)
        self.reason = reason


class IdentifierCollision(PreconditionNotMet):
    code = "identifier_collision"
    http_status = 409

    def __init__(self, namespace: str, ledger_id: int, existing, incoming):
        super().__init__(
            "identifier_collision",
            f"{namespace} ledger id {ledger_id} already maps to {existing}, not {incoming}",
            namespace=namespace,
            ledger_id=str(ledger_id),
        )
        self.namespace = namespace
        self.ledger_id = ledger_id
        self.existing = existing
        self.incoming = incoming


class AlreadyValidated(PreconditionNotMet):
    code = "already_validated"
    http_status = 409

    def __init__(self, ticket_id, validated_at=None):
        super().__init__(
            "already_validated",
            "Ticket has already been used",
            ticket_id=str(ticket_id),
            validated_at=validated_at.isoformat() if validated_at else None,
        )
        self.ticket_id = ticket_id
        self.validated_at = validated_at


class SettlementCancelled(SettlementError):
    code = "settlement_cancelled"
    retryable = True
    http_status = 409


class PersistAfterSettlementFailed(SettlementError):
    """
    The ledger confirmed the write but the mirror row could not be stored.

    ``pending`` is accepted by ``SettlementCoordinator.retry_persist`` and
    never resubmits to the ledger.
    """

    code = "persist_after_settlement_failed"
    retryable = True
    http_status = 502

    def __init__(self, pending, tx_hash: str, cause: Optional[BaseException] = None):
        super().__init__(
            "Ledger transaction confirmed but the record could not be saved",
            tx_hash=tx_hash,
            reference=getattr(pending, "reference", None),
        )
        self.pending = pending
        self.tx_hash = tx_hash
        self.cause = cause

    def as_dict(self) -> dict:
        payload = super().as_dict()
        if hasattr(self.pending, "to_dict"):
            payload["pending"] = self.pending.to_dict()
        return payload


# ============================================================
# LEDGER
# ============================================================

class LedgerError(RailPayError):
    code = "ledger_error"
    retryable = True
    http_status = 502

    def __init__(self, message: str = "", tx_hash: Optional[str] = None):
        super().__init__(message, tx_hash=tx_hash)
        self.tx_hash = tx_hash


class LedgerUnavailable(LedgerError):
    code = "ledger_unavailable"
    http_status = 503


class LedgerRejected(LedgerError):
    code = "ledger_rejected"
    retryable = False


class LedgerTimeout(LedgerError):
    code = "ledger_timeout"
    http_status = 504


class LedgerReadOnly(LedgerError):
    code = "ledger_read_only"
    retryable = False
    http_status = 500


# ============================================================
# IDENTITY
# ============================================================

class IdentityVerificationFailed(RailPayError):
    """The provider answered and the NIN did not check out."""

    code = "identity_verification_failed"
    http_status = 400

    def __init__(self, reason: str, message: str = ""):
        super().__init__(message or reason, reason=reason)
        self.reason = reason


# ============================================================
# GENERIC
# ============================================================

class ResourceNotFound(RailPayError):
    code = "not_found"
    http_status = 404


class NotAuthorized(RailPayError):
    code = "forbidden"
    http_status = 403
