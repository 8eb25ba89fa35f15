from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


class PassType(IntEnum):
    DAILY = 0
    WEEKLY = 1
    MONTHLY = 2


class TicketStatus(IntEnum):
    """``ticketInfo().status`` as stored by the ticket contract."""

    VALID = 0
    USED = 1
    REFUNDED = 2


class EventKind(str, Enum):
    TICKET_MINTED = "TicketMinted"
    TICKET_VALIDATED = "TicketValidated"
    PASS_ISSUED = "PassIssued"
    PAYMENT_MADE = "PaymentMade"
    PASS_PAYMENT_MADE = "PassPaymentMade"


class TxKind(str, Enum):
    MINT_TICKET = "mint_ticket"
    VALIDATE_TICKET = "validate_ticket"
    ISSUE_PASS = "issue_pass"
    PAY_TICKET = "pay_ticket"
    PAY_PASS = "pay_pass"


# Event emitted by each write, and the argument carrying the id the chain assigned
TX_EVENTS = {
    TxKind.MINT_TICKET: (EventKind.TICKET_MINTED, "tokenId"),
    TxKind.VALIDATE_TICKET: (EventKind.TICKET_VALIDATED, "tokenId"),
    TxKind.ISSUE_PASS: (EventKind.PASS_ISSUED, "passId"),
    TxKind.PAY_TICKET: (EventKind.PAYMENT_MADE, "receiptId"),
    TxKind.PAY_PASS: (EventKind.PASS_PAYMENT_MADE, "receiptId"),
}


@dataclass(frozen=True)
class TransactionHandle:
    kind: TxKind
    tx_hash: str


@dataclass(frozen=True)
class LedgerEvent:
    kind: EventKind
    args: Dict[str, Any]
    block_number: int
    log_index: int
    tx_hash: str


@dataclass(frozen=True)
class ConfirmedTransaction:
    tx_hash: str
    block_number: int
    ledger_id: Optional[int] = None
    event: Optional[LedgerEvent] = None

    @property
    def event_args(self) -> Dict[str, Any]:
        return dict(self.event.args) if self.event else {}


@dataclass(frozen=True)
class TicketInfo:
    token_id: int
    route_id: int
    price: int
    travel_time: int
    seat: str
    status: TicketStatus = field(default=TicketStatus.VALID)

    @property
    def is_used(self) -> bool:
        return self.status == TicketStatus.USED
