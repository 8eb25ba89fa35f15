"""In-memory stand-in for ``LedgerClient`` with the same surface."""

import time

from django.db import DatabaseError

from railpay.apps.ledger.types import (
    ConfirmedTransaction,
    EventKind,
    LedgerEvent,
    PassType,
    TicketInfo,
    TicketStatus,
    TransactionHandle,
    TxKind,
)
from railpay.exceptions import LedgerRejected

OPERATOR = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class FakeLedger:
    def __init__(self, start_block: int = 100):
        self.block = start_block
        self.next_token_id = 1
        self.next_pass_id = 1
        self.next_receipt_id = 1
        self.tickets = {}
        self.passes = {}
        self.events = []
        self.receipts = {}
        self.submitted = []
        self.fail_submit = None
        self.fail_confirm = None
        self.fail_events = None
        # confirm() returns receipts whose event could not be decoded
        self.drop_receipt_events = False

    # writes

    def _record(self, tx_kind, event_kind, args, ledger_id):
        self.block += 1
        tx_hash = "0x" + f"{len(self.submitted) + 1:064x}"
        event = LedgerEvent(kind=event_kind, args=args, block_number=self.block, log_index=0, tx_hash=tx_hash)
        self.events.append(event)
        self.receipts[tx_hash] = (event, ledger_id)
        handle = TransactionHandle(tx_kind, tx_hash)
        self.submitted.append(handle)
        return handle

    def _check_submit(self):
        if self.fail_submit is not None:
            raise self.fail_submit

    def mint_ticket(self, owner_address, route_id, price, travel_time, seat_label=""):
        self._check_submit()
        token_id = self.next_token_id
        self.next_token_id += 1
        self.tickets[token_id] = TicketInfo(token_id, route_id, price, travel_time, seat_label, TicketStatus.VALID)
        args = {"tokenId": token_id, "to": owner_address, "routeId": route_id, "price": price}
        return self._record(TxKind.MINT_TICKET, EventKind.TICKET_MINTED, args, token_id)

    def validate_ticket(self, token_id):
        self._check_submit()
        info = self.tickets.get(token_id)
        if info is None or info.status != TicketStatus.VALID:
            raise LedgerRejected("validateTicket reverted: ticket not valid")
        self.tickets[token_id] = TicketInfo(
            token_id, info.route_id, info.price, info.travel_time, info.seat, TicketStatus.USED
        )
        args = {"tokenId": token_id, "validator": OPERATOR}
        return self._record(TxKind.VALIDATE_TICKET, EventKind.TICKET_VALIDATED, args, token_id)

    def issue_pass(self, owner_address, pass_type, duration_seconds):
        self._check_submit()
        pass_id = self.next_pass_id
        self.next_pass_id += 1
        expires_at = int(time.time()) + duration_seconds
        self.passes[pass_id] = expires_at
        args = {"passId": pass_id, "owner": owner_address, "passType": int(pass_type), "expiresAt": expires_at}
        return self._record(TxKind.ISSUE_PASS, EventKind.PASS_ISSUED, args, pass_id)

    def record_payment(self, reference, amount, value=0, *, ticket_id=None, pass_type=None):
        self._check_submit()
        if (ticket_id is None) == (pass_type is None):
            raise LedgerRejected("record_payment needs exactly one of ticket_id or pass_type")
        receipt_id = self.next_receipt_id
        self.next_receipt_id += 1
        if ticket_id is not None:
            args = {
                "payer": OPERATOR,
                "amount": amount,
                "msgValue": value,
                "ticketId": ticket_id,
                "receiptId": receipt_id,
            }
            return self._record(TxKind.PAY_TICKET, EventKind.PAYMENT_MADE, args, receipt_id)
        args = {
            "payer": OPERATOR,
            "amount": amount,
            "msgValue": value,
            "passType": int(PassType(pass_type)),
            "receiptId": receipt_id,
        }
        return self._record(TxKind.PAY_PASS, EventKind.PASS_PAYMENT_MADE, args, receipt_id)

    def confirm(self, handle, confirmations=None, timeout=None):
        if self.fail_confirm is not None:
            raise self.fail_confirm
        event, ledger_id = self.receipts[handle.tx_hash]
        if self.drop_receipt_events:
            return ConfirmedTransaction(handle.tx_hash, event.block_number)
        return ConfirmedTransaction(handle.tx_hash, event.block_number, ledger_id, event)

    # reads

    def block_number(self):
        return self.block

    def get_events(self, kind, from_block, to_block):
        if self.fail_events is not None:
            raise self.fail_events
        kind = EventKind(kind)
        return [
            e for e in self.events
            if e.kind == kind and from_block <= e.block_number <= to_block
        ]

    def ticket_info(self, token_id):
        if token_id not in self.tickets:
            raise LedgerRejected(f"ticketInfo({token_id}) reverted")
        return self.tickets[token_id]

    def is_pass_valid(self, pass_id):
        return self.passes.get(pass_id, 0) > time.time()

    # test helpers

    def emit(self, event_kind, args, tx_hash=None):
        """Append an event that no call of ours produced (another client, a replay)."""
        self.block += 1
        tx_hash = tx_hash or "0x" + f"{0xE000 + len(self.events):064x}"
        event = LedgerEvent(kind=event_kind, args=args, block_number=self.block, log_index=0, tx_hash=tx_hash)
        self.events.append(event)
        return event


def store_outage(pending):
    """Stands in for a mirror writer while the database is down."""
    raise DatabaseError("store outage")
