"""
Ledger client

``LedgerReader`` wraps the three RailPay contracts behind one Web3
connection for reads, event scans and confirmations. ``LedgerClient`` adds
the operator signer and the write calls. Each write is a single transaction
returning a ``TransactionHandle``; ``confirm`` turns a handle into a
``ConfirmedTransaction`` carrying the id the chain assigned. Nothing here
retries.
"""

from typing import Dict, List, Optional, Union
import logging

from django.core.exceptions import ImproperlyConfigured
from eth_account import Account
from web3 import Web3

from railpay.apps.ledger.config import LedgerConfig
from railpay.apps.ledger.types import (
    TX_EVENTS,
    ConfirmedTransaction,
    EventKind,
    LedgerEvent,
    PassType,
    TicketInfo,
    TransactionHandle,
    TxKind,
)
from railpay.exceptions import LedgerReadOnly, LedgerRejected, LedgerUnavailable
from .base_contract import BaseContractService, translate_ledger_errors
from .pass_contract import PassContractService
from .payments_contract import PaymentsContractService
from .ticket_contract import TicketContractService

logger = logging.getLogger(__name__)

EVENT_CONTRACTS = {
    EventKind.TICKET_MINTED: "tickets",
    EventKind.TICKET_VALIDATED: "tickets",
    EventKind.PASS_ISSUED: "passes",
    EventKind.PAYMENT_MADE: "payments",
    EventKind.PASS_PAYMENT_MADE: "payments",
}

TX_CONTRACTS = {
    TxKind.MINT_TICKET: "tickets",
    TxKind.VALIDATE_TICKET: "tickets",
    TxKind.ISSUE_PASS: "passes",
    TxKind.PAY_TICKET: "payments",
    TxKind.PAY_PASS: "payments",
}


def build_web3(config: LedgerConfig) -> Web3:
    web3 = Web3(Web3.HTTPProvider(
        config.provider_url,
        request_kwargs={"timeout": config.request_timeout},
    ))
    with translate_ledger_errors("connect"):
        connected = web3.is_connected()
    if not connected:
        raise LedgerUnavailable(f"Failed to connect to Web3 provider: {config.provider_url}")
    return web3


def _to_event(kind: EventKind, entry) -> LedgerEvent:
    args = {
        name: Web3.to_hex(value) if isinstance(value, bytes) else value
        for name, value in entry["args"].items()
    }
    return LedgerEvent(
        kind=kind,
        args=args,
        block_number=entry["blockNumber"],
        log_index=entry["logIndex"],
        tx_hash=Web3.to_hex(entry["transactionHash"]),
    )


def _read_only(name: str):
    def write(self, *args, **kwargs):
        raise LedgerReadOnly(f"Cannot {name}: ledger reader has no signer")

    write.__name__ = name
    return write


class LedgerReader:
    """Read-only view of the RailPay contracts."""

    def __init__(self, config: LedgerConfig, web3: Optional[Web3] = None, account=None):
        self.config = config
        self.web3 = web3 if web3 is not None else build_web3(config)
        self.account = account
        self.tickets = TicketContractService(self.web3, config, account=account)
        self.passes = PassContractService(self.web3, config, account=account)
        self.payments = PaymentsContractService(self.web3, config, account=account)

    # Writes are unavailable without a signer
    mint_ticket = _read_only("mint_ticket")
    validate_ticket = _read_only("validate_ticket")
    issue_pass = _read_only("issue_pass")
    record_payment = _read_only("record_payment")

    def _contract(self, name: str) -> BaseContractService:
        return getattr(self, name)

    def block_number(self) -> int:
        with translate_ledger_errors("read block number"):
            return self.web3.eth.block_number

    def get_events(self, kind: Union[EventKind, str], from_block: int, to_block: int) -> List[LedgerEvent]:
        """Events of one kind in ``[from_block, to_block]``, in block/log order."""
        kind = EventKind(kind)
        service = self._contract(EVENT_CONTRACTS[kind])
        entries = service.get_event_logs(kind.value, from_block, to_block)
        events = [_to_event(kind, entry) for entry in entries]
        events.sort(key=lambda e: (e.block_number, e.log_index))
        return events

    def ticket_info(self, token_id: int) -> TicketInfo:
        return self.tickets.ticket_info(token_id)

    def is_pass_valid(self, pass_id: int) -> bool:
        return self.passes.is_pass_valid(pass_id)

    def confirm(
        self,
        handle: TransactionHandle,
        confirmations: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> ConfirmedTransaction:
        """
        Block until the transaction has ``confirmations`` blocks and decode
        the id assigned by the chain from the event it emitted.

        Raises:
            LedgerTimeout: depth not reached within ``timeout`` seconds
            LedgerRejected: the transaction reverted
        """
        confirmations = self.config.confirmations if confirmations is None else confirmations
        timeout = self.config.confirm_timeout if timeout is None else timeout
        service = self._contract(TX_CONTRACTS[handle.kind])

        receipt = service.wait_for_receipt(
            handle.tx_hash,
            confirmations=confirmations,
            timeout=timeout,
            poll_latency=self.config.poll_latency,
        )

        event_kind, id_arg = TX_EVENTS[handle.kind]
        entry = service.decode_receipt_event(receipt, event_kind.value)
        if entry is None:
            logger.warning(f"{handle.kind.value} {handle.tx_hash} emitted no {event_kind.value} event")
            return ConfirmedTransaction(tx_hash=handle.tx_hash, block_number=receipt["blockNumber"])

        event = _to_event(event_kind, entry)
        return ConfirmedTransaction(
            tx_hash=handle.tx_hash,
            block_number=receipt["blockNumber"],
            ledger_id=event.args.get(id_arg),
            event=event,
        )

    def status(self) -> Dict[str, object]:
        """Connection summary for health checks and the ``ledger_status`` command."""
        return {
            "provider_url": self.config.provider_url,
            "chain_id": self.web3.eth.chain_id,
            "block_number": self.block_number(),
            "signer": self.account.address if self.account is not None else None,
            "contracts": {
                "ticket": self.tickets.contract_address,
                "pass": self.passes.contract_address,
                "payments": self.payments.contract_address,
            },
        }


class LedgerClient(LedgerReader):
    """Ledger access with the operator signer."""

    def __init__(self, config: LedgerConfig, web3: Optional[Web3] = None, account=None):
        if account is None:
            if config.read_only:
                raise ImproperlyConfigured("LEDGER_PRIVATE_KEY is required for ledger writes")
            account = Account.from_key(config.private_key)
        super().__init__(config, web3=web3, account=account)

    def mint_ticket(
        self,
        owner_address: str,
        route_id: int,
        price: int,
        travel_time: int,
        seat_label: str = "",
    ) -> TransactionHandle:
        tx_hash = self.tickets.mint_ticket(owner_address, route_id, price, travel_time, seat_label)
        return TransactionHandle(TxKind.MINT_TICKET, tx_hash)

    def validate_ticket(self, token_id: int) -> TransactionHandle:
        tx_hash = self.tickets.validate_ticket(token_id)
        return TransactionHandle(TxKind.VALIDATE_TICKET, tx_hash)

    def issue_pass(self, owner_address: str, pass_type: PassType, duration_seconds: int) -> TransactionHandle:
        tx_hash = self.passes.issue_pass(owner_address, pass_type, duration_seconds)
        return TransactionHandle(TxKind.ISSUE_PASS, tx_hash)

    def record_payment(
        self,
        reference: Union[bytes, str],
        amount: int,
        value: int = 0,
        *,
        ticket_id: Optional[int] = None,
        pass_type: Optional[PassType] = None,
    ) -> TransactionHandle:
        """
        Record a payment on the payments contract; ``payForTicket`` when
        ``ticket_id`` is given, ``payForPass`` when ``pass_type`` is.
        """
        if (ticket_id is None) == (pass_type is None):
            raise LedgerRejected("record_payment needs exactly one of ticket_id or pass_type")
        if amount <= 0:
            raise LedgerRejected("record_payment amount must be positive")

        if isinstance(reference, str):
            reference = Web3.to_bytes(hexstr=reference)
        if len(reference) != 32:
            raise LedgerRejected("Payment reference must be 32 bytes")

        if ticket_id is not None:
            tx_hash = self.payments.pay_for_ticket(ticket_id, reference, amount, value=value)
            return TransactionHandle(TxKind.PAY_TICKET, tx_hash)
        tx_hash = self.payments.pay_for_pass(PassType(pass_type), reference, amount, value=value)
        return TransactionHandle(TxKind.PAY_PASS, tx_hash)


def ledger_client_from_settings() -> LedgerClient:
    return LedgerClient(LedgerConfig.from_settings())


def ledger_reader_from_settings() -> LedgerReader:
    return LedgerReader(LedgerConfig.from_settings(read_only=True))
