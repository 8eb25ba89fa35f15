from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests
from django.core.exceptions import ImproperlyConfigured
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from railpay.apps.ledger.config import LedgerConfig
from railpay.apps.ledger.services import LedgerClient, LedgerReader
from railpay.apps.ledger.types import EventKind, PassType, TransactionHandle, TxKind
from railpay.exceptions import LedgerReadOnly, LedgerRejected, LedgerTimeout, LedgerUnavailable

OPERATOR = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
PASSENGER = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
TX_BYTES = bytes.fromhex("ab" * 32)
TX_HASH = "0x" + "ab" * 32


@pytest.fixture
def config():
    return LedgerConfig(
        provider_url="http://127.0.0.1:8545",
        ticket_address="0x5FbDB2315678afecb367f032d93F642f64180aa3",
        pass_address="0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512",
        payments_address="0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0",
        confirm_timeout=1,
        poll_latency=0,
    )


@pytest.fixture
def web3():
    w3 = MagicMock()
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.gas_price = 1_000_000_000
    w3.eth.chain_id = 31337
    w3.eth.block_number = 10
    w3.eth.send_raw_transaction.return_value = TX_BYTES
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 10}
    return w3


@pytest.fixture
def contract(web3):
    contract = web3.eth.contract.return_value
    for name in ("mintTicket", "validateTicket", "issuePass", "payForTicket", "payForPass"):
        function = getattr(contract.functions, name).return_value
        function.estimate_gas.return_value = 100_000
        function.build_transaction.side_effect = lambda tx: tx
    return contract


@pytest.fixture
def account():
    acct = MagicMock()
    acct.address = OPERATOR
    acct.sign_transaction.return_value = SimpleNamespace(raw_transaction=b"\x01\x02")
    return acct


@pytest.fixture
def client(config, web3, contract, account):
    return LedgerClient(config, web3=web3, account=account)


def test_mint_ticket_signs_and_sends(client, contract, account, web3):
    handle = client.mint_ticket(PASSENGER, 5, 10**19, 1_700_000_000, "A1")

    assert handle == TransactionHandle(TxKind.MINT_TICKET, TX_HASH)
    contract.functions.mintTicket.assert_called_once_with(
        Web3.to_checksum_address(PASSENGER), 5, 10**19, 1_700_000_000, "A1"
    )
    tx = account.sign_transaction.call_args[0][0]
    assert tx["nonce"] == 7
    assert tx["chainId"] == 31337
    assert tx["gas"] == 120_000
    web3.eth.send_raw_transaction.assert_called_once_with(b"\x01\x02")


def test_revert_during_gas_estimation_is_rejected(client, contract, web3):
    contract.functions.validateTicket.return_value.estimate_gas.side_effect = ContractLogicError(
        "execution reverted: Ticket already used"
    )

    with pytest.raises(LedgerRejected):
        client.validate_ticket(3)
    web3.eth.send_raw_transaction.assert_not_called()


def test_gas_estimation_failure_falls_back_to_default_limit(client, contract, account):
    contract.functions.issuePass.return_value.estimate_gas.side_effect = ValueError("estimation unavailable")

    client.issue_pass(PASSENGER, PassType.WEEKLY, 7 * 24 * 3600)

    assert account.sign_transaction.call_args[0][0]["gas"] == 500_000


def test_transport_failure_is_unavailable(client, web3):
    web3.eth.get_transaction_count.side_effect = requests.exceptions.ConnectionError("connection refused")

    with pytest.raises(LedgerUnavailable):
        client.mint_ticket(PASSENGER, 5, 1, 1_700_000_000)


def test_reader_refuses_writes(config, web3, contract):
    reader = LedgerReader(config, web3=web3)

    with pytest.raises(LedgerReadOnly):
        reader.mint_ticket(PASSENGER, 5, 1, 1_700_000_000)
    with pytest.raises(LedgerReadOnly):
        reader.tickets.validate_ticket(1)
    web3.eth.send_raw_transaction.assert_not_called()


def test_client_without_key_is_misconfigured(config, web3):
    with pytest.raises(ImproperlyConfigured):
        LedgerClient(config, web3=web3)


def test_record_payment_needs_exactly_one_target(client):
    reference = b"\x11" * 32
    with pytest.raises(LedgerRejected):
        client.record_payment(reference, 10)
    with pytest.raises(LedgerRejected):
        client.record_payment(reference, 10, ticket_id=1, pass_type=PassType.DAILY)


def test_record_payment_validates_amount_and_reference(client, web3):
    with pytest.raises(LedgerRejected):
        client.record_payment(b"\x11" * 32, 0, ticket_id=1)
    with pytest.raises(LedgerRejected):
        client.record_payment(b"\x11" * 31, 10, ticket_id=1)
    web3.eth.send_raw_transaction.assert_not_called()


def test_record_payment_for_pass_uses_pay_for_pass(client, contract):
    reference = "0x" + "22" * 32

    handle = client.record_payment(reference, 10, 5, pass_type=PassType.MONTHLY)

    assert handle.kind == TxKind.PAY_PASS
    contract.functions.payForPass.assert_called_once_with(2, b"\x22" * 32, 10)


def test_confirm_reads_ledger_id_from_event(client, contract, config):
    entry = {
        "address": config.ticket_address.lower(),
        "args": {"tokenId": 42, "to": PASSENGER, "routeId": 5, "price": 10},
        "blockNumber": 10,
        "logIndex": 3,
        "transactionHash": TX_BYTES,
    }
    contract.events.TicketMinted.return_value.process_receipt.return_value = [entry]

    confirmed = client.confirm(TransactionHandle(TxKind.MINT_TICKET, TX_HASH))

    assert confirmed.ledger_id == 42
    assert confirmed.block_number == 10
    assert confirmed.event.kind == EventKind.TICKET_MINTED
    assert confirmed.event.tx_hash == TX_HASH


def test_confirm_without_event_has_no_ledger_id(client, contract):
    contract.events.PassIssued.return_value.process_receipt.return_value = []

    confirmed = client.confirm(TransactionHandle(TxKind.ISSUE_PASS, TX_HASH))

    assert confirmed.ledger_id is None
    assert confirmed.event is None


def test_confirm_failed_receipt_is_rejected(client, web3):
    web3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 10}

    with pytest.raises(LedgerRejected) as exc:
        client.confirm(TransactionHandle(TxKind.VALIDATE_TICKET, TX_HASH))
    assert exc.value.tx_hash == TX_HASH


def test_confirm_times_out(client, web3):
    web3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")

    with pytest.raises(LedgerTimeout) as exc:
        client.confirm(TransactionHandle(TxKind.MINT_TICKET, TX_HASH))
    assert exc.value.tx_hash == TX_HASH


def test_confirm_times_out_before_depth(client, web3):
    with pytest.raises(LedgerTimeout):
        client.confirm(TransactionHandle(TxKind.MINT_TICKET, TX_HASH), confirmations=3, timeout=0)


def test_get_events_in_block_order(config, web3, contract):
    def log(block, index):
        return {
            "args": {"tokenId": block, "validator": OPERATOR},
            "blockNumber": block,
            "logIndex": index,
            "transactionHash": bytes([block]) * 32,
        }

    contract.events.TicketValidated.return_value.get_logs.return_value = [log(12, 1), log(11, 0), log(12, 0)]
    reader = LedgerReader(config, web3=web3)

    events = reader.get_events("TicketValidated", 10, 20)

    assert [(e.block_number, e.log_index) for e in events] == [(11, 0), (12, 0), (12, 1)]
    assert events[0].tx_hash == "0x" + "0b" * 32
    contract.events.TicketValidated.return_value.get_logs.assert_called_once_with(from_block=10, to_block=20)


def test_config_from_settings(settings):
    assert not LedgerConfig.from_settings().read_only
    assert LedgerConfig.from_settings(read_only=True).read_only

    settings.CONTRACT_RAILPAY_PAYMENTS = ""
    with pytest.raises(ImproperlyConfigured):
        LedgerConfig.from_settings()
