"""
Base Web3 Contract Service
Provides common functionality for interacting with the RailPay contracts
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional
import json
import logging
import time

from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from railpay.exceptions import (
    LedgerError,
    LedgerReadOnly,
    LedgerRejected,
    LedgerTimeout,
    LedgerUnavailable,
)

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 500000


@contextmanager
def translate_ledger_errors(action: str, tx_hash: Optional[str] = None) -> Iterator[None]:
    """Turn web3/transport exceptions into the typed ledger errors."""
    try:
        yield
    except LedgerError:
        raise
    except ContractLogicError as e:
        logger.error(f"{action} reverted: {e}")
        raise LedgerRejected(f"{action} reverted: {e}", tx_hash=tx_hash) from e
    except TimeExhausted as e:
        logger.error(f"{action} timed out: {e}")
        raise LedgerTimeout(f"{action} timed out waiting for confirmation", tx_hash=tx_hash) from e
    except OSError as e:
        # requests' ConnectionError/Timeout are OSError subclasses
        logger.error(f"{action} failed, ledger unreachable: {e}")
        raise LedgerUnavailable(f"Ledger unreachable during {action}: {e}", tx_hash=tx_hash) from e
    except (ValueError, Web3Exception) as e:
        logger.error(f"{action} rejected: {e}")
        raise LedgerRejected(f"{action} rejected: {e}", tx_hash=tx_hash) from e


def load_abi(abi_path: Path) -> List[Dict[str, Any]]:
    with open(abi_path, "r") as f:
        return json.load(f)


class BaseContractService:
    """Base class for Web3 contract interactions"""

    def __init__(self, web3: Web3, contract_address: str, abi_path: Path, account=None):
        """
        Args:
            web3: Connected Web3 instance (shared by every contract of a client)
            contract_address: The deployed contract address
            abi_path: Path to the contract ABI JSON file
            account: Local signing account, or None for read-only use
        """
        self.web3 = web3
        self.account = account
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.contract: Contract = self.web3.eth.contract(
            address=self.contract_address,
            abi=load_abi(abi_path),
        )
        logger.debug(f"Initialized contract at {self.contract_address}")

    @staticmethod
    def checksum_address(address: str) -> str:
        return Web3.to_checksum_address(address)

    # ============================================================
    # WRITE
    # ============================================================

    def send_transaction(
        self,
        function,
        value: int = 0,
        gas_multiplier: float = 1.2,
    ) -> str:
        """
        Build, sign and broadcast a transaction. Does not wait for a receipt
        and does not retry; nonce sequencing is left to the node.

        Returns:
            The 0x-prefixed transaction hash
        """
        name = getattr(function, "fn_name", "transaction")
        if self.account is None:
            raise LedgerReadOnly(f"Cannot send {name}: ledger client has no signer")

        with translate_ledger_errors(f"send {name}"):
            from_address = self.account.address
            nonce = self.web3.eth.get_transaction_count(from_address, "pending")

            # A revert during estimation aborts the send
            try:
                estimated_gas = function.estimate_gas({"from": from_address, "value": value})
                gas_limit = int(estimated_gas * gas_multiplier)
            except ContractLogicError:
                raise
            except (ValueError, Web3Exception) as e:
                logger.warning(f"Gas estimation failed for {name}: {e}. Using default {DEFAULT_GAS_LIMIT}")
                gas_limit = DEFAULT_GAS_LIMIT

            transaction = function.build_transaction({
                "from": from_address,
                "nonce": nonce,
                "gas": gas_limit,
                "gasPrice": self.web3.eth.gas_price,
                "value": value,
                "chainId": self.web3.eth.chain_id,
            })
            signed_txn = self.account.sign_transaction(transaction)
            tx_hash = self.web3.eth.send_raw_transaction(signed_txn.raw_transaction)

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(f"Transaction sent: {name} {tx_hash_hex}")
        return tx_hash_hex

    def wait_for_receipt(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout: float = 120,
        poll_latency: float = 1.0,
    ):
        """
        Wait until the transaction is mined and buried under ``confirmations``
        blocks (1 = mined). Bounded by ``timeout`` seconds overall.
        """
        deadline = time.monotonic() + timeout
        with translate_ledger_errors("confirm transaction", tx_hash=tx_hash):
            receipt = self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=poll_latency
            )
            if receipt["status"] == 0:
                raise LedgerRejected("Transaction failed on-chain", tx_hash=tx_hash)

            target_block = receipt["blockNumber"] + max(confirmations, 1) - 1
            while self.web3.eth.block_number < target_block:
                if time.monotonic() >= deadline:
                    raise LedgerTimeout(
                        f"Transaction not {confirmations} blocks deep after {timeout}s",
                        tx_hash=tx_hash,
                    )
                time.sleep(poll_latency)

        logger.info(f"Transaction confirmed in block {receipt['blockNumber']}: {tx_hash}")
        return receipt

    # ============================================================
    # READ
    # ============================================================

    def call_read_function(self, function_name: str, *args) -> Any:
        with translate_ledger_errors(f"call {function_name}"):
            function = getattr(self.contract.functions, function_name)
            return function(*args).call()

    def get_event_logs(self, event_name: str, from_block: int, to_block: int) -> list:
        with translate_ledger_errors(f"fetch {event_name} logs"):
            event = getattr(self.contract.events, event_name)
            return list(event().get_logs(from_block=from_block, to_block=to_block))

    def decode_receipt_event(self, receipt, event_name: str):
        """First ``event_name`` log emitted by this contract in the receipt, or None."""
        event = getattr(self.contract.events, event_name)
        decoded = event().process_receipt(receipt, errors=DISCARD)
        for entry in decoded:
            if Web3.to_checksum_address(entry["address"]) == self.contract_address:
                return entry
        return None
