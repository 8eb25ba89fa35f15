"""
RailPassSubscription Contract Service
"""

import logging

from railpay.apps.ledger.config import PASS_ABI, LedgerConfig
from railpay.apps.ledger.types import PassType
from .base_contract import BaseContractService

logger = logging.getLogger(__name__)


class PassContractService(BaseContractService):
    """Service for interacting with the RailPassSubscription contract"""

    def __init__(self, web3, config: LedgerConfig, account=None):
        super().__init__(
            web3,
            contract_address=config.pass_address,
            abi_path=config.abi_path(PASS_ABI),
            account=account,
        )

    # ============================================================
    # READ-ONLY FUNCTIONS
    # ============================================================

    def is_pass_valid(self, pass_id: int) -> bool:
        return bool(self.call_read_function("isPassValid", pass_id))

    # ============================================================
    # WRITE FUNCTIONS (operator)
    # ============================================================

    def issue_pass(self, owner_address: str, pass_type: PassType, duration_seconds: int) -> str:
        logger.info(f"Issuing {PassType(pass_type).name.lower()} pass to {owner_address}")
        function = self.contract.functions.issuePass(
            self.checksum_address(owner_address),
            int(pass_type),
            int(duration_seconds),
        )
        return self.send_transaction(function)
