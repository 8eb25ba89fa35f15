"""
RailPayPayments Contract Service
Records ticket and pass payments on-chain
"""

import logging

from railpay.apps.ledger.config import PAYMENTS_ABI, LedgerConfig
from railpay.apps.ledger.types import PassType
from .base_contract import BaseContractService

logger = logging.getLogger(__name__)


class PaymentsContractService(BaseContractService):
    """Service for interacting with the RailPayPayments contract"""

    def __init__(self, web3, config: LedgerConfig, account=None):
        super().__init__(
            web3,
            contract_address=config.payments_address,
            abi_path=config.abi_path(PAYMENTS_ABI),
            account=account,
        )

    def pay_for_ticket(self, ticket_id: int, reference: bytes, amount: int, value: int = 0) -> str:
        """
        Args:
            ticket_id: Ticket token id
            reference: bytes32 payment reference
            amount: Amount in wei
            value: Native value attached to the call (wei)
        """
        logger.info(f"Recording ticket payment for token {ticket_id}: {amount} wei")
        function = self.contract.functions.payForTicket(ticket_id, reference, amount)
        return self.send_transaction(function, value=value)

    def pay_for_pass(self, pass_type: PassType, reference: bytes, amount: int, value: int = 0) -> str:
        logger.info(f"Recording {PassType(pass_type).name.lower()} pass payment: {amount} wei")
        function = self.contract.functions.payForPass(int(pass_type), reference, amount)
        return self.send_transaction(function, value=value)
