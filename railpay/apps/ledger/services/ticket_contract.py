"""
RailPayTicket Contract Service
Handles ticket minting, validation and ticket lookups
"""

import logging

from railpay.apps.ledger.config import TICKET_ABI, LedgerConfig
from railpay.apps.ledger.types import TicketInfo, TicketStatus
from .base_contract import BaseContractService

logger = logging.getLogger(__name__)


class TicketContractService(BaseContractService):
    """Service for interacting with the RailPayTicket contract"""

    def __init__(self, web3, config: LedgerConfig, account=None):
        super().__init__(
            web3,
            contract_address=config.ticket_address,
            abi_path=config.abi_path(TICKET_ABI),
            account=account,
        )

    # ============================================================
    # READ-ONLY FUNCTIONS
    # ============================================================

    def ticket_info(self, token_id: int) -> TicketInfo:
        route_id, price, travel_time, seat, status = self.call_read_function("ticketInfo", token_id)
        return TicketInfo(
            token_id=token_id,
            route_id=route_id,
            price=price,
            travel_time=travel_time,
            seat=seat,
            status=TicketStatus(status),
        )

    def owner_of(self, token_id: int) -> str:
        return self.call_read_function("ownerOf", token_id)

    # ============================================================
    # WRITE FUNCTIONS (operator)
    # ============================================================

    def mint_ticket(
        self,
        owner_address: str,
        route_id: int,
        price: int,
        travel_time: int,
        seat_label: str = "",
    ) -> str:
        """
        Mint a ticket NFT to the passenger's wallet

        Args:
            owner_address: Passenger wallet
            route_id: Route ledger id
            price: Ticket price in wei
            travel_time: Unix timestamp of departure
            seat_label: Seat label, may be empty

        Returns:
            Transaction hash
        """
        logger.info(f"Minting ticket on route {route_id} to {owner_address}")
        function = self.contract.functions.mintTicket(
            self.checksum_address(owner_address),
            route_id,
            price,
            travel_time,
            seat_label or "",
        )
        return self.send_transaction(function)

    def validate_ticket(self, token_id: int) -> str:
        logger.info(f"Validating ticket {token_id} on-chain")
        function = self.contract.functions.validateTicket(token_id)
        return self.send_transaction(function)
