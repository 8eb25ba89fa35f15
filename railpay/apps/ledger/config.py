"""
Ledger connection settings

A ``LedgerConfig`` is built once per caller (view, task, command) and passed
to the ledger services explicitly.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

TICKET_ABI = "RailPayTicket.json"
PASS_ABI = "RailPassSubscription.json"
PAYMENTS_ABI = "RailPayPayments.json"

DEFAULT_ABI_DIR = Path(__file__).resolve().parent / "abi"


@dataclass(frozen=True)
class LedgerConfig:
    provider_url: str
    ticket_address: str
    pass_address: str
    payments_address: str
    private_key: Optional[str] = None
    confirmations: int = 1
    confirm_timeout: int = 120
    poll_latency: float = 1.0
    request_timeout: int = 15
    abi_dir: Path = DEFAULT_ABI_DIR

    @property
    def read_only(self) -> bool:
        return not self.private_key

    def abi_path(self, name: str) -> Path:
        return Path(self.abi_dir) / name

    @classmethod
    def from_settings(cls, read_only: bool = False) -> "LedgerConfig":
        """
        Build the config from Django settings.

        Args:
            read_only: Leave the signer out even if a key is configured
                (used by the reconciler and status checks)
        """
        addresses = {
            "CONTRACT_RAILPAY_TICKET": settings.CONTRACT_RAILPAY_TICKET,
            "CONTRACT_RAILPASS_SUBSCRIPTION": settings.CONTRACT_RAILPASS_SUBSCRIPTION,
            "CONTRACT_RAILPAY_PAYMENTS": settings.CONTRACT_RAILPAY_PAYMENTS,
        }
        missing = [name for name, value in addresses.items() if not value]
        if missing:
            raise ImproperlyConfigured(f"Missing contract address settings: {', '.join(missing)}")

        private_key = None if read_only else (settings.LEDGER_PRIVATE_KEY or None)
        return cls(
            provider_url=settings.WEB3_PROVIDER_URL,
            ticket_address=settings.CONTRACT_RAILPAY_TICKET,
            pass_address=settings.CONTRACT_RAILPASS_SUBSCRIPTION,
            payments_address=settings.CONTRACT_RAILPAY_PAYMENTS,
            private_key=private_key,
            confirmations=settings.LEDGER_CONFIRMATIONS,
            confirm_timeout=settings.LEDGER_CONFIRM_TIMEOUT,
            poll_latency=getattr(settings, "LEDGER_POLL_LATENCY", 1.0),
            request_timeout=getattr(settings, "LEDGER_REQUEST_TIMEOUT", 15),
            abi_dir=Path(getattr(settings, "LEDGER_ABI_DIR", DEFAULT_ABI_DIR)),
        )
