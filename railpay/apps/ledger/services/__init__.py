from .ledger import (
    LedgerClient,
    LedgerReader,
    build_web3,
    ledger_client_from_settings,
    ledger_reader_from_settings,
)

__all__ = [
    "LedgerClient",
    "LedgerReader",
    "build_web3",
    "ledger_client_from_settings",
    "ledger_reader_from_settings",
]
