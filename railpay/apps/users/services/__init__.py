from .identity import IdentityVerificationService, KorapayNINClient, names_match
from .wallets import link_wallet, profile_for_address

__all__ = [
    "IdentityVerificationService",
    "KorapayNINClient",
    "names_match",
    "link_wallet",
    "profile_for_address",
]
