import logging

from django.db import IntegrityError, transaction
from web3 import Web3

from railpay.exceptions import PreconditionNotMet
from railpay.apps.users.models import Profile

logger = logging.getLogger(__name__)


def link_wallet(profile: Profile, address: str) -> Profile:
    """Attach a ledger wallet to the profile. Addresses are kept lowercase."""
    if not address or not Web3.is_address(address):
        raise PreconditionNotMet("invalid_wallet_address", "Not a valid wallet address")

    address = address.lower()
    if profile.wallet_address == address:
        return profile

    try:
        with transaction.atomic():
            profile.wallet_address = address
            profile.save(update_fields=["wallet_address", "updated_at"])
    except IntegrityError:
        profile.refresh_from_db()
        raise PreconditionNotMet("wallet_in_use", "Wallet address is linked to another profile")

    logger.info(f"Linked wallet {address} to profile {profile.id}")
    return profile


def profile_for_address(address: str):
    if not address:
        return None
    return Profile.objects.filter(wallet_address=address.lower()).first()
