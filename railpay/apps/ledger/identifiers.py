"""
UUID → ledger integer mapping

The contracts key routes, tickets and passes by ``uint256``. Off-chain ids
are UUIDs, so the ledger id is the first 16 hex digits of the UUID read as
an unsigned integer. The mapping is lossy (64 of 128 bits); the registry
catches the rare case where two UUIDs share a prefix.
"""

from typing import Optional, Union
import logging
import uuid

from django.db import IntegrityError, transaction

from railpay.exceptions import IdentifierCollision
from .models import LedgerIdentifier

logger = logging.getLogger(__name__)

LEDGER_ID_HEX_DIGITS = 16


def to_ledger_id(value: Union[uuid.UUID, str]) -> int:
    if not isinstance(value, uuid.UUID):
        value = uuid.UUID(str(value))
    return int(value.hex[:LEDGER_ID_HEX_DIGITS], 16)


class IdentifierMapper:
    """Collision-aware registry over ``LedgerIdentifier`` rows."""

    def register(self, namespace: str, value: Union[uuid.UUID, str]) -> int:
        """
        Record ``value``'s ledger id in ``namespace`` and return it.

        Idempotent for the same UUID.

        Raises:
            IdentifierCollision: another UUID already holds the ledger id
        """
        object_id = value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        ledger_id = to_ledger_id(object_id)

        try:
            with transaction.atomic():
                entry, created = LedgerIdentifier.objects.get_or_create(
                    namespace=namespace,
                    ledger_id=str(ledger_id),
                    defaults={"object_id": object_id},
                )
        except IntegrityError:
            # a concurrent register won the insert
            entry = LedgerIdentifier.objects.get(namespace=namespace, ledger_id=str(ledger_id))
            created = False

        if entry.object_id != object_id:
            logger.error(f"Ledger id collision in {namespace}: {ledger_id} held by {entry.object_id}, wanted by {object_id}")
            raise IdentifierCollision(namespace, ledger_id, entry.object_id, object_id)

        if created:
            logger.debug(f"Registered {namespace} {object_id} as ledger id {ledger_id}")
        return ledger_id

    def resolve(self, namespace: str, ledger_id: int) -> Optional[uuid.UUID]:
        return (
            LedgerIdentifier.objects.filter(namespace=namespace, ledger_id=str(ledger_id))
            .values_list("object_id", flat=True)
            .first()
        )
