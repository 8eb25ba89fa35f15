import logging
from typing import Any, Dict, List, Optional

from django.utils import timezone

from railpay.apps.passes.models import Pass
from railpay.exceptions import LedgerError, ResourceNotFound

logger = logging.getLogger(__name__)


def _status(reader, travel_pass: Pass, now) -> Dict[str, Any]:
    db_valid = travel_pass.is_valid(now)
    blockchain_valid: Optional[bool] = None
    if reader is not None and travel_pass.ledger_pass_id is not None:
        try:
            blockchain_valid = reader.is_pass_valid(travel_pass.ledger_pass_id)
        except LedgerError as e:
            logger.warning(f"isPassValid({travel_pass.ledger_pass_id}) failed: {e}")

    return {
        "pass": travel_pass,
        "db_valid": db_valid,
        "blockchain_valid": blockchain_valid,
        # the chain only overrules when it answered
        "is_valid": db_valid and blockchain_valid is not False,
    }


def check_pass_status(reader, profile, pass_id=None) -> List[Dict[str, Any]]:
    """
    Validity of one pass (``pass_id``) or all of the profile's passes, from
    the mirror and, where reachable, the chain.
    """
    now = timezone.now()
    passes = Pass.objects.filter(owner=profile)
    if pass_id is not None:
        passes = passes.filter(pk=pass_id)
        if not passes.exists():
            raise ResourceNotFound("Pass not found")
    return [_status(reader, p, now) for p in passes]
