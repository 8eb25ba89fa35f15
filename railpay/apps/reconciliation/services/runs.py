import logging
from typing import Optional

from django.utils import timezone

from railpay.apps.ledger.services import ledger_reader_from_settings
from railpay.apps.reconciliation.models import ReconciliationRun
from railpay.exceptions import LedgerUnavailable
from .reconciler import EventReconciler, ReconciliationReport

logger = logging.getLogger(__name__)


def run_reconciliation(
    reader=None,
    from_block: Optional[int] = None,
    to_block: Optional[int] = None,
    blocks: Optional[int] = None,
    trigger: str = "task",
) -> ReconciliationReport:
    """Scan once and log the run. ``reader`` defaults to one built from settings."""
    started_at = timezone.now()
    try:
        if reader is None:
            reader = ledger_reader_from_settings()
        report = EventReconciler(reader).scan(from_block, to_block, blocks)
    except LedgerUnavailable as e:
        logger.error(f"Reconciliation ({trigger}) could not reach the ledger: {e}")
        ReconciliationRun.objects.create(
            trigger=trigger,
            status="failed",
            from_block=from_block,
            to_block=to_block,
            error=str(e),
            started_at=started_at,
        )
        raise

    ReconciliationRun.objects.create(
        trigger=trigger,
        from_block=report.from_block,
        to_block=report.to_block,
        current_block=report.current_block,
        counts=report.to_dict()["events_processed"],
        applied=report.total_applied,
        failed=report.total_failed,
        started_at=started_at,
    )
    return report
