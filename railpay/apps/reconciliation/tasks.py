import logging

from celery import shared_task

from .services import run_reconciliation

logger = logging.getLogger(__name__)


@shared_task(queue="reconciliation")
def reconcile_chain_events(from_block=None, to_block=None, blocks=None) -> dict:
    report = run_reconciliation(from_block=from_block, to_block=to_block, blocks=blocks, trigger="task")
    return report.to_dict()
