import logging

from celery import shared_task
from django.utils import timezone

from .models import Pass

logger = logging.getLogger(__name__)


@shared_task(queue="maintenance")
def expire_passes() -> int:
    count = Pass.objects.filter(status="active", expires_at__lte=timezone.now()).update(status="expired")
    if count:
        logger.info(f"Expired {count} passes")
    return count
