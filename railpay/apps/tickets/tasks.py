from datetime import timedelta
import logging

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from .models import Ticket

logger = logging.getLogger(__name__)


@shared_task(queue="maintenance")
def expire_tickets() -> int:
    """Mark unused tickets expired once their travel time plus grace has passed."""
    cutoff = timezone.now() - timedelta(hours=settings.TICKET_EXPIRY_GRACE_HOURS)
    count = Ticket.objects.filter(status="valid", travel_time__lt=cutoff).update(status="expired")
    if count:
        logger.info(f"Expired {count} tickets with travel time before {cutoff.isoformat()}")
    return count
