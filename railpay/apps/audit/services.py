import logging
from typing import Optional

from .models import AdminLog

logger = logging.getLogger(__name__)


def record_admin_action(
    actor,
    action: str,
    resource_type: str,
    resource_id,
    description: str = "",
    metadata: Optional[dict] = None,
) -> AdminLog:
    entry = AdminLog.objects.create(
        actor=actor,
        action_type=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else "",
        description=description,
        metadata=metadata or {},
    )
    logger.info(f"Admin action {action} on {resource_type} {entry.resource_id} by {getattr(actor, 'id', None)}")
    return entry
