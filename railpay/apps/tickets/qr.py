import uuid
from typing import Optional

QR_PREFIX = "railpay:ticket:"


def build_qr_payload(ticket_id) -> str:
    return f"{QR_PREFIX}{ticket_id}"


def parse_qr_payload(payload: str) -> Optional[uuid.UUID]:
    """Ticket UUID from a ``railpay:ticket:<uuid>`` payload, or None if malformed."""
    if not payload or not payload.startswith(QR_PREFIX):
        return None
    try:
        return uuid.UUID(payload[len(QR_PREFIX):])
    except ValueError:
        return None
