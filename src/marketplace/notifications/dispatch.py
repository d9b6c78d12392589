"""Push delivery confirmations to the configured sink without failing the caller."""

import structlog

from marketplace.notifications import get_notification_sink

logger = structlog.get_logger(__name__)


def notify_delivered(order) -> None:
    try:
        get_notification_sink().order_delivered(
            order_id=str(order.id),
            user_id=str(order.user_id),
            fulfillment_type=order.fulfillment_type,
            delivered_at=order.delivered_at.isoformat() if order.delivered_at else None,
        )
    except Exception:
        logger.warning("delivery_notification_failed", order_id=str(order.id), exc_info=True)
