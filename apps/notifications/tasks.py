import logging

from celery import shared_task

from .services import fanout_status_change

logger = logging.getLogger(__name__)


@shared_task(ignore_result=True)
def fanout_status_change_task(event: dict):
    """
    Write the inbox rows for one order status change.

    No retries: a missed notification never justifies re-running a fanout
    that may already have partially succeeded.
    """
    try:
        notifications = fanout_status_change(event)
    except Exception:
        logger.exception(
            "Notification fanout failed for order %s", event.get("order_id"),
            extra={"order_id": event.get("order_id")},
        )
        return 0
    return len(notifications)
