# apps/notifications/receivers.py
import logging

from django.dispatch import receiver
from kombu.exceptions import OperationalError

from apps.orders.signals import order_status_changed
from .tasks import fanout_status_change_task

logger = logging.getLogger(__name__)


@receiver(order_status_changed)
def handle_order_status_changed(
    sender,
    order_id,
    old_status,
    new_status,
    actor_role,
    **kwargs,
):
    """
    Order status committed -> queue the notification fanout.
    """
    event = {
        "order_id": order_id,
        "old_status": old_status,
        "new_status": new_status,
        "actor_role": actor_role,
        "actor_id": kwargs.get("actor_id"),
        "actor_outlet_id": kwargs.get("actor_outlet_id"),
        "actor_name": kwargs.get("actor_name"),
        "outlet_id": kwargs.get("outlet_id"),
        "outlet_name": kwargs.get("outlet_name"),
        "deliveryman_id": kwargs.get("deliveryman_id"),
    }

    try:
        fanout_status_change_task.delay(event)
    except OperationalError:
        # Broker unreachable; the status change itself already committed
        logger.exception("Could not queue notification fanout for order %s", order_id,
                         extra={"order_id": order_id})
