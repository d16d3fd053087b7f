# apps/orders/audit.py
import logging

from django.db import transaction, DatabaseError

from .models import OrderAuditEntry

logger = logging.getLogger(__name__)


def record_status_change(order_id, actor, actor_role, old_value, new_value, note=""):
    """
    Write exactly one audit entry for an accepted status change.

    Runs in its own savepoint so a failed insert cannot poison the caller's
    transaction. A failure is logged and None is returned; the status change
    it describes stays applied.
    """
    try:
        with transaction.atomic():
            entry = OrderAuditEntry.objects.create(
                order_id=order_id,
                actor=actor,
                actor_role=actor_role,
                field_name="shipping_status",
                old_value=old_value,
                new_value=new_value,
                note=note or "",
            )
    except DatabaseError:
        logger.exception(
            "Failed to write audit entry for order %s (%s -> %s)",
            order_id, old_value, new_value,
            extra={"order_id": order_id, "actor_role": actor_role},
        )
        return None

    logger.debug("Audit entry %s written for order %s", entry.id, order_id)
    return entry
