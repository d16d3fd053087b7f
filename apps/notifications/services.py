# apps/notifications/services.py
import logging
from dataclasses import dataclass
from string import Template

from django.contrib.auth import get_user_model
from django.db import transaction, DatabaseError
from django.utils import timezone

from apps.accounts.models import Role
from apps.orders.status import ShippingStatus
from .models import Notification, NotificationType

logger = logging.getLogger(__name__)


# Roles that make up an outlet's staff for broadcasts
MEMBER_ROLES = (Role.OUTLET_MANAGER, Role.DELIVERYMAN)


@dataclass(frozen=True)
class Recipient:
    user_id: str
    outlet_id: str | None = None  # set when reached as a member of this outlet

    @property
    def is_broadcast(self):
        return self.outlet_id is not None


# (title, body) per target status; anything else falls back to GENERIC_MESSAGE
STATUS_MESSAGES = {
    ShippingStatus.IN_TRANSIT.value: (
        "Order In Transit",
        "Order #${order_id} is now being delivered to the customer.",
    ),
    ShippingStatus.RECEIVED.value: (
        "Order Delivered",
        "Order #${order_id} has been successfully delivered and received by the customer.",
    ),
    ShippingStatus.READY_TO_SHIP.value: (
        "Order Ready",
        "Order #${order_id} is packed and ready for pickup/delivery.",
    ),
    ShippingStatus.READY_FOR_PICKUP.value: (
        "Order Ready",
        "Order #${order_id} is packed and ready for pickup/delivery.",
    ),
}

GENERIC_MESSAGE = (
    "Order Status Updated",
    'Order #${order_id} status updated to "${new_status}".',
)

BODY_SUFFIX = " (${actor_phrase}: ${old_status} → ${new_status})"

ACTOR_PHRASES = {
    Role.ADMIN.value: "Updated by Admin",
    Role.OUTLET_MANAGER.value: "Updated by ${outlet_name}",
    Role.DELIVERYMAN.value: "Updated by Delivery personnel",
    "CUSTOMER": "Confirmed by customer",
    "SYSTEM": "Updated by System",
}


def _render(template: str, context: dict) -> str:
    """
    Render ${var} placeholders, leaving unknown ones as they are.
    """
    return Template(template).safe_substitute(**context)


def render_status_message(event: dict) -> tuple[str, str]:
    title, body = STATUS_MESSAGES.get(event.get("new_status"), GENERIC_MESSAGE)

    context = {
        "order_id": event.get("order_id", ""),
        "old_status": event.get("old_status") or "-",
        "new_status": event.get("new_status", ""),
        "outlet_name": event.get("outlet_name") or "the outlet",
    }
    phrase = ACTOR_PHRASES.get(event.get("actor_role"), "Updated")
    context["actor_phrase"] = _render(phrase, context)

    return _render(title, context), _render(body + BODY_SUFFIX, context)


def outlet_members(outlet_id) -> list[str]:
    User = get_user_model()
    member_ids = (
        User.objects.filter(outlet_id=outlet_id, is_active=True, role__in=MEMBER_ROLES)
        .order_by("username")
        .values_list("id", flat=True)
    )
    return [str(member_id) for member_id in member_ids]


def compute_recipients(event: dict) -> list[Recipient]:
    """
    Who hears about a status change, one Recipient per user. The actor is
    never among them:

    - the assigned deliveryman, unless the actor is that deliveryman;
    - every member of the order's outlet, unless the actor is a member of it.

    A user reached both ways gets only the direct notification.
    """
    actor_id = str(event["actor_id"]) if event.get("actor_id") else None
    recipients = []
    seen = {actor_id}

    deliveryman_id = event.get("deliveryman_id")
    if deliveryman_id and str(deliveryman_id) not in seen:
        recipients.append(Recipient(user_id=str(deliveryman_id)))
        seen.add(str(deliveryman_id))

    outlet_id = event.get("outlet_id")
    if outlet_id and event.get("actor_outlet_id") != outlet_id:
        for member_id in outlet_members(outlet_id):
            if member_id in seen:
                continue
            recipients.append(Recipient(user_id=member_id, outlet_id=outlet_id))
            seen.add(member_id)

    return recipients


def fanout_status_change(event: dict) -> list[Notification]:
    """
    Insert one Notification per recipient of a status change.

    Each insert runs in its own savepoint; a failed one is logged and the
    rest still go out. Nothing is raised and nothing is retried.
    """
    recipients = compute_recipients(event)
    if not recipients:
        logger.debug("No recipients for status change on order %s", event.get("order_id"))
        return []

    title, body = render_status_message(event)
    data = {
        "order_id": event.get("order_id"),
        "old_status": event.get("old_status"),
        "new_status": event.get("new_status"),
        "actor_role": event.get("actor_role"),
    }

    created = []
    for recipient in recipients:
        try:
            with transaction.atomic():
                notification = Notification.objects.create(
                    user_id=recipient.user_id,
                    outlet_id=recipient.outlet_id,
                    order_id=event.get("order_id"),
                    type=NotificationType.ORDER_STATUS_UPDATE,
                    title=title,
                    body=body,
                    data=data,
                )
        except DatabaseError:
            logger.exception(
                "Failed to create notification for %s on order %s",
                recipient, event.get("order_id"),
                extra={"order_id": event.get("order_id")},
            )
            continue
        created.append(notification)

    logger.info(
        "Order %s: %s notification(s) created for %s -> %s",
        event.get("order_id"), len(created), event.get("old_status"), event.get("new_status"),
        extra={"order_id": event.get("order_id"), "status": event.get("new_status")},
    )
    return created


def inbox_for(user):
    return Notification.objects.filter(user_id=user.id)


def mark_all_read(user) -> int:
    now = timezone.now()
    return inbox_for(user).filter(is_read=False).update(is_read=True, read_at=now, updated_at=now)
