import logging
from dataclasses import dataclass, field
from datetime import date, time

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.exceptions import ValidationError
from django.db import transaction, DatabaseError

from apps.accounts.models import Role
from apps.outlets.models import Outlet
from apps.outlets.services import OutletService
from apps.utils.exceptions import BusinessLogicException
from apps.utils.utils import generate_order_id, digits_only, normalize_text, local_now
from .access import OrderAccessGuard, READ, WRITE, CUSTOMER_ROLE, is_authenticated, role_of
from .audit import record_status_change
from .exceptions import (
    InvalidStatus,
    NoOpTransition,
    InvalidAssignment,
    OrderNotFound,
    Forbidden,
    VerificationFailed,
    AlreadyTerminal,
    PersistenceError,
)
from .models import Order, DELIVERY_ONLY_FIELDS, PICKUP_METADATA_FIELDS
from .signals import order_status_changed
from .status import (
    ShippingStatus,
    INITIAL_STATUS,
    PICKUP_STATUSES,
    TERMINAL_STATUSES,
    accepted_statuses,
    normalize_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryUpdate:
    """
    Delivery-branch (and neutral) side effects: pickup metadata is cleared,
    optional outlet and deliveryman assignment persisted with the status.
    """
    outlet: Outlet | None = None
    outlet_name: str | None = None
    deliveryman: object | None = None

    def apply(self, order):
        changed = list(PICKUP_METADATA_FIELDS)
        for name in PICKUP_METADATA_FIELDS:
            setattr(order, name, None)
        if self.outlet is not None:
            order.outlet = self.outlet
            order.outlet_name = self.outlet.name
            changed += ["outlet", "outlet_name"]
        elif self.outlet_name:
            order.outlet_name = self.outlet_name
            changed.append("outlet_name")
        if self.deliveryman is not None:
            order.assigned_deliveryman = self.deliveryman
            changed.append("assigned_deliveryman")
        return changed


@dataclass(frozen=True)
class PickupUpdate:
    """
    Pickup-branch side effects: every delivery-only field is cleared and the
    four pickup metadata fields are set, in the same row update.
    """
    pickup_outlet: str
    picked_up_by: str
    pickup_date: date
    pickup_time: time
    outlet: Outlet | None = None

    def apply(self, order):
        changed = list(DELIVERY_ONLY_FIELDS)
        for name in DELIVERY_ONLY_FIELDS:
            setattr(order, name, None)
        if self.outlet is not None:
            order.outlet = self.outlet
            order.outlet_name = self.outlet.name
            changed += ["outlet", "outlet_name"]
        order.pickup_outlet = self.pickup_outlet
        order.picked_up_by = self.picked_up_by
        order.pickup_date = self.pickup_date
        order.pickup_time = self.pickup_time
        changed += ["pickup_outlet", "picked_up_by", "pickup_date", "pickup_time"]
        return changed


@dataclass(frozen=True)
class TransitionResult:
    order: Order
    old_status: str
    new_status: str
    audit_entry_id: object = None
    changed_fields: list = field(default_factory=list)


def _lookup_outlet(fields):
    """
    Outlet named in the request: (Outlet, None), (None, free-text name) or (None, None).
    """
    outlet_id = fields.get("outlet_id")
    if outlet_id:
        outlet = Outlet.objects.filter(id=outlet_id).first()
        if outlet is None:
            raise InvalidAssignment(f"Outlet {outlet_id} does not exist", details={"outlet_id": outlet_id})
        return outlet, None

    outlet_name = (fields.get("outlet_name") or "").strip()
    if outlet_name:
        return OutletService.get_by_name(outlet_name), outlet_name
    return None, None


def _lookup_deliveryman(deliveryman_id):
    User = get_user_model()
    try:
        deliveryman = User.objects.select_related("outlet").filter(
            id=deliveryman_id, role=Role.DELIVERYMAN, is_active=True
        ).first()
    except (ValueError, ValidationError):
        deliveryman = None
    if deliveryman is None:
        raise InvalidAssignment(
            f"Deliveryman {deliveryman_id} does not exist",
            details={"deliveryman_id": str(deliveryman_id)},
        )
    return deliveryman


def build_branch_update(order, new_status, actor, fields):
    """
    Turn the requested status into the explicit branch variant. The branch
    is decided here once, from the requested status alone.
    """
    outlet, outlet_name = _lookup_outlet(fields)
    deliveryman_id = fields.get("deliveryman_id")
    actor_is_person = is_authenticated(actor)

    if (outlet is not None or outlet_name) and actor_is_person and actor.role != Role.ADMIN:
        raise Forbidden("Only admins may reassign an order's outlet")

    if new_status in PICKUP_STATUSES:
        if deliveryman_id:
            raise InvalidAssignment("A deliveryman can only be assigned on the delivery branch")

        if outlet is not None:
            pickup_outlet = outlet.name
        else:
            pickup_outlet = outlet_name or order.resolved_outlet_name or settings.PICKUP_OUTLET_FALLBACK

        released_by = fields.get("picked_up_by")
        if not released_by:
            released_by = actor.display_name if actor_is_person else settings.PICKUP_RELEASED_BY_FALLBACK

        now = local_now()
        return PickupUpdate(
            pickup_outlet=pickup_outlet,
            picked_up_by=released_by,
            pickup_date=fields.get("pickup_date") or now.date(),
            pickup_time=fields.get("pickup_time") or now.time().replace(microsecond=0),
            outlet=outlet,
        )

    deliveryman = None
    if deliveryman_id:
        if actor_is_person and actor.role == Role.DELIVERYMAN:
            raise Forbidden("Deliverymen cannot assign orders")
        deliveryman = _lookup_deliveryman(deliveryman_id)
        if actor_is_person and actor.role == Role.OUTLET_MANAGER and deliveryman.outlet_id != actor.outlet_id:
            raise Forbidden("Deliveryman does not belong to your outlet")

    return DeliveryUpdate(
        outlet=outlet,
        outlet_name=None if outlet is not None else outlet_name,
        deliveryman=deliveryman,
    )


class OrderService:

    @staticmethod
    def _locked_update(order_id, mutate):
        """
        Lock the order row, let `mutate(order)` change it, save.
        `mutate` returns (old_status, changed_fields).

        Concurrent writers on the same order are serialized by the row lock,
        so the old status handed to the audit log is the one actually replaced.
        """
        try:
            with transaction.atomic():
                try:
                    order = Order.objects.select_for_update().get(id=order_id)
                except Order.DoesNotExist:
                    raise OrderNotFound(order_id)

                old_status, changed = mutate(order)
                order.save(update_fields=["shipping_status", "updated_at", *changed])
        except BusinessLogicException:
            raise
        except DatabaseError as exc:
            logger.exception("Failed to persist order %s", order_id, extra={"order_id": order_id})
            raise PersistenceError("Failed to update order status") from exc

        return order, old_status, changed

    @staticmethod
    def _after_commit(order, old_status, new_status, actor, note=""):
        """
        Audit synchronously, then emit the status event once the surrounding
        transaction (if any) commits. Neither step can fail the transition.
        """
        actor_role = role_of(actor)
        person = actor if is_authenticated(actor) else None

        entry = record_status_change(order.id, person, actor_role, old_status, new_status, note)

        outlet = order.outlet if order.outlet_id else OutletService.match_by_name(order)
        payload = {
            "order_id": order.id,
            "old_status": old_status,
            "new_status": new_status,
            "actor_id": str(person.id) if person else None,
            "actor_role": actor_role,
            "actor_outlet_id": person.outlet_id if person else None,
            "actor_name": person.display_name if person else None,
            "outlet_id": outlet.id if outlet else None,
            "outlet_name": order.resolved_outlet_name or (outlet.name if outlet else None),
            "deliveryman_id": str(order.assigned_deliveryman_id) if order.assigned_deliveryman_id else None,
        }

        def _emit():
            for receiver, response in order_status_changed.send_robust(sender=Order, **payload):
                if isinstance(response, Exception):
                    logger.error(
                        "order_status_changed receiver %r failed for order %s: %s",
                        receiver, order.id, response,
                        extra={"order_id": order.id},
                    )

        transaction.on_commit(_emit)
        return entry

    @staticmethod
    def apply_status_transition(order_id: str, requested_status: str, actor=None, fields: dict | None = None):
        """
        Move an order to `requested_status`.

        `actor` is the authenticated user making the change, or None for an
        internal system caller. An anonymous user is always refused here;
        customers go through confirm_receipt().

        Raises InvalidStatus, OrderNotFound, Forbidden, NoOpTransition,
        InvalidAssignment or PersistenceError.
        """
        fields = fields or {}
        new_status = normalize_status(requested_status)
        if new_status is None:
            raise InvalidStatus(requested_status, accepted_statuses())

        if actor is not None and not is_authenticated(actor):
            raise Forbidden("Authentication required")

        def mutate(order):
            if actor is not None:
                OrderAccessGuard.authorize(actor, order, WRITE)

            current = normalize_status(order.shipping_status) or order.shipping_status
            if current == new_status:
                raise NoOpTransition(current)

            update = build_branch_update(order, new_status, actor, fields)
            changed = update.apply(order)
            order.shipping_status = new_status
            return current, changed

        order, old_status, changed = OrderService._locked_update(order_id, mutate)

        logger.info(
            "Order %s: %s -> %s by %s", order.id, old_status, new_status, role_of(actor),
            extra={"order_id": order.id, "actor_role": role_of(actor)},
        )

        entry = OrderService._after_commit(order, old_status, new_status, actor, fields.get("note", ""))
        return TransitionResult(
            order=order,
            old_status=old_status,
            new_status=new_status,
            audit_entry_id=entry.id if entry else None,
            changed_fields=changed,
        )

    @staticmethod
    def _customer_matches(order, customer_name, customer_phone):
        name = normalize_text(customer_name)
        phone = digits_only(customer_phone)
        if not name or not phone:
            return False
        return name == normalize_text(order.customer_name) and phone == digits_only(order.customer_phone)

    @staticmethod
    def confirm_receipt(order_id: str, customer_name: str, customer_phone: str, note: str = ""):
        """
        Unauthenticated customer marks their own order as received.
        Identity is the name + phone stored on the order, never a session.
        """
        new_status = ShippingStatus.RECEIVED.value

        def mutate(order):
            if not OrderService._customer_matches(order, customer_name, customer_phone):
                logger.warning("Receipt confirmation refused for order %s: verification failed", order.id,
                               extra={"order_id": order.id})
                raise VerificationFailed()

            current = normalize_status(order.shipping_status) or order.shipping_status
            if current in TERMINAL_STATUSES:
                raise AlreadyTerminal(current)

            changed = DeliveryUpdate().apply(order)
            order.shipping_status = new_status
            return current, changed

        order, old_status, changed = OrderService._locked_update(order_id, mutate)

        logger.info("Order %s confirmed received by customer", order.id,
                    extra={"order_id": order.id, "actor_role": CUSTOMER_ROLE})

        entry = OrderService._after_commit(
            order, old_status, new_status, AnonymousUser(), note or "Confirmed received by customer"
        )
        return TransitionResult(
            order=order,
            old_status=old_status,
            new_status=new_status,
            audit_entry_id=entry.id if entry else None,
            changed_fields=changed,
        )

    @staticmethod
    def create_order(actor, data: dict):
        """
        Insert a new order in the initial status. The outlet comes from an
        explicit outlet_id, or else from the location fields via the resolver.
        """
        if actor is not None and not (is_authenticated(actor) and actor.role == Role.ADMIN):
            raise Forbidden("Only admins may create orders")

        data = dict(data)
        outlet_id = data.pop("outlet_id", None)
        outlet_name = data.pop("outlet_name", None)
        if outlet_id and not Outlet.objects.filter(id=outlet_id).exists():
            raise InvalidAssignment(f"Outlet {outlet_id} does not exist", details={"outlet_id": outlet_id})

        outlet = OutletService.resolve(
            outlet_id=outlet_id,
            shipping_location=data.get("shipping_location"),
            pickup_location=data.get("pickup_location"),
            shipping_area=data.get("shipping_area"),
        )

        try:
            with transaction.atomic():
                order = Order.objects.create(
                    id=generate_order_id(),
                    shipping_status=INITIAL_STATUS,
                    outlet=outlet,
                    outlet_name=outlet.name if outlet else outlet_name,
                    **data,
                )
        except DatabaseError as exc:
            logger.exception("Failed to create order")
            raise PersistenceError("Failed to create order") from exc

        if outlet is None:
            logger.info("Order %s created without outlet assignment", order.id, extra={"order_id": order.id})

        person = actor if is_authenticated(actor) else None
        record_status_change(order.id, person, role_of(actor), None, order.shipping_status, "Order created")
        return order

    @staticmethod
    def reassign_outlet(actor, order_id: str):
        """
        Run the resolver for an order without an explicit outlet.
        An existing outlet_id is authoritative and left alone.
        """
        if actor is not None and not (is_authenticated(actor) and actor.role == Role.ADMIN):
            raise Forbidden("Only admins may reassign outlets")

        try:
            order = Order.objects.select_related("outlet").get(id=order_id)
        except Order.DoesNotExist:
            raise OrderNotFound(order_id)

        if order.outlet_id:
            return order

        outlet = OutletService.resolve_for_order(order)
        if outlet is not None:
            Order.objects.filter(id=order.id, outlet__isnull=True).update(outlet=outlet, outlet_name=outlet.name)
            order.refresh_from_db()
            logger.info("Order %s assigned to outlet %s", order.id, outlet.id, extra={"order_id": order.id})
        return order

    @staticmethod
    def assignment_options(actor):
        """
        Outlets and deliverymen `actor` may pass to a status transition.

        Admins get every active outlet and deliveryman, outlet managers only
        the deliverymen of their own outlet, deliverymen nothing.
        """
        User = get_user_model()
        outlets = Outlet.objects.none()
        deliverymen = User.objects.none()

        if is_authenticated(actor) and actor.role == Role.ADMIN:
            outlets = Outlet.objects.filter(is_active=True).order_by("name")
            deliverymen = User.objects.filter(role=Role.DELIVERYMAN, is_active=True)
        elif is_authenticated(actor) and actor.role == Role.OUTLET_MANAGER and actor.outlet_id:
            deliverymen = User.objects.filter(role=Role.DELIVERYMAN, is_active=True, outlet_id=actor.outlet_id)

        return {
            "outlets": list(outlets),
            "deliverymen": list(deliverymen.select_related("outlet").order_by("username")),
        }

    @staticmethod
    def get_order(actor, order_id: str):
        try:
            order = Order.objects.select_related("outlet", "assigned_deliveryman").get(id=order_id)
        except Order.DoesNotExist:
            raise OrderNotFound(order_id)
        OrderAccessGuard.authorize(actor, order, READ)
        return order

    @staticmethod
    def delete_order(actor, order_id: str):
        """
        Hard delete. Audit entries and notifications go with it.
        """
        if not (is_authenticated(actor) and actor.role == Role.ADMIN):
            raise Forbidden("Only admins may delete orders")

        try:
            order = Order.objects.get(id=order_id)
        except Order.DoesNotExist:
            raise OrderNotFound(order_id)

        try:
            order.delete()
        except DatabaseError as exc:
            logger.exception("Failed to delete order %s", order_id, extra={"order_id": order_id})
            raise PersistenceError("Failed to delete order") from exc

        logger.info("Order %s deleted by %s", order_id, actor.username, extra={"order_id": order_id})
