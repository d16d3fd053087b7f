# apps/orders/access.py
"""
Order access rules.

    admin          -> every order
    outlet manager -> orders of their outlet (name match only for legacy
                      rows without outlet_id)
    deliveryman    -> orders assigned to them, or outlet-courier pickups
                      from their outlet that are ready to ship
    anonymous      -> nothing; only OrderService.confirm_receipt

Every check returns an AccessDecision. Callers test `.allowed`, or use
`authorize()` which raises Forbidden.
"""
import logging
from dataclasses import dataclass

from django.db.models import Q

from apps.accounts.models import Role
from apps.outlets.utils.outlet_resolver import matches_outlet
from .exceptions import Forbidden
from .models import Order
from .status import DISPATCH_READY_STATUSES, normalize_status

logger = logging.getLogger(__name__)

READ = "read"
WRITE = "write"

CUSTOMER_ROLE = "CUSTOMER"
SYSTEM_ROLE = "SYSTEM"


def is_authenticated(actor):
    return actor is not None and getattr(actor, "is_authenticated", False)


def role_of(actor):
    """
    Role recorded in the audit log. `None` is an internal system caller;
    an AnonymousUser is the unauthenticated customer.
    """
    if actor is None:
        return SYSTEM_ROLE
    if not is_authenticated(actor):
        return CUSTOMER_ROLE
    return str(actor.role)


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str = ""
    order: Order | None = None
    outlet: object | None = None

    def __bool__(self):
        return self.allowed


class OrderAccessGuard:

    @staticmethod
    def _deny(reason, order=None):
        return AccessDecision(False, reason, order=order)

    @staticmethod
    def _member_of_order_outlet(actor, order):
        outlet = actor.outlet
        if outlet is None:
            return False
        if order.outlet_id:
            return order.outlet_id == outlet.id
        return matches_outlet(outlet, order.outlet_name, order.shipping_location, order.pickup_location)

    @staticmethod
    def _deliveryman_may_access(actor, order):
        if order.assigned_deliveryman_id and order.assigned_deliveryman_id == actor.id:
            return True
        return (
            order.pickup_method == Order.PickupMethod.DELIVERYMAN
            and actor.outlet is not None
            and matches_outlet(actor.outlet, order.pickup_location)
            and normalize_status(order.shipping_status) in DISPATCH_READY_STATUSES
        )

    @classmethod
    def check(cls, actor, order, action=READ):
        if not is_authenticated(actor):
            return cls._deny("Authentication required", order)

        if actor.role == Role.ADMIN:
            return AccessDecision(True, order=order, outlet=order.outlet)

        if actor.role == Role.OUTLET_MANAGER:
            if cls._member_of_order_outlet(actor, order):
                return AccessDecision(True, order=order, outlet=actor.outlet)
            return cls._deny("Order does not belong to your outlet", order)

        if actor.role == Role.DELIVERYMAN:
            if cls._deliveryman_may_access(actor, order):
                return AccessDecision(True, order=order, outlet=actor.outlet)
            return cls._deny("Order is not assigned to you", order)

        return cls._deny(f"Role {actor.role} has no order access", order)

    @classmethod
    def authorize(cls, actor, order, action=READ):
        decision = cls.check(actor, order, action)
        if not decision.allowed:
            logger.info(
                "Access denied: %s on order %s for %s (%s)",
                action, order.id, role_of(actor), decision.reason,
            )
            raise Forbidden(decision.reason, details={"order_id": order.id})
        return decision

    @staticmethod
    def check_outlet(actor, outlet):
        if not is_authenticated(actor):
            return AccessDecision(False, "Authentication required", outlet=outlet)
        if actor.role == Role.ADMIN:
            return AccessDecision(True, outlet=outlet)
        if actor.outlet_id and actor.outlet_id == outlet.id:
            return AccessDecision(True, outlet=outlet)
        return AccessDecision(False, "Access denied to this outlet", outlet=outlet)

    @staticmethod
    def visible_orders(actor, queryset=None):
        """
        Queryset scoped to what `actor` may read; empty for anonymous callers.
        """
        qs = queryset if queryset is not None else Order.objects.all()
        if not is_authenticated(actor):
            return qs.none()

        if actor.role == Role.ADMIN:
            return qs

        outlet = actor.outlet
        if actor.role == Role.OUTLET_MANAGER:
            if outlet is None:
                return qs.none()
            condition = Q(outlet_id=outlet.id)
            legacy = Q(outlet__isnull=True)
            name_match = (
                Q(outlet_name__icontains=outlet.name)
                | Q(shipping_location__icontains=outlet.name)
                | Q(pickup_location__icontains=outlet.name)
            )
            if outlet.location_alias:
                alias = outlet.location_alias
                name_match |= (
                    Q(outlet_name__icontains=alias)
                    | Q(shipping_location__icontains=alias)
                    | Q(pickup_location__icontains=alias)
                )
            return qs.filter(condition | (legacy & name_match))

        if actor.role == Role.DELIVERYMAN:
            condition = Q(assigned_deliveryman_id=actor.id)
            if outlet is not None:
                courier_pickup = Q(
                    pickup_method=Order.PickupMethod.DELIVERYMAN,
                    shipping_status__in=list(DISPATCH_READY_STATUSES),
                ) & (
                    Q(pickup_location__icontains=outlet.name)
                    | (Q(pickup_location__icontains=outlet.location_alias) if outlet.location_alias else Q(pk__in=[]))
                )
                condition |= courier_pickup
            return qs.filter(condition)

        return qs.none()
