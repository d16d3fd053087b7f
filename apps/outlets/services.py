import logging

from django.apps import apps
from django.conf import settings

from .models import Outlet
from .utils.outlet_resolver import resolve_outlet, matches_outlet

logger = logging.getLogger(__name__)


class OutletService:

    @staticmethod
    def active_outlets():
        return list(Outlet.objects.filter(is_active=True).order_by("created_at", "id"))

    @staticmethod
    def get_by_name(name):
        """Case-insensitive lookup by display name."""
        if not name:
            return None
        return Outlet.objects.filter(name__iexact=name.strip()).first()

    @staticmethod
    def resolve(outlet_id=None, shipping_location=None, pickup_location=None, shipping_area=None):
        """
        Returns the matching Outlet or None.
        """
        resolved_id = resolve_outlet(
            OutletService.active_outlets(),
            outlet_id=outlet_id,
            shipping_location=shipping_location,
            pickup_location=pickup_location,
            shipping_area=shipping_area,
        )
        if not resolved_id:
            return None
        return Outlet.objects.filter(id=resolved_id).first()

    @staticmethod
    def resolve_for_order(order):
        return OutletService.resolve(
            outlet_id=order.outlet_id,
            shipping_location=order.shipping_location,
            pickup_location=order.pickup_location,
            shipping_area=order.shipping_area,
        )

    @staticmethod
    def match_by_name(order):
        """
        Outlet a legacy order (no outlet_id) belongs to by name matching,
        the same rule the access guard applies to outlet members.
        """
        for outlet in OutletService.active_outlets():
            if matches_outlet(outlet, order.outlet_name, order.shipping_location, order.pickup_location):
                return outlet
        return None

    @staticmethod
    def backfill_outlets(limit=None):
        """
        Assign outlets to orders that have none, newest first.
        Only the outlet linkage is written; shipping status is never touched.
        """
        Order = apps.get_model("orders", "Order")
        limit = limit or getattr(settings, "OUTLET_BACKFILL_LIMIT", 100)

        outlets = OutletService.active_outlets()
        outlets_by_id = {outlet.id: outlet for outlet in outlets}

        pending = list(
            Order.objects.filter(outlet__isnull=True)
            .order_by("-created_at")
            .values("id", "shipping_location", "pickup_location", "shipping_area")[:limit]
        )

        assignments = []
        skipped = 0
        for row in pending:
            outlet_id = resolve_outlet(
                outlets,
                shipping_location=row["shipping_location"],
                pickup_location=row["pickup_location"],
                shipping_area=row["shipping_area"],
            )
            if not outlet_id:
                skipped += 1
                logger.debug("Backfill skipped order %s: no outlet match", row["id"])
                continue

            outlet = outlets_by_id[outlet_id]
            # Guard against a concurrent explicit assignment
            updated = Order.objects.filter(id=row["id"], outlet__isnull=True).update(
                outlet=outlet, outlet_name=outlet.name
            )
            if updated:
                assignments.append({"order_id": row["id"], "outlet_id": outlet.id})
            else:
                skipped += 1

        logger.info(
            "Outlet backfill finished: %s processed, %s assigned, %s skipped",
            len(pending), len(assignments), skipped,
        )
        return {
            "total_processed": len(pending),
            "assigned": len(assignments),
            "skipped": skipped,
            "assignments": assignments,
        }
