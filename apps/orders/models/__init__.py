"""
Top-level models import shim for the Orders app, so that
    from apps.orders.models import Order
keeps working while the models live in separate files.
"""

from .order import *          # Order, DELIVERY_ONLY_FIELDS, PICKUP_METADATA_FIELDS
from .audit import *          # OrderAuditEntry
