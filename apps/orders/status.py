# apps/orders/status.py
"""
Shipping status vocabulary.

Two branches share the first two steps:

    menunggu diproses -> dikemas -> siap kirim -> dalam pengiriman -> diterima
                                 \-> siap di ambil -> sudah diambil

Input is case-insensitive and legacy spellings are accepted; everything is
stored in canonical form.
"""
from django.db import models

from apps.utils.utils import normalize_text


class ShippingStatus(models.TextChoices):
    PENDING = "menunggu diproses", "Menunggu Diproses"
    PACKING = "dikemas", "Dikemas"
    READY_TO_SHIP = "siap kirim", "Siap Kirim"
    IN_TRANSIT = "dalam pengiriman", "Dalam Pengiriman"
    RECEIVED = "diterima", "Diterima"
    READY_FOR_PICKUP = "siap di ambil", "Siap Di Ambil"
    PICKED_UP = "sudah diambil", "Sudah Diambil"


class Branch(models.TextChoices):
    NEUTRAL = "neutral", "Neutral"
    DELIVERY = "delivery", "Delivery"
    PICKUP = "pickup", "Pickup"


STATUS_ALIASES = {
    "pending": ShippingStatus.PENDING,
    "diproses": ShippingStatus.PACKING,
    "processing": ShippingStatus.PACKING,
    "shipping": ShippingStatus.IN_TRANSIT,
    "sedang dikirim": ShippingStatus.IN_TRANSIT,
    "dikirim": ShippingStatus.IN_TRANSIT,
    "received": ShippingStatus.RECEIVED,
    "delivered": ShippingStatus.RECEIVED,
    "sudah di terima": ShippingStatus.RECEIVED,
    "siap diambil": ShippingStatus.READY_FOR_PICKUP,
    "sudah di ambil": ShippingStatus.PICKED_UP,
}

INITIAL_STATUS = ShippingStatus.PENDING

TERMINAL_STATUSES = frozenset({ShippingStatus.RECEIVED.value, ShippingStatus.PICKED_UP.value})

DISPATCH_READY_STATUSES = frozenset({ShippingStatus.READY_TO_SHIP.value})

PICKUP_STATUSES = frozenset({ShippingStatus.READY_FOR_PICKUP.value, ShippingStatus.PICKED_UP.value})

DELIVERY_STATUSES = frozenset({
    ShippingStatus.READY_TO_SHIP.value,
    ShippingStatus.IN_TRANSIT.value,
    ShippingStatus.RECEIVED.value,
})


def accepted_statuses():
    return list(ShippingStatus.values)


def normalize_status(value):
    """
    Canonical status for `value`, or None when it is not in the vocabulary.
    """
    text = normalize_text(value)
    if not text:
        return None
    if text in ShippingStatus.values:
        return text
    alias = STATUS_ALIASES.get(text)
    return alias.value if alias is not None else None


def branch_of(status):
    status = normalize_status(status)
    if status in PICKUP_STATUSES:
        return Branch.PICKUP
    if status in DELIVERY_STATUSES:
        return Branch.DELIVERY
    return Branch.NEUTRAL


def is_terminal(status):
    return normalize_status(status) in TERMINAL_STATUSES
