import re
import secrets
import string

from django.utils import timezone

_BASE36 = string.digits + string.ascii_lowercase


def local_now():
    """Current time in the business timezone (settings.TIME_ZONE)."""
    return timezone.localtime(timezone.now())


def generate_order_id(prefix="ORD"):
    """
    Order id = prefix + epoch millis + 6 random base36 chars.
    e.g. ORD-1718000000000-k3f9xa
    """
    millis = int(timezone.now().timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
    return f"{prefix}-{millis}-{suffix}"


def digits_only(value) -> str:
    return re.sub(r"\D", "", str(value or ""))


def normalize_text(value) -> str:
    """Lowercase, trimmed, single-spaced."""
    return " ".join(str(value or "").split()).lower()


def dict_clean(d: dict):
    """
    Remove keys where value is None or empty
    """
    return {k: v for k, v in d.items() if v not in [None, "", [], {}]}
