import re
from rest_framework import serializers


def validate_phone(value):
    """Accepts +62 / 08 style numbers with spaces or dashes, 8-15 digits."""
    digits = re.sub(r"\D", "", str(value))
    if not re.match(r"^\+?[\d\s\-()]+$", str(value)) or not 8 <= len(digits) <= 15:
        raise serializers.ValidationError("Invalid phone number format.")
    return value
