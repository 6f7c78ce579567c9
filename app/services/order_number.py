# app/services/order_number.py
"""
Order number generation.

Format:  HW + last 8 digits of the epoch-millisecond clock + 6 random chars
         e.g. HW83412907K3Q9ZD
Fallback: HW-FB + full epoch-millisecond clock + 8 hex chars of a uuid4

Numbers are unique with overwhelming probability, not by construction:
there is no persisted counter, and they must not be treated as
unguessable identifiers.
"""

import secrets
import string
import time
import uuid

ORDER_NUMBER_PREFIX = "HW"
FALLBACK_PREFIX = "HW-FB"

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
_SUFFIX_LENGTH = 6


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def generate_order_number() -> str:
    timestamp = str(_now_ms())[-8:]
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{ORDER_NUMBER_PREFIX}{timestamp}{suffix}"


def fallback_order_number() -> str:
    return f"{FALLBACK_PREFIX}{_now_ms()}{uuid.uuid4().hex[:8].upper()}"
