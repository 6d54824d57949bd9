import secrets
import string

from datetime import datetime, UTC


BASE36_CHARS = string.digits + string.ascii_lowercase
"""
Lowercase alphanumeric chars, in the order of their ASCII values, so that
IDs generated from increasing integers of the same length sort in order.
"""


def unix_millis(dt: datetime | None = None) -> int:
    dt = dt or datetime.now(UTC)
    return int(dt.timestamp() * 1000)


def base36_from_int(value: int) -> str:
    """
    Convert a non-negative integer to lowercase base 36, e.g., the milliseconds
    since the Unix epoch, where "January 1st 2025 00:00:00 UTC" maps to
    "m5d4ruo0".
    """
    assert value >= 0
    base = len(BASE36_CHARS)
    result = []

    while value:
        value, remainder = divmod(value, base)
        result.append(BASE36_CHARS[remainder])

    return "".join(reversed(result)) or "0"


def base36_to_int(value: str) -> int | None:
    try:
        return int(value, 36) if value else None
    except ValueError:
        return None


def unique_id_random_hex(num_bytes: int = 32) -> str:
    return secrets.token_hex(num_bytes)
