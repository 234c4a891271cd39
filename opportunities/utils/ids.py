"""Row identifiers and timestamps written to the spreadsheet."""

from __future__ import annotations

import random
import string
import time
from datetime import datetime, tzinfo
from typing import Optional

_BASE36 = string.digits + string.ascii_lowercase
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id(prefix: str = "ITM", *, now_ms: Optional[int] = None, rng: Optional[random.Random] = None) -> str:
    """Return e.g. ``ITMLZ4K2F1QX7B2``: prefix, base36 epoch millis, 4 random base36 chars."""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    chooser = rng or random
    suffix = "".join(chooser.choice(_BASE36) for _ in range(4))
    return f"{prefix}{to_base36(millis)}{suffix}".upper()


def format_timestamp(tz: tzinfo, moment: Optional[datetime] = None) -> str:
    """Format ``moment`` (default: now) in ``tz`` as ``YYYY-MM-DD HH:MM:SS``."""
    current = moment.astimezone(tz) if moment is not None else datetime.now(tz)
    return current.strftime(TIMESTAMP_FORMAT)
