"""Heuristic field extractors for Thai grant/opportunity posts.

Both extractors walk an ordered pattern list and return the first match.
Overlapping patterns resolve by list order, not by the "best" match.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Sequence

_THAI_MONTH_ABBR = (
    r"(?:ม\.?ค\.?|ก\.?พ\.?|มี\.?ค\.?|เม\.?ย\.?|พ\.?ค\.?|มิ\.?ย\.?"
    r"|ก\.?ค\.?|ส\.?ค\.?|ก\.?ย\.?|ต\.?ค\.?|พ\.?ย\.?|ธ\.?ค\.?)"
)

DEADLINE_PATTERNS: Sequence[re.Pattern[str]] = (
    re.compile(
        r"(?:หมดเขต|ภายใน|ถึงวันที่|สิ้นสุด|deadline|until|ends|closes)[:\s]*"
        r"(\d{1,2}[\s/-][0-9A-Za-z\u0E00-\u0E7F.]+[\s/-]\d{2,4})",
        re.IGNORECASE,
    ),
    re.compile(r"(\d{1,2}[\s/-]" + _THAI_MONTH_ABBR + r"[\s/-]\d{2,4})", re.IGNORECASE),
    re.compile(r"(\d{1,2}/\d{1,2}/\d{2,4})"),
)

# whole numbers only: never start inside a longer run of digits
_NUMBER = r"(?<![\d.,])(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"

AMOUNT_PATTERNS: Sequence[re.Pattern[str]] = (
    re.compile(_NUMBER + r"\s*(?:บาท|baht)", re.IGNORECASE),
    re.compile(r"(?:วงเงิน|มูลค่า|ทุน|amount|value|fund)[:\s]*" + _NUMBER, re.IGNORECASE),
    re.compile(_NUMBER + r"\s*(?:ล้าน|million)", re.IGNORECASE),
)

_MILLION_MARKER = re.compile(r"ล้าน|million", re.IGNORECASE)
MILLION = Decimal(1_000_000)


def _first_group(patterns: Sequence[re.Pattern[str]], text: str) -> str:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return ""


def extract_deadline(text: str) -> str:
    """Return the first deadline-looking date in ``text`` or ``""``."""
    if not text:
        return ""
    return _first_group(DEADLINE_PATTERNS, text)


def extract_amount(text: str) -> str:
    """Return the grant amount in ``text`` as a plain decimal string, or ``""``.

    A million marker anywhere in the text scales the value by 1,000,000,
    e.g. ``"2 ล้านบาท"`` -> ``"2000000"``.
    """
    if not text:
        return ""
    amount = _first_group(AMOUNT_PATTERNS, text).replace(",", "")
    if not amount:
        return ""
    if not _MILLION_MARKER.search(text):
        return amount
    try:
        scaled = Decimal(amount) * MILLION
    except InvalidOperation:
        return amount
    return format(scaled.normalize(), "f")
