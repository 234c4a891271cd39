"""Text sanitization for scraped content.

Scraped posts are later fed to language-model stages, so instruction-override
phrases and chat role prefixes are neutralized before anything is stored.
"""

from __future__ import annotations

import re
from typing import Optional

MAX_LENGTH = 5000
FILTER_MARKER = "[FILTERED]"

_INJECTION_PATTERNS = (
    re.compile(r"ignore previous instructions", re.IGNORECASE),
    re.compile(r"disregard all prior", re.IGNORECASE),
    re.compile(r"system:\s*", re.IGNORECASE),
    re.compile(r"assistant:\s*", re.IGNORECASE),
    re.compile(r"user:\s*", re.IGNORECASE),
)
_WHITESPACE = re.compile(r"\s+")


def sanitize(text: Optional[str]) -> str:
    """Return ``text`` with injection phrases filtered, whitespace collapsed, capped at 5000 chars."""
    if not text:
        return ""
    cleaned = _WHITESPACE.sub(" ", text)
    for pattern in _INJECTION_PATTERNS:
        cleaned = pattern.sub(FILTER_MARKER, cleaned)
    # the cut may expose a trailing space; strip again so sanitize is idempotent
    return cleaned.strip()[:MAX_LENGTH].strip()
