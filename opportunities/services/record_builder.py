"""Turn raw scraped blocks into candidate records."""

from __future__ import annotations

from typing import Optional

from opportunities.models.domain import CandidateRecord, RawBlock, SourceDescriptor

from .extractors import extract_amount, extract_deadline
from .sanitizer import sanitize

MIN_RAW_LENGTH = 50
MIN_TITLE_LENGTH = 20
TITLE_MAX_CHARS = 200
CONTENT_MAX_CHARS = 3000


def _derive_title(text: str) -> str:
    for line in text.split("\n"):
        if line.strip():
            return line[:TITLE_MAX_CHARS]
    return text[:TITLE_MAX_CHARS]


def build_record(source: SourceDescriptor, block: RawBlock) -> Optional[CandidateRecord]:
    """Build a sanitized record from ``block`` or return None when it carries too little content."""
    text = (block.text or "").strip()
    if len(text) < MIN_RAW_LENGTH:
        return None

    title = sanitize(_derive_title(text))
    if len(title) < MIN_TITLE_LENGTH:
        return None
    content = sanitize(text[:CONTENT_MAX_CHARS])

    link = (block.link or "").strip()
    return CandidateRecord(
        source_id=source.source_id,
        title_th=title,
        description_th=content,
        url=link or source.page_url,
        deadline=extract_deadline(content),
        grant_amount=extract_amount(content),
    )
