"""Domain DTOs for the scraping pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

FACEBOOK_BASE_URL = "https://www.facebook.com"


class SourceState(str, Enum):
    PENDING = "pending"
    SCRAPING = "scraping"
    EXTRACTING = "extracting"
    DEDUPLICATING = "deduplicating"
    DONE = "done"
    FAILED = "failed"


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    SKIP = "skip"


class SourceDescriptor(BaseModel):
    """One row of the Sources tab."""

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(..., description="รหัสแหล่งข้อมูล (unique)")
    source_name: str = ""
    source_type: str = ""
    url: str = Field("", description="URL ของเพจ หรือชื่อเพจ")
    scrape_selector: str = ""
    is_active: bool = False
    last_scraped: str = ""
    notes: str = ""

    @property
    def page_url(self) -> str:
        """Absolute page URL; bare page handles resolve under facebook.com."""
        url = self.url.strip()
        if url.startswith("http"):
            return url
        return f"{FACEBOOK_BASE_URL}/{url.lstrip('/')}"


class RawBlock(BaseModel):
    """A unit of scraped text with its closest post link, if any."""

    text: str = ""
    link: Optional[str] = None


class CandidateRecord(BaseModel):
    """Sanitized record extracted from a raw block, not yet deduplicated."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    title_th: str
    description_th: str
    url: str
    deadline: str = ""
    grant_amount: str = ""


@dataclass
class RunStats:
    sources_processed: int = 0
    sources_success: int = 0
    sources_failed: int = 0
    items_found: int = 0
    items_saved: int = 0
    items_skipped: int = 0
    source_states: Dict[str, SourceState] = field(default_factory=dict)

    def as_dict(self) -> dict:
        data = asdict(self)
        data["source_states"] = {key: state.value for key, state in self.source_states.items()}
        return data
