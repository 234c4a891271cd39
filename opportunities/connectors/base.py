"""Scraper abstraction and errors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator

from opportunities.models.domain import RawBlock, SourceDescriptor


class ScrapeError(Exception):
    """Navigation, timeout or extraction failure for one source."""


class AuthError(ScrapeError):
    """Login rejected or the platform demands extra verification."""


class BaseScraper(ABC):
    """Yields raw text blocks observed on a source's page."""

    @abstractmethod
    def scrape(self, source: SourceDescriptor) -> Iterator[RawBlock]:
        """Return raw blocks in page order; raise ScrapeError on failure."""


class StaticScraper(BaseScraper):
    """Serves pre-recorded blocks keyed by source id; used by the test suite.

    A value that is an exception instance is raised instead of served.
    """

    def __init__(self, blocks_by_source: dict[str, object]) -> None:
        self._blocks = blocks_by_source

    def scrape(self, source: SourceDescriptor) -> Iterator[RawBlock]:
        entry = self._blocks.get(source.source_id, [])
        if isinstance(entry, Exception):
            raise entry
        for item in entry:  # type: ignore[union-attr]
            yield item if isinstance(item, RawBlock) else RawBlock(**item)
