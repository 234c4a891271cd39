from __future__ import annotations

from typing import Iterable, List, Optional, Set

import pytest

from opportunities.models.domain import CandidateRecord, LogLevel, SourceDescriptor


class FakeStore:
    """In-memory stand-in for the spreadsheet store."""

    def __init__(
        self,
        sources: Iterable[SourceDescriptor] = (),
        existing: Iterable[str] = (),
    ) -> None:
        self.sources: List[SourceDescriptor] = list(sources)
        self.existing: Set[str] = set(existing)
        self.persisted: List[List[CandidateRecord]] = []
        self.touched: List[str] = []
        self.logs: List[tuple] = []
        self.fail_persist: Optional[Exception] = None
        self.fail_touch: Optional[Exception] = None
        self.fail_log: Optional[Exception] = None

    def list_active_sources(self) -> List[SourceDescriptor]:
        return [s for s in self.sources if s.is_active]

    def list_existing_keys(self) -> Set[str]:
        return set(self.existing)

    def persist(self, records) -> int:
        if self.fail_persist is not None:
            raise self.fail_persist
        batch = list(records)
        self.persisted.append(batch)
        return len(batch)

    def touch_source_timestamp(self, source_id: str, timestamp: Optional[str] = None) -> bool:
        if self.fail_touch is not None:
            raise self.fail_touch
        self.touched.append(source_id)
        return True

    def append_log(self, actor: str, level: LogLevel, message: str, source_id: str = "") -> None:
        if self.fail_log is not None:
            raise self.fail_log
        self.logs.append((actor, level, message, source_id))


@pytest.fixture
def fake_store_cls():
    return FakeStore
