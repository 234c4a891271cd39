"""Run coordinator and the scrape-all-sources task."""

from __future__ import annotations

import random
import time
import uuid
from typing import Callable, Iterable, List, Optional, Protocol, Sequence

from celery import shared_task

from opportunities.connectors.facebook import FacebookSession
from opportunities.models.domain import (
    CandidateRecord,
    LogLevel,
    RawBlock,
    RunStats,
    SourceDescriptor,
    SourceState,
)
from opportunities.repositories.sheets import SheetsStore
from opportunities.services.deduplicator import Deduplicator
from opportunities.services.record_builder import build_record
from opportunities.settings import Settings, get_settings
from opportunities.utils.logging import get_logger


class Store(Protocol):
    def list_active_sources(self) -> List[SourceDescriptor]: ...
    def list_existing_keys(self) -> set[str]: ...
    def persist(self, records: Sequence[CandidateRecord]) -> int: ...
    def touch_source_timestamp(self, source_id: str, timestamp: Optional[str] = None) -> object: ...
    def append_log(self, actor: str, level: LogLevel, message: str, source_id: str = "") -> None: ...


class BlockSource(Protocol):
    def scrape(self, source: SourceDescriptor) -> Iterable[RawBlock]: ...


class ScraperSession(BlockSource, Protocol):
    """An authenticated scraper used as a context manager for one run."""

    def login(self) -> None: ...
    def __enter__(self) -> "ScraperSession": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...  # noqa: ANN001


# Session factory is kept pluggable for tests; default builds a FacebookSession.
SESSION_FACTORY: Callable[[Settings], ScraperSession] | None = None


class RunCoordinator:
    """Drives active sources one at a time through scrape, build, dedupe and accumulate."""

    def __init__(
        self,
        *,
        store: Store,
        scraper: BlockSource,
        deduplicator: Deduplicator,
        settings: Settings,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
        trace_id: Optional[str] = None,
    ) -> None:
        self._store = store
        self._scraper = scraper
        self._dedup = deduplicator
        self._settings = settings
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._trace_id = trace_id or str(uuid.uuid4())
        self._logger = get_logger(__name__)
        self.stats = RunStats()
        self.accepted: List[CandidateRecord] = []

    def run(self, sources: Sequence[SourceDescriptor]) -> RunStats:
        for source in sources:
            self.stats.source_states[source.source_id] = SourceState.PENDING

        for index, source in enumerate(sources):
            self.stats.sources_processed += 1
            extra = {"trace_id": self._trace_id, "source_id": source.source_id}
            self._logger.info("collect.source.start", extra={**extra, "source_name": source.source_name})
            try:
                found, new = self._process_source(source)
            except Exception as exc:
                self.stats.sources_failed += 1
                self.stats.source_states[source.source_id] = SourceState.FAILED
                self._logger.warning("collect.source.failed", extra={**extra, "error": str(exc)})
                self._write_log(LogLevel.ERROR, f"Failed: {exc}", source.source_id)
            else:
                self.stats.sources_success += 1
                self.stats.source_states[source.source_id] = SourceState.DONE
                self._logger.info("collect.source.done", extra={**extra, "found": found, "new": new})
                self._write_log(LogLevel.SUCCESS, f"Scraped {found} items, {new} new", source.source_id)
            self._touch_source(source)

            if index < len(sources) - 1:
                self._inter_source_delay()

        self._save()
        self._write_log(
            LogLevel.SUCCESS,
            f"Completed: {self.stats.sources_success}/{self.stats.sources_processed} sources, "
            f"{self.stats.items_saved} new items saved",
        )
        self._logger.info("collect.summary", extra={"trace_id": self._trace_id, **self.stats.as_dict()})
        return self.stats

    def _process_source(self, source: SourceDescriptor) -> tuple[int, int]:
        states = self.stats.source_states
        states[source.source_id] = SourceState.SCRAPING
        blocks = list(self._scraper.scrape(source))

        states[source.source_id] = SourceState.EXTRACTING
        candidates = [r for r in (build_record(source, b) for b in blocks) if r is not None]
        self.stats.items_found += len(candidates)

        states[source.source_id] = SourceState.DEDUPLICATING
        new_items: List[CandidateRecord] = []
        for record in candidates:
            if self._dedup.accept(record):
                new_items.append(record)
            else:
                self.stats.items_skipped += 1
        self.accepted.extend(new_items)
        return len(candidates), len(new_items)

    def _save(self) -> None:
        if not self.accepted:
            self._logger.info("collect.nothing_to_save", extra={"trace_id": self._trace_id})
            return
        self.stats.items_saved = self._store.persist(self.accepted)

    def _inter_source_delay(self) -> None:
        low, high = self._settings.scrape_delay_min_ms, self._settings.scrape_delay_max_ms
        delay_ms = self._rng.randint(low, high)
        self._logger.info("collect.delay", extra={"trace_id": self._trace_id, "delay_ms": delay_ms})
        self._sleep(delay_ms / 1000)

    def _touch_source(self, source: SourceDescriptor) -> None:
        try:
            self._store.touch_source_timestamp(source.source_id)
        except Exception as exc:
            self._logger.warning(
                "collect.touch_failed",
                extra={"trace_id": self._trace_id, "source_id": source.source_id, "error": str(exc)},
            )

    def _write_log(self, level: LogLevel, message: str, source_id: str = "") -> None:
        write_log(self._store, self._settings.run_actor, level, message, source_id)


def write_log(store: Store, actor: str, level: LogLevel, message: str, source_id: str = "") -> None:
    """Append a run log row; failures are logged and never propagate."""
    try:
        store.append_log(actor, level, message, source_id)
    except Exception as exc:
        get_logger(__name__).warning(
            "collect.log_write_failed",
            extra={"level": level.value, "source_id": source_id, "error": str(exc)},
        )


def _default_session(settings: Settings) -> ScraperSession:
    if SESSION_FACTORY is not None:
        return SESSION_FACTORY(settings)
    return FacebookSession(settings)


def run_once(
    settings: Optional[Settings] = None,
    *,
    store: Optional[Store] = None,
    session_factory: Optional[Callable[[Settings], ScraperSession]] = None,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
) -> RunStats:
    """Scrape every active source once and append new items to the store.

    AuthError and SheetsError/PersistError propagate after a best-effort
    ``Fatal: ...`` log row; per-source scrape failures are counted in the
    returned stats.
    """
    config = settings or get_settings()
    logger = get_logger(__name__)
    trace_id = str(uuid.uuid4())
    owned_store = SheetsStore(config) if store is None else None
    active_store: Store = store if store is not None else owned_store
    try:
        return _run_sources(config, active_store, session_factory or _default_session, sleep, rng, trace_id)
    except Exception as exc:
        logger.exception("collect.fatal", extra={"trace_id": trace_id, "error": str(exc)})
        write_log(active_store, config.run_actor, LogLevel.ERROR, f"Fatal: {exc}")
        raise
    finally:
        if owned_store is not None:
            owned_store.close()


def _run_sources(
    config: Settings,
    store: Store,
    factory: Callable[[Settings], ScraperSession],
    sleep: Callable[[float], None],
    rng: Optional[random.Random],
    trace_id: str,
) -> RunStats:
    logger = get_logger(__name__)
    sources = store.list_active_sources()
    if not sources:
        logger.info("collect.no_sources", extra={"trace_id": trace_id})
        write_log(store, config.run_actor, LogLevel.INFO, "No active sources found")
        return RunStats()

    deduplicator = Deduplicator()
    deduplicator.seed(store.list_existing_keys())
    logger.info(
        "collect.start",
        extra={"trace_id": trace_id, "sources": len(sources), "existing": len(deduplicator)},
    )

    with factory(config) as session:
        session.login()
        coordinator = RunCoordinator(
            store=store,
            scraper=session,
            deduplicator=deduplicator,
            settings=config,
            sleep=sleep,
            rng=rng,
            trace_id=trace_id,
        )
        return coordinator.run(sources)


@shared_task(name="opportunities.tasks.collect.scrape_all_sources")
def scrape_all_sources() -> dict:  # pragma: no cover - thin wrapper
    return run_once().as_dict()
