"""URL-keyed deduplication over a pluggable keystore."""

from __future__ import annotations

from typing import Iterable, Protocol

from opportunities.models.domain import CandidateRecord


class KeyStore(Protocol):
    def has(self, key: str) -> bool: ...  # noqa: D401
    def add(self, key: str) -> None: ...  # noqa: D401
    def __len__(self) -> int: ...  # noqa: D401


class InMemoryKeyStore:
    """Set-backed keystore; lives for one run."""

    def __init__(self) -> None:
        self._set: set[str] = set()

    def has(self, key: str) -> bool:
        return key in self._set

    def add(self, key: str) -> None:
        self._set.add(key)

    def __len__(self) -> int:
        return len(self._set)


class Deduplicator:
    """Tracks URLs already recorded, both historical and accepted in this run.

    The set only grows. An empty URL is an ordinary key, so records without a
    discoverable link collide with each other.
    """

    def __init__(self, keystore: KeyStore | None = None) -> None:
        self._keys: KeyStore = keystore if keystore is not None else InMemoryKeyStore()

    def seed(self, existing_urls: Iterable[str]) -> None:
        for url in existing_urls:
            self._keys.add(url)

    def accept(self, record: CandidateRecord) -> bool:
        """Return True and remember ``record.url`` if it was not seen before."""
        if self._keys.has(record.url):
            return False
        self._keys.add(record.url)
        return True

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self._keys.has(url)

    def __len__(self) -> int:
        return len(self._keys)
