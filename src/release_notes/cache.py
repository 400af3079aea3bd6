"""Bounded release cache and the coordinator that fills it.

ReleaseCache is a fixed-capacity least-recently-used store of ReleaseRecords.
Records are not keyed: they are found with a predicate, and inserting a
record never replaces an equivalent one. A stale record simply ages out.

CacheCoordinator serves requests from the cache, fetching and assembling a
record on a miss. All of its operations, including the upstream fetch on a
miss, run under one asyncio.Lock: a slow fetch for one repository holds up
lookups for every other repository until it finishes.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Iterator

from release_notes.assembler import assemble
from release_notes.config import DEFAULT_CACHE_CAPACITY
from release_notes.logging_config import get_logger
from release_notes.schemas import ReleaseRecord, TagSelector
from release_notes.upstream.github import ReleaseFetcherProtocol

logger = get_logger(__name__)


class ReleaseCache:
    """Fixed-capacity LRU store of release records.

    The most recently used record is kept at the front.
    """

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"Cache capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._entries: deque[ReleaseRecord] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ReleaseRecord]:
        return iter(list(self._entries))

    def find(self, predicate: Callable[[ReleaseRecord], bool]) -> ReleaseRecord | None:
        """Return the most recently used matching record and mark it used."""
        for index, record in enumerate(self._entries):
            if predicate(record):
                if index:
                    del self._entries[index]
                    self._entries.appendleft(record)
                return record
        return None

    def insert(self, record: ReleaseRecord) -> ReleaseRecord | None:
        """Store a record as most recently used.

        Returns:
            The evicted record, if the cache was full
        """
        evicted = None
        if len(self._entries) >= self._capacity:
            evicted = self._entries.pop()
        self._entries.appendleft(record)
        return evicted

    def clear(self) -> None:
        self._entries.clear()


class CacheCoordinator:
    """Serves release records from the cache, fetching on a miss.

    Usage:
        coordinator = CacheCoordinator(fetcher=GitHubReleaseFetcher(token=...))
        record = await coordinator.get("tokio-rs", "axum", TagSelector.latest_release())
    """

    def __init__(
        self,
        fetcher: ReleaseFetcherProtocol,
        capacity: int = DEFAULT_CACHE_CAPACITY,
    ) -> None:
        self.fetcher = fetcher
        self.cache = ReleaseCache(capacity)
        self._lock = asyncio.Lock()

    def _lookup(self, org: str, repo: str, selector: TagSelector) -> ReleaseRecord | None:
        return self.cache.find(
            lambda record: record.org == org
            and record.repo == repo
            and selector.matches(record)
        )

    def _insert(self, record: ReleaseRecord) -> None:
        evicted = self.cache.insert(record)
        if evicted is not None:
            logger.debug(
                "cache_evicted",
                org=evicted.org,
                repo=evicted.repo,
                tag=evicted.tag,
            )

    async def _fetch(self, org: str, repo: str, selector: TagSelector) -> ReleaseRecord:
        release = await self.fetcher.fetch(org, repo, selector)
        return assemble(org, repo, selector, release)

    async def lookup(
        self, org: str, repo: str, selector: TagSelector
    ) -> ReleaseRecord | None:
        """Return a cached record matching (org, repo, selector), if any.

        A latest selector only matches records stored with latest=True; a
        tag selector matches records whose tag equals it.
        """
        async with self._lock:
            return self._lookup(org, repo, selector)

    async def insert(self, record: ReleaseRecord) -> None:
        """Store a record, evicting the least recently used one if full."""
        async with self._lock:
            self._insert(record)

    async def get(self, org: str, repo: str, selector: TagSelector) -> ReleaseRecord:
        """Return the cached record, or fetch, assemble and cache it.

        Raises:
            UpstreamNotFound: If the release does not exist upstream
            UpstreamTransportError: If the upstream call fails
        """
        async with self._lock:
            record = self._lookup(org, repo, selector)
            if record is not None:
                logger.debug("cache_hit", org=org, repo=repo, tag=str(selector))
                return record

            logger.info("cache_miss", org=org, repo=repo, tag=str(selector))
            record = await self._fetch(org, repo, selector)
            self._insert(record)
            return record

    async def force_refresh(
        self, org: str, repo: str, selector: TagSelector
    ) -> ReleaseRecord:
        """Fetch and cache a record regardless of what is already cached.

        Older matching records are left in place; the new record is the most
        recently used, so lookups find it first. Nothing is inserted when
        the fetch fails.

        Raises:
            UpstreamNotFound: If the release does not exist upstream
            UpstreamTransportError: If the upstream call fails
        """
        async with self._lock:
            record = await self._fetch(org, repo, selector)
            self._insert(record)
            logger.info("cache_refreshed", org=org, repo=repo, tag=record.tag)
            return record
