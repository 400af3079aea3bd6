"""Tests for the release cache and its coordinator.

These tests verify that:
- The LRU store never exceeds its capacity and evicts the least recently used
  record
- Lookups match on (org, repo) plus the latest flag or the exact tag
- Misses fetch and cache, hits don't touch the fetcher
- Force refresh always fetches, and leaves the cache alone on failure
- One lock serializes every operation, including fetches on a miss

Run with: pytest tests/test_cache.py -v
"""

from __future__ import annotations

import asyncio

import pytest

from release_notes.cache import CacheCoordinator, ReleaseCache
from release_notes.errors import UpstreamNotFound, UpstreamTransportError
from release_notes.schemas import RawRelease, ReleaseRecord, TagSelector
from release_notes.upstream.github import MockReleaseFetcher

LATEST = TagSelector.latest_release()


def make_record(
    org: str = "acme",
    repo: str = "widgets",
    tag: str = "v1.0",
    latest: bool = False,
) -> ReleaseRecord:
    return ReleaseRecord(
        repo=repo,
        org=org,
        title=tag,
        latest=latest,
        tag=tag,
        url=f"https://github.com/{org}/{repo}/releases/tag/{tag}",
    )


def release_data(tag: str, body: str = "Notes.\n") -> dict:
    return {
        "name": f"Release {tag}",
        "tag_name": tag,
        "author": {"login": "octocat", "avatar_url": "https://example.com/a.png"},
        "body": body,
        "html_url": f"https://github.com/acme/widgets/releases/tag/{tag}",
    }


@pytest.fixture
def fetcher() -> MockReleaseFetcher:
    return MockReleaseFetcher(
        releases={
            "acme/widgets": {
                "v1.0": release_data("v1.0"),
                "v2.0": release_data("v2.0", "**New** engine\n"),
            },
            "acme/gadgets": {"v0.1": release_data("v0.1")},
        },
        latest={"acme/widgets": "v2.0", "acme/gadgets": "v0.1"},
    )


@pytest.fixture
def coordinator(fetcher: MockReleaseFetcher) -> CacheCoordinator:
    return CacheCoordinator(fetcher=fetcher, capacity=4)


# ---------------------------------------------------------------------------
# ReleaseCache
# ---------------------------------------------------------------------------


class TestReleaseCache:
    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            ReleaseCache(capacity=0)

    def test_never_exceeds_capacity(self) -> None:
        cache = ReleaseCache(capacity=3)
        for n in range(10):
            cache.insert(make_record(tag=f"v{n}"))
            assert len(cache) <= 3
        assert [record.tag for record in cache] == ["v9", "v8", "v7"]

    def test_evicts_least_recently_used(self) -> None:
        cache = ReleaseCache(capacity=2)
        cache.insert(make_record(tag="v1"))
        cache.insert(make_record(tag="v2"))

        evicted = cache.insert(make_record(tag="v3"))

        assert evicted is not None and evicted.tag == "v1"
        assert [record.tag for record in cache] == ["v3", "v2"]

    def test_find_refreshes_recency(self) -> None:
        cache = ReleaseCache(capacity=2)
        cache.insert(make_record(tag="v1"))
        cache.insert(make_record(tag="v2"))

        assert cache.find(lambda record: record.tag == "v1") is not None
        evicted = cache.insert(make_record(tag="v3"))

        assert evicted is not None and evicted.tag == "v2"
        assert [record.tag for record in cache] == ["v3", "v1"]

    def test_find_returns_most_recent_match(self) -> None:
        cache = ReleaseCache()
        cache.insert(make_record(tag="v1"))
        newer = make_record(tag="v1", latest=True)
        cache.insert(newer)
        assert cache.find(lambda record: record.tag == "v1") is newer

    def test_insert_does_not_deduplicate(self) -> None:
        cache = ReleaseCache()
        cache.insert(make_record())
        cache.insert(make_record())
        assert len(cache) == 2

    def test_clear(self) -> None:
        cache = ReleaseCache()
        cache.insert(make_record())
        cache.clear()
        assert len(cache) == 0


# ---------------------------------------------------------------------------
# Lookup and insert
# ---------------------------------------------------------------------------


class TestLookup:
    @pytest.mark.asyncio
    async def test_lookup_after_insert_matches_selector(
        self, coordinator: CacheCoordinator
    ) -> None:
        await coordinator.insert(make_record(tag="v2.0", latest=True))
        await coordinator.insert(make_record(tag="v1.0"))

        latest = await coordinator.lookup("acme", "widgets", LATEST)
        tagged = await coordinator.lookup("acme", "widgets", TagSelector.specific("v1.0"))

        assert latest is not None and latest.tag == "v2.0"
        assert tagged is not None and tagged.tag == "v1.0"

    @pytest.mark.asyncio
    async def test_specific_record_does_not_satisfy_latest(
        self, coordinator: CacheCoordinator
    ) -> None:
        await coordinator.insert(make_record(tag="v1.0", latest=False))
        assert await coordinator.lookup("acme", "widgets", LATEST) is None

    @pytest.mark.asyncio
    async def test_latest_record_satisfies_its_tag(self, coordinator: CacheCoordinator) -> None:
        await coordinator.insert(make_record(tag="v2.0", latest=True))
        record = await coordinator.lookup("acme", "widgets", TagSelector.specific("v2.0"))
        assert record is not None and record.latest

    @pytest.mark.asyncio
    async def test_org_and_repo_must_match(self, coordinator: CacheCoordinator) -> None:
        await coordinator.insert(make_record(org="acme", repo="widgets", latest=True))
        assert await coordinator.lookup("acme", "gadgets", LATEST) is None
        assert await coordinator.lookup("other", "widgets", LATEST) is None


# ---------------------------------------------------------------------------
# get (read path)
# ---------------------------------------------------------------------------


class TestGet:
    @pytest.mark.asyncio
    async def test_miss_fetches_and_caches(
        self, coordinator: CacheCoordinator, fetcher: MockReleaseFetcher
    ) -> None:
        record = await coordinator.get("acme", "widgets", LATEST)

        assert record.tag == "v2.0"
        assert record.latest is True
        assert [item.text for item in record.items] == ["<b>New</b> engine"]
        assert len(coordinator.cache) == 1
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_hit_does_not_fetch(
        self, coordinator: CacheCoordinator, fetcher: MockReleaseFetcher
    ) -> None:
        first = await coordinator.get("acme", "widgets", TagSelector.specific("v1.0"))
        second = await coordinator.get("acme", "widgets", TagSelector.specific("v1.0"))

        assert first is second
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    async def test_latest_and_tag_occupy_separate_slots(
        self, coordinator: CacheCoordinator, fetcher: MockReleaseFetcher
    ) -> None:
        await coordinator.get("acme", "widgets", TagSelector.specific("v2.0"))
        await coordinator.get("acme", "widgets", LATEST)

        assert len(fetcher.calls) == 2
        assert len(coordinator.cache) == 2

    @pytest.mark.asyncio
    async def test_not_found_propagates_and_caches_nothing(
        self, coordinator: CacheCoordinator
    ) -> None:
        with pytest.raises(UpstreamNotFound):
            await coordinator.get("acme", "widgets", TagSelector.specific("v9.9"))
        assert len(coordinator.cache) == 0


# ---------------------------------------------------------------------------
# force_refresh
# ---------------------------------------------------------------------------


class TestForceRefresh:
    @pytest.mark.asyncio
    async def test_always_fetches_and_inserts(
        self, coordinator: CacheCoordinator, fetcher: MockReleaseFetcher
    ) -> None:
        await coordinator.get("acme", "widgets", LATEST)
        refreshed = await coordinator.force_refresh("acme", "widgets", LATEST)

        assert len(fetcher.calls) == 2
        assert len(coordinator.cache) == 2
        assert await coordinator.lookup("acme", "widgets", LATEST) is refreshed

    @pytest.mark.asyncio
    async def test_unknown_tag_leaves_cache_untouched(
        self, coordinator: CacheCoordinator
    ) -> None:
        cached = await coordinator.get("acme", "widgets", TagSelector.specific("v1.0"))

        with pytest.raises(UpstreamNotFound):
            await coordinator.force_refresh("acme", "widgets", TagSelector.specific("v9.9"))

        assert list(coordinator.cache) == [cached]

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self) -> None:
        class FailingFetcher:
            async def fetch(self, org: str, repo: str, selector: TagSelector) -> RawRelease:
                raise UpstreamTransportError(org, repo, selector.tag, "connection reset")

        coordinator = CacheCoordinator(fetcher=FailingFetcher())
        with pytest.raises(UpstreamTransportError):
            await coordinator.force_refresh("acme", "widgets", LATEST)
        assert len(coordinator.cache) == 0


# ---------------------------------------------------------------------------
# Locking
# ---------------------------------------------------------------------------


class GatedFetcher:
    """Fetcher whose first call blocks until the test releases it."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch(self, org: str, repo: str, selector: TagSelector) -> RawRelease:
        self.started.set()
        await self.release.wait()
        return RawRelease.model_validate(release_data("v1.0"))


class TestLocking:
    @pytest.mark.asyncio
    async def test_miss_blocks_unrelated_lookups(self) -> None:
        fetcher = GatedFetcher()
        coordinator = CacheCoordinator(fetcher=fetcher)
        await coordinator.insert(make_record(org="other", repo="thing", latest=True))

        slow = asyncio.create_task(coordinator.get("acme", "widgets", LATEST))
        await fetcher.started.wait()
        unrelated = asyncio.create_task(coordinator.lookup("other", "thing", LATEST))
        await asyncio.sleep(0.01)

        assert not unrelated.done()

        fetcher.release.set()
        record = await slow
        found = await unrelated

        assert record.org == "acme"
        assert found is not None and found.org == "other"
