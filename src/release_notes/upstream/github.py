"""GitHub API client for fetching release metadata.

Two endpoints are used:
- GET /repos/{org}/{repo}/releases/latest
- GET /repos/{org}/{repo}/releases/tags/{tag}

Design notes:
- Uses httpx for async HTTP requests
- The access token is passed in at construction; nothing here reads it from
  global state
- httpx errors are translated into UpstreamNotFound/UpstreamTransportError
  so callers never depend on httpx
- Transport failures (connection errors, timeouts) are retried a few times;
  HTTP error statuses are not
- Uses a Protocol so the cache doesn't depend on the concrete implementation
  (makes testing with mocks easy)

GitHub API docs: https://docs.github.com/en/rest/releases/releases
"""

from __future__ import annotations

from typing import Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from release_notes.errors import UpstreamNotFound, UpstreamTransportError
from release_notes.logging_config import get_logger
from release_notes.schemas import RawRelease, TagSelector

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Protocol (Interface)
# ---------------------------------------------------------------------------


class ReleaseFetcherProtocol(Protocol):
    """Protocol defining the interface for release metadata fetching."""

    async def fetch(self, org: str, repo: str, selector: TagSelector) -> RawRelease:
        """Fetch the release a selector refers to.

        Args:
            org: Owning organization or user
            repo: Repository name
            selector: Latest release or a specific tag

        Returns:
            The upstream release payload

        Raises:
            UpstreamNotFound: If there is no matching release
            UpstreamTransportError: If the upstream call fails
        """
        ...


# ---------------------------------------------------------------------------
# Concrete Implementation
# ---------------------------------------------------------------------------


class GitHubReleaseFetcher:
    """Real GitHub API client using httpx.

    Usage:
        fetcher = GitHubReleaseFetcher(token="ghp_...")
        release = await fetcher.fetch("tokio-rs", "axum", TagSelector.latest_release())
    """

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token. Requests are sent
                   unauthenticated if not provided.
            base_url: API base URL (for GitHub Enterprise or tests)
            timeout: Timeout in seconds for one request
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url or self.BASE_URL
        self._timeout = timeout
        self._transport = transport
        self._headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def fetch(self, org: str, repo: str, selector: TagSelector) -> RawRelease:
        """Fetch the latest release, or the release for a tag."""
        path = f"/repos/{quote(org, safe='')}/{quote(repo, safe='')}/releases"
        if selector.is_latest:
            path += "/latest"
        else:
            path += f"/tags/{quote(selector.tag, safe='')}"

        try:
            response = await self._get(path)
        except httpx.HTTPError as exc:
            logger.error(
                "release_fetch_failed",
                org=org,
                repo=repo,
                tag=str(selector),
                error=str(exc),
            )
            raise UpstreamTransportError(org, repo, selector.tag, str(exc)) from exc

        if response.status_code == httpx.codes.NOT_FOUND:
            logger.info("release_not_found", org=org, repo=repo, tag=str(selector))
            raise UpstreamNotFound(
                org, repo, selector.tag, f"No release {selector} for {org}/{repo}"
            )

        try:
            response.raise_for_status()
            release = RawRelease.model_validate(response.json())
        except (httpx.HTTPStatusError, ValueError, ValidationError) as exc:
            logger.error(
                "release_fetch_failed",
                org=org,
                repo=repo,
                tag=str(selector),
                status_code=response.status_code,
                error=str(exc),
            )
            raise UpstreamTransportError(org, repo, selector.tag, str(exc)) from exc

        logger.info("release_fetched", org=org, repo=repo, tag=release.tag_name)
        return release

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _get(self, path: str) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            return await client.get(path)


# ---------------------------------------------------------------------------
# Mock Implementation (for testing)
# ---------------------------------------------------------------------------


class MockReleaseFetcher:
    """Mock fetcher that returns predefined releases.

    Use this in tests and local development when you don't want to hit
    the real GitHub API.

    Usage:
        fetcher = MockReleaseFetcher(
            releases={"tokio-rs/axum": {"v0.7.0": {...}}},
            latest={"tokio-rs/axum": "v0.7.0"},
        )
        release = await fetcher.fetch("tokio-rs", "axum", TagSelector.latest_release())
    """

    def __init__(
        self,
        releases: dict[str, dict[str, dict]] | None = None,
        latest: dict[str, str] | None = None,
    ) -> None:
        """Initialize with optional predefined data.

        Args:
            releases: Nested dict of "org/repo" -> tag -> RawRelease data
            latest: Dict of "org/repo" -> tag of its latest release
        """
        self._releases = releases or {}
        self._latest = latest or {}
        self.calls: list[tuple[str, str, TagSelector]] = []

    async def fetch(self, org: str, repo: str, selector: TagSelector) -> RawRelease:
        self.calls.append((org, repo, selector))
        key = f"{org}/{repo}"
        tag = self._latest.get(key) if selector.is_latest else selector.tag
        data = self._releases.get(key, {}).get(tag) if tag else None
        if data is None:
            raise UpstreamNotFound(org, repo, selector.tag, f"No release {selector} for {key}")
        return RawRelease.model_validate(data)
