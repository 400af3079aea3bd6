"""Exception types for the release notes service.

Upstream failures are split into two kinds so the HTTP layer can decide how
to surface them:
- UpstreamNotFound: the repository or tag has no matching release
- UpstreamTransportError: network failure, timeout, or an unexpected status

Markdown parse failures never escape the reducer; MarkdownParseFailure exists
so the reducer has a named error to log when it degrades to an empty list.
"""

from __future__ import annotations


class UpstreamError(Exception):
    """Base class for failures talking to the release-hosting API."""

    def __init__(self, org: str, repo: str, tag: str | None, message: str) -> None:
        self.org = org
        self.repo = repo
        self.tag = tag
        super().__init__(message)


class UpstreamNotFound(UpstreamError):
    """The requested release (or its repository) does not exist upstream."""


class UpstreamTransportError(UpstreamError):
    """The upstream call failed for any reason other than not-found."""


class MarkdownParseFailure(Exception):
    """A release body could not be turned into a syntax tree."""
