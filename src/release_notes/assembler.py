"""Build ReleaseRecords from upstream release payloads."""

from __future__ import annotations

from release_notes.markdown import reduce_markdown
from release_notes.schemas import AuthorInfo, RawRelease, ReleaseRecord, TagSelector


def assemble(
    org: str,
    repo: str,
    selector: TagSelector,
    release: RawRelease,
) -> ReleaseRecord:
    """Combine a fetched release and its reduced body into a ReleaseRecord.

    The `latest` flag comes from the selector the request used, not from
    comparing the resolved tag with the repository's latest release.
    """
    author = None
    if release.author is not None:
        author = AuthorInfo(
            name=release.author.login,
            image=release.author.avatar_url,
        )

    return ReleaseRecord(
        repo=repo,
        org=org,
        title=release.name or release.tag_name,
        latest=selector.is_latest,
        author=author,
        tag=release.tag_name,
        items=reduce_markdown(release.body),
        url=release.html_url,
    )
