"""Pydantic models defining the data that flows through the service.

These schemas are the single source of truth for:
- The upstream release shape returned by GitHub (RawRelease)
- The record served to clients and stored in the cache (ReleaseRecord)
- The query mode of a request (TagSelector)

Key design decisions:
- ReleaseRecord is frozen and stores items as a tuple, so a record cannot be
  changed after it is assembled and cached
- Field order of ReleaseRecord matches the JSON served to clients
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Category(StrEnum):
    """Classification of an item produced while reducing a release body.

    TEXT: Plain text, and the category of every merged item
    BOLD: Text inside **strong** markup
    ITALIC: Text inside *emphasis* markup
    CODE: An `inline code` span
    BREAK_PARAGRAPH: End of a paragraph (internal marker)
    BREAK_LIST: End of a list (internal marker)

    Text inside a link has no member here: its category is the link URL.
    """

    TEXT = "text"
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"
    BREAK_PARAGRAPH = "break-p"
    BREAK_LIST = "break-l"


# ---------------------------------------------------------------------------
# Record Schemas
# ---------------------------------------------------------------------------


class Item(BaseModel):
    """One classified fragment of release-note text.

    Attributes:
        category: A Category value, or a link URL for text inside a link
        text: The fragment's text
    """

    model_config = ConfigDict(frozen=True)

    category: str = Field(..., description="Item category or link URL")
    text: str = Field("", description="Fragment text")

    @property
    def is_break(self) -> bool:
        return self.category in (Category.BREAK_PARAGRAPH, Category.BREAK_LIST)


class AuthorInfo(BaseModel):
    """The account that published a release."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Login of the release author")
    image: str = Field(..., description="Avatar URL of the release author")


class ReleaseRecord(BaseModel):
    """A release with its body reduced to merged text items.

    Attributes:
        repo: Repository name
        org: Owning organization or user
        title: Human title, or the tag name when the release has none
        latest: Whether this record was fetched as "the latest release"
        author: Release author, if the upstream record has one
        tag: The resolved tag name
        items: Merged paragraph-level text items
        url: Link to the release page
    """

    model_config = ConfigDict(frozen=True)

    repo: str
    org: str
    title: str
    latest: bool
    author: AuthorInfo | None = None
    tag: str
    items: tuple[Item, ...] = ()
    url: str


# ---------------------------------------------------------------------------
# Upstream Schemas
# ---------------------------------------------------------------------------


class RawAuthor(BaseModel):
    login: str
    avatar_url: str


class RawRelease(BaseModel):
    """The subset of GitHub's release payload the service uses.

    Unknown fields in the payload are ignored.
    """

    name: str | None = None
    tag_name: str
    author: RawAuthor | None = None
    body: str | None = None
    html_url: str


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------


LATEST = "latest"


class TagSelector(BaseModel):
    """Which release of a repository a request refers to.

    A selector with no tag means "the latest release". Use
    TagSelector.from_query() to build one from the `tag` query parameter.
    """

    model_config = ConfigDict(frozen=True)

    tag: str | None = None

    @classmethod
    def latest_release(cls) -> TagSelector:
        return cls()

    @classmethod
    def specific(cls, tag: str) -> TagSelector:
        return cls(tag=tag)

    @classmethod
    def from_query(cls, tag: str | None) -> TagSelector:
        """Absent tag or the literal "latest" selects the latest release."""
        if tag is None or tag == LATEST:
            return cls.latest_release()
        return cls.specific(tag)

    @property
    def is_latest(self) -> bool:
        return self.tag is None

    def matches(self, record: ReleaseRecord) -> bool:
        """Whether a cached record satisfies this selector.

        A latest selector only accepts records stored with latest=True; it
        never compares tag strings.
        """
        if self.is_latest:
            return record.latest
        return record.tag == self.tag

    def __str__(self) -> str:
        return self.tag if self.tag is not None else LATEST
