"""Notion data models for the comment responder.

This module defines the data structures that flow through the poll pipeline,
from raw Notion API payloads to thread-level decisions.

Data Models:
    RichText: one formatted text run (plain text plus optional hyperlink)
    CommentParent: the page or block a comment is attached to
    Comment: a single remark on a page or block
    CommentEntry: a comment paired with its quoted block text (inline comments only)
    Block variants: tagged union over the block kinds the pipeline cares about
    Answer / Skip: the actions the thread resolver emits

These models use dataclasses for simplicity. Payload parsing is tolerant: the
Notion API adds block types and fields over time, and anything unrecognized
becomes an OtherBlock rather than an error.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union


@dataclass
class RichText:
    """A single formatted text run.

    Attributes:
        plain_text: Text content without formatting
        link_url: Target of an inline hyperlink (``text.link.url``)
        href: Resolved link target Notion adds to runs (mentions, links)
    """
    plain_text: str
    link_url: Optional[str] = None
    href: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "RichText":
        text = payload.get("text") or {}
        link = text.get("link") or {}
        return cls(
            plain_text=payload.get("plain_text") or "",
            link_url=link.get("url"),
            href=payload.get("href"),
        )


def parse_rich_text(runs: Optional[List[Dict[str, Any]]]) -> List[RichText]:
    """Parse a list of rich-text payloads, tolerating a missing list."""
    return [RichText.from_api(run) for run in runs or []]


def join_plain_text(runs: List[RichText]) -> str:
    """Concatenate the plain text of every run."""
    return "".join(run.plain_text for run in runs)


def parse_timestamp(value: str) -> datetime:
    """Parse a Notion ISO-8601 timestamp into an aware UTC datetime."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class CommentParent:
    """Where a comment is anchored.

    Attributes:
        type: "page_id" for page-level comments, "block_id" for inline comments
        page_id: Page the comment is attached to (page-level comments)
        block_id: Block the comment is attached to (inline comments)
    """
    type: str
    page_id: Optional[str] = None
    block_id: Optional[str] = None


@dataclass
class Comment:
    """A Notion comment.

    Attributes:
        id: Globally unique, immutable comment ID
        discussion_id: Discussion thread the comment belongs to
        created_time: ISO-8601 creation timestamp as returned by the API
        parent: Page or block the comment is anchored to
        rich_text: Body as a sequence of formatted runs
        author_id: ID of the user or integration that wrote the comment
        author_object: Author kind ("user" for humans, "bot" for integrations)
    """
    id: str
    discussion_id: str
    created_time: str
    parent: CommentParent
    rich_text: List[RichText] = field(default_factory=list)
    author_id: Optional[str] = None
    author_object: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Comment":
        parent = payload.get("parent") or {}
        created_by = payload.get("created_by") or {}
        return cls(
            id=payload["id"],
            discussion_id=payload["discussion_id"],
            created_time=payload["created_time"],
            parent=CommentParent(
                type=parent.get("type", ""),
                page_id=parent.get("page_id"),
                block_id=parent.get("block_id"),
            ),
            rich_text=parse_rich_text(payload.get("rich_text")),
            author_id=created_by.get("id"),
            author_object=created_by.get("object"),
        )

    @property
    def created_at(self) -> datetime:
        return parse_timestamp(self.created_time)

    @property
    def plain_text(self) -> str:
        return join_plain_text(self.rich_text)


@dataclass
class CommentEntry:
    """A comment with its quoted context.

    Attributes:
        comment: The comment itself
        quote: Plain text of the block an inline comment is anchored to;
            None for page-level comments or blocks without text
    """
    comment: Comment
    quote: Optional[str] = None


# Block tagged union

@dataclass
class ChildPageBlock:
    id: str
    title: str = ""
    type: str = "child_page"


@dataclass
class LinkToPageBlock:
    """A link-to-page block. page_id is None when the link targets a database."""
    id: str
    page_id: Optional[str] = None
    type: str = "link_to_page"


@dataclass
class ChildDatabaseBlock:
    id: str
    title: str = ""
    type: str = "child_database"


@dataclass
class TextBlock:
    """Any block whose payload carries rich text (paragraph, heading, to_do, ...)."""
    id: str
    type: str
    rich_text: List[RichText] = field(default_factory=list)


@dataclass
class UnsupportedBlock:
    id: str
    type: str = "unsupported"


@dataclass
class OtherBlock:
    """A block kind without rich text (image, divider, table, ...)."""
    id: str
    type: str


Block = Union[ChildPageBlock, LinkToPageBlock, ChildDatabaseBlock, TextBlock, UnsupportedBlock, OtherBlock]

# Blocks that never carry inline comments of their own
NON_COMMENTABLE_BLOCKS = (ChildPageBlock, ChildDatabaseBlock, UnsupportedBlock)


def parse_block(payload: Dict[str, Any]) -> Block:
    """Map a raw block payload onto its Block variant."""
    block_id = payload["id"]
    block_type = payload.get("type", "")
    content = payload.get(block_type)
    if not isinstance(content, dict):
        content = {}

    if block_type == "child_page":
        return ChildPageBlock(id=block_id, title=content.get("title") or "")
    if block_type == "link_to_page":
        return LinkToPageBlock(id=block_id, page_id=content.get("page_id"))
    if block_type == "child_database":
        return ChildDatabaseBlock(id=block_id, title=content.get("title") or "")
    if block_type == "unsupported":
        return UnsupportedBlock(id=block_id)
    if "rich_text" in content:
        return TextBlock(id=block_id, type=block_type, rich_text=parse_rich_text(content["rich_text"]))
    return OtherBlock(id=block_id, type=block_type)


def block_text(block: Block) -> str:
    """Plain text of a block; empty for variants without rich text."""
    if isinstance(block, TextBlock):
        return join_plain_text(block.rich_text)
    return ""


# Thread resolver actions

SKIP_SELF_AUTHORED = "self_authored"
SKIP_EMPTY_TEXT = "empty_text"


@dataclass
class Answer:
    """Reply to the latest comment of a discussion.

    Attributes:
        discussion_id: Thread to reply into
        comments: Whole thread, oldest first
        latest: The comment driving the reply
        text: Plain text of the latest comment
        quote: Quoted block text for inline threads
    """
    discussion_id: str
    comments: List[Comment]
    latest: Comment
    text: str
    quote: Optional[str] = None


@dataclass
class Skip:
    """Mark a comment processed without replying."""
    comment_id: str
    reason: str


Action = Union[Answer, Skip]
