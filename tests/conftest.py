"""
Shared pytest fixtures for the Notion comment responder tests.

Provides payload builders shaped like Notion API responses and an in-memory
fake of the Notion client whose endpoints are AsyncMocks, so tests can both
drive behaviour and assert on the calls made.
"""

import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest


BOT_USER_ID = "bot-user-0001"
HUMAN_USER_ID = "human-user-0001"

_ids = itertools.count(1)


def rich_text(text, url=None, href=None):
    """One rich-text run payload."""
    return {
        "type": "text",
        "text": {"content": text, "link": {"url": url} if url else None},
        "plain_text": text,
        "href": href if href is not None else url,
    }


def comment_payload(
    comment_id,
    discussion_id,
    created_time,
    text,
    author_id=HUMAN_USER_ID,
    page_id="page-1",
    block_id=None,
):
    """A comment object as returned by comments.list."""
    if block_id:
        parent = {"type": "block_id", "block_id": block_id}
    else:
        parent = {"type": "page_id", "page_id": page_id}
    return {
        "object": "comment",
        "id": comment_id,
        "discussion_id": discussion_id,
        "created_time": created_time,
        "parent": parent,
        "rich_text": [rich_text(text)] if text else [],
        "created_by": {"object": "user", "id": author_id},
    }


def block_payload(block_id, block_type="paragraph", text=None, runs=None, **content):
    """A block object as returned by blocks.children.list."""
    body = dict(content)
    if runs is not None:
        body["rich_text"] = runs
    elif text is not None:
        body["rich_text"] = [rich_text(text)]
    elif block_type not in ("child_page", "child_database", "link_to_page", "unsupported", "divider", "image"):
        body["rich_text"] = []
    return {"object": "block", "id": block_id, "type": block_type, block_type: body}


def list_response(results, next_cursor=None):
    return {
        "object": "list",
        "results": results,
        "has_more": next_cursor is not None,
        "next_cursor": next_cursor,
    }


class FakeNotion:
    """In-memory Notion workspace.

    Attributes:
        blocks: parent ID -> child block payloads
        comments: page/block ID -> comment payloads
        titles: page ID -> title
        comment_errors: ID -> exception raised by comments.list
        block_errors: ID -> exception raised by blocks.children.list
        fail_create: when True, comments.create raises
    """

    def __init__(self, bot_user_id=BOT_USER_ID):
        self.bot_user_id = bot_user_id
        self.blocks = {}
        self.comments = {}
        self.titles = {}
        self.comment_errors = {}
        self.block_errors = {}
        self.fail_create = False

        self.client = MagicMock()
        self.client.blocks.children.list = AsyncMock(side_effect=self._list_children)
        self.client.comments.list = AsyncMock(side_effect=self._list_comments)
        self.client.comments.create = AsyncMock(side_effect=self._create_comment)
        self.client.pages.retrieve = AsyncMock(side_effect=self._retrieve_page)

    async def _list_children(self, block_id, page_size=None, start_cursor=None):
        if block_id in self.block_errors:
            raise self.block_errors[block_id]
        return list_response(self.blocks.get(block_id, []))

    async def _list_comments(self, block_id, start_cursor=None):
        if block_id in self.comment_errors:
            raise self.comment_errors[block_id]
        return list_response(list(self.comments.get(block_id, [])))

    async def _create_comment(self, discussion_id, rich_text):
        if self.fail_create:
            raise RuntimeError("Notion rejected the comment")

        # The reply lands in the same thread, authored by the integration
        for anchor, payloads in self.comments.items():
            if any(c["discussion_id"] == discussion_id for c in payloads):
                reply = comment_payload(
                    f"reply-{next(_ids)}",
                    discussion_id,
                    "2030-01-01T00:00:00.000Z",
                    rich_text[0]["text"]["content"],
                    author_id=self.bot_user_id,
                )
                reply["parent"] = dict(payloads[0]["parent"])
                payloads.append(reply)
                return reply
        raise RuntimeError(f"Unknown discussion {discussion_id}")

    async def _retrieve_page(self, page_id):
        if page_id not in self.titles:
            raise RuntimeError("Could not find page")
        return {
            "object": "page",
            "id": page_id,
            "properties": {
                "title": {"id": "title", "type": "title", "title": [rich_text(self.titles[page_id])]}
            },
        }

    def posted_replies(self):
        return [c.kwargs for c in self.client.comments.create.call_args_list]


@pytest.fixture
def fake_notion():
    """Fresh in-memory Notion workspace."""
    return FakeNotion()


class FakeResponder:
    """Responder that records prompts and answers with fixed text."""

    def __init__(self, reply="Here is the clarification.", error=None):
        self.reply = reply
        self.error = error
        self.complete = AsyncMock(side_effect=self._complete)

    async def _complete(self, prompt):
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_responder():
    return FakeResponder()
