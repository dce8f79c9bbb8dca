"""
Tests for the poll cycle.

End-to-end behavioral tests against the in-memory Notion fake: replies are
posted once per new comment, the integration's own replies are never
answered, failed posts and deferred responder failures are retried, and one
failing page never blocks the others.
"""

import json

import pytest

from tests.conftest import BOT_USER_ID, FakeResponder, block_payload, comment_payload


@pytest.fixture
def store(tmp_path):
    from notion_comments.storage import StateStore
    return StateStore(tmp_path / "state.json")


def _config(**kwargs):
    from notion_comments.config import PluginConfig
    settings = {"watchedPages": ["page-1"], "integrationUserId": BOT_USER_ID}
    settings.update(kwargs)
    return PluginConfig.model_validate(settings)


def _dispatcher(responder, fake_notion, retry=False):
    from notion_comments.dispatcher import ResponseDispatcher
    return ResponseDispatcher(responder, fake_notion.client, retry_on_responder_failure=retry)


@pytest.fixture
def page_comment(fake_notion):
    fake_notion.titles["page-1"] = "Q3 Report"
    fake_notion.blocks["page-1"] = []
    fake_notion.comments["page-1"] = [
        comment_payload("c1", "d1", "2025-03-01T10:00:00.000Z", "Please clarify this metric."),
    ]
    return fake_notion


class TestPollCycle:
    """Test a single cycle."""

    @pytest.mark.asyncio
    async def test_page_level_comment_answered(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments
        from notion_comments.prompts import build_prompt

        summary = await poll_notion_comments(_config(), page_comment.client, _dispatcher(fake_responder, page_comment), store)

        assert page_comment.posted_replies() == [{
            "discussion_id": "d1",
            "rich_text": [{"text": {"content": "Here is the clarification."}}],
        }]
        fake_responder.complete.assert_awaited_once_with(
            build_prompt("Please clarify this metric.", page_title="Q3 Report")
        )
        assert summary.replies_posted == 1
        assert summary.state_saved is True
        assert store.load().processed_comments == {"page-1": ["c1"]}

    @pytest.mark.asyncio
    async def test_inline_thread_answers_latest_with_quote(self, fake_notion, fake_responder, store):
        from notion_comments.poller import poll_notion_comments
        from notion_comments.prompts import build_prompt

        fake_notion.blocks["page-1"] = [block_payload("b1", "paragraph", text="Revenue grew 12%")]
        fake_notion.comments["b1"] = [
            comment_payload("c1", "d1", "2025-03-01T10:00:00.000Z", "Is that YoY?", block_id="b1"),
            comment_payload("c2", "d1", "2025-03-01T11:00:00.000Z", "Or QoQ?", block_id="b1"),
        ]

        await poll_notion_comments(_config(), fake_notion.client, _dispatcher(fake_responder, fake_notion), store)

        fake_responder.complete.assert_awaited_once_with(build_prompt("Or QoQ?", quote="Revenue grew 12%"))
        assert [r["discussion_id"] for r in fake_notion.posted_replies()] == ["d1"]
        assert store.load().processed_comments == {"page-1": ["c2"]}

    @pytest.mark.asyncio
    async def test_title_fetched_once_per_page(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        page_comment.comments["page-1"].append(
            comment_payload("c2", "d2", "2025-03-01T10:30:00.000Z", "Second question")
        )

        summary = await poll_notion_comments(_config(), page_comment.client, _dispatcher(fake_responder, page_comment), store)

        assert summary.replies_posted == 2
        assert page_comment.client.pages.retrieve.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_comments_marked_without_reply(self, fake_notion, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        fake_notion.comments["page-1"] = [comment_payload("c1", "d1", "2025-03-01T10:00:00.000Z", "")]

        summary = await poll_notion_comments(_config(), fake_notion.client, _dispatcher(fake_responder, fake_notion), store)

        assert summary.comments_skipped == 1
        assert fake_notion.posted_replies() == []
        assert store.load().processed_comments == {"page-1": ["c1"]}


class TestIdempotence:
    """Test repeated cycles over unchanged pages."""

    @pytest.mark.asyncio
    async def test_three_cycles_post_exactly_one_reply(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        dispatcher = _dispatcher(fake_responder, page_comment)
        config = _config()

        await poll_notion_comments(config, page_comment.client, dispatcher, store)
        # Second cycle sees the integration's own reply as the thread's latest comment
        second = await poll_notion_comments(config, page_comment.client, dispatcher, store)
        after_second = store.load().processed_comments
        third = await poll_notion_comments(config, page_comment.client, dispatcher, store)

        assert len(page_comment.posted_replies()) == 1
        assert second.replies_posted == 0
        assert second.comments_skipped == 1
        assert third.replies_posted == 0
        assert third.comments_skipped == 0
        assert store.load().processed_comments == after_second
        assert after_second["page-1"][0] == "c1"

    @pytest.mark.asyncio
    async def test_follow_up_after_reply_is_answered(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        dispatcher = _dispatcher(fake_responder, page_comment)

        await poll_notion_comments(_config(), page_comment.client, dispatcher, store)
        page_comment.comments["page-1"].append(
            comment_payload("c2", "d1", "2031-01-01T00:00:00.000Z", "Thanks, and the margin?")
        )
        summary = await poll_notion_comments(_config(), page_comment.client, dispatcher, store)

        assert summary.replies_posted == 1
        assert store.load().is_processed("page-1", "c2")


class TestFailures:
    """Test failure isolation and retry."""

    @pytest.mark.asyncio
    async def test_failed_post_retried_next_cycle(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        dispatcher = _dispatcher(fake_responder, page_comment)
        page_comment.fail_create = True

        first = await poll_notion_comments(_config(), page_comment.client, dispatcher, store)

        assert first.reply_failures == 1
        assert first.warnings.count("reply_failed") == 1
        assert not store.load().is_processed("page-1", "c1")

        page_comment.fail_create = False
        second = await poll_notion_comments(_config(), page_comment.client, dispatcher, store)

        assert second.replies_posted == 1
        assert store.load().is_processed("page-1", "c1")

    @pytest.mark.asyncio
    async def test_responder_failure_posts_apology_by_default(self, page_comment, store):
        from notion_comments.poller import poll_notion_comments
        from notion_comments.prompts import GATEWAY_UNAVAILABLE_REPLY
        from notion_comments.utils.errors import ResponderError

        responder = FakeResponder(error=ResponderError("gateway down", reply_text=GATEWAY_UNAVAILABLE_REPLY))

        summary = await poll_notion_comments(_config(), page_comment.client, _dispatcher(responder, page_comment), store)

        assert page_comment.posted_replies()[0]["rich_text"][0]["text"]["content"] == GATEWAY_UNAVAILABLE_REPLY
        assert summary.replies_posted == 1
        assert store.load().is_processed("page-1", "c1")

    @pytest.mark.asyncio
    async def test_responder_failure_deferred_when_retry_enabled(self, page_comment, store):
        from notion_comments.poller import poll_notion_comments
        from notion_comments.utils.errors import ResponderError

        responder = FakeResponder(error=ResponderError("gateway down", reply_text="sorry"))
        dispatcher = _dispatcher(responder, page_comment, retry=True)

        summary = await poll_notion_comments(
            _config(retryOnResponderFailure=True), page_comment.client, dispatcher, store
        )

        assert page_comment.posted_replies() == []
        assert summary.responder_deferrals == 1
        assert summary.warnings.count("responder_failed") == 1
        assert summary.state_saved is True
        assert not store.load().is_processed("page-1", "c1")

    @pytest.mark.asyncio
    async def test_failing_page_does_not_block_others(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        page_comment.comment_errors["bad-page"] = RuntimeError("Unauthorized")
        config = _config(watchedPages=["bad-page", "page-1"])

        summary = await poll_notion_comments(config, page_comment.client, _dispatcher(fake_responder, page_comment), store)

        assert summary.pages_polled == 2
        assert summary.pages_failed == 1
        assert summary.warnings.count("page_failed") == 1
        assert summary.replies_posted == 1
        assert store.load().processed_comments == {"page-1": ["c1"]}


class TestPageList:
    """Test watch list resolution within a cycle."""

    @pytest.mark.asyncio
    async def test_index_page_links_polled(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        page_comment.blocks["index"] = [block_payload("page-1", "child_page", title="Q3 Report")]
        config = _config(indexPage="index", watchedPages=[])

        summary = await poll_notion_comments(config, page_comment.client, _dispatcher(fake_responder, page_comment), store)

        assert summary.pages_polled == 1
        assert summary.replies_posted == 1

    @pytest.mark.asyncio
    async def test_empty_index_falls_back_to_watched_pages(self, page_comment, fake_responder, store):
        from notion_comments.poller import resolve_page_list

        page_comment.blocks["index"] = []
        config = _config(indexPage="index", watchedPages=["page-1", "page-2"])

        assert await resolve_page_list(config, page_comment.client) == ["page-1", "page-2"]

    @pytest.mark.asyncio
    async def test_bare_hex_watched_page_keyed_like_index_links(self, fake_notion, fake_responder, store):
        """A page configured as 32 hex and found via the index shares one state key."""
        from notion_comments.poller import poll_notion_comments, resolve_page_list

        bare = "0123456789abcdef0123456789abcdef"
        hyphenated = "01234567-89ab-cdef-0123-456789abcdef"
        fake_notion.comments[hyphenated] = [
            comment_payload("c1", "d1", "2025-03-01T10:00:00.000Z", "Why?", page_id=hyphenated),
        ]
        fake_notion.blocks["index"] = [block_payload(hyphenated, "child_page", title="Plan")]
        dispatcher = _dispatcher(fake_responder, fake_notion)

        static = _config(watchedPages=[bare, hyphenated])
        assert await resolve_page_list(static, fake_notion.client) == [hyphenated]

        await poll_notion_comments(static, fake_notion.client, dispatcher, store)
        await poll_notion_comments(
            _config(indexPage="index", watchedPages=[]), fake_notion.client, dispatcher, store
        )

        assert list(store.load().processed_comments) == [hyphenated]
        assert len(fake_notion.posted_replies()) == 1

    @pytest.mark.asyncio
    async def test_no_pages_skips_cycle_without_saving(self, fake_notion, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        summary = await poll_notion_comments(
            _config(watchedPages=[]), fake_notion.client, _dispatcher(fake_responder, fake_notion), store
        )

        assert summary.state_saved is False
        assert not store.path.exists()

    @pytest.mark.asyncio
    async def test_disabled_does_nothing(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        summary = await poll_notion_comments(
            _config(enabled=False), page_comment.client, _dispatcher(fake_responder, page_comment), store
        )

        assert summary.pages_polled == 0
        page_comment.client.comments.list.assert_not_awaited()
        assert not store.path.exists()

    @pytest.mark.asyncio
    async def test_state_file_records_poll_time(self, page_comment, fake_responder, store):
        from notion_comments.poller import poll_notion_comments

        await poll_notion_comments(_config(), page_comment.client, _dispatcher(fake_responder, page_comment), store)

        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert data["lastPollTime"] > 0
