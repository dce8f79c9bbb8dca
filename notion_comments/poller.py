"""Poll cycle orchestration.

One cycle: resolve the watch list, then for each page aggregate comments,
resolve threads, answer or skip each actionable thread, and finally persist
the processed state once.

Pages are processed sequentially and independently: a failure on one page is
logged and the next page proceeds. Only a successfully posted reply (or an
explicit skip) marks a comment processed, so a failed post is retried on the
next cycle.
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from notion_comments.aggregator import aggregate_comments
from notion_comments.config import PluginConfig
from notion_comments.dispatcher import ResponseDispatcher
from notion_comments.index import normalize_page_id, resolve_watched_pages
from notion_comments.models.notion_models import Skip
from notion_comments.notion import get_page_title
from notion_comments.storage import ProcessedState, StateStore
from notion_comments.threads import resolve_threads
from notion_comments.utils.errors import (
    WARNING_TYPE_PAGE_FAILED,
    WARNING_TYPE_REPLY_FAILED,
    WARNING_TYPE_RESPONDER_FAILED,
    CycleWarnings,
    ResponderError,
)

logger = structlog.get_logger(__name__)


@dataclass
class CycleSummary:
    """Outcome counters for one poll cycle."""
    pages_polled: int = 0
    pages_failed: int = 0
    replies_posted: int = 0
    comments_skipped: int = 0
    reply_failures: int = 0
    responder_deferrals: int = 0
    state_saved: bool = False
    warnings: CycleWarnings = field(default_factory=CycleWarnings)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _preview(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


async def resolve_page_list(config: PluginConfig, notion) -> List[str]:
    """Pages to watch this cycle: index page links, else the static list."""
    pages: List[str] = []

    if config.index_page:
        logger.info("reading_index_page", index_page_id=config.index_page)
        pages = await resolve_watched_pages(notion, config.index_page)

    if not pages and config.watched_pages:
        if config.index_page:
            logger.info("index_page_fallback_to_watched_pages", page_count=len(config.watched_pages))
        # Same key in processedComments whichever way the page was discovered
        pages = list(dict.fromkeys(normalize_page_id(p) for p in config.watched_pages))

    return pages


async def process_page(
    page_id: str,
    notion,
    dispatcher: ResponseDispatcher,
    state: ProcessedState,
    summary: CycleSummary,
    bot_user_id: Optional[str] = None
) -> None:
    """Answer or skip every actionable thread on one page, updating state in memory.

    Raises:
        NotionAPIError: If the page's comments or blocks cannot be read
    """
    entries = await aggregate_comments(notion, page_id, warnings=summary.warnings)
    actions = resolve_threads(entries, state.processed_ids(page_id), bot_user_id)

    page_title: Optional[str] = None
    title_fetched = False

    for action in actions:
        if isinstance(action, Skip):
            state.mark_processed(page_id, action.comment_id)
            summary.comments_skipped += 1
            logger.debug("comment_skipped", page_id=page_id, comment_id=action.comment_id, reason=action.reason)
            continue

        comment_type = "inline" if action.quote else "page"
        logger.info(
            "new_comment",
            page_id=page_id,
            discussion_id=action.discussion_id,
            comment_id=action.latest.id,
            comment_type=comment_type,
            text=_preview(action.text, 50),
            quote=_preview(action.quote, 30) if action.quote else None
        )

        if not title_fetched:
            page_title = await get_page_title(notion, page_id)
            title_fetched = True

        try:
            reply = await dispatcher.dispatch(action.text, page_title=page_title, quote=action.quote)
        except ResponderError as e:
            summary.responder_deferrals += 1
            summary.warnings.append(
                WARNING_TYPE_RESPONDER_FAILED,
                "Responder failed; comment left for the next cycle",
                {"page_id": page_id, "discussion_id": action.discussion_id,
                 "comment_id": action.latest.id, "error": str(e)}
            )
            continue

        if await dispatcher.post_reply(action.discussion_id, reply):
            state.mark_processed(page_id, action.latest.id)
            summary.replies_posted += 1
            logger.info(
                "reply_posted",
                page_id=page_id,
                discussion_id=action.discussion_id,
                comment_id=action.latest.id,
                comment_type=comment_type
            )
        else:
            summary.reply_failures += 1
            summary.warnings.append(
                WARNING_TYPE_REPLY_FAILED,
                "Reply could not be posted; comment will be retried",
                {"page_id": page_id, "discussion_id": action.discussion_id, "comment_id": action.latest.id}
            )


async def poll_notion_comments(
    config: PluginConfig,
    notion,
    dispatcher: ResponseDispatcher,
    store: StateStore
) -> CycleSummary:
    """Run one full poll cycle.

    Args:
        config: Plugin settings
        notion: Notion client
        dispatcher: Response dispatcher bound to the same Notion client
        store: Processed state store, loaded at the start and saved at the end

    Returns:
        CycleSummary with counters and collected warnings
    """
    summary = CycleSummary()

    if not config.enabled:
        logger.info("plugin_disabled")
        return summary

    state = store.load()

    pages = await resolve_page_list(config, notion)
    if not pages:
        logger.warning("no_pages_to_watch", hint="Configure indexPage or watchedPages")
        return summary

    logger.info("poll_cycle_started", page_count=len(pages))

    for page_id in pages:
        summary.pages_polled += 1
        try:
            await process_page(
                page_id,
                notion,
                dispatcher,
                state,
                summary,
                bot_user_id=config.integration_user_id
            )
        except Exception as e:
            summary.pages_failed += 1
            logger.error(
                "page_processing_failed",
                page_id=page_id,
                error=str(e),
                error_type=type(e).__name__
            )
            summary.warnings.append(
                WARNING_TYPE_PAGE_FAILED,
                f"Failed to process page {page_id}",
                {"page_id": page_id, "error": str(e)}
            )

    state.last_poll_time = _now_ms()
    store.save(state)
    summary.state_saved = True

    logger.info(
        "poll_cycle_complete",
        pages_polled=summary.pages_polled,
        pages_failed=summary.pages_failed,
        replies_posted=summary.replies_posted,
        comments_skipped=summary.comments_skipped,
        reply_failures=summary.reply_failures,
        responder_deferrals=summary.responder_deferrals,
        warnings=summary.warnings.to_json()
    )
    return summary
