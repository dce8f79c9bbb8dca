"""Discussion thread resolution.

Groups comments into discussion threads and decides, per thread, whether the
latest comment needs an answer, should be recorded without a reply, or was
already handled in an earlier cycle.

Only the latest comment of a thread is ever examined, so earlier comments in
an answered thread are never re-answered.
"""

from typing import Collection, Dict, Iterable, List, Optional

import structlog

from notion_comments.models.notion_models import (
    SKIP_EMPTY_TEXT,
    SKIP_SELF_AUTHORED,
    Action,
    Answer,
    Comment,
    CommentEntry,
    Skip,
)

logger = structlog.get_logger(__name__)


def group_by_discussion(comments: Iterable[Comment]) -> Dict[str, List[Comment]]:
    """Group comments by discussion ID, preserving first-seen thread order."""
    groups: Dict[str, List[Comment]] = {}
    for comment in comments:
        groups.setdefault(comment.discussion_id, []).append(comment)
    return groups


def sort_thread(comments: List[Comment]) -> List[Comment]:
    """Oldest first; comments with equal timestamps keep their input order."""
    return sorted(comments, key=lambda c: c.created_at)


def build_quote_map(entries: Iterable[CommentEntry]) -> Dict[str, str]:
    """Map discussion ID to the quoted block text of its inline comments."""
    quotes: Dict[str, str] = {}
    for entry in entries:
        if entry.quote:
            quotes[entry.comment.discussion_id] = entry.quote
    return quotes


def resolve_threads(
    entries: List[CommentEntry],
    processed_ids: Collection[str],
    bot_user_id: Optional[str] = None
) -> List[Action]:
    """Decide what to do with every discussion thread on a page.

    Args:
        entries: Aggregated comments of one page
        processed_ids: Comment IDs already handled for this page
        bot_user_id: Author ID of the integration; its comments are never answered

    Returns:
        At most one action per thread: Answer for a new human comment, Skip
        for a latest comment that should be recorded without a reply
    """
    quote_map = build_quote_map(entries)
    threads = group_by_discussion(entry.comment for entry in entries)
    actions: List[Action] = []

    for discussion_id, thread_comments in threads.items():
        thread = sort_thread(thread_comments)
        latest = thread[-1]

        if latest.id in processed_ids:
            continue

        if bot_user_id and latest.author_id == bot_user_id:
            actions.append(Skip(comment_id=latest.id, reason=SKIP_SELF_AUTHORED))
            continue

        text = latest.plain_text
        if not text.strip():
            actions.append(Skip(comment_id=latest.id, reason=SKIP_EMPTY_TEXT))
            continue

        actions.append(Answer(
            discussion_id=discussion_id,
            comments=thread,
            latest=latest,
            text=text,
            quote=quote_map.get(discussion_id)
        ))

    logger.debug(
        "threads_resolved",
        thread_count=len(threads),
        answer_count=sum(1 for a in actions if isinstance(a, Answer)),
        skip_count=sum(1 for a in actions if isinstance(a, Skip))
    )
    return actions
