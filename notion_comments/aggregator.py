"""Comment aggregation for a single page.

Collects page-level comments plus the inline comments anchored to every
commentable block, attaching each inline comment to the text of its block.
"""

from typing import List, Optional

import structlog

from notion_comments.models.notion_models import (
    NON_COMMENTABLE_BLOCKS,
    Comment,
    CommentEntry,
    block_text,
    parse_block,
)
from notion_comments.notion import is_block_not_found, list_block_children, list_comments
from notion_comments.utils.errors import WARNING_TYPE_BLOCK_COMMENTS_FAILED, CycleWarnings

logger = structlog.get_logger(__name__)


async def aggregate_comments(
    client,
    page_id: str,
    warnings: Optional[CycleWarnings] = None
) -> List[CommentEntry]:
    """Fetch all comments on a page, page-level first, then inline by block order.

    Args:
        client: Notion client
        page_id: Page to read
        warnings: Cycle warnings collector for per-block failures

    Returns:
        List of CommentEntry; inline entries carry their block's text as quote

    Raises:
        NotionAPIError: If the page-level comments or the block list cannot be
            fetched. Failures on a single block never raise.
    """
    entries: List[CommentEntry] = []

    page_comments = await list_comments(client, page_id)
    for payload in page_comments:
        entries.append(CommentEntry(comment=Comment.from_api(payload)))

    blocks = [parse_block(payload) for payload in await list_block_children(client, page_id)]

    for block in blocks:
        if isinstance(block, NON_COMMENTABLE_BLOCKS):
            continue

        try:
            block_comments = await list_comments(client, block.id)
        except Exception as e:
            if not is_block_not_found(e):
                logger.error(
                    "block_comments_fetch_failed",
                    page_id=page_id,
                    block_id=block.id,
                    error=str(e),
                    error_type=type(e).__name__
                )
                if warnings is not None:
                    warnings.append(
                        WARNING_TYPE_BLOCK_COMMENTS_FAILED,
                        f"Failed to list comments for block {block.id}",
                        {"page_id": page_id, "block_id": block.id, "error": str(e)}
                    )
            continue

        if not block_comments:
            continue

        quote = block_text(block) or None
        for payload in block_comments:
            entries.append(CommentEntry(comment=Comment.from_api(payload), quote=quote))

    logger.info(
        "page_comments_aggregated",
        page_id=page_id,
        total_count=len(entries),
        page_level_count=len(page_comments),
        inline_count=len(entries) - len(page_comments),
        block_count=len(blocks)
    )
    return entries
