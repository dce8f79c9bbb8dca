"""Notion Integration Module

This module provides notion-client AsyncClient initialization and the thin
paginated wrappers the poll pipeline uses: listing block children, listing
comments, creating a reply in a discussion, and reading a page title.

All pagination is sequential (one round trip at a time, following
``next_cursor`` until ``has_more`` is false).
"""

from typing import Any, Dict, List, Optional

import structlog
from notion_client import AsyncClient

from notion_comments.utils.errors import ConfigurationError, NotionAPIError

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_SIZE = 100
BLOCK_NOT_FOUND_MESSAGE = "Could not find block"


def get_notion_client(api_key: str) -> AsyncClient:
    """Initialize and return an async Notion client.

    Args:
        api_key: Notion integration secret

    Returns:
        AsyncClient: Configured Notion client instance

    Raises:
        ConfigurationError: If api_key is missing or blank
    """
    api_key = (api_key or "").strip()
    if not api_key:
        logger.error("notion_client_init_failed", reason="missing_api_key")
        raise ConfigurationError("Notion API key is required")

    client = AsyncClient(auth=api_key)
    logger.info("notion_client_initialized")
    return client


def _wrap_error(e: Exception) -> NotionAPIError:
    code = getattr(e, "code", None)
    code = getattr(code, "value", code)
    return NotionAPIError(str(e), code=code, status=getattr(e, "status", None))


def is_block_not_found(error: Exception) -> bool:
    """True when Notion reports the block cannot carry comments.

    Comments cannot be listed on some block kinds; Notion answers those
    requests with an object_not_found error mentioning "Could not find block".
    """
    return BLOCK_NOT_FOUND_MESSAGE in str(error)


async def _collect_paginated(endpoint, operation: str, **kwargs) -> List[Dict[str, Any]]:
    results: List[Dict[str, Any]] = []
    cursor: Optional[str] = None

    while True:
        params = dict(kwargs)
        if cursor:
            params["start_cursor"] = cursor

        try:
            response = await endpoint(**params)
        except Exception as e:
            raise _wrap_error(e) from e

        results.extend(response.get("results", []))

        cursor = response.get("next_cursor") if response.get("has_more") else None
        if not cursor:
            break

    logger.debug(operation, result_count=len(results), **kwargs)
    return results


async def list_block_children(
    client: AsyncClient,
    block_id: str,
    page_size: int = DEFAULT_PAGE_SIZE
) -> List[Dict[str, Any]]:
    """Fetch every child block of a page or block.

    Args:
        client: Notion client
        block_id: Page or block ID whose children to list
        page_size: Results per request, capped by Notion at 100 (default: 100)

    Returns:
        List of raw block payloads in document order

    Raises:
        NotionAPIError: If any page of results cannot be fetched
    """
    return await _collect_paginated(
        client.blocks.children.list,
        "block_children_listed",
        block_id=block_id,
        page_size=min(page_size, DEFAULT_PAGE_SIZE),
    )


async def list_comments(client: AsyncClient, block_id: str) -> List[Dict[str, Any]]:
    """Fetch every unresolved comment attached to a page or block.

    Passing a page ID returns page-level comments; passing a block ID returns
    the inline comments anchored to that block.

    Raises:
        NotionAPIError: If any page of results cannot be fetched
    """
    return await _collect_paginated(
        client.comments.list,
        "comments_listed",
        block_id=block_id,
    )


async def create_comment(client: AsyncClient, discussion_id: str, text: str) -> Dict[str, Any]:
    """Post a plain-text comment into an existing discussion thread.

    Raises:
        NotionAPIError: If Notion rejects the comment
    """
    try:
        return await client.comments.create(
            discussion_id=discussion_id,
            rich_text=[{"text": {"content": text}}],
        )
    except Exception as e:
        raise _wrap_error(e) from e


async def get_page_title(client: AsyncClient, page_id: str) -> Optional[str]:
    """Read a page's title, or None when it is unavailable or empty.

    The title lives in whichever page property has type "title"; its name
    differs between plain pages ("title") and database rows (e.g. "Name").
    """
    try:
        page = await client.pages.retrieve(page_id=page_id)
    except Exception as e:
        logger.debug("page_title_unavailable", page_id=page_id, error=str(e))
        return None

    for prop in (page.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            title = "".join(t.get("plain_text", "") for t in prop.get("title") or [])
            return title or None

    return None
