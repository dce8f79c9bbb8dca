"""Index page resolution.

An index page is a regular Notion page whose contents list the pages to
watch: sub-pages, link-to-page blocks, or hyperlinks to other Notion pages
inside ordinary text. Resolution is recomputed every poll cycle.
"""

import re
from typing import Iterable, List
from urllib.parse import unquote

import structlog

from notion_comments.models.notion_models import (
    Block,
    ChildDatabaseBlock,
    ChildPageBlock,
    LinkToPageBlock,
    TextBlock,
    parse_block,
)
from notion_comments.notion import list_block_children

logger = structlog.get_logger(__name__)

# Notion URLs end in the page ID: https://www.notion.so/Page-Title-<32 hex>
TRAILING_HEX_ID = re.compile(r"([a-f0-9]{32})\s*$", re.IGNORECASE)
UUID_ID = re.compile(r"([a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})", re.IGNORECASE)


def hyphenate_id(raw: str) -> str:
    """Format a bare 32-hex page ID as a UUID (8-4-4-4-12)."""
    return f"{raw[0:8]}-{raw[8:12]}-{raw[12:16]}-{raw[16:20]}-{raw[20:]}"


BARE_HEX_ID = re.compile(r"[a-f0-9]{32}", re.IGNORECASE)


def normalize_page_id(page_id: str) -> str:
    """Hyphenate a configured bare 32-hex ID so it matches resolved IDs; others pass through."""
    page_id = page_id.strip()
    if BARE_HEX_ID.fullmatch(page_id):
        return hyphenate_id(page_id)
    return page_id


def page_ids_from_url(url: str) -> List[str]:
    """Extract candidate page IDs from a Notion URL.

    The trailing bare-hex form and an embedded UUID form are matched
    independently; both may contribute.
    """
    decoded = unquote(url)
    found = []

    trailing = TRAILING_HEX_ID.search(decoded)
    if trailing:
        found.append(hyphenate_id(trailing.group(1)))

    uuid_match = UUID_ID.search(decoded)
    if uuid_match:
        found.append(uuid_match.group(1))

    return found


class _OrderedIds:
    """Insertion-ordered, deduplicated ID list."""

    def __init__(self):
        self._ids: List[str] = []
        self._seen = set()

    def add(self, page_id: str) -> bool:
        if page_id in self._seen:
            return False
        self._seen.add(page_id)
        self._ids.append(page_id)
        return True

    def to_list(self) -> List[str]:
        return list(self._ids)


def extract_page_links(blocks: Iterable[Block]) -> List[str]:
    """Collect watched page IDs from the blocks of an index page.

    Args:
        blocks: Parsed blocks of the index page, in document order

    Returns:
        Deduplicated page IDs in first-seen order
    """
    page_ids = _OrderedIds()

    for block in blocks:
        if isinstance(block, ChildPageBlock):
            if page_ids.add(block.id):
                logger.info("child_page_found", page_id=block.id, title=block.title)
            continue

        if isinstance(block, ChildDatabaseBlock):
            continue

        if isinstance(block, LinkToPageBlock):
            if block.page_id and page_ids.add(block.page_id):
                logger.info("link_to_page_found", page_id=block.page_id)
            continue

        if isinstance(block, TextBlock):
            for run in block.rich_text:
                for url in (run.link_url, run.href):
                    if not url:
                        continue
                    for page_id in page_ids_from_url(url):
                        if page_ids.add(page_id):
                            logger.info("linked_page_found", page_id=page_id)

    result = page_ids.to_list()
    logger.info("index_links_extracted", page_count=len(result))
    return result


async def resolve_watched_pages(client, index_page_id: str) -> List[str]:
    """Resolve the pages linked from an index page.

    An unreachable or empty index page yields an empty list; callers fall back
    to the static watch list in that case.
    """
    try:
        payloads = await list_block_children(client, index_page_id)
    except Exception as e:
        logger.error(
            "index_page_fetch_failed",
            index_page_id=index_page_id,
            error=str(e),
            error_type=type(e).__name__
        )
        return []

    if not payloads:
        logger.warning("index_page_empty", index_page_id=index_page_id)
        return []

    return extract_page_links(parse_block(payload) for payload in payloads)
