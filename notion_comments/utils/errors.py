"""Error Handling Utilities

Exception types shared across the poll pipeline, async retry logic with
exponential backoff for transient responder failures, and a collector for
non-fatal warnings raised during a single poll cycle.

Failure tiers:
    - Configuration absence: ConfigurationError, the plugin does not start
    - Transient per-resource failure: logged, recorded in CycleWarnings, siblings continue
    - Responder failure: ResponderError, degraded to an apology reply by the dispatcher
    - Reply-post failure: comment left unprocessed so the next cycle retries it
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type, TypeVar


T = TypeVar('T')


class ConfigurationError(Exception):
    """Required configuration (credentials, endpoints) could not be resolved."""
    pass


class NotionAPIError(Exception):
    """A Notion API call failed.

    Attributes:
        code: Notion error code when the service returned one (e.g. "object_not_found")
        status: HTTP status when known
    """

    def __init__(self, message: str, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status


class ResponderError(Exception):
    """The language-model responder could not produce a reply.

    Attributes:
        reply_text: User-safe text to post instead, when the failure has a
            specific explanation (gateway down, responder not configured)
    """

    def __init__(self, message: str, reply_text: Optional[str] = None):
        super().__init__(message)
        self.reply_text = reply_text


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)
) -> T:
    """Await a coroutine factory with exponential backoff retry logic.

    Args:
        fn: Zero-argument callable returning a fresh awaitable on each call
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay cap in seconds (default: 30.0)
        retryable_exceptions: Tuple of exception types to retry on (default: all exceptions)

    Returns:
        The result of the awaited call on successful execution

    Raises:
        The final exception if all retries are exhausted, or immediately if the exception
        type is not in retryable_exceptions

    Backoff schedule (base_delay=1.0, max_delay=30.0):
        - Attempt 1: immediate
        - Attempt 2: wait 1.0s (base_delay * 2^0)
        - Attempt 3: wait 2.0s (base_delay * 2^1)
        - etc., capped at max_delay
    """
    for attempt in range(max_retries + 1):
        try:
            return await fn()
        except Exception as e:
            if not isinstance(e, retryable_exceptions):
                raise

            if attempt >= max_retries:
                raise

            delay = min(base_delay * (2 ** attempt), max_delay)
            await asyncio.sleep(delay)

    raise RuntimeError("Unreachable code")


# Supported warning types for a poll cycle
WARNING_TYPE_PAGE_FAILED = "page_failed"
WARNING_TYPE_BLOCK_COMMENTS_FAILED = "block_comments_failed"
WARNING_TYPE_RESPONDER_FAILED = "responder_failed"
WARNING_TYPE_REPLY_FAILED = "reply_failed"

VALID_WARNING_TYPES = {
    WARNING_TYPE_PAGE_FAILED,
    WARNING_TYPE_BLOCK_COMMENTS_FAILED,
    WARNING_TYPE_RESPONDER_FAILED,
    WARNING_TYPE_REPLY_FAILED,
}


class CycleWarnings:
    """Collector for non-fatal warnings during one poll cycle.

    Accumulates warning events with type, message, timestamp, and context so
    the cycle summary can report what was skipped and why.

    Example:
        >>> warnings = CycleWarnings()
        >>> warnings.append(
        ...     "block_comments_failed",
        ...     "Failed to list comments for block",
        ...     {"page_id": "p1", "block_id": "b1"}
        ... )
        >>> warnings.to_json()
        '[{"type": "block_comments_failed", "message": "...", "timestamp": "...", "context": {...}}]'
    """

    def __init__(self):
        self._warnings: List[Dict[str, Any]] = []

    def append(self, warning_type: str, message: str, context: Dict[str, Any]) -> None:
        """Add a warning with type, message, timestamp, and context.

        Raises:
            ValueError: If warning_type is not in VALID_WARNING_TYPES
        """
        if warning_type not in VALID_WARNING_TYPES:
            raise ValueError(
                f"Invalid warning_type '{warning_type}'. "
                f"Must be one of: {', '.join(sorted(VALID_WARNING_TYPES))}"
            )

        self._warnings.append({
            "type": warning_type,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "context": context
        })

    def count(self, warning_type: Optional[str] = None) -> int:
        """Number of collected warnings, optionally of a single type."""
        if warning_type is None:
            return len(self._warnings)
        return sum(1 for w in self._warnings if w["type"] == warning_type)

    def __len__(self) -> int:
        return len(self._warnings)

    def to_json(self) -> Optional[str]:
        """Serialize warnings to a JSON array string, or None if nothing was collected."""
        if not self._warnings:
            return None
        return json.dumps(self._warnings, ensure_ascii=False)
