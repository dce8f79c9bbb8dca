"""Response dispatch: prompt the responder, post the reply into the thread."""

from typing import Optional

import structlog

from notion_comments.notion import create_comment
from notion_comments.prompts import RESPONDER_FAILURE_REPLY, build_prompt
from notion_comments.utils.errors import ResponderError

logger = structlog.get_logger(__name__)


class ResponseDispatcher:
    """Turns a comment into a reply and posts it back to Notion.

    Args:
        responder: Object with ``async complete(prompt) -> str``
        notion_client: Notion client used for posting replies
        retry_on_responder_failure: When true, responder failures propagate as
            ResponderError so the comment stays unprocessed and is retried next
            cycle. When false (default), an apology is returned as the reply.
    """

    def __init__(self, responder, notion_client, retry_on_responder_failure: bool = False):
        self.responder = responder
        self.notion_client = notion_client
        self.retry_on_responder_failure = retry_on_responder_failure

    async def dispatch(
        self,
        comment_text: str,
        page_title: Optional[str] = None,
        quote: Optional[str] = None
    ) -> str:
        """Generate reply text for a comment.

        Raises:
            ResponderError: Only when retry_on_responder_failure is set
        """
        prompt = build_prompt(comment_text, page_title=page_title, quote=quote)

        try:
            return await self.responder.complete(prompt)
        except ResponderError as e:
            logger.error("responder_failed", error=str(e), has_quote=quote is not None)
            if self.retry_on_responder_failure:
                raise
            return e.reply_text or RESPONDER_FAILURE_REPLY
        except Exception as e:
            logger.error(
                "responder_failed",
                error=str(e),
                error_type=type(e).__name__,
                has_quote=quote is not None
            )
            if self.retry_on_responder_failure:
                raise ResponderError(str(e)) from e
            return RESPONDER_FAILURE_REPLY

    async def post_reply(self, discussion_id: str, reply_text: str) -> bool:
        """Post a reply into a discussion. Returns False instead of raising."""
        try:
            await create_comment(self.notion_client, discussion_id, reply_text)
        except Exception as e:
            logger.error(
                "reply_post_failed",
                discussion_id=discussion_id,
                error=str(e),
                error_type=type(e).__name__
            )
            return False
        return True
