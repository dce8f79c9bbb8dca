"""Prompt templates for replying to Notion comments.

Replies are written in Chinese, the working language of the documents this
responder serves. The user prompt is a pure function of the comment text and
two optional pieces of context: the page title and the quoted passage of an
inline comment.
"""

from typing import Optional


SYSTEM_PROMPT = (
    "你是一个友好、专业的 AI 助手。用户在 Notion 文档中发表了评论，请用简洁的中文回复。"
    "不要使用 Markdown 格式。"
)

# Replies posted instead of a model answer
EMPTY_RESPONSE_REPLY = "抱歉，我暂时无法处理这条评论。"
GATEWAY_UNAVAILABLE_REPLY = "抱歉，AI 网关暂时不可用，请稍后再试。"
NOT_CONFIGURED_REPLY = "抱歉，AI 回复功能未配置。"
RESPONDER_FAILURE_REPLY = "抱歉，处理评论时遇到了问题，请稍后再试。"

_REPLY_INSTRUCTION = "请回复这条评论。"


def build_prompt(
    comment_text: str,
    page_title: Optional[str] = None,
    quote: Optional[str] = None
) -> str:
    """Build the user prompt for a comment.

    Args:
        comment_text: Plain text of the comment to answer
        page_title: Title of the page the comment is on, when known
        quote: Passage an inline comment is anchored to

    Returns:
        Prompt framing the comment as an inline annotation (quote present) or
        a whole-page comment (no quote)
    """
    if quote:
        if page_title:
            location = f"用户在 Notion 页面「{page_title}」中对以下内容划词评论："
        else:
            location = "用户在 Notion 文档中对以下内容划词评论："
        return f"{location}\n\n引用内容：「{quote}」\n\n评论：{comment_text}\n\n{_REPLY_INSTRUCTION}"

    if page_title:
        return f"用户在 Notion 页面「{page_title}」中发表了评论：{comment_text}\n\n{_REPLY_INSTRUCTION}"
    return f"用户在 Notion 文档中发表了评论：{comment_text}\n\n{_REPLY_INSTRUCTION}"
