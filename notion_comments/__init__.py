"""Notion comment responder.

Polls Notion pages for new comments, asks a language-model responder for a
reply, and posts it back into the comment's discussion thread. Runs as a
background plugin inside a host runtime; see ``notion_comments.plugin``.
"""

PLUGIN_NAME = "notion-doc-comment"
__version__ = "0.2.0"
