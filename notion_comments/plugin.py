"""Host plugin entry point.

The host runtime calls ``create_plugin(ctx)`` with its configuration, then
awaits ``start()`` on the returned plugin and ``stop()`` on shutdown. The
plugin owns its Notion client, responder, state store and scheduler; nothing
is held in module globals.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from notion_comments import PLUGIN_NAME, __version__
from notion_comments.ai_client import ChatResponder
from notion_comments.config import (
    CONFIG_FILENAME,
    PluginConfig,
    build_plugin_config,
    host_notion_api_key,
    load_config_file,
)
from notion_comments.dispatcher import ResponseDispatcher
from notion_comments.notion import get_notion_client
from notion_comments.poller import CycleSummary, poll_notion_comments
from notion_comments.scheduler import DEFAULT_STARTUP_DELAY_SECONDS, PollScheduler
from notion_comments.storage import STATE_FILENAME, StateStore
from notion_comments.utils.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


class NotionCommentPlugin:
    """A configured, startable comment responder.

    Attributes:
        config: Validated plugin settings
        notion: Notion client
        dispatcher: Response dispatcher
        store: Processed state store
        scheduler: Owner of the recurring poll task
    """

    def __init__(
        self,
        config: PluginConfig,
        notion,
        dispatcher: ResponseDispatcher,
        store: StateStore,
        startup_delay_seconds: float = DEFAULT_STARTUP_DELAY_SECONDS
    ):
        self.config = config
        self.notion = notion
        self.dispatcher = dispatcher
        self.store = store
        self.scheduler = PollScheduler(
            self.poll,
            interval_seconds=config.poll_interval_seconds,
            startup_delay_seconds=startup_delay_seconds,
        )

    @property
    def descriptor(self) -> Dict[str, str]:
        return {"name": PLUGIN_NAME, "version": __version__}

    async def poll(self) -> CycleSummary:
        """Run a single poll cycle now."""
        return await poll_notion_comments(self.config, self.notion, self.dispatcher, self.store)

    async def start(self) -> Dict[str, str]:
        self.scheduler.start()
        return self.descriptor

    async def stop(self) -> None:
        await self.scheduler.stop()


def create_plugin(
    ctx: Dict[str, Any],
    data_dir: Optional[Union[str, Path]] = None
) -> Optional[NotionCommentPlugin]:
    """Build the plugin from the host context.

    Args:
        ctx: Host context; ``ctx["config"]`` is the host configuration. Set
            ``ctx["setup_logging"]`` to have the plugin configure structlog.
        data_dir: Directory holding config.json and state.json (default: cwd)

    Returns:
        The plugin, or None when it is disabled or no Notion key is configured
    """
    if ctx.get("setup_logging"):
        setup_logging()

    host_config = ctx.get("config") or {}
    base_dir = Path(data_dir) if data_dir is not None else Path.cwd()

    try:
        config = build_plugin_config(host_config, load_config_file(base_dir / CONFIG_FILENAME))
    except ValidationError:
        # build_plugin_config already logged the field errors
        return None

    notion_api_key = config.resolve_notion_api_key(host_notion_api_key(host_config))
    if not notion_api_key:
        logger.error(
            "notion_api_key_missing",
            hint="Set notionApiKey/notionApiKeyEnv (recommended) or channels.notion.apiKey"
        )
        return None

    if not config.enabled:
        logger.info("plugin_disabled")
        return None

    notion = get_notion_client(notion_api_key)
    dispatcher = ResponseDispatcher(
        ChatResponder.from_config(config),
        notion,
        retry_on_responder_failure=config.retry_on_responder_failure,
    )
    store = StateStore(base_dir / STATE_FILENAME)

    logger.info(
        "plugin_initialized",
        index_page=config.index_page,
        watched_page_count=len(config.watched_pages),
        poll_interval_minutes=config.poll_interval_minutes
    )
    return NotionCommentPlugin(config, notion, dispatcher, store)
