"""Plugin configuration.

Configuration reaches the plugin from two places: the host runtime's plugin
entry (``plugins.entries.notion-doc-comment``) and a legacy ``config.json``
in the plugin's data directory. Host values win. Keys are camelCase in both
sources and exposed as snake_case attributes.

Secrets resolve in priority order: inline value, then the named environment
variable, then a host-level fallback (``channels.notion.apiKey`` for the
Notion key).
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from notion_comments import PLUGIN_NAME

logger = structlog.get_logger(__name__)

CONFIG_FILENAME = "config.json"


def get_env(name: Optional[str]) -> str:
    """Value of an environment variable, or "" when unnamed or unset."""
    if not name:
        return ""
    return os.environ.get(name, "")


def first_non_empty(*values: Optional[str]) -> str:
    """First value that is a non-blank string, stripped; "" if none."""
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


class PluginConfig(BaseModel):
    """Validated plugin settings.

    Attributes:
        enabled: When false, no polling happens
        poll_interval_minutes: Cycle period
        index_page: Page whose links define the watch list
        watched_pages: Static watch list, also the fallback when the index is empty
        integration_user_id: The integration's own author ID, for self-reply suppression
        retry_on_responder_failure: Leave comments unprocessed when the responder
            fails instead of posting an apology
        responder_max_retries: Retries per endpoint for transient responder errors
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enabled: bool = True
    poll_interval_minutes: float = Field(default=15, gt=0, alias="pollIntervalMinutes")
    index_page: Optional[str] = Field(default=None, alias="indexPage")
    watched_pages: List[str] = Field(default_factory=list, alias="watchedPages")
    integration_user_id: Optional[str] = Field(default=None, alias="integrationUserId")

    notion_api_key: Optional[str] = Field(default=None, alias="notionApiKey")
    notion_api_key_env: Optional[str] = Field(default=None, alias="notionApiKeyEnv")

    ai_base_url: Optional[str] = Field(default=None, alias="aiBaseUrl")
    ai_api_key: Optional[str] = Field(default=None, alias="aiApiKey")
    ai_api_key_env: Optional[str] = Field(default=None, alias="aiApiKeyEnv")
    ai_model: Optional[str] = Field(default=None, alias="aiModel")
    use_gateway_chat_completions: bool = Field(default=True, alias="useGatewayChatCompletions")
    gateway_base_url: Optional[str] = Field(default=None, alias="gatewayBaseUrl")
    gateway_api_key: Optional[str] = Field(default=None, alias="gatewayApiKey")
    gateway_api_key_env: Optional[str] = Field(default=None, alias="gatewayApiKeyEnv")
    system_prompt: Optional[str] = Field(default=None, alias="systemPrompt")

    retry_on_responder_failure: bool = Field(default=False, alias="retryOnResponderFailure")
    responder_max_retries: int = Field(default=2, ge=0, alias="responderMaxRetries")

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_minutes * 60

    def resolve_notion_api_key(self, fallback: Optional[str] = None) -> str:
        return first_non_empty(self.notion_api_key, get_env(self.notion_api_key_env), fallback)

    def resolve_ai_api_key(self) -> str:
        return first_non_empty(self.ai_api_key, get_env(self.ai_api_key_env))

    def resolve_gateway_api_key(self) -> str:
        return first_non_empty(self.gateway_api_key, get_env(self.gateway_api_key_env))


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read the legacy config.json; missing or unreadable files yield {}."""
    path = Path(path)
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("config_file_unreadable", path=str(path), error=str(e))
        return {}

    if not isinstance(data, dict):
        logger.warning("config_file_unreadable", path=str(path), error="top-level value is not an object")
        return {}
    return data


def plugin_entry(host_config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """The host's ``plugins.entries.notion-doc-comment`` record, or {}."""
    entries = ((host_config or {}).get("plugins") or {}).get("entries") or {}
    return entries.get(PLUGIN_NAME) or {}


def host_notion_api_key(host_config: Optional[Dict[str, Any]]) -> Optional[str]:
    """Shared Notion key from ``channels.notion.apiKey``."""
    return (((host_config or {}).get("channels") or {}).get("notion") or {}).get("apiKey")


def build_plugin_config(
    host_config: Optional[Dict[str, Any]],
    file_config: Optional[Dict[str, Any]] = None
) -> PluginConfig:
    """Merge file and host settings into a PluginConfig.

    Args:
        host_config: Full host configuration passed to the plugin
        file_config: Contents of the legacy config.json

    Raises:
        ValidationError: If the merged settings are invalid (e.g. non-positive interval)
    """
    entry = plugin_entry(host_config)
    merged: Dict[str, Any] = {**(file_config or {}), **(entry.get("config") or {})}
    merged["enabled"] = entry.get("enabled", True)

    try:
        return PluginConfig.model_validate(merged)
    except ValidationError as e:
        logger.error("plugin_config_invalid", errors=e.errors(include_url=False))
        raise
