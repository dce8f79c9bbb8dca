"""Chat Completions Responder

This module wraps the official openai Python SDK to turn a prompt into reply
text. Two OpenAI-compatible endpoints are supported: a local gateway, tried
first by default, and an external API used as fallback (or alone when the
gateway is disabled).

Failures surface as ResponderError carrying a user-safe reply text; the
dispatcher decides whether to post that text or leave the comment for the
next cycle.
"""

from typing import Any, Dict, Optional

import openai
import structlog
from openai import APIConnectionError, APITimeoutError, InternalServerError, RateLimitError

from notion_comments.prompts import (
    EMPTY_RESPONSE_REPLY,
    GATEWAY_UNAVAILABLE_REPLY,
    NOT_CONFIGURED_REPLY,
    SYSTEM_PROMPT,
)
from notion_comments.utils.errors import ResponderError, retry_with_backoff

DEFAULT_GATEWAY_BASE_URL = "http://127.0.0.1:18789/v1"
DEFAULT_GATEWAY_MODEL = "openclaw:friday"
DEFAULT_EXTERNAL_BASE_URL = "https://right.codes/codex/v1"
DEFAULT_EXTERNAL_MODEL = "gpt-5.3-codex-xhigh"
GATEWAY_MODEL_PREFIX = "openclaw:"

# Gateways with auth disabled accept any bearer token
NO_API_KEY = "EMPTY"

TRANSIENT_ERRORS = (APIConnectionError, APITimeoutError, RateLimitError, InternalServerError)


def _get_logger():
    """Get logger instance (allows for easier mocking in tests)."""
    return structlog.get_logger(__name__)


def normalize_base_url(base_url: str) -> str:
    return base_url.rstrip("/")


class ChatResponder:
    """Prompt-in, text-out responder with gateway-first routing.

    Attributes:
        system_prompt: System message sent with every request
        use_gateway: Whether the local gateway is tried before the external API
        gateway_base_url / gateway_api_key / gateway_model: Local gateway endpoint
        external_base_url / external_api_key / external_model: External fallback endpoint
        max_retries: Retries per endpoint for transient errors
        max_tokens: Completion token cap per reply

    Example:
        >>> responder = ChatResponder(external_api_key="sk-...", use_gateway=False)
        >>> await responder.complete("用户在 Notion 文档中发表了评论：...")
        '好的，这里的指标指的是...'
    """

    def __init__(
        self,
        system_prompt: Optional[str] = None,
        use_gateway: bool = True,
        gateway_base_url: Optional[str] = None,
        gateway_api_key: str = "",
        ai_model: Optional[str] = None,
        external_base_url: Optional[str] = None,
        external_api_key: str = "",
        max_retries: int = 2,
        retry_base_delay: float = 1.0,
        max_tokens: int = 1024,
    ):
        self.system_prompt = system_prompt or SYSTEM_PROMPT
        self.use_gateway = use_gateway
        self.gateway_base_url = normalize_base_url(gateway_base_url or DEFAULT_GATEWAY_BASE_URL)
        self.gateway_api_key = gateway_api_key
        self.gateway_model = ai_model or DEFAULT_GATEWAY_MODEL
        self.external_base_url = normalize_base_url(external_base_url or DEFAULT_EXTERNAL_BASE_URL)
        self.external_api_key = external_api_key
        if ai_model and not ai_model.startswith(GATEWAY_MODEL_PREFIX):
            self.external_model = ai_model
        else:
            self.external_model = DEFAULT_EXTERNAL_MODEL
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.max_tokens = max_tokens
        self._clients: Dict[tuple, Any] = {}

    @classmethod
    def from_config(cls, config) -> "ChatResponder":
        """Build a responder from a PluginConfig with secrets already resolvable."""
        return cls(
            system_prompt=config.system_prompt,
            use_gateway=config.use_gateway_chat_completions,
            gateway_base_url=config.gateway_base_url,
            gateway_api_key=config.resolve_gateway_api_key(),
            ai_model=config.ai_model,
            external_base_url=config.ai_base_url,
            external_api_key=config.resolve_ai_api_key(),
            max_retries=config.responder_max_retries,
        )

    def _client_for(self, base_url: str, api_key: str):
        client = self._clients.get((base_url, api_key))
        if client is None:
            # retry_with_backoff is the only retry layer
            client = openai.AsyncOpenAI(base_url=base_url, api_key=api_key or NO_API_KEY, max_retries=0)
            self._clients[(base_url, api_key)] = client
        return client

    async def send_chat_completion(
        self,
        base_url: str,
        api_key: str,
        model: str,
        prompt: str,
    ) -> str:
        """Send one chat completion request, retrying transient errors.

        Returns:
            Assistant text, or EMPTY_RESPONSE_REPLY when the model returned nothing

        Raises:
            openai.APIError: After retries are exhausted, or immediately for
                non-transient errors
        """
        client = self._client_for(base_url, api_key)

        async def _create():
            return await client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
            )

        try:
            response = await retry_with_backoff(
                _create,
                max_retries=self.max_retries,
                base_delay=self.retry_base_delay,
                retryable_exceptions=TRANSIENT_ERRORS,
            )
        except Exception as e:
            _get_logger().error(
                "chat_completion_failed",
                base_url=base_url,
                model=model,
                error_type=type(e).__name__,
                error_message=str(e),
                prompt_length=len(prompt)
            )
            raise

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        _get_logger().info(
            "chat_completion_success",
            base_url=base_url,
            model=model,
            prompt_tokens=getattr(usage, "prompt_tokens", None),
            completion_tokens=getattr(usage, "completion_tokens", None),
            empty_content=not content
        )

        return content or EMPTY_RESPONSE_REPLY

    async def complete(self, prompt: str) -> str:
        """Produce reply text for a prompt.

        Raises:
            ResponderError: If no endpoint produced a reply. reply_text is set
                when the failure has a specific user-facing explanation.
        """
        if self.use_gateway:
            try:
                return await self.send_chat_completion(
                    self.gateway_base_url,
                    self.gateway_api_key,
                    self.gateway_model,
                    prompt,
                )
            except Exception as e:
                if not self.external_api_key:
                    raise ResponderError(
                        f"Gateway chat completions failed: {e}",
                        reply_text=GATEWAY_UNAVAILABLE_REPLY
                    ) from e
                _get_logger().warning("falling_back_to_external_api", error=str(e))

        if not self.external_api_key:
            _get_logger().error(
                "responder_not_configured",
                hint="Set aiApiKey/aiApiKeyEnv or enable gateway chat completions"
            )
            raise ResponderError("External AI API key not configured", reply_text=NOT_CONFIGURED_REPLY)

        try:
            return await self.send_chat_completion(
                self.external_base_url,
                self.external_api_key,
                self.external_model,
                prompt,
            )
        except Exception as e:
            raise ResponderError(f"External chat completions failed: {e}") from e
