"""OpenAI LLM provider implementation."""

from typing import Any

import openai
from openai import AsyncOpenAI

from sitewright.config.constants import (
    DEFAULT_LLM_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIER_MODELS,
    TIER_HIGH,
)
from sitewright.config.settings import OpenAIConfig
from sitewright.exceptions import LLMError, RateLimitError
from sitewright.llm.base import (
    BaseLLMProvider,
    LLMMessage,
    LLMResponse,
    ResponseFormat,
    TokenUsage,
)
from sitewright.utils.logging import get_logger

log = get_logger(__name__)


def _retry_after(error: openai.APIStatusError) -> float | None:
    value = error.response.headers.get("retry-after") if error.response is not None else None
    try:
        return float(value) if value else None
    except ValueError:
        return None


class OpenAIProvider(BaseLLMProvider):
    """OpenAI API provider using official SDK.

    The model can be overridden per call with ``model=...``, which is how
    chunks routed to different tiers share a single client.
    """

    name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_TIER_MODELS[TIER_HIGH],
        base_url: str | None = None,
        timeout: int = DEFAULT_LLM_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        """Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            model: Default model
            base_url: Optional custom base URL (for proxies/compatible APIs)
            timeout: Request timeout in seconds
            max_retries: Retries performed by the SDK on 429 and 5xx responses
        """
        self.model = model
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    @classmethod
    def from_config(cls, config: OpenAIConfig, model: str | None = None) -> "OpenAIProvider":
        return cls(
            api_key=config.api_key,
            model=model or DEFAULT_TIER_MODELS[TIER_HIGH],
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def complete(
        self,
        messages: list[LLMMessage],
        max_tokens: int | None = None,
        response_format: ResponseFormat | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion using OpenAI API.

        Args:
            messages: List of messages
            max_tokens: Maximum completion tokens
            response_format: Optional structured output request
            **kwargs: Additional arguments passed to the API

        Returns:
            LLM response
        """
        model = kwargs.pop("model", None) or self.model
        try:
            # Build request params, excluding None values (OpenAI API rejects null)
            request_params: dict[str, Any] = {
                "model": model,
                "messages": self._convert_messages(messages),
            }
            if max_tokens is not None:
                request_params["max_completion_tokens"] = max_tokens
            if response_format is not None:
                request_params["response_format"] = response_format.to_openai()
            for k, v in kwargs.items():
                if v is not None:
                    request_params[k] = v

            response = await self.client.chat.completions.create(
                **request_params  # type: ignore[arg-type]
            )
        except openai.RateLimitError as e:
            retry_after = _retry_after(e)
            log.warning("OpenAI rate limited", model=model, retry_after=retry_after)
            raise RateLimitError(retry_after) from e
        except Exception as e:
            self._handle_api_error(e, "API", log)
            raise

        if not response.choices:
            raise LLMError(f"{self.name} API error: empty response from {model}")

        choice = response.choices[0]
        usage = None
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
            )

        log.debug(
            "OpenAI completion",
            model=response.model,
            tokens=usage.total_tokens if usage else 0,
            finish_reason=choice.finish_reason,
        )

        return LLMResponse(
            content=choice.message.content or "",
            usage=usage,
            model=response.model,
            finish_reason=choice.finish_reason or "unknown",
        )

    async def validate(self) -> bool:
        """Validate the OpenAI provider configuration.

        Returns:
            True if the provider is properly configured
        """
        try:
            # Make a minimal API call to verify credentials
            await self.client.models.list()
            return True
        except Exception as e:
            log.warning("OpenAI validation failed", error=str(e))
            return False
