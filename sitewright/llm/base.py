"""Base classes for LLM providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from sitewright.exceptions import LLMError, RateLimitError

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger


@dataclass
class ResponseFormat:
    """Requested output format.

    ``json_object`` asks the provider to emit a single JSON object
    (OpenAI ``response_format={"type": "json_object"}``).
    """

    type: Literal["json_object", "text"] = "json_object"

    def to_openai(self) -> dict[str, str]:
        return {"type": self.type}


@dataclass
class TokenUsage:
    """Token usage information."""

    prompt_tokens: int
    completion_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens used."""
        return self.prompt_tokens + self.completion_tokens


@dataclass
class LLMMessage:
    """A message in a conversation."""

    role: str  # "system", "user", "assistant"
    content: str

    @classmethod
    def system(cls, content: str) -> "LLMMessage":
        """Create a system message."""
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "LLMMessage":
        """Create a user message."""
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> "LLMMessage":
        """Create an assistant message."""
        return cls(role="assistant", content=content)


@dataclass
class LLMResponse:
    """Response from an LLM."""

    content: str
    usage: TokenUsage | None
    model: str
    finish_reason: str


def is_rate_limit_message(text: str) -> bool:
    """True when an error text describes a quota or rate rejection."""
    lowered = text.lower()
    return "rate_limit" in lowered or "rate limit" in lowered or "429" in lowered


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name: str = "base"

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        max_tokens: int | None = None,
        response_format: ResponseFormat | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion.

        Args:
            messages: List of messages in the conversation
            max_tokens: Maximum tokens to generate
            response_format: Optional structured output request
            **kwargs: Provider-specific arguments (``model`` overrides the default)

        Returns:
            LLM response
        """
        ...

    async def validate(self) -> bool:
        """Validate the provider configuration.

        Returns:
            True if the provider is properly configured
        """
        return True

    def _handle_api_error(
        self,
        error: Exception,
        operation: str,
        log: "BoundLogger",
        retry_after: float | None = None,
    ) -> None:
        """Translate a provider error into the package's exception types.

        Raises:
            RateLimitError: If the error indicates a rate limit
            LLMError: For all other errors
        """
        if is_rate_limit_message(str(error)):
            log.warning(f"{self.name} {operation} rate limited", retry_after=retry_after)
            raise RateLimitError(retry_after) from error
        log.error(f"{self.name} {operation} error", error=str(error))
        raise LLMError(f"{self.name} {operation} error: {error}") from error

    def _convert_messages(self, messages: list[LLMMessage]) -> list[dict[str, Any]]:
        return [{"role": msg.role, "content": msg.content} for msg in messages]
