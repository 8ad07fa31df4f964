"""LLM integration: provider, prompts and redesign generation."""

from sitewright.llm.base import BaseLLMProvider, LLMMessage, LLMResponse, TokenUsage
from sitewright.llm.generator import (
    GenerationCollaborator,
    GenerationOutput,
    GenerationRequest,
    RedesignGenerator,
)
from sitewright.llm.openai import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "GenerationCollaborator",
    "GenerationOutput",
    "GenerationRequest",
    "LLMMessage",
    "LLMResponse",
    "OpenAIProvider",
    "RedesignGenerator",
    "TokenUsage",
]
