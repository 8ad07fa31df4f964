"""Redesign generation on top of an LLM provider.

:class:`RedesignGenerator` turns a page (or one section of a page) into a
prompt, sends it to the model behind the requested tier and validates the
JSON object that comes back into a :class:`RedesignResponse`.
"""

import json
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError as PydanticValidationError

from sitewright.config.constants import DEFAULT_MAX_OUTPUT_TOKENS, DEFAULT_TIER_MODELS, TIER_HIGH
from sitewright.exceptions import GenerationError
from sitewright.llm.base import BaseLLMProvider, LLMMessage, ResponseFormat
from sitewright.llm.prompts import (
    SectionContext,
    build_iteration_prompt,
    build_redesign_prompt,
    build_system_prompt,
)
from sitewright.models import RedesignResponse
from sitewright.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class GenerationRequest:
    """Everything needed for one generation call."""

    html: str
    instructions: str
    css: str = ""
    javascript: str = ""
    title: str = ""
    description: str = ""
    url: str = ""
    design_style: str | None = None
    target_audience: str | None = None
    primary_color: str | None = None
    tier: str = TIER_HIGH
    model: str | None = None  # Overrides the tier's configured model
    section: SectionContext | None = None


@dataclass
class GenerationOutput:
    """A validated response and what it cost."""

    response: RedesignResponse
    tokens_used: int | None = None  # As reported by the provider
    model: str | None = None


@runtime_checkable
class GenerationCollaborator(Protocol):
    """Anything that can turn a :class:`GenerationRequest` into a response."""

    async def generate(self, request: GenerationRequest) -> GenerationOutput: ...


def _find_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span, ignoring braces inside strings."""
    start = text.find("{")
    while start >= 0:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            char = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        start = text.find("{", start + 1)
    return None


def extract_json(text: str) -> dict[str, Any]:
    """Pull the JSON object out of a model reply.

    Handles replies wrapped in Markdown code fences or surrounded by prose.

    Raises:
        GenerationError: If no parseable JSON object is found
    """
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
        stripped = stripped.strip()

    candidates = [stripped]
    balanced = _find_json_object(stripped)
    if balanced:
        candidates.append(balanced)
    first, last = stripped.find("{"), stripped.rfind("}")
    if 0 <= first < last:
        candidates.append(stripped[first : last + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    preview = stripped[:100]
    raise GenerationError(f"No valid JSON found in model response: {preview!r}", raw_response=text)


def parse_response(text: str) -> RedesignResponse:
    """Validate a model reply into a :class:`RedesignResponse`.

    Raises:
        GenerationError: If the reply is not JSON or lacks required fields
    """
    data = extract_json(text)
    try:
        return RedesignResponse.model_validate(data)
    except PydanticValidationError as e:
        raise GenerationError(f"Malformed redesign response: {e}", raw_response=text) from e


class RedesignGenerator:
    """Default :class:`GenerationCollaborator` backed by an LLM provider.

    Args:
        provider: The LLM provider used for every call
        tier_models: Concrete model id behind each tier
        max_output_tokens: Completion token cap per call
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        tier_models: dict[str, str] | None = None,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> None:
        self.provider = provider
        self.tier_models = dict(tier_models or DEFAULT_TIER_MODELS)
        self.max_output_tokens = max_output_tokens

    def model_for(self, request: GenerationRequest) -> str:
        return request.model or self.tier_models.get(request.tier, request.tier)

    async def generate(self, request: GenerationRequest) -> GenerationOutput:
        """Redesign a page or a page section.

        Raises:
            RateLimitError: The provider rejected the call for quota reasons
            GenerationError: The reply could not be turned into a response
            LLMError: Any other provider failure
        """
        messages = [
            LLMMessage.system(build_system_prompt(request.section)),
            LLMMessage.user(
                build_redesign_prompt(
                    html=request.html,
                    css=request.css,
                    javascript=request.javascript,
                    instructions=request.instructions,
                    title=request.title,
                    description=request.description,
                    url=request.url,
                    design_style=request.design_style,
                    target_audience=request.target_audience,
                    primary_color=request.primary_color,
                )
            ),
        ]
        return await self._run(messages, self.model_for(request))

    async def iterate(
        self,
        design: RedesignResponse,
        feedback: str,
        iteration: int = 1,
        tier: str = TIER_HIGH,
    ) -> GenerationOutput:
        """Refine an existing design from user feedback."""
        messages = [
            LLMMessage.user(
                build_iteration_prompt(
                    html=design.html,
                    css=design.css,
                    javascript=design.javascript,
                    feedback=feedback,
                    iteration=iteration,
                )
            )
        ]
        return await self._run(messages, self.tier_models.get(tier, tier))

    async def _run(self, messages: list[LLMMessage], model: str) -> GenerationOutput:
        response = await self.provider.complete(
            messages,
            max_tokens=self.max_output_tokens,
            response_format=ResponseFormat(),
            model=model,
        )
        if response.finish_reason == "length":
            log.warning("Model output hit the token cap, response may be truncated", model=model)

        try:
            redesign = parse_response(response.content)
        except GenerationError:
            log.error(
                "Unusable model response",
                model=model,
                finish_reason=response.finish_reason,
                preview=response.content[:200],
            )
            raise

        return GenerationOutput(
            response=redesign,
            tokens_used=response.usage.total_tokens if response.usage else None,
            model=response.model or model,
        )
