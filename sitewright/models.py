"""Submission and response models.

These are the only pydantic models outside configuration. They validate
what enters the pipeline (a captured website plus redesign instructions)
and what comes back from the model. Field names are snake_case in Python
and camelCase on the wire.
"""

import re
from typing import Annotated, Any, Literal
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationInfo,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from sitewright.config.constants import (
    MAX_CSS_BYTES,
    MAX_DESCRIPTION_LENGTH,
    MAX_HTML_BYTES,
    MAX_IMAGES,
    MAX_INSTRUCTIONS_LENGTH,
    MAX_JS_BYTES,
    MAX_METADATA_ENTRIES,
    MAX_TITLE_LENGTH,
    MAX_URL_LENGTH,
)
from sitewright.exceptions import ValidationError

DesignStyle = Literal["modern", "minimal", "creative", "corporate"]

_UNSAFE_INSTRUCTIONS = re.compile(r"<script|javascript:|data:text/html", re.IGNORECASE)

MetadataKey = Annotated[str, StringConstraints(max_length=200)]
MetadataValue = Annotated[str, StringConstraints(max_length=1000)]

_PAYLOAD_BYTE_LIMITS = {
    "html": MAX_HTML_BYTES,
    "css": MAX_CSS_BYTES,
    "javascript": MAX_JS_BYTES,
}


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WebsiteData(_WireModel):
    """A captured website."""

    url: str = Field(default="", max_length=MAX_URL_LENGTH)
    html: str
    css: str = ""
    javascript: str = ""
    images: list[str] = Field(default_factory=list, max_length=MAX_IMAGES)
    title: str = Field(default="", max_length=MAX_TITLE_LENGTH)
    description: str = Field(default="", max_length=MAX_DESCRIPTION_LENGTH)
    metadata: dict[MetadataKey, MetadataValue] = Field(
        default_factory=dict, max_length=MAX_METADATA_ENTRIES
    )

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if value:
            parsed = urlparse(value)
            if not parsed.scheme or not (parsed.netloc or parsed.scheme == "file"):
                raise ValueError("Invalid URL format")
        return value

    @field_validator("html", "css", "javascript")
    @classmethod
    def _check_size(cls, value: str, info: ValidationInfo) -> str:
        limit = _PAYLOAD_BYTE_LIMITS[info.field_name]
        size = len(value.encode("utf-8"))
        if size > limit:
            raise ValueError(f"Content is {size} bytes, the limit is {limit} bytes")
        return value


class RedesignRequest(_WireModel):
    """A website plus what the user wants done with it."""

    original_website: WebsiteData
    user_instructions: str = Field(min_length=1, max_length=MAX_INSTRUCTIONS_LENGTH)
    design_style: DesignStyle | None = None
    target_audience: str | None = Field(default=None, max_length=100)
    primary_color: str | None = Field(
        default=None, max_length=20, pattern=r"^#[0-9A-Fa-f]{6}$|^[a-zA-Z]+$"
    )

    @field_validator("user_instructions")
    @classmethod
    def _check_instructions(cls, value: str) -> str:
        if _UNSAFE_INSTRUCTIONS.search(value):
            raise ValueError("Invalid characters in instructions")
        return value


class Assets(_WireModel):
    images: list[str] = Field(default_factory=list)
    fonts: list[str] = Field(default_factory=list)


class RedesignResponse(_WireModel):
    """A redesigned page (or page section) as returned by the model."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    html: str
    css: str = ""
    javascript: str = ""
    assets: Assets = Field(default_factory=Assets)
    design_rationale: str = ""
    improvements: list[str] = Field(default_factory=list)

    @field_validator("css", "javascript", "design_rationale", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("improvements", mode="before")
    @classmethod
    def _coerce_improvements(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return value


def _format_errors(error: PydanticValidationError) -> list[str]:
    issues = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        issues.append(f"{location}: {item['msg']}" if location else item["msg"])
    return issues


def parse_request(data: dict[str, Any]) -> RedesignRequest:
    """Validate a submission bundle.

    Raises:
        ValidationError: With one issue per offending field
    """
    try:
        return RedesignRequest.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid input data", _format_errors(e)) from e


def parse_website(data: dict[str, Any]) -> WebsiteData:
    """Validate a captured website on its own.

    Raises:
        ValidationError: With one issue per offending field
    """
    try:
        return WebsiteData.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid website data", _format_errors(e)) from e
