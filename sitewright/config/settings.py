"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from sitewright.config.constants import (
    CHUNKING_COMBINED_IMAGE_THRESHOLD,
    CHUNKING_COMBINED_SIZE_THRESHOLD,
    CHUNKING_IMAGE_THRESHOLD,
    CHUNKING_SIZE_THRESHOLD,
    CHUNKING_TOKEN_THRESHOLD,
    DEFAULT_BUFFER_TOKENS,
    DEFAULT_CONFIG_FILE,
    DEFAULT_EFFICIENT_BUDGET,
    DEFAULT_HIGH_BUDGET,
    DEFAULT_LLM_TIMEOUT,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_CHUNK_TOKENS,
    DEFAULT_MAX_OUTPUT_TOKENS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_TIER_MAX_TOKENS,
    DEFAULT_TIER_MODELS,
    DEFAULT_WINDOW_SECONDS,
    ESSENTIAL_CONTENT_CHARS,
    HERO_CANDIDATE_IMAGE_CHARS,
    INLINE_SCRIPT_LIMIT,
    INTER_CHUNK_DELAY_SECONDS,
    LARGE_INLINE_IMAGE_CHARS,
    LARGE_SVG_CHARS,
    MIN_MIXED_CHARS,
    MIN_SECTION_CHARS,
    OPTIMIZATION_THRESHOLD_KB,
    PLACEHOLDER_CHUNK_SECONDS,
    TIER_EFFICIENT,
    TIER_HIGH,
)


class TierConfig(BaseModel):
    """A model tier: the concrete model id and its provider quota."""

    model: str
    max_tokens: int = Field(ge=1)  # Tokens allowed per sliding window
    window_seconds: float = Field(default=DEFAULT_WINDOW_SECONDS, gt=0)


def _default_tiers() -> dict[str, TierConfig]:
    return {
        tier: TierConfig(model=DEFAULT_TIER_MODELS[tier], max_tokens=DEFAULT_TIER_MAX_TOKENS[tier])
        for tier in (TIER_HIGH, TIER_EFFICIENT)
    }


class RoutingConfig(BaseModel):
    """Per-minute token budgets the router hands out to each tier."""

    high_budget: int = Field(default=DEFAULT_HIGH_BUDGET, ge=0)
    efficient_budget: int = Field(default=DEFAULT_EFFICIENT_BUDGET, ge=0)
    buffer_tokens: int = Field(default=DEFAULT_BUFFER_TOKENS, ge=0)
    max_chunk_tokens: int = Field(default=DEFAULT_MAX_CHUNK_TOKENS, ge=1)


class ChunkingConfig(BaseModel):
    """Section extraction and image classification thresholds."""

    min_section_chars: int = Field(default=MIN_SECTION_CHARS, ge=0)
    min_mixed_chars: int = Field(default=MIN_MIXED_CHARS, ge=0)
    inline_script_limit: int = Field(default=INLINE_SCRIPT_LIMIT, ge=0)
    large_inline_image_chars: int = LARGE_INLINE_IMAGE_CHARS
    hero_candidate_image_chars: int = HERO_CANDIDATE_IMAGE_CHARS
    max_chunk_tokens: int = Field(default=DEFAULT_MAX_CHUNK_TOKENS, ge=1)

    # Chunked vs. single-request decision
    size_threshold: int = CHUNKING_SIZE_THRESHOLD
    combined_size_threshold: int = CHUNKING_COMBINED_SIZE_THRESHOLD
    token_threshold: int = CHUNKING_TOKEN_THRESHOLD
    image_threshold: int = CHUNKING_IMAGE_THRESHOLD
    combined_image_threshold: int = CHUNKING_COMBINED_IMAGE_THRESHOLD


class StreamingConfig(BaseModel):
    """Sequential streaming behaviour."""

    inter_chunk_delay: float = Field(default=INTER_CHUNK_DELAY_SECONDS, ge=0)
    placeholder_chunk_seconds: float = Field(default=PLACEHOLDER_CHUNK_SECONDS, ge=0)


class OptimizationConfig(BaseModel):
    """Upstream content reduction."""

    enabled: bool = True
    threshold_kb: float = OPTIMIZATION_THRESHOLD_KB
    essential_content_chars: int = ESSENTIAL_CONTENT_CHARS
    large_svg_chars: int = LARGE_SVG_CHARS
    restore_lost_images: bool = True


class OpenAIConfig(BaseModel):
    """OpenAI client configuration."""

    api_key: str | None = None  # Falls back to OPENAI_API_KEY
    base_url: str | None = None
    timeout: int = DEFAULT_LLM_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS


class SitewrightSettings(BaseSettings):
    """Main configuration class for Sitewright."""

    model_config = SettingsConfigDict(
        env_prefix="SITEWRIGHT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=DEFAULT_CONFIG_FILE),
            file_secret_settings,
        )

    tiers: dict[str, TierConfig] = Field(default_factory=_default_tiers)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    optimization: OptimizationConfig = Field(default_factory=OptimizationConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR
    output_dir: str = DEFAULT_OUTPUT_DIR

    def model_for_tier(self, tier: str) -> str:
        """Return the concrete model id configured for a tier."""
        if tier in self.tiers:
            return self.tiers[tier].model
        return DEFAULT_TIER_MODELS.get(tier, tier)


@lru_cache
def get_settings() -> SitewrightSettings:
    """Get cached settings instance."""
    return SitewrightSettings()


def reload_settings() -> SitewrightSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
