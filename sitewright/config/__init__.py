"""Configuration module for Sitewright."""

from sitewright.config.settings import (
    ChunkingConfig,
    OpenAIConfig,
    OptimizationConfig,
    RoutingConfig,
    SitewrightSettings,
    StreamingConfig,
    TierConfig,
    get_settings,
    reload_settings,
)

__all__ = [
    "SitewrightSettings",
    "TierConfig",
    "RoutingConfig",
    "ChunkingConfig",
    "StreamingConfig",
    "OptimizationConfig",
    "OpenAIConfig",
    "get_settings",
    "reload_settings",
]
