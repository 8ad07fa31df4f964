"""Core processing module for Sitewright."""

from sitewright.core.pipeline import PipelineResult, RedesignPipeline, RedesignPlan
from sitewright.core.streaming import (
    ChunkResult,
    StreamingMetrics,
    StreamingOrchestrator,
    StreamingProgress,
    StreamingResult,
)

__all__ = [
    "RedesignPipeline",
    "RedesignPlan",
    "PipelineResult",
    "StreamingOrchestrator",
    "StreamingResult",
    "StreamingMetrics",
    "StreamingProgress",
    "ChunkResult",
]
