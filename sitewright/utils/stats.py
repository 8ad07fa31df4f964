"""Redesign run statistics collection and reporting."""

from dataclasses import dataclass, field
from time import time
from typing import Any


@dataclass
class TierUsageStats:
    """Statistics for a single model tier."""

    tier: str
    model: str = ""
    chunks: int = 0
    succeeded: int = 0
    failed: int = 0
    tokens: int = 0
    total_duration: float = 0.0


@dataclass
class RunStats:
    """Statistics for one redesign run.

    ``mode`` is ``"single"`` when the whole page went out in one request and
    ``"chunked"`` when it was streamed section by section.
    """

    mode: str = "single"

    # Chunk counts
    total_chunks: int = 0
    succeeded_chunks: int = 0
    failed_chunks: int = 0

    # Images
    images_total: int = 0
    images_preserved: int = 0

    # Rate limiting
    rate_limit_waits: int = 0
    quota_rejections: int = 0
    total_wait_seconds: float = 0.0

    total_tokens: int = 0
    tier_usage: dict[str, TierUsageStats] = field(default_factory=dict)

    # Timing
    start_time: float = field(default_factory=time)
    end_time: float | None = None
    total_duration: float = 0.0

    @property
    def preservation_rate(self) -> float:
        if self.images_total == 0:
            return 1.0
        return self.images_preserved / self.images_total

    def add_chunk_result(
        self,
        tier: str,
        success: bool,
        tokens: int = 0,
        duration: float = 0.0,
        model: str = "",
    ) -> None:
        """Record the outcome of one generation call.

        Args:
            tier: Tier the chunk was routed to
            success: Whether the call produced a usable result
            tokens: Tokens charged for the call
            duration: Call duration in seconds
            model: Concrete model id behind the tier
        """
        if tier not in self.tier_usage:
            self.tier_usage[tier] = TierUsageStats(tier=tier, model=model)

        stats = self.tier_usage[tier]
        if model and not stats.model:
            stats.model = model
        stats.chunks += 1
        stats.tokens += tokens
        stats.total_duration += duration

        self.total_chunks += 1
        self.total_tokens += tokens
        if success:
            stats.succeeded += 1
            self.succeeded_chunks += 1
        else:
            stats.failed += 1
            self.failed_chunks += 1

    def finish(self) -> None:
        """Mark the run as complete and calculate final duration."""
        self.end_time = time()
        self.total_duration = self.end_time - self.start_time

    def format_summary(self) -> str:
        """Format statistics as a human-readable summary.

        Returns:
            Multi-line summary string
        """
        lines = []

        if self.mode == "chunked":
            lines.append(
                f"Complete: {self.succeeded_chunks}/{self.total_chunks} chunks, "
                f"{self.failed_chunks} failed"
            )
        else:
            lines.append("Complete: single request")

        lines.append(f"Total: {self.total_duration:.0f}s")

        if self.images_total > 0:
            lines.append(
                f"Images: {self.images_preserved}/{self.images_total} preserved "
                f"({self.preservation_rate:.0%})"
            )

        if self.total_tokens > 0:
            lines.append(f"Tokens: {self.total_tokens:,}")

        if self.rate_limit_waits or self.quota_rejections:
            lines.append(
                f"Rate limiting: {self.rate_limit_waits} waits "
                f"({self.total_wait_seconds:.1f}s), {self.quota_rejections} rejections"
            )

        if self.tier_usage:
            tier_parts = [
                f"{t}:{s.model or '?'}({s.chunks})" for t, s in self.tier_usage.items()
            ]
            lines.append(f"Tiers used: {', '.join(tier_parts)}")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        """Convert statistics to dictionary for JSON serialization."""
        return {
            "mode": self.mode,
            "chunks": {
                "total": self.total_chunks,
                "succeeded": self.succeeded_chunks,
                "failed": self.failed_chunks,
            },
            "images": {
                "total": self.images_total,
                "preserved": self.images_preserved,
                "preservation_rate": round(self.preservation_rate, 4),
            },
            "rate_limiting": {
                "waits": self.rate_limit_waits,
                "quota_rejections": self.quota_rejections,
                "total_wait_seconds": round(self.total_wait_seconds, 2),
            },
            "duration": round(self.total_duration, 2),
            "tokens": self.total_tokens,
            "tier_usage": {
                tier: {
                    "model": stats.model,
                    "chunks": stats.chunks,
                    "succeeded": stats.succeeded,
                    "failed": stats.failed,
                    "tokens": stats.tokens,
                    "duration": round(stats.total_duration, 2),
                }
                for tier, stats in self.tier_usage.items()
            },
        }
