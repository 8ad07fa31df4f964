"""Tier routing for content chunks.

Image-critical chunks go to the high-capability tier, text-heavy chunks to
the cost-efficient tier. Each tier has a per-minute token budget; the router
spends those budgets in chunk priority order, except that a chunk carrying
critical or product images always goes to the high-capability tier even
when its budget is exhausted. Such overruns are logged and counted.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from sitewright.config.constants import (
    COST_PER_1K_TOKENS,
    DEFAULT_BUFFER_TOKENS,
    DEFAULT_EFFICIENT_BUDGET,
    DEFAULT_HIGH_BUDGET,
    DEFAULT_MAX_CHUNK_TOKENS,
    DEFAULT_TIER_MODELS,
    GENERATION_TOKENS_PER_SECOND,
    IMAGE_HEAVY_IMAGE_RATIO,
    TEXT_HEAVY_IMAGE_RATIO,
    TIER_EFFICIENT,
    TIER_HIGH,
)
from sitewright.config.settings import RoutingConfig
from sitewright.markup.chunker import PRIORITY_ORDER, ContentChunk
from sitewright.utils.logging import get_logger
from sitewright.utils.rate_limiter import RateLimiterManager

log = get_logger(__name__)


@dataclass
class RoutingStrategy:
    """Per-minute token budgets handed to each tier."""

    name: str = "Image-Preserving Hybrid"
    description: str = "High-capability tier for critical images, efficient tier for text"
    high_budget: int = DEFAULT_HIGH_BUDGET
    efficient_budget: int = DEFAULT_EFFICIENT_BUDGET
    buffer_tokens: int = DEFAULT_BUFFER_TOKENS

    @property
    def total_budget(self) -> int:
        return self.high_budget + self.efficient_budget

    @classmethod
    def from_config(cls, config: RoutingConfig) -> "RoutingStrategy":
        return cls(
            high_budget=config.high_budget,
            efficient_budget=config.efficient_budget,
            buffer_tokens=config.buffer_tokens,
        )


@dataclass
class ModelSelection:
    """Routing decision for one chunk."""

    tier: str
    model: str
    reasoning: str
    estimated_tokens: int
    can_process: bool = True
    wait_time: float = 0.0  # Seconds until the limiter would admit the chunk


@dataclass
class FeasibilityReport:
    """Whether a chunk set fits the strategy, with suggested remedies."""

    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def feasible(self) -> bool:
        return not self.issues


@dataclass
class RoutingMetrics:
    """Aggregate view of a routing map."""

    total_chunks: int = 0
    high_chunks: int = 0
    efficient_chunks: int = 0
    critical_images: int = 0
    total_images: int = 0
    estimated_processing_minutes: int = 0
    high_tokens: int = 0
    efficient_tokens: int = 0
    total_budget: int = 0
    budget_overruns: int = 0


@dataclass
class CostEstimate:
    high: float = 0.0
    efficient: float = 0.0

    @property
    def total(self) -> float:
        return self.high + self.efficient


@dataclass
class _ChunkProfile:
    image_count: int
    has_critical_images: bool
    has_product_images: bool
    has_hero_images: bool
    image_token_ratio: float

    @property
    def is_text_heavy(self) -> bool:
        return self.image_token_ratio < TEXT_HEAVY_IMAGE_RATIO

    @property
    def is_image_heavy(self) -> bool:
        return self.image_token_ratio > IMAGE_HEAVY_IMAGE_RATIO


def _profile(chunk: ContentChunk) -> _ChunkProfile:
    return _ChunkProfile(
        image_count=len(chunk.images),
        has_critical_images=any(image.importance == "critical" for image in chunk.images),
        has_product_images=any(image.importance == "product" for image in chunk.images),
        has_hero_images=chunk.has_hero_images,
        image_token_ratio=chunk.image_token_ratio,
    )


def requires_high_tier(chunk: ContentChunk) -> bool:
    """True when a chunk must not be routed to the efficient tier."""
    return chunk.has_critical_images or chunk.priority == "critical"


class ModelRouter:
    """Assigns chunks to model tiers.

    Args:
        strategy: Token budgets per tier
        limiter: Used to report whether each selection could run right now
        tier_models: Concrete model id behind each tier
        max_chunk_tokens: Per-chunk ceiling used by the feasibility check
    """

    def __init__(
        self,
        strategy: RoutingStrategy | None = None,
        limiter: RateLimiterManager | None = None,
        tier_models: Mapping[str, str] | None = None,
        max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS,
    ) -> None:
        self.strategy = strategy or RoutingStrategy()
        self.limiter = limiter or RateLimiterManager()
        self.tier_models = dict(tier_models or DEFAULT_TIER_MODELS)
        self.max_chunk_tokens = max_chunk_tokens
        self.budget_overruns = 0

    def model_for(self, tier: str) -> str:
        return self.tier_models.get(tier, tier)

    def _select(self, chunk: ContentChunk, tier: str, reasoning: str) -> ModelSelection:
        tokens = chunk.estimated_tokens
        can_process = self.limiter.can_process(tier, tokens)
        wait_time = (
            0.0 if can_process else self.limiter.wait_time_for_tokens(tier, tokens, record=False)
        )
        return ModelSelection(
            tier=tier,
            model=self.model_for(tier),
            reasoning=reasoning,
            estimated_tokens=tokens,
            can_process=can_process,
            wait_time=wait_time,
        )

    def route_chunk(self, chunk: ContentChunk) -> ModelSelection:
        """Route a single chunk on its content alone, ignoring budgets."""
        profile = _profile(chunk)
        if profile.has_critical_images or profile.has_product_images:
            tier = TIER_HIGH
        elif profile.has_hero_images or chunk.priority == "high":
            tier = TIER_HIGH
        elif profile.is_image_heavy and profile.image_count > 2:
            tier = TIER_HIGH
        else:
            tier = TIER_EFFICIENT
        return self._select(chunk, tier, self._reasoning(chunk, profile, tier))

    def route_chunks(self, chunks: Sequence[ContentChunk]) -> dict[str, ModelSelection]:
        """Route every chunk once, spending tier budgets in priority order.

        Returns:
            Mapping of chunk id to selection, in routing order
        """
        routing: dict[str, ModelSelection] = {}
        used = {TIER_HIGH: 0, TIER_EFFICIENT: 0}
        budgets = {
            TIER_HIGH: self.strategy.high_budget,
            TIER_EFFICIENT: self.strategy.efficient_budget,
        }
        self.budget_overruns = 0

        def has_headroom(tier: str, tokens: int) -> bool:
            return used[tier] + tokens <= budgets[tier]

        for chunk in sorted(chunks, key=lambda c: PRIORITY_ORDER[c.priority]):
            if chunk.id in routing:
                log.warning("Chunk already routed, skipping duplicate", chunk_id=chunk.id)
                continue

            profile = _profile(chunk)
            tokens = chunk.estimated_tokens
            over_budget = False

            if chunk.has_critical_images:
                tier = TIER_HIGH
                if not has_headroom(TIER_HIGH, tokens):
                    over_budget = True
                    self.budget_overruns += 1
                    log.warning(
                        "High tier budget exceeded, routing critical images anyway",
                        chunk_id=chunk.id,
                        tokens=tokens,
                        used=used[TIER_HIGH],
                        budget=budgets[TIER_HIGH],
                    )
            elif (profile.has_hero_images or chunk.priority == "high") and has_headroom(
                TIER_HIGH, tokens
            ):
                tier = TIER_HIGH
            elif (
                profile.image_count == 0
                and profile.is_text_heavy
                and has_headroom(TIER_EFFICIENT, tokens)
            ):
                tier = TIER_EFFICIENT
            else:
                tier = TIER_HIGH if profile.image_count > 0 else TIER_EFFICIENT

            used[tier] += tokens
            reasoning = self._reasoning(chunk, profile, tier, over_budget=over_budget)
            routing[chunk.id] = self._select(chunk, tier, reasoning)

        log.info(
            "Chunks routed",
            chunks=len(routing),
            high_tokens=used[TIER_HIGH],
            efficient_tokens=used[TIER_EFFICIENT],
            budget_overruns=self.budget_overruns,
        )
        return routing

    def analyze_routing_metrics(
        self, chunks: Sequence[ContentChunk], routing: Mapping[str, ModelSelection]
    ) -> RoutingMetrics:
        metrics = RoutingMetrics(
            total_chunks=len(chunks),
            total_budget=self.strategy.total_budget,
            budget_overruns=self.budget_overruns,
        )
        max_wait = 0.0
        for chunk in chunks:
            selection = routing.get(chunk.id)
            if selection is None:
                continue
            if selection.tier == TIER_HIGH:
                metrics.high_chunks += 1
                metrics.high_tokens += selection.estimated_tokens
            else:
                metrics.efficient_chunks += 1
                metrics.efficient_tokens += selection.estimated_tokens
            metrics.critical_images += sum(
                1 for image in chunk.images if image.importance in ("critical", "product")
            )
            metrics.total_images += len(chunk.images)
            max_wait = max(max_wait, selection.wait_time)
        metrics.estimated_processing_minutes = math.ceil(max_wait / 60)
        return metrics

    def validate_feasibility(self, chunks: Sequence[ContentChunk]) -> FeasibilityReport:
        """Check a chunk set against the strategy's budgets.

        Problems are reported, never raised.
        """
        report = FeasibilityReport()

        total_tokens = sum(chunk.estimated_tokens for chunk in chunks)
        total_budget = self.strategy.total_budget
        if total_tokens > total_budget:
            report.issues.append(
                f"Total tokens ({total_tokens}) exceed available budget ({total_budget})"
            )
            report.recommendations.append(
                "Consider splitting request into multiple processing rounds"
            )

        critical_tokens = sum(
            chunk.estimated_tokens for chunk in chunks if chunk.has_critical_images
        )
        if critical_tokens > self.strategy.high_budget:
            report.issues.append(
                f"Critical image content ({critical_tokens} tokens) exceeds "
                f"high tier budget ({self.strategy.high_budget})"
            )
            report.recommendations.append(
                "Increase high tier budget allocation or process in multiple rounds"
            )

        oversized = [chunk for chunk in chunks if chunk.estimated_tokens > self.max_chunk_tokens]
        if oversized:
            report.issues.append(f"{len(oversized)} chunks exceed recommended size limit")
            report.recommendations.append("Split oversized chunks into smaller sections")

        return report

    def suggest_optimal_strategy(self, chunks: Sequence[ContentChunk]) -> RoutingStrategy:
        """Rebalance budgets by the share of chunks that carry images."""
        if not chunks:
            return RoutingStrategy()

        with_images = [chunk for chunk in chunks if chunk.images]
        image_ratio = len(with_images) / len(chunks)

        if image_ratio > IMAGE_HEAVY_IMAGE_RATIO:
            high_budget, efficient_budget = 25000, 5000
        elif image_ratio < TEXT_HEAVY_IMAGE_RATIO:
            high_budget, efficient_budget = 15000, 15000
        else:
            high_budget, efficient_budget = DEFAULT_HIGH_BUDGET, DEFAULT_EFFICIENT_BUDGET

        return RoutingStrategy(
            name=f"Optimized for {round(image_ratio * 100)}% image content",
            description=(
                f"Adjusted for content mix: {len(chunks)} chunks, "
                f"{len(with_images)} with images"
            ),
            high_budget=high_budget,
            efficient_budget=efficient_budget,
            buffer_tokens=self.strategy.buffer_tokens,
        )

    @staticmethod
    def estimate_cost(
        routing: Mapping[str, ModelSelection],
        rates: Mapping[str, float] | None = None,
    ) -> CostEstimate:
        """Very rough cost figure for a routing map (per 1K tokens rates)."""
        rates = rates or COST_PER_1K_TOKENS
        estimate = CostEstimate()
        for selection in routing.values():
            cost = selection.estimated_tokens / 1000 * rates.get(selection.tier, 0.0)
            if selection.tier == TIER_HIGH:
                estimate.high += cost
            else:
                estimate.efficient += cost
        return estimate

    @staticmethod
    def estimate_processing_time(routing: Mapping[str, ModelSelection]) -> int:
        """Seconds until the slowest selection would be done."""
        longest = 0.0
        for selection in routing.values():
            longest = max(
                longest,
                selection.wait_time + selection.estimated_tokens / GENERATION_TOKENS_PER_SECOND,
            )
        return math.ceil(longest)

    def _reasoning(
        self,
        chunk: ContentChunk,
        profile: _ChunkProfile,
        tier: str,
        over_budget: bool = False,
    ) -> str:
        reasons = []
        if profile.has_critical_images:
            reasons.append("contains critical images requiring preservation")
        if profile.has_product_images:
            reasons.append("contains product images essential for functionality")
        if profile.has_hero_images:
            reasons.append("contains hero/banner images")
        if profile.is_image_heavy:
            reasons.append(
                f"image-heavy content ({round(profile.image_token_ratio * 100)}% image tokens)"
            )
        if profile.is_text_heavy:
            reasons.append(
                f"text-heavy content ({round((1 - profile.image_token_ratio) * 100)}% text tokens)"
            )
        if chunk.priority == "critical":
            reasons.append("marked as critical priority")
        if over_budget:
            reasons.append("high tier budget exceeded")

        reason_text = ", ".join(reasons) if reasons else "default routing"
        return f"Using {self.model_for(tier)} ({tier}) - {reason_text}"
