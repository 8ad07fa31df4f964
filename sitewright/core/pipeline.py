"""Redesign pipeline.

Decides between one whole-page request and the chunked, rate-limited
streaming pass, and wires the pieces together for a single run:

1. Reduce oversized payloads (keeping every image)
2. Decide single vs. chunked processing
3. Chunk, split oversized chunks, route, stream (chunked mode)
4. Collect run statistics
"""

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from sitewright.config.constants import CHARS_PER_TOKEN, TIER_HIGH
from sitewright.config.settings import SitewrightSettings, get_settings
from sitewright.core.streaming import (
    ProgressCallback,
    StreamingOrchestrator,
    StreamingResult,
)
from sitewright.exceptions import GenerationError
from sitewright.image.analyzer import ImageAnalysis, ImageAnalyzer
from sitewright.llm.generator import GenerationCollaborator, GenerationRequest
from sitewright.markup.chunker import ContentChunk, ContentChunker
from sitewright.markup.optimizer import ContentOptimizer, ImagePreservationReport
from sitewright.models import RedesignRequest, RedesignResponse, WebsiteData
from sitewright.routing.router import (
    CostEstimate,
    FeasibilityReport,
    ModelRouter,
    ModelSelection,
    RoutingMetrics,
    RoutingStrategy,
)
from sitewright.utils.logging import get_logger
from sitewright.utils.rate_limiter import RateLimiterManager
from sitewright.utils.stats import RunStats

log = get_logger(__name__)


@dataclass
class RedesignPlan:
    """What a chunked run would do, computed without any network call."""

    chunks: list[ContentChunk]
    routing: dict[str, ModelSelection]
    image_analysis: ImageAnalysis
    feasibility: FeasibilityReport
    metrics: RoutingMetrics
    suggested_strategy: RoutingStrategy
    cost: CostEstimate
    estimated_seconds: int
    chunked: bool = True


@dataclass
class PipelineResult:
    """Result of a redesign run."""

    response: RedesignResponse
    mode: str
    stats: RunStats
    plan: RedesignPlan | None = None
    streaming: StreamingResult | None = None
    preservation: ImagePreservationReport | None = None
    warnings: list[str] = field(default_factory=list)


class RedesignPipeline:
    """Runs one redesign request end to end.

    A fresh :class:`RateLimiterManager` and :class:`ModelRouter` are built
    for every run, so runs never share quota bookkeeping.

    Args:
        settings: Application settings (defaults to the cached settings)
        generator: Generation collaborator; an OpenAI-backed
            :class:`RedesignGenerator` is created on first use when omitted
        clock: Monotonic clock used by the limiter and the orchestrator
        sleep: Awaitable sleep used while waiting for quota
    """

    def __init__(
        self,
        settings: SitewrightSettings | None = None,
        generator: GenerationCollaborator | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self._generator = generator
        self._clock = clock
        self._sleep = sleep

        self.analyzer = ImageAnalyzer(self.settings.chunking)
        self.chunker = ContentChunker(self.settings.chunking, self.analyzer)
        self.optimizer = ContentOptimizer(self.settings.optimization, self.analyzer)

    @property
    def tier_models(self) -> dict[str, str]:
        return {tier: config.model for tier, config in self.settings.tiers.items()}

    def _get_generator(self) -> GenerationCollaborator:
        """Lazily create the default generator."""
        if self._generator is None:
            from sitewright.llm.generator import RedesignGenerator
            from sitewright.llm.openai import OpenAIProvider

            provider = OpenAIProvider.from_config(
                self.settings.openai, model=self.settings.model_for_tier(TIER_HIGH)
            )
            self._generator = RedesignGenerator(
                provider,
                tier_models=self.tier_models,
                max_output_tokens=self.settings.openai.max_output_tokens,
            )
        return self._generator

    def _new_limiter(self) -> RateLimiterManager:
        return RateLimiterManager.from_settings(self.settings, clock=self._clock)

    def _new_router(self, limiter: RateLimiterManager) -> ModelRouter:
        return ModelRouter(
            strategy=RoutingStrategy.from_config(self.settings.routing),
            limiter=limiter,
            tier_models=self.tier_models,
            max_chunk_tokens=self.settings.routing.max_chunk_tokens,
        )

    def should_use_chunked_processing(self, website: WebsiteData) -> bool:
        """Decide whether a page is too large or too image-heavy for one request."""
        config = self.settings.chunking
        total_size = len(website.html) + len(website.css) + len(website.javascript)
        estimated_tokens = math.ceil(total_size / CHARS_PER_TOKEN)
        image_count = self.analyzer.analyze(website.html).count

        reasons = {
            "large_content": total_size > config.size_threshold,
            "high_tokens": estimated_tokens > config.token_threshold,
            "many_images": image_count > config.image_threshold,
            "combined": (
                total_size > config.combined_size_threshold
                and image_count > config.combined_image_threshold
            ),
        }
        chunked = any(reasons.values())
        log.info(
            "Processing mode decided",
            mode="chunked" if chunked else "single",
            total_size=total_size,
            estimated_tokens=estimated_tokens,
            images=image_count,
            reasons=[name for name, hit in reasons.items() if hit],
        )
        return chunked

    def reduce_content(
        self, website: WebsiteData
    ) -> tuple[WebsiteData, ImagePreservationReport | None]:
        """Shrink an oversized page, checking that no image went missing."""
        if not self.optimizer.needs_optimization(website.html, website.css, website.javascript):
            return website, None

        log.info("Optimizing content before processing", url=website.url or None)
        optimized = self.optimizer.optimize(website.html, website.css, website.javascript)
        report = self.optimizer.validate_image_preservation(website.html, optimized.html)
        if not report.success:
            log.warning("Image preservation issues detected", issues=report.issues)

        reduced = website.model_copy(
            update={
                "html": optimized.html,
                "css": optimized.css,
                "javascript": optimized.javascript,
            }
        )
        return reduced, report

    def plan(self, website: WebsiteData, limiter: RateLimiterManager | None = None) -> RedesignPlan:
        """Chunk and route a page without contacting any model."""
        limiter = limiter or self._new_limiter()
        router = self._new_router(limiter)

        chunking = self.chunker.chunk(website.html, website.css, website.javascript)
        chunks = self.chunker.split_oversized_chunks(
            chunking.chunks, self.settings.routing.max_chunk_tokens
        )

        feasibility = router.validate_feasibility(chunks)
        for issue in feasibility.issues:
            log.warning("Routing feasibility issue", issue=issue)

        routing = router.route_chunks(chunks)
        return RedesignPlan(
            chunks=chunks,
            routing=routing,
            image_analysis=chunking.image_analysis,
            feasibility=feasibility,
            metrics=router.analyze_routing_metrics(chunks, routing),
            suggested_strategy=router.suggest_optimal_strategy(chunks),
            cost=router.estimate_cost(routing),
            estimated_seconds=router.estimate_processing_time(routing),
            chunked=self.should_use_chunked_processing(website),
        )

    @staticmethod
    def _base_request(request: RedesignRequest, website: WebsiteData) -> GenerationRequest:
        return GenerationRequest(
            html=website.html,
            instructions=request.user_instructions,
            css=website.css,
            javascript=website.javascript,
            title=website.title,
            description=website.description,
            url=website.url,
            design_style=request.design_style,
            target_audience=request.target_audience,
            primary_color=request.primary_color,
        )

    async def run(
        self,
        request: RedesignRequest,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineResult:
        """Redesign a website.

        Args:
            request: Validated submission
            on_progress: Optional progress sink (chunked mode only)
            cancel_event: Stops a chunked pass before the next chunk when set

        Returns:
            PipelineResult with the redesigned page and run statistics

        Raises:
            GenerationError: The single request failed, or no chunk succeeded
            LLMError: Provider failure in single-request mode
        """
        website, preservation = self.reduce_content(request.original_website)
        warnings = list(preservation.issues) if preservation else []

        if self.should_use_chunked_processing(website):
            result = await self._run_chunked(request, website, on_progress, cancel_event)
        else:
            result = await self._run_single(request, website)

        result.preservation = preservation
        result.warnings = warnings + result.warnings
        return result

    async def _run_single(self, request: RedesignRequest, website: WebsiteData) -> PipelineResult:
        stats = RunStats(mode="single")
        stats.images_total = self.analyzer.analyze(website.html).count
        model = self.settings.model_for_tier(TIER_HIGH)

        base = self._base_request(request, website)
        base.tier = TIER_HIGH
        base.model = model

        started = self._clock()
        try:
            output = await self._get_generator().generate(base)
        except Exception:
            stats.add_chunk_result(TIER_HIGH, False, duration=self._clock() - started, model=model)
            stats.finish()
            raise

        tokens = output.tokens_used or 0
        stats.add_chunk_result(
            TIER_HIGH, True, tokens=tokens, duration=self._clock() - started, model=model
        )
        stats.images_preserved = stats.images_total
        stats.finish()

        log.info("Single-request redesign complete", model=output.model or model, tokens=tokens)
        return PipelineResult(response=output.response, mode="single", stats=stats)

    async def _run_chunked(
        self,
        request: RedesignRequest,
        website: WebsiteData,
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event | None,
    ) -> PipelineResult:
        limiter = self._new_limiter()
        plan = self.plan(website, limiter)

        log.info(
            "Website chunked",
            chunks=len(plan.chunks),
            images=plan.image_analysis.count,
            critical_images=len(plan.image_analysis.critical_images),
            product_images=len(plan.image_analysis.product_images),
            high_chunks=plan.metrics.high_chunks,
            efficient_chunks=plan.metrics.efficient_chunks,
        )

        orchestrator = StreamingOrchestrator(
            self._get_generator(),
            limiter,
            config=self.settings.streaming,
            sleep=self._sleep,
            clock=self._clock,
        )
        streaming = await orchestrator.process(
            plan.chunks,
            plan.routing,
            self._base_request(request, website),
            on_progress=on_progress,
            cancel_event=cancel_event,
        )

        stats = RunStats(mode="chunked")
        for chunk_result in streaming.chunks:
            if not chunk_result.tier:
                continue
            stats.add_chunk_result(
                chunk_result.tier,
                chunk_result.success,
                tokens=chunk_result.tokens_used,
                duration=chunk_result.processing_time,
                model=chunk_result.model,
            )
        stats.images_total = streaming.metrics.images_total
        stats.images_preserved = streaming.metrics.images_preserved
        stats.rate_limit_waits = streaming.metrics.rate_limit_waits
        stats.quota_rejections = streaming.metrics.quota_rejections
        stats.total_wait_seconds = streaming.metrics.total_wait_time
        stats.finish()

        if not streaming.success or streaming.result is None:
            detail = "; ".join(streaming.errors) or "no chunk succeeded"
            raise GenerationError(f"Chunked processing failed: {detail}")

        return PipelineResult(
            response=streaming.result,
            mode="chunked",
            stats=stats,
            plan=plan,
            streaming=streaming,
            warnings=list(streaming.warnings),
        )
