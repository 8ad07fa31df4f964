"""Sequential, rate-limited processing of routed chunks.

The orchestrator walks chunks one at a time in routing order. Before each
chunk it asks the limiter whether the chunk's tier has room; if not it
sleeps for the computed wait and asks again. Each chunk then goes to the
generation collaborator exactly once. Failures are recorded on the chunk's
result and never stop the pass. Successful sections are stitched back into
one document at the end.

Per-chunk lifecycle::

    pending -> (waiting -> pending)* -> processing -> succeeded | failed
"""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Literal

from sitewright.config.settings import StreamingConfig
from sitewright.exceptions import AggregationError, RateLimitError
from sitewright.llm.base import is_rate_limit_message
from sitewright.llm.generator import GenerationCollaborator, GenerationRequest
from sitewright.llm.prompts import SectionContext
from sitewright.markup.chunker import SECTION_ORDER, ContentChunk
from sitewright.models import Assets, RedesignResponse
from sitewright.routing.router import ModelSelection
from sitewright.utils.logging import get_logger
from sitewright.utils.rate_limiter import RateLimiterManager

log = get_logger(__name__)

ChunkStatus = Literal["pending", "waiting", "processing", "succeeded", "failed"]

DOCUMENT_SHELL = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Redesigned Website</title>
</head>
<body>
{body}
</body>
</html>"""

CANCELLED = "cancelled"


@dataclass
class ChunkResult:
    """Outcome of one chunk."""

    chunk: ContentChunk
    tier: str
    model: str
    status: ChunkStatus = "pending"
    result: RedesignResponse | None = None
    processing_time: float = 0.0
    tokens_used: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status == "succeeded"


@dataclass
class StreamingProgress:
    """Snapshot handed to the progress callback.

    Attributes:
        current_chunk: 1-based index of the chunk being handled
        total_chunks: Number of chunks in the pass
        completed_chunks: Chunks that succeeded so far
        failed_chunks: Chunks that failed so far
        current_tier: Tier of the current chunk ("" once the pass is over)
        current_model: Model of the current chunk
        current_action: Human-readable description of what is happening
        estimated_time_remaining: Seconds
        tokens_by_tier: Tokens charged so far, per tier
        total_images: Images across all chunks
        preserved_images: Images in chunks that succeeded so far
    """

    current_chunk: int
    total_chunks: int
    completed_chunks: int
    failed_chunks: int
    current_tier: str
    current_model: str
    current_action: str
    estimated_time_remaining: float
    tokens_by_tier: dict[str, int]
    total_images: int
    preserved_images: int

    @property
    def total_tokens(self) -> int:
        return sum(self.tokens_by_tier.values())


@dataclass
class StreamingMetrics:
    """Final figures for a pass."""

    total_time: float = 0.0
    average_chunk_time: float = 0.0
    tokens_by_tier: dict[str, int] = field(default_factory=dict)
    chunks_by_tier: dict[str, int] = field(default_factory=dict)
    images_total: int = 0
    images_preserved: int = 0
    rate_limit_waits: int = 0
    quota_rejections: int = 0
    total_wait_time: float = 0.0

    @property
    def total_tokens(self) -> int:
        return sum(self.tokens_by_tier.values())

    @property
    def preservation_rate(self) -> float:
        if self.images_total == 0:
            return 1.0
        return self.images_preserved / self.images_total

    @property
    def rate_limit_events(self) -> int:
        return self.rate_limit_waits + self.quota_rejections


@dataclass
class StreamingResult:
    """Everything a pass produced."""

    success: bool
    result: RedesignResponse | None
    chunks: list[ChunkResult]
    metrics: StreamingMetrics
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def succeeded_chunks(self) -> list[ChunkResult]:
        return [chunk_result for chunk_result in self.chunks if chunk_result.success]

    @property
    def failed_chunks(self) -> list[ChunkResult]:
        return [chunk_result for chunk_result in self.chunks if chunk_result.status == "failed"]


ProgressCallback = Callable[[StreamingProgress], None]


def _document_position(chunk: ContentChunk) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", chunk.id))


def _section_instructions(instructions: str, chunk: ContentChunk) -> str:
    return (
        f"{instructions}\n\n"
        f"CONTEXT: This is the {chunk.type} section of a larger website. Keep it "
        "consistent with the overall design while focusing on this section. "
        f"PRESERVE ALL {len(chunk.images)} IMAGES in this section exactly."
    )


class _PassState:
    """Mutable bookkeeping for one pass."""

    def __init__(self, total_chunks: int, total_images: int) -> None:
        self.total_chunks = total_chunks
        self.total_images = total_images
        self.results: list[ChunkResult] = []
        self.tokens_by_tier: dict[str, int] = {}
        self.processing_times: list[float] = []
        self.preserved_images = 0
        self.rate_limit_waits = 0
        self.quota_rejections = 0
        self.total_wait_time = 0.0
        self.errors: list[str] = []
        self.warnings: list[str] = []

    @property
    def completed(self) -> int:
        return sum(1 for r in self.results if r.status == "succeeded")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status == "failed")


class StreamingOrchestrator:
    """Drives chunks through the limiter and the generation collaborator.

    Args:
        generator: Produces a redesigned section for a request
        limiter: Per-tier token accounting
        config: Inter-chunk delay and ETA placeholder
        sleep: Awaitable sleep, injectable for tests
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        generator: GenerationCollaborator,
        limiter: RateLimiterManager,
        config: StreamingConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.generator = generator
        self.limiter = limiter
        self.config = config or StreamingConfig()
        self._sleep = sleep
        self._clock = clock

    async def process(
        self,
        chunks: Sequence[ContentChunk],
        routing: Mapping[str, ModelSelection],
        base_request: GenerationRequest,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> StreamingResult:
        """Process every chunk once, in routing order.

        Args:
            chunks: Chunks to process
            routing: Selection per chunk id; its order is the processing order
            base_request: Page-level request fields (instructions, title, style, ...)
            on_progress: Optional progress sink
            cancel_event: When set, chunks not yet started are marked cancelled

        Returns:
            StreamingResult; ``success`` is False when no chunk succeeded
        """
        start = self._clock()
        order = {chunk_id: position for position, chunk_id in enumerate(routing)}
        ordered = sorted(chunks, key=lambda c: order.get(c.id, len(order)))
        state = _PassState(
            total_chunks=len(ordered),
            total_images=sum(len(chunk.images) for chunk in ordered),
        )

        log.info(
            "Streaming pass started",
            chunks=state.total_chunks,
            images=state.total_images,
        )

        for index, chunk in enumerate(ordered):
            if cancel_event is not None and cancel_event.is_set():
                self._cancel_remaining(ordered[index:], routing, state)
                break

            selection = routing.get(chunk.id)
            if selection is None:
                message = f"No routing found for chunk {chunk.id}"
                state.errors.append(message)
                state.results.append(
                    ChunkResult(chunk=chunk, tier="", model="", status="failed", error=message)
                )
                continue

            chunk_result = ChunkResult(chunk=chunk, tier=selection.tier, model=selection.model)
            state.results.append(chunk_result)

            self._report(
                on_progress,
                state,
                index,
                selection,
                f"Processing {chunk.type} section with {selection.model}",
            )

            await self._wait_for_admission(chunk_result, selection, state, index, on_progress)
            await self._run_chunk(chunk_result, selection, base_request, state, index)

            if index < len(ordered) - 1:
                await self._sleep(self.config.inter_chunk_delay)

        self._report(on_progress, state, state.total_chunks - 1, None, "Aggregating results...")

        aggregated: RedesignResponse | None = None
        try:
            aggregated = self.aggregate(state.results)
        except AggregationError as e:
            state.errors.append(str(e))
            log.error("Streaming pass produced no usable section", error=str(e))

        metrics = StreamingMetrics(
            total_time=self._clock() - start,
            average_chunk_time=(
                sum(state.processing_times) / len(state.processing_times)
                if state.processing_times
                else 0.0
            ),
            tokens_by_tier=dict(state.tokens_by_tier),
            chunks_by_tier=self._count_by_tier(state.results),
            images_total=state.total_images,
            images_preserved=state.preserved_images,
            rate_limit_waits=state.rate_limit_waits,
            quota_rejections=state.quota_rejections,
            total_wait_time=state.total_wait_time,
        )

        log.info(
            "Streaming pass finished",
            succeeded=state.completed,
            failed=state.failed,
            tokens=metrics.total_tokens,
            preservation_rate=round(metrics.preservation_rate, 3),
            rate_limit_events=metrics.rate_limit_events,
        )

        return StreamingResult(
            success=aggregated is not None,
            result=aggregated,
            chunks=state.results,
            metrics=metrics,
            errors=state.errors,
            warnings=state.warnings,
        )

    async def _wait_for_admission(
        self,
        chunk_result: ChunkResult,
        selection: ModelSelection,
        state: _PassState,
        index: int,
        on_progress: ProgressCallback | None,
    ) -> None:
        tier = selection.tier
        tokens = chunk_result.chunk.estimated_tokens

        while not self.limiter.can_process(tier, tokens):
            if self.limiter.current_usage(tier) == 0:
                # Larger than the whole quota; waiting longer cannot help
                message = (
                    f"Chunk {chunk_result.chunk.id} needs {tokens} tokens, more than the "
                    f"{tier} tier allows per window; sending it anyway"
                )
                state.warnings.append(message)
                log.warning(
                    "Chunk exceeds tier quota", chunk_id=chunk_result.chunk.id, tier=tier,
                    tokens=tokens,
                )
                break

            wait = self.limiter.wait_time_for_tokens(tier, tokens)
            chunk_result.status = "waiting"
            state.rate_limit_waits += 1
            state.total_wait_time += wait
            log.info(
                "Rate limited, waiting",
                chunk_id=chunk_result.chunk.id,
                tier=tier,
                wait_seconds=round(wait, 2),
            )
            self._report(
                on_progress,
                state,
                index,
                selection,
                f"Rate limited, waiting {wait:.0f}s...",
                extra_wait=wait,
            )

            self.limiter.increment_queued_requests(tier)
            try:
                await self._sleep(wait)
            finally:
                self.limiter.decrement_queued_requests(tier)
            chunk_result.status = "pending"

    async def _run_chunk(
        self,
        chunk_result: ChunkResult,
        selection: ModelSelection,
        base_request: GenerationRequest,
        state: _PassState,
        index: int,
    ) -> None:
        chunk = chunk_result.chunk
        request = replace(
            base_request,
            html=chunk.html,
            css=chunk.css,
            javascript=chunk.javascript,
            instructions=_section_instructions(base_request.instructions, chunk),
            tier=selection.tier,
            model=selection.model,
            section=SectionContext(
                section_type=chunk.type,
                tier=selection.tier,
                chunk_index=index + 1,
                total_chunks=state.total_chunks,
                image_count=len(chunk.images),
                has_critical_images=chunk.has_critical_images,
            ),
        )

        chunk_result.status = "processing"
        started = self._clock()
        try:
            output = await self.generator.generate(request)
        except Exception as e:
            chunk_result.processing_time = self._clock() - started
            chunk_result.status = "failed"
            chunk_result.error = str(e) or type(e).__name__
            state.processing_times.append(chunk_result.processing_time)
            state.errors.append(f"Failed to process chunk {chunk.id}: {chunk_result.error}")

            if isinstance(e, RateLimitError) or is_rate_limit_message(chunk_result.error):
                self.limiter.record_rate_limit_error(selection.tier)
                state.quota_rejections += 1

            log.warning(
                "Chunk failed",
                chunk_id=chunk.id,
                section=chunk.type,
                tier=selection.tier,
                error=chunk_result.error,
            )
            return

        chunk_result.processing_time = self._clock() - started
        state.processing_times.append(chunk_result.processing_time)

        tokens = output.tokens_used if output.tokens_used is not None else chunk.estimated_tokens
        self.limiter.consume_tokens(selection.tier, tokens)

        chunk_result.status = "succeeded"
        chunk_result.result = output.response
        chunk_result.tokens_used = tokens
        if output.model:
            chunk_result.model = output.model
        state.tokens_by_tier[selection.tier] = state.tokens_by_tier.get(selection.tier, 0) + tokens
        state.preserved_images += len(chunk.images)

        log.info(
            "Chunk processed",
            chunk_id=chunk.id,
            section=chunk.type,
            tier=selection.tier,
            tokens=tokens,
            duration=round(chunk_result.processing_time, 2),
        )

    def _cancel_remaining(
        self,
        remaining: Sequence[ContentChunk],
        routing: Mapping[str, ModelSelection],
        state: _PassState,
    ) -> None:
        for chunk in remaining:
            selection = routing.get(chunk.id)
            state.results.append(
                ChunkResult(
                    chunk=chunk,
                    tier=selection.tier if selection else "",
                    model=selection.model if selection else "",
                    status="failed",
                    error=CANCELLED,
                )
            )
        state.warnings.append(f"Processing cancelled, {len(remaining)} chunks not processed")
        log.warning("Streaming pass cancelled", remaining=len(remaining))

    def _estimate_remaining(self, state: _PassState, index: int) -> float:
        remaining = state.total_chunks - index
        if not state.processing_times:
            return remaining * self.config.placeholder_chunk_seconds
        average = sum(state.processing_times) / len(state.processing_times)
        return average * remaining

    def _report(
        self,
        on_progress: ProgressCallback | None,
        state: _PassState,
        index: int,
        selection: ModelSelection | None,
        action: str,
        extra_wait: float = 0.0,
    ) -> None:
        if on_progress is None:
            return
        done = selection is None
        on_progress(
            StreamingProgress(
                current_chunk=state.total_chunks if done else index + 1,
                total_chunks=state.total_chunks,
                completed_chunks=state.completed,
                failed_chunks=state.failed,
                current_tier="" if done else selection.tier,
                current_model="" if done else selection.model,
                current_action=action,
                estimated_time_remaining=(
                    0.0 if done else extra_wait + self._estimate_remaining(state, index)
                ),
                tokens_by_tier=dict(state.tokens_by_tier),
                total_images=state.total_images,
                preserved_images=state.preserved_images,
            )
        )

    @staticmethod
    def _count_by_tier(results: Sequence[ChunkResult]) -> dict[str, int]:
        counts: dict[str, int] = {}
        for chunk_result in results:
            if chunk_result.error == CANCELLED or not chunk_result.tier:
                continue
            counts[chunk_result.tier] = counts.get(chunk_result.tier, 0) + 1
        return counts

    @staticmethod
    def aggregate(results: Sequence[ChunkResult]) -> RedesignResponse:
        """Stitch succeeded sections into one document.

        Sections are ordered by document structure (header, nav, hero, main,
        product, gallery, aside, mixed leftovers), footer always last, and by
        document position within a section type.

        Raises:
            AggregationError: If no chunk succeeded
        """
        succeeded = [r for r in results if r.success and r.result is not None]
        if not succeeded:
            raise AggregationError("No chunks were processed successfully")

        def structural_key(chunk_result: ChunkResult) -> tuple[int, int, tuple[int, ...]]:
            chunk = chunk_result.chunk
            return (
                1 if chunk.type == "footer" else 0,
                SECTION_ORDER.index(chunk.type),
                _document_position(chunk),
            )

        ordered = sorted(succeeded, key=structural_key)

        html_parts: list[str] = []
        css_parts: list[str] = []
        js_parts: list[str] = []
        improvements: list[str] = []
        rationales: list[str] = []
        assets = Assets()
        preserved = 0

        for chunk_result in ordered:
            section = chunk_result.chunk.type
            response = chunk_result.result
            preserved += len(chunk_result.chunk.images)

            if response.html:
                html_parts.append(response.html)
            if response.css:
                css_parts.append(f"/* {section} section styles */\n{response.css}")
            if response.javascript:
                js_parts.append(f"// {section} section scripts\n{response.javascript}")
            improvements.extend(response.improvements)
            if response.design_rationale:
                rationales.append(f"{section}: {response.design_rationale}")
            assets.images.extend(response.assets.images)
            assets.fonts.extend(response.assets.fonts)

        rationale = "Chunked processing results:\n" + "\n".join(rationales)
        rationale += (
            f"\n\nThis design was created by processing {len(ordered)} content sections "
            "individually to preserve all images while respecting rate limits."
        )

        return RedesignResponse(
            html=DOCUMENT_SHELL.format(body="\n".join(html_parts)),
            css="\n\n".join(css_parts),
            javascript="\n\n".join(js_parts),
            assets=assets,
            design_rationale=rationale,
            improvements=[
                *improvements,
                f"Processed {len(ordered)} sections individually",
                f"Preserved {preserved} images through chunked processing",
                "Optimized for rate limits while maintaining design coherence",
            ],
        )
