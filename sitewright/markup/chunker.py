"""Image-aware splitting of a captured page into processable sections.

A page is cut along its structural regions (header, navigation, hero,
main content, product listings, galleries, sidebars, footer). Each region
becomes one :class:`ContentChunk` carrying its markup, the stylesheet rules
and scripts that may concern it, and the image records it physically
contains. Whatever is left over becomes a single trailing ``mixed`` chunk.

Images are never dropped: every image record produced by the analyzer ends
up in exactly one chunk.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Literal

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag

from sitewright.config.constants import CHARS_PER_TOKEN
from sitewright.config.settings import ChunkingConfig
from sitewright.image.analyzer import ImageAnalysis, ImageAnalyzer, ImageRecord
from sitewright.markup.styles import collect_hooks, relevant_css, relevant_javascript
from sitewright.utils.logging import get_logger

log = get_logger(__name__)

SectionType = Literal[
    "header", "nav", "hero", "main", "product", "gallery", "aside", "footer", "mixed"
]
Priority = Literal["critical", "high", "medium", "low"]

SECTION_SELECTORS: dict[str, str] = {
    "header": 'header, .header, .site-header, .main-header, [role="banner"]',
    "nav": 'nav, .nav, .navigation, .navbar, .menu, [role="navigation"]',
    "hero": ".hero, .hero-section, .banner, .jumbotron, .intro-section",
    "main": 'main, .main, .main-content, .content, [role="main"]',
    "product": ".product, .products, .shop, .catalog, .items, .product-grid, .product-list",
    "gallery": ".gallery, .photo-gallery, .image-gallery, .portfolio",
    "aside": 'aside, .aside, .sidebar, .side-content, [role="complementary"]',
    "footer": 'footer, .footer, .site-footer, .main-footer, [role="contentinfo"]',
}

# Extraction order and document-structural order used for aggregation
SECTION_ORDER: list[str] = [*SECTION_SELECTORS, "mixed"]

PRIORITY_ORDER: dict[str, int] = {"critical": 0, "high": 1, "medium": 2, "low": 3}

# Children that form their own piece when an oversized chunk is split
_STRUCTURAL_CHILDREN = {"section", "article", "div"}


@dataclass(frozen=True)
class ContentChunk:
    """A self-contained slice of a page sent to the model in one request."""

    id: str
    type: SectionType
    html: str
    css: str = ""
    javascript: str = ""
    images: tuple[ImageRecord, ...] = ()
    estimated_tokens: int = 0
    priority: Priority = "medium"
    preserve_order: bool = False

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    @property
    def has_critical_images(self) -> bool:
        """True when a critical or product image is inside."""
        return any(image.importance in ("critical", "product") for image in self.images)

    @property
    def has_hero_images(self) -> bool:
        return any(image.importance == "hero" for image in self.images)

    @property
    def image_tokens(self) -> int:
        return sum(image.estimated_tokens for image in self.images)

    @property
    def image_token_ratio(self) -> float:
        if self.estimated_tokens <= 0:
            return 0.0
        return self.image_tokens / self.estimated_tokens


@dataclass
class ChunkingMetadata:
    """Size bookkeeping for a chunking run (characters)."""

    original_size: int = 0
    optimized_size: int = 0

    @property
    def compression_ratio(self) -> float:
        if self.original_size <= 0:
            return 1.0
        return self.optimized_size / self.original_size


@dataclass
class ChunkingResult:
    """Chunks in processing order plus the image analysis they came from."""

    chunks: list[ContentChunk] = field(default_factory=list)
    image_analysis: ImageAnalysis = field(default_factory=ImageAnalysis)
    metadata: ChunkingMetadata = field(default_factory=ChunkingMetadata)

    @property
    def total_estimated_tokens(self) -> int:
        return sum(chunk.estimated_tokens for chunk in self.chunks)


def derive_priority(section_type: str, images: Iterable[ImageRecord]) -> Priority:
    """Priority of a chunk from its section type and the images inside it."""
    importances = {image.importance for image in images}
    if importances & {"critical", "product"}:
        return "critical"
    if "hero" in importances or section_type == "hero":
        return "high"
    if section_type in ("footer", "nav"):
        return "low"
    return "medium"


def sort_chunks(chunks: Sequence[ContentChunk]) -> list[ContentChunk]:
    """Order chunks for processing.

    Stable sort by priority, then header chunks move to the front and footer
    chunks to the back whatever their priority.
    """
    ordered = sorted(chunks, key=lambda chunk: PRIORITY_ORDER[chunk.priority])
    headers = [chunk for chunk in ordered if chunk.type == "header"]
    footers = [chunk for chunk in ordered if chunk.type == "footer"]
    middle = [chunk for chunk in ordered if chunk.type not in ("header", "footer")]
    return headers + middle + footers


def _is_attached(tag: Tag, soup: BeautifulSoup) -> bool:
    return any(parent is soup for parent in tag.parents)


def _serialize(node: PageElement) -> str:
    if isinstance(node, NavigableString):
        return node.output_ready()
    return str(node)


class ContentChunker:
    """Splits a page into :class:`ContentChunk` objects.

    Example:
        >>> chunker = ContentChunker()
        >>> result = chunker.chunk(html, css, javascript)
        >>> chunks = chunker.split_oversized_chunks(result.chunks)
    """

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        analyzer: ImageAnalyzer | None = None,
    ) -> None:
        self.config = config or ChunkingConfig()
        self.analyzer = analyzer or ImageAnalyzer(self.config)

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough token estimate of plain markup."""
        return math.ceil(len(text) / CHARS_PER_TOKEN)

    def chunk(self, html: str, css: str = "", javascript: str = "") -> ChunkingResult:
        """Split a page into chunks.

        Args:
            html: Page markup
            css: Page stylesheet
            javascript: Page script

        Returns:
            ChunkingResult with chunks in processing order
        """
        soup = BeautifulSoup(html, "html.parser")
        classified = self.analyzer.classify_elements(soup)
        records_by_element = {id(tag): record for tag, record in classified}
        analysis = ImageAnalysis(images=[record for _, record in classified])

        chunks: list[ContentChunk] = []
        claimed: set[int] = set()

        def images_in(root: Tag) -> list[ImageRecord]:
            found = []
            for element, _, _ in self.analyzer.iter_image_elements(root):
                key = id(element)
                if key in records_by_element and key not in claimed:
                    claimed.add(key)
                    found.append(records_by_element[key])
            return found

        for section_type, selector in SECTION_SELECTORS.items():
            for region in soup.select(selector):
                # Nested inside a region that an earlier match already took
                if not _is_attached(region, soup):
                    continue
                region_html = str(region)
                if len(region_html) < self.config.min_section_chars:
                    continue

                classes, ids = collect_hooks(region)
                images = images_in(region)
                region.extract()

                chunks.append(
                    self._build_chunk(
                        chunk_id=f"chunk-{len(chunks) + 1}",
                        section_type=section_type,
                        html=region_html,
                        css=relevant_css(css, classes, ids),
                        javascript=relevant_javascript(
                            javascript, classes, ids, self.config.inline_script_limit
                        ),
                        images=images,
                    )
                )

        remaining_html = soup.body.decode_contents() if soup.body else soup.decode()
        # Unclaimed images anywhere in the document stay with the leftovers
        remaining_images = images_in(soup)
        content_chars = len("".join(remaining_html.split()))
        if content_chars > self.config.min_mixed_chars or remaining_images:
            chunks.append(
                self._build_chunk(
                    chunk_id=f"chunk-{len(chunks) + 1}",
                    section_type="mixed",
                    html=remaining_html.strip(),
                    css=css,
                    javascript=javascript,
                    images=remaining_images,
                )
            )

        ordered = sort_chunks(chunks)
        metadata = ChunkingMetadata(
            original_size=len(html) + len(css) + len(javascript),
            optimized_size=sum(
                len(chunk.html) + len(chunk.css) + len(chunk.javascript) for chunk in ordered
            ),
        )
        result = ChunkingResult(chunks=ordered, image_analysis=analysis, metadata=metadata)

        log.info(
            "Content chunked",
            chunks=len(ordered),
            types=[chunk.type for chunk in ordered],
            images=analysis.count,
            total_tokens=result.total_estimated_tokens,
            compression_ratio=round(metadata.compression_ratio, 3),
        )
        return result

    def _build_chunk(
        self,
        chunk_id: str,
        section_type: str,
        html: str,
        css: str,
        javascript: str,
        images: Sequence[ImageRecord],
    ) -> ContentChunk:
        return ContentChunk(
            id=chunk_id,
            type=section_type,  # type: ignore[arg-type]
            html=html,
            css=css,
            javascript=javascript,
            images=tuple(images),
            estimated_tokens=self.estimate_tokens(html)
            + sum(image.estimated_tokens for image in images),
            priority=derive_priority(section_type, images),
            preserve_order=section_type in ("header", "footer"),
        )

    def validate_chunk_sizes(
        self, chunks: Iterable[ContentChunk], max_tokens: int | None = None
    ) -> bool:
        """Check that no chunk exceeds the per-chunk token ceiling."""
        limit = max_tokens if max_tokens is not None else self.config.max_chunk_tokens
        return all(chunk.estimated_tokens <= limit for chunk in chunks)

    def split_oversized_chunks(
        self, chunks: Sequence[ContentChunk], max_tokens: int | None = None
    ) -> list[ContentChunk]:
        """Split chunks above the token ceiling along their top-level structure.

        A chunk is cut along the direct children of its root element: every
        ``section``/``article``/``div`` child is its own piece and runs of
        other nodes are grouped together. Pieces are split again while they
        stay above the ceiling. A chunk that yields fewer than two pieces is
        kept as is.
        """
        limit = max_tokens if max_tokens is not None else self.config.max_chunk_tokens
        result: list[ContentChunk] = []
        for chunk in chunks:
            if chunk.estimated_tokens <= limit:
                result.append(chunk)
                continue

            pieces = self._split_chunk(chunk)
            if len(pieces) < 2:
                log.warning(
                    "Oversized chunk cannot be split further",
                    chunk_id=chunk.id,
                    estimated_tokens=chunk.estimated_tokens,
                    max_tokens=limit,
                )
                result.append(chunk)
                continue

            log.info(
                "Oversized chunk split",
                chunk_id=chunk.id,
                pieces=len(pieces),
                estimated_tokens=chunk.estimated_tokens,
            )
            result.extend(self.split_oversized_chunks(pieces, limit))
        return result

    def _split_chunk(self, chunk: ContentChunk) -> list[ContentChunk]:
        fragment = BeautifulSoup(chunk.html, "html.parser")
        top_level = [node for node in fragment.contents if isinstance(node, Tag)]
        root: Tag = top_level[0] if len(top_level) == 1 else fragment

        # An image on the wrapper itself would be orphaned by the split
        if root is not fragment and any(
            element is root for element, _, _ in self.analyzer.iter_image_elements(root)
        ):
            return []

        groups: list[list[PageElement]] = []
        run: list[PageElement] = []
        for node in root.contents:
            if isinstance(node, Tag) and node.name in _STRUCTURAL_CHILDREN:
                if run:
                    groups.append(run)
                    run = []
                groups.append([node])
            else:
                run.append(node)
        if run:
            groups.append(run)

        groups = [
            group
            for group in groups
            if "".join(_serialize(node) for node in group).strip()
        ]
        if len(groups) < 2:
            return []

        records = list(chunk.images)
        pieces: list[ContentChunk] = []
        for index, group in enumerate(groups, start=1):
            image_count = sum(
                1
                for node in group
                if isinstance(node, Tag)
                for _ in self.analyzer.iter_image_elements(node)
            )
            taken, records = records[:image_count], records[image_count:]
            if index == len(groups) and records:
                # Re-parsing found fewer images than recorded; keep them anyway
                taken.extend(records)
                records = []

            piece_html = "".join(_serialize(node) for node in group).strip()
            pieces.append(
                replace(
                    chunk,
                    id=f"{chunk.id}-sub-{index}",
                    html=piece_html,
                    images=tuple(taken),
                    estimated_tokens=self.estimate_tokens(piece_html)
                    + sum(image.estimated_tokens for image in taken),
                    priority=derive_priority(chunk.type, taken),
                )
            )
        return pieces
