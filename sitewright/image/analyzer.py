"""Image discovery and importance classification for captured pages."""

import math
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Literal

from bs4 import BeautifulSoup, Tag

from sitewright.config.constants import (
    CHARS_PER_TOKEN,
    DATA_URL_CHARS_PER_TOKEN,
    HERO_POSITION_LIMIT,
    IMAGE_CONTEXT_SNIPPET_CHARS,
)
from sitewright.config.settings import ChunkingConfig
from sitewright.utils.logging import get_logger

log = get_logger(__name__)

Importance = Literal["critical", "product", "hero", "decorative"]
ImageKind = Literal["img", "background"]

# Ancestor whose markup describes what an image is about
CONTEXT_SELECTOR = '[class*="product"], [class*="hero"], [class*="gallery"], section, div'

# Structures whose images are business-critical
CRITICAL_CONTAINER_SELECTOR = (
    ".product, .product-image, .product-photo, .product-gallery, "
    ".shop, .catalog, .item-image, [data-product-image]"
)

# Structures whose images lead the page
HERO_CONTAINER_SELECTOR = ".hero, .hero-image, .hero-section, .banner, .jumbotron, .main-image"

PRODUCT_KEYWORDS = ("product", "item", "shop", "buy", "catalog", "store")
HERO_KEYWORDS = ("hero", "banner", "featured")

_BACKGROUND_URL = re.compile(r"url\(\s*['\"]?([^'\")]+?)['\"]?\s*\)", re.IGNORECASE)


@dataclass(frozen=True)
class ImageRecord:
    """One image found in a page.

    Records are created once by the analyzer and shared by reference with
    every chunk that carries the image.
    """

    src: str
    alt: str
    estimated_tokens: int
    importance: Importance
    context: str = ""  # Leading characters of the surrounding markup
    kind: ImageKind = "img"

    @property
    def is_data_url(self) -> bool:
        return self.src.startswith("data:image/")


@dataclass
class ImageAnalysis:
    """All images of a page, in document order, with per-tier views."""

    images: list[ImageRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.images)

    @property
    def total_estimated_tokens(self) -> int:
        return sum(image.estimated_tokens for image in self.images)

    def _with(self, importance: Importance) -> list[ImageRecord]:
        return [image for image in self.images if image.importance == importance]

    @property
    def critical_images(self) -> list[ImageRecord]:
        return self._with("critical")

    @property
    def product_images(self) -> list[ImageRecord]:
        return self._with("product")

    @property
    def hero_images(self) -> list[ImageRecord]:
        return self._with("hero")

    @property
    def decorative_images(self) -> list[ImageRecord]:
        return self._with("decorative")

    def to_dict(self) -> dict[str, int]:
        return {
            "count": self.count,
            "total_estimated_tokens": self.total_estimated_tokens,
            "critical": len(self.critical_images),
            "product": len(self.product_images),
            "hero": len(self.hero_images),
            "decorative": len(self.decorative_images),
        }


def background_image_src(tag: Tag) -> str | None:
    """Return the first ``url(...)`` reference of an inline style, if any."""
    style = tag.get("style")
    if not style:
        return None
    match = _BACKGROUND_URL.search(str(style))
    if not match:
        return None
    return match.group(1).strip() or None


def _class_string(tag: Tag) -> str:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        return classes
    return " ".join(classes)


class ImageAnalyzer:
    """Finds images in markup and classifies how much they matter.

    Both ``<img>`` elements and elements with an inline ``url(...)``
    background are considered. Every element is visited once, in document
    order, so an image that appears twice is recorded twice.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    @staticmethod
    def iter_image_elements(root: Tag) -> Iterator[tuple[Tag, ImageKind, str]]:
        """Yield ``(element, kind, src)`` for every image under ``root``.

        ``root`` itself is included when it is an element. Elements without
        a resolvable source are skipped.
        """
        candidates: list[Tag] = []
        if not isinstance(root, BeautifulSoup) and root.name:
            candidates.append(root)
        candidates.extend(root.find_all(True))

        for tag in candidates:
            if tag.name == "img":
                src = str(tag.get("src") or "").strip()
                if src:
                    yield tag, "img", src
                continue
            src = background_image_src(tag)
            if src:
                yield tag, "background", src

    def classify_elements(self, root: Tag) -> list[tuple[Tag, ImageRecord]]:
        """Build an :class:`ImageRecord` for every image element under ``root``.

        The element is returned alongside its record so callers can attribute
        records to parts of the same tree by identity.
        """
        results: list[tuple[Tag, ImageRecord]] = []
        for position, (tag, kind, src) in enumerate(self.iter_image_elements(root)):
            context = self._context_for(tag)
            alt = str(tag.get("alt") or "")
            record = ImageRecord(
                src=src,
                alt=alt,
                estimated_tokens=self.estimate_image_tokens(src, context),
                importance=self._classify(tag, src, alt, context, position),
                context=context[:IMAGE_CONTEXT_SNIPPET_CHARS],
                kind=kind,
            )
            results.append((tag, record))
        return results

    def analyze(self, markup: str | Tag) -> ImageAnalysis:
        """Analyze every image in ``markup``.

        Args:
            markup: Raw HTML or an already parsed tree

        Returns:
            ImageAnalysis with records in document order
        """
        root = BeautifulSoup(markup, "html.parser") if isinstance(markup, str) else markup
        analysis = ImageAnalysis(images=[record for _, record in self.classify_elements(root)])
        log.debug("Images analyzed", **analysis.to_dict())
        return analysis

    @staticmethod
    def estimate_image_tokens(src: str, context: str = "") -> int:
        """Estimate the prompt cost of carrying an image.

        Inline payloads are charged by their own length. External references
        are charged for the URL plus the surrounding markup.
        """
        if src.startswith("data:image/"):
            return math.ceil(len(src) / DATA_URL_CHARS_PER_TOKEN)
        return math.ceil((len(src) + len(context)) / CHARS_PER_TOKEN)

    @staticmethod
    def _context_for(tag: Tag) -> str:
        container = tag.css.closest(CONTEXT_SELECTOR)
        if container is None:
            return ""
        return container.decode_contents()

    def _classify(
        self, tag: Tag, src: str, alt: str, context: str, position: int
    ) -> Importance:
        if src.startswith("data:image/") and len(src) > self.config.large_inline_image_chars:
            return "critical"

        if tag.css.closest(CRITICAL_CONTAINER_SELECTOR) is not None:
            return "critical"

        haystacks = (alt.lower(), _class_string(tag).lower(), context.lower())
        if any(keyword in text for keyword in PRODUCT_KEYWORDS for text in haystacks):
            return "product"
        if any(keyword in text for keyword in HERO_KEYWORDS for text in haystacks):
            return "hero"
        if tag.css.closest(HERO_CONTAINER_SELECTOR) is not None:
            return "hero"

        if position < HERO_POSITION_LIMIT and len(src) > self.config.hero_candidate_image_chars:
            return "hero"

        return "decorative"
