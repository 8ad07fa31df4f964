"""Upstream reduction of captured pages before chunking.

Large captures are mostly noise: tracking scripts, consent banners, ad
slots, chat widgets, inline SVG artwork and whitespace. The optimizer strips
that noise while treating images as untouchable; any image that still goes
missing during cleanup is appended back to the document.
"""

import re
from collections import Counter
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Tag

from sitewright.config.settings import OptimizationConfig
from sitewright.image.analyzer import ImageAnalyzer
from sitewright.utils.logging import get_logger

log = get_logger(__name__)

ANALYTICS_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"google-analytics\.com",
        r"googletagmanager\.com",
        r"\bgtag\(",
        r"\bga\(",
        r"_gaq",
        r"facebook\.net",
        r"fbevents",
        r"twitter\.com/i/adsct",
        r"linkedin\.com/px-api",
        r"hotjar\.",
        r"crazyegg\.",
        r"optimizely\.",
        r"segment\.(?:com|io)",
        r"mixpanel\.",
        r"intercom\.",
        r"zendesk\.",
        r"livechat",
        r"hubspot",
    )
]

IRRELEVANT_SELECTORS = [
    # Analytics and tracking
    'script[src*="analytics"]',
    'script[src*="gtag"]',
    'script[src*="facebook"]',
    'script[src*="twitter"]',
    'script[src*="linkedin"]',
    'script[src*="hotjar"]',
    'script[src*="optimizely"]',
    'script[src*="segment"]',
    'script[src*="mixpanel"]',
    # Chat widgets
    'script[src*="intercom"]',
    'script[src*="zendesk"]',
    'script[src*="livechat"]',
    'script[src*="tawk.to"]',
    ".intercom-frame",
    ".zendesk-widget",
    ".livechat-widget",
    # Cookie consent
    '[class*="cookie"]',
    '[id*="cookie"]',
    '[class*="gdpr"]',
    '[class*="consent"]',
    ".privacy-banner",
    # Social widgets
    'iframe[src*="facebook.com/plugins"]',
    'iframe[src*="twitter.com/widgets"]',
    'iframe[src*="linkedin.com/widgets"]',
    ".fb-like",
    ".twitter-tweet",
    ".linkedin-widget",
    # Advertising
    '[class*="ad-"]',
    '[class*="ads-"]',
    '[id*="ad-"]',
    '[id*="ads-"]',
    ".advertisement",
    ".google-ads",
    ".adsense",
]

ESSENTIAL_SELECTOR = ", ".join(
    [
        "header",
        "nav",
        "main",
        "article",
        ".content",
        "#content",
        ".main-content",
        ".hero",
        ".banner",
        ".product",
        ".products",
        ".gallery",
        ".shop",
        ".catalog",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "p",
        "ul",
        "ol",
        "footer",
    ]
)

# Elements that are meaningful without text content
_KEEP_WHEN_EMPTY = {
    "html", "head", "body", "title", "meta", "link", "style", "script", "noscript",
    "img", "input", "br", "hr", "area", "base", "col", "embed", "source", "track",
    "wbr", "svg", "picture", "video", "audio", "iframe", "canvas", "object",
    "textarea", "select", "button", "form", "td", "th", "i",
}

_PROTECTED_BLOCKS = re.compile(
    r"(<(script|style|pre|textarea)\b.*?</\2\s*>)", re.IGNORECASE | re.DOTALL
)

SVG_PLACEHOLDER = '<div class="svg-placeholder">[Large SVG removed for optimization]</div>'


@dataclass
class ImagePreservationReport:
    """Outcome of comparing the images of a page before and after reduction."""

    original: int = 0
    preserved: int = 0
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.issues

    @property
    def preservation_rate(self) -> float:
        if self.original == 0:
            return 1.0
        return self.preserved / self.original


@dataclass
class OptimizedContent:
    """Reduced page payloads."""

    html: str
    css: str
    javascript: str
    original_size: int = 0

    @property
    def optimized_size(self) -> int:
        return len(self.html) + len(self.css) + len(self.javascript)

    @property
    def compression_ratio(self) -> float:
        if self.original_size <= 0:
            return 1.0
        return self.optimized_size / self.original_size


def _preview(src: str, length: int = 50) -> str:
    return src[:length] + "..." if len(src) > length else src


class ContentOptimizer:
    """Strips noise from captured pages without losing images."""

    def __init__(
        self,
        config: OptimizationConfig | None = None,
        analyzer: ImageAnalyzer | None = None,
    ) -> None:
        self.config = config or OptimizationConfig()
        self.analyzer = analyzer or ImageAnalyzer()

    # ------------------------------------------------------------------
    # Text-level compression
    # ------------------------------------------------------------------

    @staticmethod
    def compress_html(html: str) -> str:
        """Drop comments and collapse whitespace between tags.

        Script, style, pre and textarea bodies are left untouched.
        """
        parts = []
        last = 0
        for match in _PROTECTED_BLOCKS.finditer(html):
            parts.append(ContentOptimizer._squeeze_markup(html[last : match.start()]))
            parts.append(match.group(1))
            last = match.end()
        parts.append(ContentOptimizer._squeeze_markup(html[last:]))
        return "".join(parts).strip()

    @staticmethod
    def _squeeze_markup(text: str) -> str:
        text = re.sub(r"<!--.*?-->", "", text, flags=re.DOTALL)
        text = re.sub(r"\s+", " ", text)
        return re.sub(r">\s+<", "><", text)

    @staticmethod
    def compress_css(css: str) -> str:
        """Remove comments, imports and vendor-prefixed declarations, then minify."""
        css = re.sub(r"/\*.*?\*/", "", css, flags=re.DOTALL)
        css = re.sub(r"@import\s+url\([^)]+\)[^;]*;?", "", css, flags=re.IGNORECASE)
        css = re.sub(r"@import\s+[\"'][^\"']+[\"'][^;]*;?", "", css, flags=re.IGNORECASE)
        css = re.sub(r"(?<![\w-])-(?:webkit|moz|ms|o)-[^;{}]+;", "", css, flags=re.IGNORECASE)
        css = re.sub(r"\s+", " ", css)
        css = re.sub(r";\s*}", "}", css)
        css = re.sub(r"\s*{\s*", "{", css)
        css = re.sub(r";\s*", ";", css)
        css = re.sub(r"}\s*", "}", css)
        return css.strip()

    @staticmethod
    def compress_js(javascript: str) -> str:
        """Remove tracking calls, console output and comments."""
        js = javascript
        js = re.sub(r"\bgtag\([^)]*\);?", "", js, flags=re.IGNORECASE)
        js = re.sub(r"\bga\([^)]*\);?", "", js, flags=re.IGNORECASE)
        js = re.sub(r"_gaq\.[^;]*;?", "", js, flags=re.IGNORECASE)
        js = re.sub(r"\bfbq\([^)]*\);?", "", js, flags=re.IGNORECASE)
        js = re.sub(r"\bconsole\.\w+\([^;]*\);?", "", js)
        js = re.sub(r"/\*.*?\*/", "", js, flags=re.DOTALL)
        js = re.sub(r"(?<![:\"'\\])//[^\n]*$", "", js, flags=re.MULTILINE)
        js = re.sub(r"[ \t]+", " ", js)
        js = re.sub(r"\n\s*\n+", "\n", js)
        js = re.sub(r";\s*;", ";", js)
        return js.strip()

    # ------------------------------------------------------------------
    # Structural cleanup
    # ------------------------------------------------------------------

    def _image_sources(self, root: Tag) -> list[str]:
        return [src for _, _, src in self.analyzer.iter_image_elements(root)]

    def _carries_images(self, tag: Tag) -> bool:
        return next(iter(self.analyzer.iter_image_elements(tag)), None) is not None

    def remove_irrelevant_content(self, html: str) -> str:
        """Strip tracking, consent, ad and widget markup.

        Elements that are or contain images are never removed. Images that
        disappear anyway are appended back to the body.
        """
        soup = BeautifulSoup(html, "html.parser")
        originals = [
            (src, str(element)) for element, _, src in self.analyzer.iter_image_elements(soup)
        ]

        removed = 0
        for selector in IRRELEVANT_SELECTORS:
            for element in soup.select(selector):
                if element.decomposed or element.name in ("html", "head", "body"):
                    continue
                if self._carries_images(element):
                    continue
                element.decompose()
                removed += 1

        for script in soup.find_all("script"):
            source = f"{script.get('src') or ''}\n{script.string or ''}"
            if any(pattern.search(source) for pattern in ANALYTICS_PATTERNS):
                script.decompose()
                removed += 1

        for svg in soup.find_all("svg"):
            if svg.decomposed:
                continue
            if len(str(svg)) > self.config.large_svg_chars and not self._carries_images(svg):
                svg.replace_with(BeautifulSoup(SVG_PLACEHOLDER, "html.parser"))

        # Innermost first so emptied parents are caught as well
        for element in reversed(soup.find_all(True)):
            if element.decomposed or element.name in _KEEP_WHEN_EMPTY:
                continue
            if element.find_parent("svg") is not None:
                continue
            if element.get_text(strip=True) or self._carries_images(element):
                continue
            if element.find(list(_KEEP_WHEN_EMPTY)):
                continue
            element.decompose()

        if self.config.restore_lost_images:
            self._restore_images(soup, originals)

        log.debug("Irrelevant content removed", removed=removed)
        return soup.decode()

    def _restore_images(self, soup: BeautifulSoup, originals: list[tuple[str, str]]) -> None:
        remaining = Counter(self._image_sources(soup))
        target = soup.body or soup
        for src, markup in originals:
            if remaining[src] > 0:
                remaining[src] -= 1
                continue
            target.append(BeautifulSoup(markup, "html.parser"))
            log.warning("Restored accidentally removed image", src=_preview(src))

    def extract_essential_content(self, html: str) -> str:
        """Clean a page and, when still too large, keep only its content regions.

        Only the outermost matching regions are kept, in document order.
        """
        cleaned = self.remove_irrelevant_content(html)
        if len(cleaned) <= self.config.essential_content_chars:
            return cleaned

        soup = BeautifulSoup(cleaned, "html.parser")
        kept: list[Tag] = []
        kept_ids: set[int] = set()
        for element in soup.select(ESSENTIAL_SELECTOR):
            if any(id(ancestor) in kept_ids for ancestor in element.parents):
                continue
            kept.append(element)
            kept_ids.add(id(element))

        if not kept:
            log.warning("No content regions found, keeping cleaned document", size=len(cleaned))
            return cleaned

        extracted = BeautifulSoup("\n".join(str(element) for element in kept), "html.parser")
        if self.config.restore_lost_images:
            self._restore_images(
                extracted,
                [(src, str(el)) for el, _, src in self.analyzer.iter_image_elements(soup)],
            )
        return extracted.decode()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @staticmethod
    def content_size_kb(content: str) -> float:
        return len(content.encode("utf-8")) / 1024

    def needs_optimization(self, html: str, css: str = "", javascript: str = "") -> bool:
        """True when the combined payload is above the configured threshold."""
        if not self.config.enabled:
            return False
        return self.content_size_kb(html + css + javascript) > self.config.threshold_kb

    def optimize(self, html: str, css: str = "", javascript: str = "") -> OptimizedContent:
        """Reduce all three payloads."""
        result = OptimizedContent(
            html=self.compress_html(self.extract_essential_content(html)),
            css=self.compress_css(css),
            javascript=self.compress_js(javascript),
            original_size=len(html) + len(css) + len(javascript),
        )
        log.info(
            "Content optimized",
            original_size=result.original_size,
            optimized_size=result.optimized_size,
            compression_ratio=round(result.compression_ratio, 3),
        )
        return result

    def validate_image_preservation(self, before: str, after: str) -> ImagePreservationReport:
        """Compare image references of a page before and after reduction.

        A missing critical or product image is an issue; any other missing
        image is a warning.
        """
        original = self.analyzer.analyze(before)
        after_sources = Counter(
            self._image_sources(BeautifulSoup(after, "html.parser"))
        )

        report = ImagePreservationReport(original=original.count)
        for record in original.images:
            if after_sources[record.src] > 0:
                after_sources[record.src] -= 1
                report.preserved += 1
            elif record.importance in ("critical", "product"):
                report.issues.append(f"Critical image missing: {_preview(record.src)}")
            else:
                report.warnings.append(f"Decorative image missing: {_preview(record.src)}")

        if not report.success:
            log.error("Critical images lost during optimization", issues=len(report.issues))
        elif report.warnings:
            log.warning("Images lost during optimization", warnings=len(report.warnings))
        return report
