"""Tests for upstream content reduction."""

import pytest

from sitewright.config.settings import OptimizationConfig
from sitewright.markup.optimizer import (
    SVG_PLACEHOLDER,
    ContentOptimizer,
    ImagePreservationReport,
    OptimizedContent,
)


@pytest.fixture
def optimizer():
    return ContentOptimizer()


class TestCompressHtml:
    """Tests for compress_html."""

    def test_collapses_whitespace_and_comments(self):
        """Test whitespace between tags and comments are removed."""
        html = "<div>\n  <p>Hi</p>\n</div><!-- note -->"
        assert ContentOptimizer.compress_html(html) == "<div><p>Hi</p></div>"

    def test_protected_blocks_untouched(self):
        """Test pre and script bodies keep their whitespace."""
        html = "<pre>  a\n    b</pre>\n\n<script>\nvar x  = 1;\n</script>"
        result = ContentOptimizer.compress_html(html)
        assert "<pre>  a\n    b</pre>" in result
        assert "<script>\nvar x  = 1;\n</script>" in result


class TestCompressCss:
    """Tests for compress_css."""

    def test_minifies(self):
        """Test comments, imports and vendor prefixes are dropped."""
        css = "/* theme */\n.a {\n  color: red;\n  -webkit-transition: x;\n}\n@import url(x.css);"
        assert ContentOptimizer.compress_css(css) == ".a{color: red}"

    def test_quoted_import_removed(self):
        """Test quoted @import statements are dropped."""
        assert "@import" not in ContentOptimizer.compress_css('@import "base.css"; .b { c: d; }')


class TestCompressJs:
    """Tests for compress_js."""

    def test_strips_tracking_and_comments(self):
        """Test analytics calls, console output and comments are removed."""
        js = (
            "gtag('config', 'G-1');\n"
            "console.log('debug');\n"
            "var a = 1; // note\n"
            "/* block */\n"
            "run(a);"
        )
        result = ContentOptimizer.compress_js(js)
        assert "gtag" not in result
        assert "console" not in result
        assert "note" not in result
        assert "block" not in result
        assert "var a = 1;" in result
        assert "run(a);" in result

    def test_urls_survive(self):
        """Test protocol slashes are not mistaken for comments."""
        js = "fetch('http://example.com/api');"
        assert ContentOptimizer.compress_js(js) == js


class TestRemoveIrrelevantContent:
    """Tests for remove_irrelevant_content."""

    def test_strips_noise(self, optimizer):
        """Test consent, ad and tracking markup is removed."""
        html = (
            "<body>"
            '<div class="cookie-banner">Accept cookies</div>'
            '<div class="ad-slot">Sponsored</div>'
            '<script src="https://www.google-analytics.com/analytics.js"></script>'
            "<script>gtag('config', 'G-1');</script>"
            '<main><p>Hello</p><img src="/keep.png"></main>'
            "</body>"
        )
        result = optimizer.remove_irrelevant_content(html)

        assert "Hello" in result
        assert "/keep.png" in result
        assert "cookie-banner" not in result
        assert "Sponsored" not in result
        assert "analytics" not in result
        assert "gtag" not in result

    def test_noise_with_image_kept(self, optimizer):
        """Test a noise element carrying an image is never removed."""
        html = '<div class="cookie-consent"><img src="/badge.png" alt="badge"></div>'
        result = optimizer.remove_irrelevant_content(html)
        assert "/badge.png" in result

    def test_large_svg_replaced(self):
        """Test oversized inline SVG is swapped for a placeholder."""
        optimizer = ContentOptimizer(OptimizationConfig(large_svg_chars=100))
        html = f'<p>Logo</p><svg><path d="{"M0 0 L10 10 " * 30}"></path></svg>'
        result = optimizer.remove_irrelevant_content(html)
        assert "svg-placeholder" in result
        assert "<path" not in result

    def test_small_svg_kept(self, optimizer):
        """Test inline SVG under the limit stays."""
        html = '<p>Icon</p><svg><circle r="4"></circle></svg>'
        assert "<circle" in optimizer.remove_irrelevant_content(html)

    def test_empty_elements_removed(self, optimizer):
        """Test elements left without text or images disappear."""
        html = "<div><span></span></div><p>Text</p><i class=\"icon\"></i>"
        result = optimizer.remove_irrelevant_content(html)
        assert "<span" not in result
        assert "<div" not in result
        assert "<p>Text</p>" in result
        assert '<i class="icon"></i>' in result

    def test_background_image_protects_element(self, optimizer):
        """Test an empty element with a background image stays."""
        html = '<div class="banner-art" style="background-image: url(/art.jpg)"></div>'
        assert "/art.jpg" in optimizer.remove_irrelevant_content(html)


class TestExtractEssentialContent:
    """Tests for extract_essential_content."""

    HTML = (
        '<div class="wrapper">'
        "<header>Site name</header>"
        '<div class="junk">Widgets and other filler</div>'
        "<main><h1>Title</h1><p>Body copy</p></main>"
        "</div>"
        "<footer>Footer text</footer>"
    )

    def test_small_page_only_cleaned(self, optimizer):
        """Test pages under the limit are only cleaned."""
        result = optimizer.extract_essential_content(self.HTML)
        assert "Widgets and other filler" in result

    def test_keeps_outermost_regions(self):
        """Test only outermost content regions survive, in order."""
        optimizer = ContentOptimizer(OptimizationConfig(essential_content_chars=50))
        result = optimizer.extract_essential_content(self.HTML)

        assert "Widgets and other filler" not in result
        assert result.index("Site name") < result.index("Title") < result.index("Footer text")
        assert result.count("<h1>") == 1

    def test_images_outside_regions_restored(self):
        """Test images outside the kept regions are appended back."""
        optimizer = ContentOptimizer(OptimizationConfig(essential_content_chars=50))
        html = self.HTML.replace(
            "Widgets and other filler", 'Widgets and other filler<img src="/x.png">'
        )
        result = optimizer.extract_essential_content(html)
        assert "Widgets and other filler" not in result
        assert "/x.png" in result

    def test_no_regions_returns_cleaned(self):
        """Test a page without content regions is returned cleaned."""
        optimizer = ContentOptimizer(OptimizationConfig(essential_content_chars=10))
        html = "<div>just some text inside a div</div>"
        assert optimizer.extract_essential_content(html) == html


class TestOptimize:
    """Tests for needs_optimization and optimize."""

    def test_needs_optimization_threshold(self):
        """Test the size threshold in kilobytes."""
        optimizer = ContentOptimizer(OptimizationConfig(threshold_kb=1))
        assert optimizer.needs_optimization("x" * 2000)
        assert not optimizer.needs_optimization("x" * 500)

    def test_disabled(self):
        """Test optimization can be switched off."""
        optimizer = ContentOptimizer(OptimizationConfig(enabled=False, threshold_kb=0))
        assert not optimizer.needs_optimization("x" * 2000)

    def test_optimize_reduces(self, optimizer):
        """Test all three payloads are reduced and sizes recorded."""
        html = "<div>\n\n  <p>Hello</p>\n\n</div>"
        css = "/* c */ .a { color: red; }"
        js = "console.log('x');\nrun();"

        result = optimizer.optimize(html, css, js)

        assert result.original_size == len(html) + len(css) + len(js)
        assert result.html == "<div><p>Hello</p></div>"
        assert result.javascript == "run();"
        assert result.compression_ratio < 1


class TestOptimizedContent:
    """Tests for OptimizedContent."""

    def test_ratio(self):
        """Test the ratio of reduced to original size."""
        content = OptimizedContent(html="ab", css="c", javascript="d", original_size=8)
        assert content.optimized_size == 4
        assert content.compression_ratio == 0.5

    def test_ratio_empty(self):
        """Test an empty original has a neutral ratio."""
        assert OptimizedContent(html="", css="", javascript="").compression_ratio == 1.0


class TestValidateImagePreservation:
    """Tests for validate_image_preservation."""

    BEFORE = (
        '<div class="product"><img src="/tent.jpg"></div>'
        '<p><img src="/texture.png"></p>'
    )

    def test_all_preserved(self, optimizer):
        """Test identical image sets pass."""
        report = optimizer.validate_image_preservation(self.BEFORE, self.BEFORE)
        assert report.success
        assert report.preserved == 2
        assert report.preservation_rate == 1.0

    def test_missing_images(self, optimizer):
        """Test lost critical images are issues and others are warnings."""
        report = optimizer.validate_image_preservation(self.BEFORE, "<p>nothing</p>")

        assert not report.success
        assert report.issues == ["Critical image missing: /tent.jpg"]
        assert report.warnings == ["Decorative image missing: /texture.png"]
        assert report.preservation_rate == 0.0

    def test_duplicates_counted(self, optimizer):
        """Test each occurrence of a source must survive."""
        before = '<p><img src="/a.png"><img src="/a.png"></p>'
        after = '<p><img src="/a.png"></p>'
        report = optimizer.validate_image_preservation(before, after)
        assert report.preserved == 1
        assert len(report.warnings) == 1

    def test_long_source_previewed(self, optimizer):
        """Test long sources are shortened in messages."""
        src = "/" + "a" * 80 + ".png"
        report = optimizer.validate_image_preservation(f'<p><img src="{src}"></p>', "")
        assert report.warnings[0].endswith("...")


class TestImagePreservationReport:
    """Tests for ImagePreservationReport."""

    def test_empty_page(self):
        """Test a page without images is fully preserved."""
        report = ImagePreservationReport()
        assert report.success
        assert report.preservation_rate == 1.0


def test_placeholder_is_text_bearing():
    """The SVG placeholder must survive empty-element cleanup."""
    assert "[Large SVG removed" in SVG_PLACEHOLDER
