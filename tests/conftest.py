"""Pytest configuration and fixtures."""

import pytest

from sitewright.config.settings import ChunkingConfig, SitewrightSettings, StreamingConfig
from sitewright.llm.generator import GenerationOutput, GenerationRequest
from sitewright.models import RedesignResponse

# 16 KB of base64-looking payload, large enough to count as a hero candidate
LARGE_DATA_URL = "data:image/png;base64," + "A" * 16000


class FakeClock:
    """Monotonic clock driven by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Awaitable sleep that advances a :class:`FakeClock` instead of waiting."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.advance(seconds)


class FakeGenerator:
    """Generation collaborator that echoes each section back.

    Args:
        fail_sections: Section types whose requests raise ``error``
        error: Exception raised for failing sections
        tokens_used: Reported usage per call; None reports nothing
        duration: Seconds each call takes on the fake clock
    """

    def __init__(
        self,
        clock: FakeClock | None = None,
        fail_sections: set[str] | None = None,
        error: Exception | None = None,
        tokens_used: int | None = 100,
        duration: float = 1.0,
    ) -> None:
        self.clock = clock
        self.fail_sections = fail_sections or set()
        self.error = error or RuntimeError("generation failed")
        self.tokens_used = tokens_used
        self.duration = duration
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationOutput:
        self.requests.append(request)
        if self.clock is not None:
            self.clock.advance(self.duration)
        section = request.section.section_type if request.section else "page"
        if section in self.fail_sections:
            raise self.error
        return GenerationOutput(
            response=RedesignResponse(
                html=f'<section data-redesigned="{section}">{request.html}</section>',
                css=f".{section}-redesigned {{ color: red; }}",
                javascript=f"// {section}",
                design_rationale=f"Reworked {section}",
                improvements=[f"Improved {section}"],
            ),
            tokens_used=self.tokens_used,
            model=request.model,
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def fake_generator(clock: FakeClock) -> FakeGenerator:
    return FakeGenerator(clock=clock)


@pytest.fixture
def settings() -> SitewrightSettings:
    """Settings built from defaults only, with no inter-chunk delay."""
    return SitewrightSettings(
        chunking=ChunkingConfig(),
        streaming=StreamingConfig(inter_chunk_delay=0.0),
    )


@pytest.fixture
def sample_page() -> str:
    """A small storefront page with one region of each common type."""
    return """<!DOCTYPE html>
<html>
<head><title>Acme Outdoor</title></head>
<body>
<header class="site-header">
  <a class="logo" href="/"><img src="/static/logo.svg" alt="Acme logo"></a>
  <span class="tagline">Gear for every trail since 1999</span>
</header>
<nav class="navbar">
  <a href="/tents">Tents</a> <a href="/packs">Packs</a> <a href="/boots">Boots</a>
</nav>
<section class="hero">
  <h1>Summer collection</h1>
  <img src="/static/summer.jpg" alt="Mountain lake at dawn">
</section>
<div class="products">
  <div class="product"><img src="/static/tent.jpg" alt="Two person tent"><p>Ridge 2</p></div>
  <div class="product"><img src="/static/pack.jpg" alt="Daypack"><p>Daypack 30</p></div>
</div>
<footer class="site-footer">
  <p>Copyright Acme Outdoor. All rights reserved. Contact us any time.</p>
</footer>
</body>
</html>"""


@pytest.fixture
def sample_css() -> str:
    return """body { margin: 0; }
.site-header { display: flex; }
.navbar a { padding: 4px; }
.hero h1 { font-size: 3rem; }
.product { border: 1px solid #ccc; }
.site-footer { color: #555; }
@media (max-width: 600px) { .hero h1 { font-size: 2rem; } }
"""
