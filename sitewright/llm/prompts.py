"""Prompt templates for website redesign."""

from dataclasses import dataclass

from sitewright.config.constants import TIER_EFFICIENT, TIER_HIGH

REDESIGN_SYSTEM_PROMPT = """You are an expert web designer and front-end developer. Redesign the website you are given so it is modern, responsive and accessible while keeping ALL of its content, media and functionality.

Principles:
- Clear typography and visual hierarchy
- Responsive layout that works on every screen size
- Accessibility (WCAG 2.1 AA) and semantic, SEO-friendly markup
- Good performance without degrading visual quality

Never remove or replace an image, video or other media element. Improve how media is presented (responsive sizing, alt text, lazy loading) but keep every one of them, including inline data URLs and CSS background images."""

CHUNK_SYSTEM_PROMPT = """You are an expert web designer working on ONE SECTION of a larger website. Other sections are redesigned separately and reassembled afterwards, so keep this section self-contained and consistent with a conventional site layout.

- Prefix CSS classes with the section name (hero-, nav-, product-, footer-, ...) so they do not collide with other sections
- Scope your selectors to this section
- Keep responsive behaviour inside the section

IMAGE PRESERVATION IS MANDATORY: every img tag, background image and data URL in this section must come back intact. Improve their presentation but never drop one. If an image looks truncated or malformed, return it exactly as provided."""

TIER_GUIDANCE = {
    TIER_HIGH: """This section is image-critical. Take care with complex layouts, galleries and product listings; give images the most prominent, well-structured presentation you can.""",
    TIER_EFFICIENT: """This section is mostly text. Focus on readable typography, a clean content hierarchy, semantic structure and lean CSS. Avoid JavaScript unless the section needs it.""",
}

SECTION_GUIDANCE = {
    "header": "Header: make a strong first impression with clear branding and accessible navigation. Keep the logo and any header imagery.",
    "nav": "Navigation: prioritise findability, keyboard access and ARIA landmarks, and make sure the mobile menu works.",
    "hero": "Hero: maximise the impact of the hero media and place the call to action prominently. Use responsive images.",
    "main": "Main content: focus on hierarchy and readability, keep every image and give the section a consistent vertical rhythm.",
    "product": "Products: every product image is business-critical. Improve the listing layout and product information without losing any visual.",
    "gallery": "Gallery: keep every image, use a responsive grid with stable aspect ratios and lazy loading.",
    "aside": "Sidebar: complement the main content without competing with it and stack cleanly on small screens.",
    "footer": "Footer: organise links clearly, keep logos and social icons, and match the header's branding.",
    "mixed": "Mixed content: this section gathers heterogeneous leftovers. Keep every element and use a flexible layout.",
}

STYLE_VARIANTS = {
    "modern": "Clean lines, minimalist layout, contemporary typography and subtle animation. Neutral palette with strategic accents. Present all product images and media prominently.",
    "minimal": "Generous whitespace, simple typography and a restrained palette. Remove clutter but never remove images, media or content.",
    "creative": "Bold colour, unusual layouts and expressive typography while staying usable. Showcase all images and media creatively.",
    "corporate": "Professional, trustworthy look with a clean structure and business-appropriate styling. Present all media professionally.",
}

RESPONSE_FORMAT_INSTRUCTIONS = """Respond with a single JSON object and nothing else:
{
  "html": "complete HTML content",
  "css": "complete CSS content",
  "javascript": "complete JavaScript content",
  "designRationale": "explanation of design decisions",
  "improvements": ["list", "of", "key", "improvements"]
}
Do not reference external stylesheets or scripts. If the content you received was truncated, work with what you have and say so in designRationale."""

REDESIGN_USER_PROMPT = """{preferences}User instructions: {instructions}

Original website:
Title: {title}
Description: {description}
URL: {url}

HTML:
{html}

CSS:
{css}

JavaScript:
{javascript}

{format_instructions}"""

ITERATION_PROMPT = """You are refining a website redesign based on user feedback. Address the feedback specifically, keep the design consistent and keep every image and media element.

Current design (iteration {iteration}):
HTML:
{html}

CSS:
{css}

JavaScript:
{javascript}

User feedback: {feedback}

{format_instructions}"""


@dataclass
class SectionContext:
    """Where a chunk sits in a chunked run."""

    section_type: str
    tier: str
    chunk_index: int = 1
    total_chunks: int = 1
    image_count: int = 0
    has_critical_images: bool = False


def build_system_prompt(section: SectionContext | None = None) -> str:
    """System prompt for a whole-page run, or for one section of a chunked run."""
    if section is None:
        return REDESIGN_SYSTEM_PROMPT

    parts = [CHUNK_SYSTEM_PROMPT]
    if section.tier in TIER_GUIDANCE:
        parts.append(TIER_GUIDANCE[section.tier])
    parts.append(
        "Section context:\n"
        f"- Section type: {section.section_type.upper()}\n"
        f"- Chunk {section.chunk_index} of {section.total_chunks}\n"
        f"- Images in this section: {section.image_count}\n"
        f"- Contains critical images: {'YES' if section.has_critical_images else 'NO'}"
    )
    parts.append(SECTION_GUIDANCE.get(section.section_type, SECTION_GUIDANCE["mixed"]))
    return "\n\n".join(parts)


def build_redesign_prompt(
    html: str,
    css: str,
    javascript: str,
    instructions: str,
    title: str = "",
    description: str = "",
    url: str = "",
    design_style: str | None = None,
    target_audience: str | None = None,
    primary_color: str | None = None,
) -> str:
    """User prompt carrying the page (or section) payload."""
    preferences = []
    if design_style and design_style in STYLE_VARIANTS:
        preferences.append(f"Design style: {STYLE_VARIANTS[design_style]}")
    if target_audience:
        preferences.append(f"Target audience: {target_audience}")
    if primary_color:
        preferences.append(f"Primary colour: {primary_color}")

    return REDESIGN_USER_PROMPT.format(
        preferences="".join(f"{line}\n" for line in preferences),
        instructions=instructions,
        title=title,
        description=description,
        url=url,
        html=html,
        css=css,
        javascript=javascript,
        format_instructions=RESPONSE_FORMAT_INSTRUCTIONS,
    )


def build_iteration_prompt(
    html: str, css: str, javascript: str, feedback: str, iteration: int
) -> str:
    return ITERATION_PROMPT.format(
        iteration=iteration,
        html=html,
        css=css,
        javascript=javascript,
        feedback=feedback,
        format_instructions=RESPONSE_FORMAT_INSTRUCTIONS,
    )
