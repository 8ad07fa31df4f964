"""Best-effort association of stylesheet rules and scripts with a section.

Nothing here parses CSS or JavaScript properly. Stylesheets are split into
top-level blocks by brace depth and kept when their selector could apply to
the section; long scripts are cut at blank lines and kept when a block names
one of the section's classes or ids. Over-inclusion is acceptable, the same
rule may travel with several chunks.
"""

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

_GLOBAL_SELECTOR = re.compile(r"(?<![\w.#-])(body|html)(?![\w-])|\*|:root")
_SCRIPT_BLOCK_SEPARATOR = re.compile(r"\n\s*\n")


@dataclass
class CssBlock:
    """A top-level stylesheet block."""

    selector: str  # Prelude before the opening brace; the at-keyword for at-rules
    text: str
    is_at_rule: bool = False


def _find_matching_brace(css: str, open_index: int) -> int:
    depth = 0
    i = open_index
    n = len(css)
    while i < n:
        char = css[i]
        if char == "/" and i + 1 < n and css[i + 1] == "*":
            end = css.find("*/", i + 2)
            if end < 0:
                return -1
            i = end + 2
            continue
        if char in ("'", '"'):
            end = css.find(char, i + 1)
            if end < 0:
                return -1
            i = end + 1
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def split_css_blocks(css: str) -> list[CssBlock]:
    """Split a stylesheet into top-level blocks using brace-depth tracking.

    Comments between blocks are dropped. Statement at-rules such as
    ``@import`` end at their semicolon. Unterminated trailing text is kept
    as a final block so nothing silently disappears.
    """
    blocks: list[CssBlock] = []
    i = 0
    n = len(css)

    while i < n:
        while i < n and css[i].isspace():
            i += 1
        if i >= n:
            break

        if css.startswith("/*", i):
            end = css.find("*/", i + 2)
            i = end + 2 if end >= 0 else n
            continue

        brace = css.find("{", i)
        if css[i] == "@":
            semicolon = css.find(";", i)
            if semicolon >= 0 and (brace < 0 or semicolon < brace):
                text = css[i : semicolon + 1]
                blocks.append(CssBlock(selector=text.split()[0], text=text, is_at_rule=True))
                i = semicolon + 1
                continue

        if brace < 0:
            blocks.append(CssBlock(selector=css[i:].strip(), text=css[i:].strip()))
            break

        end = _find_matching_brace(css, brace)
        if end < 0:
            blocks.append(CssBlock(selector=css[i:brace].strip(), text=css[i:].strip()))
            break

        prelude = css[i:brace].strip()
        is_at_rule = prelude.startswith("@")
        blocks.append(
            CssBlock(
                selector=prelude.split()[0] if is_at_rule and prelude else prelude,
                text=css[i : end + 1],
                is_at_rule=is_at_rule,
            )
        )
        i = end + 1

    return blocks


def collect_hooks(root: Tag) -> tuple[set[str], set[str]]:
    """Return the class names and ids used by ``root`` and its descendants."""
    classes: set[str] = set()
    ids: set[str] = set()
    elements = list(root.find_all(True))
    if not isinstance(root, BeautifulSoup) and root.name:
        elements.append(root)
    for element in elements:
        value = element.get("class") or []
        if isinstance(value, str):
            value = value.split()
        classes.update(name for name in value if name)
        element_id = element.get("id")
        if element_id:
            ids.add(str(element_id))
    return classes, ids


def _references(text: str, prefix: str, names: set[str]) -> bool:
    for name in names:
        if re.search(re.escape(prefix + name) + r"(?![\w-])", text):
            return True
    return False


def relevant_css(css: str, classes: set[str], ids: set[str]) -> str:
    """Keep the stylesheet blocks that could style a section.

    A block is kept when it is an at-rule, targets ``body``/``html``/``*``/
    ``:root``, or its selector names one of the given classes or ids.
    """
    if not css:
        return ""

    kept = []
    for block in split_css_blocks(css):
        if (
            block.is_at_rule
            or _GLOBAL_SELECTOR.search(block.selector)
            or _references(block.selector, ".", classes)
            or _references(block.selector, "#", ids)
        ):
            kept.append(block.text)
    return "\n".join(kept)


def relevant_javascript(
    javascript: str, classes: set[str], ids: set[str], inline_limit: int
) -> str:
    """Keep the script code that may concern a section.

    Scripts up to ``inline_limit`` characters travel whole. Longer scripts
    are cut at blank lines and only blocks that mention one of the section's
    class names or ids are kept.
    """
    if not javascript:
        return ""
    if len(javascript) <= inline_limit:
        return javascript

    names = classes | ids
    kept = []
    for block in _SCRIPT_BLOCK_SEPARATOR.split(javascript):
        if not block.strip():
            continue
        if any(re.search(r"(?<![\w-])" + re.escape(name) + r"(?![\w-])", block) for name in names):
            kept.append(block.strip("\n"))
    return "\n\n".join(kept)
