"""Loading a submission from CLI inputs."""

import json
from pathlib import Path
from typing import Any

from sitewright.exceptions import ValidationError
from sitewright.models import RedesignRequest, WebsiteData, parse_request, parse_website


def _read(path: Path | None) -> str:
    return path.read_text(encoding="utf-8") if path is not None else ""


def load_website(
    input_file: Path, css_file: Path | None = None, js_file: Path | None = None
) -> WebsiteData:
    """Build a :class:`WebsiteData` from an HTML file or a JSON bundle.

    A JSON bundle may be a full submission (with ``originalWebsite``) or
    just the website object. Stylesheet and script files, when given,
    replace whatever the input carried.

    Raises:
        ValidationError: The bundle is not valid JSON or fails validation
    """
    if input_file.suffix.lower() == ".json":
        data = _load_json(input_file)
        website_data = data.get("originalWebsite", data.get("original_website", data))
        if not isinstance(website_data, dict):
            raise ValidationError(f"Expected a website object in {input_file.name}")
        website = parse_website(website_data)
    else:
        website = parse_website({"html": input_file.read_text(encoding="utf-8")})

    updates = {}
    if css_file is not None:
        updates["css"] = _read(css_file)
    if js_file is not None:
        updates["javascript"] = _read(js_file)
    return website.model_copy(update=updates) if updates else website


def load_request(
    input_file: Path,
    instructions: str | None,
    css_file: Path | None = None,
    js_file: Path | None = None,
    design_style: str | None = None,
    target_audience: str | None = None,
    primary_color: str | None = None,
) -> RedesignRequest:
    """Build and validate a :class:`RedesignRequest`.

    Command-line options win over the values found in a JSON submission.

    Raises:
        ValidationError: With one issue per offending field
    """
    bundle: dict[str, Any] = {}
    if input_file.suffix.lower() == ".json":
        bundle = _load_json(input_file)

    website = load_website(input_file, css_file, js_file)
    data: dict[str, Any] = {
        "originalWebsite": website.model_dump(by_alias=True),
        "userInstructions": instructions or bundle.get("userInstructions", ""),
    }
    for key, value in (
        ("designStyle", design_style),
        ("targetAudience", target_audience),
        ("primaryColor", primary_color),
    ):
        if value is not None:
            data[key] = value
        elif bundle.get(key) is not None:
            data[key] = bundle[key]
    return parse_request(data)


def _load_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {path.name}", [str(e)]) from e
    if not isinstance(data, dict):
        raise ValidationError(f"Expected a JSON object in {path.name}")
    return data
