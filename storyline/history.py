"""
Reading browsing history into a URL list.

Supports the collector's handoff payload ({urls, timestamp, source, stats}),
JSON Lines history exports, and plain text with one URL per line. Only the
URL list reaches the generator.
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import structlog
from pydantic import ValidationError

from .schemas import HistoryHandoff, JsonlParseResult

logger = structlog.get_logger()

# Field names that commonly hold the page URL in history exports
URL_FIELD_NAMES = [
    "url",
    "URL",
    "link",
    "href",
    "uri",
    "URI",
    "page_url",
    "pageUrl",
    "page",
    "source",
    "src",
    "website",
    "site",
]


def is_valid_url(value: str) -> bool:
    """True for absolute http(s) URLs."""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def extract_url(record: Dict[str, Any]) -> Optional[str]:
    """
    Find the URL in one history record.

    Checks known field names, then the same names one level down in nested
    objects, then any string value that looks like a URL.
    """
    for name in URL_FIELD_NAMES:
        value = record.get(name)
        if isinstance(value, str) and is_valid_url(value):
            return value

    for value in record.values():
        if isinstance(value, dict):
            for name in URL_FIELD_NAMES:
                nested = value.get(name)
                if isinstance(nested, str) and is_valid_url(nested):
                    return nested

    for value in record.values():
        if isinstance(value, str) and is_valid_url(value):
            return value

    return None


def parse_jsonl(content: str) -> JsonlParseResult:
    """
    Extract URLs from JSON Lines content.

    Duplicates are dropped, keeping first-seen order. Lines that aren't
    JSON objects or have no URL are reported in `errors`.
    """
    lines = [line.strip() for line in content.splitlines() if line.strip()]
    urls: List[str] = []
    seen = set()
    errors: List[str] = []
    valid_lines = 0

    for i, line in enumerate(lines, 1):
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            errors.append(f"Line {i}: Invalid JSON - {e.msg}")
            continue

        if not isinstance(record, dict):
            errors.append(f"Line {i}: Not a JSON object")
            continue

        url = extract_url(record)
        if url is None:
            errors.append(f"Line {i}: No URL field found")
            continue

        valid_lines += 1
        if url not in seen:
            seen.add(url)
            urls.append(url)

    if errors:
        logger.warning("jsonl_lines_skipped", count=len(errors), total_lines=len(lines))

    return JsonlParseResult(
        urls=urls,
        total_lines=len(lines),
        valid_lines=valid_lines,
        errors=errors,
    )


def load_handoff(data: Union[str, Dict[str, Any]]) -> HistoryHandoff:
    """
    Validate a handoff payload from the history collector.

    Args:
        data: The payload as a dict or a JSON string

    Raises:
        ValueError: If the payload isn't valid JSON or lacks the expected shape
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Handoff payload is not valid JSON: {e}") from e

    try:
        handoff = HistoryHandoff.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid handoff payload: {e}") from e

    logger.info(
        "handoff_loaded",
        urls=len(handoff.urls),
        source=handoff.source,
        removed=handoff.stats.removed,
    )
    return handoff


def read_urls(path: Union[str, Path]) -> List[str]:
    """
    Read history URLs from a file.

    - .jsonl: JSON Lines export (see parse_jsonl)
    - .json: handoff payload, or a bare list of URLs
    - anything else: one URL per line, non-URLs ignored

    Raises:
        ValueError: If a .json file is malformed or not a handoff payload
    """
    path = Path(path)
    content = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()

    if suffix == ".jsonl":
        return parse_jsonl(content).urls

    if suffix == ".json":
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path.name} is not valid JSON: {e}") from e
        if isinstance(data, list):
            return [u for u in data if isinstance(u, str) and is_valid_url(u)]
        return load_handoff(data).urls

    return [line.strip() for line in content.splitlines() if is_valid_url(line.strip())]
