"""
Media URL extraction from free text: scraped pages and resolver stdout.
"""
from __future__ import annotations
import json
import re
from typing import Any, Iterable

MEDIA_EXTENSIONS = ("m3u8", "m3u", "mp4", "mov", "mkv", "avi", "flv", "mpd", "webm", "ts")

MEDIA_URL_RE = re.compile(
    r"https?://[^\s\"'<>]+\.(?:" + "|".join(MEDIA_EXTENSIONS) + r")\b",
    re.IGNORECASE,
)


def _dedupe(urls: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(urls))


def find_media_urls(text: str) -> list[str]:
    """Every media URL in `text`, first occurrence order, no repeats."""
    return _dedupe(MEDIA_URL_RE.findall(text or ""))


def parse_json_block(text: str) -> Any | None:
    """Parse the span from the first '{' to the last '}' if it is JSON.

    Returns None for anything that is not a JSON object; never raises.
    """
    if not text:
        return None
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        data = json.loads(text[start:end + 1])
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def string_leaves(data: Any) -> list[str]:
    if isinstance(data, str):
        return [data]
    if isinstance(data, dict):
        data = list(data.values())
    if isinstance(data, (list, tuple)):
        leaves = []
        for item in data:
            leaves.extend(string_leaves(item))
        return leaves
    return []


def extract_urls(output: str) -> list[str]:
    """Scan resolver output as text, then any embedded JSON object's strings."""
    urls = find_media_urls(output)
    data = parse_json_block(output)
    if data is not None:
        for leaf in string_leaves(data):
            urls.extend(find_media_urls(leaf))
    return _dedupe(urls)
