"""
Stream relay helpers: the relay URL convention, HLS manifest rewriting, and
target validation. Every playable URL handed to the browser goes through
`relay_url` so playback never touches the origin directly.
"""
from __future__ import annotations
import logging
import re
from urllib.parse import quote, urljoin, urlparse

from starlette.background import BackgroundTask
from fastapi.responses import Response, StreamingResponse

from ..core.errors import UpstreamError, ValidationError

log = logging.getLogger("iptvweb.relay")

RELAY_PATH = "/api/stream"

MANIFEST_CONTENT_TYPES = (
    "application/vnd.apple.mpegurl",
    "application/x-mpegurl",
    "application/octet-stream",
)
MANIFEST_MEDIA_TYPE = "application/vnd.apple.mpegurl"

# Same unreserved set as JavaScript's encodeURIComponent.
_URI_COMPONENT_SAFE = "!~*'()"
_LINE_BREAK = re.compile(r"\r?\n")


def relay_url(target: str) -> str:
    return f"{RELAY_PATH}?url={quote(target, safe=_URI_COMPONENT_SAFE)}"


def is_manifest(content_type: str | None) -> bool:
    ct = (content_type or "").lower()
    return any(marker in ct for marker in MANIFEST_CONTENT_TYPES)


def rewrite_manifest(body: str, source_url: str) -> str:
    """Point every URI line of an HLS playlist back through the relay.

    Tag lines, comments, blank lines and inline `DATA:` lines pass through
    trimmed; everything else is resolved against `source_url` and wrapped.
    Line count and order never change.
    """
    out = []
    for line in _LINE_BREAK.split(body):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#") or trimmed.startswith("DATA:"):
            out.append(trimmed)
            continue
        out.append(relay_url(urljoin(source_url, trimmed)))
    return "\n".join(out)


def validate_target(target: str | None, *, missing: str = "Missing url parameter") -> str:
    """Return `target` if it is an absolute http(s) URL, else raise ValidationError."""
    if not target:
        raise ValidationError(missing)
    try:
        parsed = urlparse(target)
    except ValueError:
        raise ValidationError("Invalid URL")
    if not parsed.scheme:
        raise ValidationError("Invalid URL")
    if parsed.scheme.lower() not in ("http", "https"):
        raise ValidationError("Invalid protocol")
    if not parsed.netloc:
        raise ValidationError("Invalid URL")
    return target


def is_http_url(target: str | None) -> bool:
    try:
        validate_target(target)
    except ValidationError:
        return False
    return True


def origin_referer(target: str) -> str:
    parsed = urlparse(target)
    return f"{parsed.scheme}://{parsed.netloc}/"


async def relay(fetcher, target: str) -> Response:
    """Fetch `target` and hand it to the browser.

    Manifests are buffered and rewritten; anything else is piped through
    untouched. Transport failures propagate as FetchError for the caller to map.
    """
    validate_target(target)
    upstream = await fetcher.fetch(target, headers={"Referer": origin_referer(target)}, stream=True)

    if not upstream.is_success:
        await upstream.aclose()
        log.error("Stream proxy failed for %s: HTTP %s", target, upstream.status_code)
        raise UpstreamError(upstream.status_code, target)

    content_type = upstream.headers.get("content-type", "")
    if is_manifest(content_type):
        await fetcher.read(upstream)
        # segments are relative to wherever redirects left us
        return Response(
            rewrite_manifest(upstream.text, str(upstream.url)),
            media_type=MANIFEST_MEDIA_TYPE,
            headers={"Access-Control-Allow-Origin": "*"},
        )

    headers = {"Access-Control-Allow-Origin": "*", "Cache-Control": "no-store"}
    if content_type:
        headers["Content-Type"] = content_type
    return StreamingResponse(
        upstream.aiter_bytes(),
        headers=headers,
        background=BackgroundTask(upstream.aclose),
    )
