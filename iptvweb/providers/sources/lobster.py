"""
Lobster: movies/TV through the `lobster` CLI in JSON output mode.
"""
from __future__ import annotations
import logging

from .. import cli
from ..base import PlayRequest, ResolvedTitle
from ..extract import extract_urls, parse_json_block

log = logging.getLogger("iptvweb.providers.lobster")

RESOLVER_ENV = {"TERM": "dumb", "NO_COLOR": "1"}


def build_args(ctx: PlayRequest) -> list[str]:
    args = ["--json"]
    if ctx.quality:
        args += ["-q", ctx.quality]
    args.append(ctx.query)
    return args


async def resolve(ctx: PlayRequest, binary: str, timeout: float) -> ResolvedTitle:
    result = await cli.run(binary, build_args(ctx), env=RESOLVER_ENV, timeout=timeout)
    urls = extract_urls(result.stdout)

    data = parse_json_block(result.stdout) or {}
    title = data.get("title") if isinstance(data.get("title"), str) else None
    log.info("[lobster] %r → %d URL(s)", ctx.query, len(urls))
    return ResolvedTitle(title=title or ctx.query, urls=urls, raw=result.stdout)
