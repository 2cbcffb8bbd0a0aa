"""
ani-cli: anime episodes. With ANI_CLI_PLAYER=debug the CLI prints the
resolved links instead of launching a player; `-S 1` picks the first match.
"""
from __future__ import annotations
import logging

from .. import cli
from ..base import PlayRequest, ResolvedTitle
from ..extract import extract_urls
from .lobster import RESOLVER_ENV

log = logging.getLogger("iptvweb.providers.anicli")


def build_args(ctx: PlayRequest) -> list[str]:
    args = ["-S", "1", "-e", str(ctx.episode)]
    if ctx.quality:
        args += ["-q", ctx.quality]
    args.append(ctx.query)
    return args


async def resolve(ctx: PlayRequest, binary: str, timeout: float) -> ResolvedTitle:
    env = {**RESOLVER_ENV, "ANI_CLI_PLAYER": "debug"}
    result = await cli.run(binary, build_args(ctx), env=env, timeout=timeout)
    urls = extract_urls(result.stdout)
    log.info("[ani-cli] %r ep %s → %d URL(s)", ctx.query, ctx.episode, len(urls))
    return ResolvedTitle(title=f"{ctx.query} - Episode {ctx.episode}", urls=urls, raw=result.stdout)
