"""
VOD resolution pipeline: provider lookup, availability probe, resolve, fallback.

Usage:
    pipeline = VodPipeline(settings, metadata, EmbedScraper(fetcher))
    provider, result = await pipeline.play("lobster", PlayRequest(query="heat"))
    print(result.primary)
"""
from __future__ import annotations
import asyncio
import logging
from typing import Optional

from ..core.config import Settings
from ..core.errors import AppError, NoPlayableUrls, NotFound, Unavailable
from .base import PlayRequest, Provider, ProviderKind, ResolvedTitle
from .cli import command_exists
from .embeds.scraper import EmbedScraper
from .sources import anicli, lobster, vidsrc

log = logging.getLogger("iptvweb.providers")


# ──────────────────────────────
#  Provider table (fixed for the process lifetime)
# ──────────────────────────────
VIDSRC = Provider(
    id="vidsrc",
    label="VidSrc",
    description="Movies and TV via TMDB search and VidSrc mirror scraping",
    kind=ProviderKind.SCRAPE,
)
LOBSTER = Provider(
    id="lobster",
    label="Lobster",
    description="Movies and TV via the lobster CLI, falls back to VidSrc",
    kind=ProviderKind.LOBSTER,
)
ANI_CLI = Provider(
    id="ani-cli",
    label="ani-cli",
    description="Anime episodes via the ani-cli CLI",
    kind=ProviderKind.ANI_CLI,
)

PROVIDERS: dict[str, Provider] = {p.id: p for p in (VIDSRC, LOBSTER, ANI_CLI)}


class VodPipeline:
    def __init__(self, settings: Settings, metadata, scraper: EmbedScraper):
        self.settings = settings
        self.metadata = metadata
        self.scraper = scraper

    def binary_for(self, provider: Provider) -> Optional[str]:
        if provider.kind is ProviderKind.LOBSTER:
            return self.settings.lobster_bin
        if provider.kind is ProviderKind.ANI_CLI:
            return self.settings.ani_cli_bin
        return None

    async def is_available(self, provider: Provider) -> bool:
        binary = self.binary_for(provider)
        if binary is None:
            return True
        return await command_exists(binary)

    async def list_providers(self) -> list[dict]:
        providers = list(PROVIDERS.values())
        checks = await asyncio.gather(*(self.is_available(p) for p in providers), return_exceptions=True)
        return [p.to_dict(available=(ok is True)) for p, ok in zip(providers, checks)]

    async def watch(self, tmdb_id: int, category: str, season: int = 1, episode: int = 1) -> tuple[list[str], list[str]]:
        """Scrape the mirrors for a known title: (embed URLs tried, media URLs found)."""
        return await vidsrc.scrape_title(self.scraper, self.settings.vidsrc_mirrors, tmdb_id, category, season, episode)

    async def play(self, provider_id: str, ctx: PlayRequest) -> tuple[Provider, ResolvedTitle]:
        provider = PROVIDERS.get(provider_id)
        if provider is None:
            raise NotFound("Unknown provider")

        binary = self.binary_for(provider)
        if binary and not await command_exists(binary):
            raise Unavailable(f"{provider.label} is unavailable: '{binary}' is not installed", binary)

        log.info("[%s] resolving %r", provider.id, ctx.query)
        if provider.kind is ProviderKind.LOBSTER:
            result = await self._resolve_with_fallback(ctx)
        else:
            result = await self._resolve(provider.kind, ctx)

        if not result.urls:
            raise NoPlayableUrls(f"{provider.label} found no playable URLs for '{ctx.query}'")
        return provider, result

    async def _resolve(self, kind: ProviderKind, ctx: PlayRequest) -> ResolvedTitle:
        timeout = self.settings.resolver_timeout
        if kind is ProviderKind.SCRAPE:
            return await vidsrc.resolve(ctx, self.metadata, self.scraper, self.settings.vidsrc_mirrors)
        if kind is ProviderKind.LOBSTER:
            return await lobster.resolve(ctx, self.settings.lobster_bin, timeout)
        if kind is ProviderKind.ANI_CLI:
            return await anicli.resolve(ctx, self.settings.ani_cli_bin, timeout)
        raise NotFound("Unknown provider")

    async def _resolve_with_fallback(self, ctx: PlayRequest) -> ResolvedTitle:
        """Lobster first, VidSrc when it yields nothing.

        If both fail, lobster's own error wins; VidSrc's error only surfaces
        when lobster ran cleanly and just found no URLs.
        """
        primary_error: Optional[AppError] = None
        try:
            result = await self._resolve(ProviderKind.LOBSTER, ctx)
            if result.urls:
                return result
            log.warning("[lobster] no URLs for %r, falling back to vidsrc", ctx.query)
        except AppError as e:
            primary_error = e
            log.warning("[lobster] failed for %r (%s), falling back to vidsrc", ctx.query, e)

        try:
            result = await self._resolve(ProviderKind.SCRAPE, ctx)
        except AppError as fallback_error:
            log.warning("[vidsrc] fallback failed for %r: %s", ctx.query, fallback_error)
            if primary_error is not None:
                raise primary_error from fallback_error
            raise

        if not result.urls and primary_error is not None:
            raise primary_error
        return result
