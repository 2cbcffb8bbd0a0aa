"""
VidSrc: metadata-search-backed scraping across mirror domains.

Flow:
  1. TMDB search for the best-matching title
  2. season/episode from an `sNNeNN` marker in the query
  3. one embed URL per mirror: {mirror}/embed/movie/{id} or /embed/tv/{id}/{s}/{e}
  4. EmbedScraper over all of them; the union of media URLs is the answer
"""
from __future__ import annotations
import logging

from ...core.errors import NoPlayableUrls
from ..base import PlayRequest, ResolvedTitle, split_episode_marker
from ..embeds.scraper import EmbedScraper

log = logging.getLogger("iptvweb.providers.vidsrc")


def embed_urls(mirrors, tmdb_id: int, category: str, season: int = 1, episode: int = 1) -> list[str]:
    urls = []
    for mirror in mirrors:
        base = mirror if mirror.startswith(("http://", "https://")) else f"https://{mirror}"
        base = base.rstrip("/")
        if category == "movie":
            urls.append(f"{base}/embed/movie/{tmdb_id}")
        else:
            urls.append(f"{base}/embed/tv/{tmdb_id}/{season}/{episode}")
    return urls


async def scrape_title(scraper: EmbedScraper, mirrors, tmdb_id: int, category: str,
                       season: int = 1, episode: int = 1) -> tuple[list[str], list[str]]:
    """Returns (embed URLs tried, media URLs found)."""
    embeds = embed_urls(mirrors, tmdb_id, category, season, episode)
    log.info("[vidsrc] scraping %d mirror(s) for %s %s", len(embeds), category, tmdb_id)
    return embeds, await scraper.scrape(embeds)


async def resolve(ctx: PlayRequest, metadata, scraper: EmbedScraper, mirrors) -> ResolvedTitle:
    search, season, episode = split_episode_marker(ctx.query, ctx.episode)

    match = await metadata.find_title(search, ctx.media_type)
    if not match:
        raise NoPlayableUrls(f"No title found for '{search}'")

    embeds, found = await scrape_title(scraper, mirrors, match["id"], match["category"], season, episode)
    if not found:
        raise NoPlayableUrls(f"No playable URLs found for '{match['title']}'")

    log.info("[vidsrc] %s → %d URL(s)", match["title"], len(found))
    return ResolvedTitle(title=match["title"], urls=found, raw="\n".join(embeds))
