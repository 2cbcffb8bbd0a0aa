"""
Embed scraper: pulls playable media URLs out of embed pages.

Flow per candidate (sequential, one at a time):
  1. GET with browser headers and Referer = the embed URL itself
  2. on failure, one more GET on a throwaway connection (no keep-alive)
  3. regex every media URL out of the raw page text

A failing candidate never stops the batch and `scrape` never raises.
"""
from __future__ import annotations
import logging

from ..extract import find_media_urls
from ..fetcher import DEFAULT_UA, Fetcher

log = logging.getLogger("iptvweb.providers.embeds")

BROWSER_HEADERS = {
    "User-Agent": DEFAULT_UA,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class EmbedScraper:
    def __init__(self, fetcher: Fetcher):
        self.fetcher = fetcher

    async def _fetch_page(self, url: str) -> str | None:
        headers = {**BROWSER_HEADERS, "Referer": url}
        try:
            return await self.fetcher.get_text(url, headers=headers)
        except Exception as e:
            log.warning("[embed] %s failed (%s), retrying without keep-alive", url, e)

        try:
            return await self.fetcher.get_text(url, headers=headers, pooled=False)
        except Exception as e:
            log.warning("[embed] %s failed again: %s", url, e)
            return None

    async def scrape(self, urls: list[str]) -> list[str]:
        found: dict[str, None] = {}
        for url in urls:
            html = await self._fetch_page(url)
            if html is None:
                continue
            hits = find_media_urls(html)
            log.info("[embed] %s → %d media URL(s)", url, len(hits))
            found.update(dict.fromkeys(hits))
        return list(found)
