"""
Metadata lookups against TMDB (movies, TV) and Jikan (anime).

Both APIs are treated as opaque JSON. Every response is memoised in the
MetadataCache so bursts from the UI reach the upstream once per TTL window.
"""
from __future__ import annotations
import logging
from typing import Optional
from urllib.parse import urlencode

from ..core.cache import MetadataCache
from ..core.errors import NotConfigured
from ..providers.fetcher import Fetcher

log = logging.getLogger("iptvweb.metadata")

TMDB_BASE_URL = "https://api.themoviedb.org/3"
JIKAN_BASE_URL = "https://api.jikan.moe/v4"


class MetadataClient:
    def __init__(self, fetcher: Fetcher, cache: MetadataCache, *, tmdb_api_key: str | None = None):
        self.fetcher = fetcher
        self.cache = cache
        self.tmdb_api_key = tmdb_api_key

    async def _cached_json(self, base: str, path: str, params: dict, secret: dict | None = None):
        params = {k: v for k, v in params.items() if v is not None}
        key = f"{base}{path}?{urlencode(sorted(params.items()))}"
        hit = self.cache.get(key)
        if hit is not None:
            log.debug("cache hit %s", key)
            return hit
        data = await self.fetcher.get_json(f"{base}{path}", params={**params, **(secret or {})})
        self.cache.set(key, data)
        return data

    async def tmdb(self, path: str, **params):
        if not self.tmdb_api_key:
            raise NotConfigured("TMDB_API_KEY is not configured")
        return await self._cached_json(TMDB_BASE_URL, path, params, {"api_key": self.tmdb_api_key})

    async def jikan(self, path: str, **params):
        return await self._cached_json(JIKAN_BASE_URL, path, params)

    # ── TMDB ──────────────────

    async def search_movies(self, query: str, page: int = 1):
        return await self.tmdb("/search/movie", query=query, page=page, include_adult="false")

    async def popular_movies(self, page: int = 1):
        return await self.tmdb("/movie/popular", page=page)

    async def search_tv(self, query: str, page: int = 1):
        return await self.tmdb("/search/tv", query=query, page=page, include_adult="false")

    async def popular_tv(self, page: int = 1):
        return await self.tmdb("/tv/popular", page=page)

    async def movie(self, tmdb_id: int):
        return await self.tmdb(f"/movie/{tmdb_id}", language="en-US")

    async def tv(self, tmdb_id: int):
        return await self.tmdb(f"/tv/{tmdb_id}", language="en-US")

    async def find_title(self, query: str, media_type: str | None = None) -> Optional[dict]:
        """Best TMDB match for free text: {id, title, category} or None."""
        if media_type == "movie":
            path = "/search/movie"
        elif media_type in ("tv", "show"):
            path = "/search/tv"
        else:
            path = "/search/multi"
        data = await self.tmdb(path, query=query, include_adult="false")

        for item in data.get("results") or []:
            category = item.get("media_type") or ("movie" if path == "/search/movie" else "tv")
            if category not in ("movie", "tv"):
                continue
            return {
                "id": item.get("id"),
                "title": item.get("title") or item.get("name") or query,
                "category": category,
            }
        return None

    # ── Jikan ──────────────────

    async def search_anime(self, query: str, page: int = 1):
        return await self.jikan("/anime", q=query, page=page, sfw="true")

    async def top_anime(self, page: int = 1):
        return await self.jikan("/top/anime", page=page)

    async def anime(self, mal_id: int):
        return await self.jikan(f"/anime/{mal_id}")

    async def anime_episodes(self, mal_id: int, page: int = 1):
        return await self.jikan(f"/anime/{mal_id}/episodes", page=page)
