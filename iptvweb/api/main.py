import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from iptvweb.api.schemas import PlayResponse, ProvidersResponse, WatchResponse
from iptvweb.core.cache import MetadataCache
from iptvweb.core.config import Settings
from iptvweb.core.errors import AppError, FetchError, UpstreamError, ValidationError
from iptvweb.providers.base import PlayRequest
from iptvweb.providers.embeds.scraper import EmbedScraper
from iptvweb.providers.fetcher import Fetcher
from iptvweb.providers.runner import VodPipeline
from iptvweb.services.metadata import MetadataClient
from iptvweb.services.playlist import mac_playlist_url, parse_m3u
from iptvweb.services.relay import is_http_url, relay, relay_url

log = logging.getLogger("iptvweb.api")

ANIME_EMBED_URL = "https://vidsrc.cc/v2/embed/anime/{mal_id}/{episode}/sub"

router = APIRouter(prefix="/api")


# --- DEPENDENCIES ---

def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_fetcher(request: Request) -> Fetcher:
    return request.app.state.fetcher

def get_metadata(request: Request) -> MetadataClient:
    return request.app.state.metadata

def get_pipeline(request: Request) -> VodPipeline:
    return request.app.state.pipeline


async def app_error_handler(_request: Request, exc: AppError):
    if exc.status_code >= 500:
        log.warning("%s: %s", exc.__class__.__name__, exc.message)
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def _require(value: Optional[str], name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"Missing {name} parameter")
    return value.strip()


# --- 1. HEALTH ---

@router.get("/health")
async def health():
    return {"ok": True}


# --- 2. PLAYLIST ---

@router.get("/channels")
async def list_channels(
    playlist: Optional[str] = None,
    mac: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    fetcher: Fetcher = Depends(get_fetcher),
):
    if mac is not None:
        playlist_url = mac_playlist_url(settings.mac_portal_url, mac)
    elif playlist:
        if not is_http_url(playlist):
            return JSONResponse({"error": "Invalid playlist URL"}, status_code=400)
        playlist_url = playlist
    else:
        playlist_url = settings.playlist_url

    try:
        text = await fetcher.get_text(playlist_url)
    except UpstreamError as e:
        log.error("Failed to load playlist %s: HTTP %s", playlist_url, e.status)
        return JSONResponse({"error": f"Failed to fetch playlist ({e.status})"}, status_code=502)
    except FetchError as e:
        log.error("Failed to load playlist %s: %s", playlist_url, e.message)
        return JSONResponse({"error": e.message}, status_code=502)

    channels = parse_m3u(text)
    return {
        "playlistUrl": playlist_url,
        "count": len(channels),
        "channels": [c.to_dict() for c in channels],
    }


# --- 3. RELAY ---

@router.get("/stream")
async def stream(url: Optional[str] = None, fetcher: Fetcher = Depends(get_fetcher)):
    try:
        return await relay(fetcher, url)
    except UpstreamError as e:
        return JSONResponse({"error": e.message, "url": e.url}, status_code=e.status)
    except FetchError as e:
        if e.code == "ENOTFOUND":
            log.error("DNS resolution failed for stream: %s", url)
        elif e.code == "ETIMEDOUT":
            log.error("Request timeout for stream: %s", url)
        else:
            log.error("Stream proxy error (%s): %s", e.code, e.message)
        return JSONResponse(
            {"error": "Failed to proxy stream", "code": e.code, "message": e.message},
            status_code=502,
        )


# --- 4. METADATA PASS-THROUGH ---

@router.get("/movies/search")
async def search_movies(query: Optional[str] = None, page: int = 1, metadata: MetadataClient = Depends(get_metadata)):
    return await metadata.search_movies(_require(query, "query"), page)

@router.get("/movies/popular")
async def popular_movies(page: int = 1, metadata: MetadataClient = Depends(get_metadata)):
    return await metadata.popular_movies(page)

@router.get("/tv/search")
async def search_tv(query: Optional[str] = None, page: int = 1, metadata: MetadataClient = Depends(get_metadata)):
    return await metadata.search_tv(_require(query, "query"), page)

@router.get("/tv/popular")
async def popular_tv(page: int = 1, metadata: MetadataClient = Depends(get_metadata)):
    return await metadata.popular_tv(page)

@router.get("/anime/search")
async def search_anime(query: Optional[str] = None, page: int = 1, metadata: MetadataClient = Depends(get_metadata)):
    return await metadata.search_anime(_require(query, "query"), page)

@router.get("/anime/popular")
async def popular_anime(page: int = 1, metadata: MetadataClient = Depends(get_metadata)):
    return await metadata.top_anime(page)

@router.get("/tv/{tmdb_id}/seasons")
async def tv_seasons(tmdb_id: int, metadata: MetadataClient = Depends(get_metadata)):
    details = await metadata.tv(tmdb_id)
    seasons = [
        {
            "season_number": s.get("season_number"),
            "name": s.get("name"),
            "episode_count": s.get("episode_count"),
            "air_date": s.get("air_date"),
        }
        for s in details.get("seasons", []) if (s.get("season_number") or 0) > 0
    ]
    return {"id": tmdb_id, "title": details.get("name"), "seasons": seasons}

@router.get("/anime/{mal_id}/episodes")
async def anime_episodes(mal_id: int, page: int = 1, metadata: MetadataClient = Depends(get_metadata)):
    return await metadata.anime_episodes(mal_id, page)


# --- 5. WATCH (metadata-backed scraping) ---

async def _watch(pipeline: VodPipeline, title: str, tmdb_id: int, category: str, season: int = 1, episode: int = 1):
    embeds, found = await pipeline.watch(tmdb_id, category, season, episode)
    if not found:
        log.warning("No playable URLs for %s %s, returning embed only", category, tmdb_id)
    return {
        "success": bool(found),
        "title": title,
        "streamUrl": relay_url(found[0]) if found else None,
        "embedUrl": embeds[0] if embeds else None,
        "alternateUrls": found[1:],
    }

@router.get("/movies/{tmdb_id}/watch", response_model=WatchResponse)
async def watch_movie(
    tmdb_id: int,
    metadata: MetadataClient = Depends(get_metadata),
    pipeline: VodPipeline = Depends(get_pipeline),
):
    details = await metadata.movie(tmdb_id)
    title = details.get("title") or details.get("original_title") or str(tmdb_id)
    return await _watch(pipeline, title, tmdb_id, "movie")

@router.get("/tv/{tmdb_id}/watch", response_model=WatchResponse)
async def watch_tv(
    tmdb_id: int,
    season: int = 1,
    episode: int = 1,
    metadata: MetadataClient = Depends(get_metadata),
    pipeline: VodPipeline = Depends(get_pipeline),
):
    details = await metadata.tv(tmdb_id)
    title = details.get("name") or details.get("original_name") or str(tmdb_id)
    return await _watch(pipeline, f"{title} S{season:02d}E{episode:02d}", tmdb_id, "tv", season, episode)

@router.get("/anime/{mal_id}/watch", response_model=WatchResponse)
async def watch_anime(mal_id: int, episode: int = 1, metadata: MetadataClient = Depends(get_metadata)):
    details = (await metadata.anime(mal_id)).get("data") or {}
    title = details.get("title_english") or details.get("title") or str(mal_id)
    return {
        "success": True,
        "title": f"{title} - Episode {episode}",
        "streamUrl": None,
        "embedUrl": ANIME_EMBED_URL.format(mal_id=mal_id, episode=episode),
        "alternateUrls": [],
    }


# --- 6. VOD PROVIDERS ---

@router.get("/vod/providers", response_model=ProvidersResponse)
async def vod_providers(pipeline: VodPipeline = Depends(get_pipeline)):
    return {"providers": await pipeline.list_providers()}

@router.get("/vod/play", response_model=PlayResponse)
async def vod_play(
    provider: str = "vidsrc",
    query: Optional[str] = None,
    episode: int = 1,
    quality: Optional[str] = None,
    media_type: Optional[str] = Query(None, alias="type"),
    pipeline: VodPipeline = Depends(get_pipeline),
):
    ctx = PlayRequest(
        query=_require(query, "query"),
        episode=episode,
        quality=quality or None,
        media_type=media_type or None,
    )
    chosen, result = await pipeline.play(provider, ctx)
    return {
        "provider": chosen.id,
        "title": result.title,
        "url": result.primary,
        "streamUrl": relay_url(result.primary),
        "alternatives": result.urls,
    }


# --- APP ---

def create_app(settings: Optional[Settings] = None, *, transport=None, clock=None) -> FastAPI:
    """Build the app with one set of shared components.

    `transport` (an httpx transport) and `clock` exist for tests.
    """
    settings = settings or Settings.from_env()
    fetcher = Fetcher(timeout=settings.fetch_timeout, insecure=settings.allow_insecure, transport=transport)
    cache = MetadataCache(settings.cache_ttl, **({"clock": clock} if clock else {}))
    metadata = MetadataClient(fetcher, cache, tmdb_api_key=settings.tmdb_api_key)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        log.info("IPTV web server starting (insecure TLS: %s)", settings.allow_insecure)
        yield
        await fetcher.close()

    app = FastAPI(title="IPTV Web", lifespan=lifespan)
    app.state.settings = settings
    app.state.fetcher = fetcher
    app.state.cache = cache
    app.state.metadata = metadata
    app.state.pipeline = VodPipeline(settings, metadata, EmbedScraper(fetcher))

    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(AppError, app_error_handler)
    app.include_router(router)

    # MOUNT STATIC FRONTEND (after the API so /api/* wins)
    if os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


app = create_app()
