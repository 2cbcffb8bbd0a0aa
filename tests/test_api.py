from urllib.parse import parse_qs, urlparse

import httpx

from iptvweb.providers import runner

PLAYLIST = '#EXTM3U\n#EXTINF:-1 tvg-logo="http://x/logo.png",Channel One\nhttp://x/stream1.ts\n'


async def _absent(_binary):
    return False


def test_health(make_client):
    client = make_client()
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


# --- CHANNELS ---

def test_channels_from_default_playlist(make_client):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text=PLAYLIST)

    client = make_client(handler, playlist_url="http://xteve.test/m3u/xteve.m3u8")
    response = client.get("/api/channels")
    assert response.status_code == 200
    data = response.json()
    assert data["playlistUrl"] == "http://xteve.test/m3u/xteve.m3u8"
    assert data["count"] == 1
    assert data["channels"][0] == {
        "name": "Channel One",
        "tvg-logo": "http://x/logo.png",
        "url": "http://x/stream1.ts",
        "streamUrl": "/api/stream?url=http%3A%2F%2Fx%2Fstream1.ts",
    }
    assert seen == ["http://xteve.test/m3u/xteve.m3u8"]


def test_channels_custom_playlist(make_client):
    client = make_client(lambda request: httpx.Response(200, text=PLAYLIST))
    response = client.get("/api/channels", params={"playlist": "https://lists.test/my.m3u"})
    assert response.status_code == 200
    assert response.json()["playlistUrl"] == "https://lists.test/my.m3u"


def test_channels_invalid_playlist_url(make_client):
    client = make_client()
    response = client.get("/api/channels", params={"playlist": "file:///etc/passwd"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid playlist URL"}


def test_channels_invalid_mac(make_client):
    client = make_client()
    response = client.get("/api/channels?mac=not-a-mac")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid MAC address format"}


def test_channels_mac_builds_portal_url(make_client):
    seen = []

    def handler(request):
        seen.append(request.url)
        return httpx.Response(200, text=PLAYLIST)

    client = make_client(handler, mac_portal_url="http://portal.test")
    response = client.get("/api/channels", params={"mac": "001a2b3c4d5e", "playlist": "http://ignored.test/x.m3u"})
    assert response.status_code == 200
    assert seen[0].host == "portal.test"
    assert seen[0].params["mac"] == "00:1A:2B:3C:4D:5E"


def test_channels_upstream_failure(make_client):
    client = make_client(lambda request: httpx.Response(503))
    response = client.get("/api/channels")
    assert response.status_code == 502
    assert response.json() == {"error": "Failed to fetch playlist (503)"}


# --- STREAM RELAY ---

def test_stream_rejects_non_http_scheme(make_client):
    client = make_client()
    response = client.get("/api/stream?url=ftp://x/file")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid protocol"}


def test_stream_requires_url(make_client):
    client = make_client()
    assert client.get("/api/stream").json() == {"error": "Missing url parameter"}
    response = client.get("/api/stream", params={"url": "not a url"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid URL"}


def test_stream_rewrites_manifest(make_client):
    manifest = "#EXTM3U\n#EXT-X-TARGETDURATION:6\n#EXTINF:6,\nseg1.ts\n\n#EXTINF:6,\nhttps://cdn.test/seg2.ts\n"
    referers = []

    def handler(request):
        referers.append(request.headers.get("referer"))
        return httpx.Response(200, text=manifest, headers={"content-type": "application/x-mpegURL"})

    client = make_client(handler)
    response = client.get("/api/stream", params={"url": "http://origin.test/live/index.m3u8"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/vnd.apple.mpegurl")
    assert response.headers["access-control-allow-origin"] == "*"
    lines = response.text.split("\n")
    assert lines[0] == "#EXTM3U"
    assert lines[3] == "/api/stream?url=http%3A%2F%2Forigin.test%2Flive%2Fseg1.ts"
    assert lines[4] == ""
    assert lines[6] == "/api/stream?url=https%3A%2F%2Fcdn.test%2Fseg2.ts"
    assert referers == ["http://origin.test/"]


def test_stream_pipes_media_unmodified(make_client):
    payload = bytes(range(256)) * 64

    def handler(request):
        return httpx.Response(200, content=payload, headers={"content-type": "video/mp2t"})

    client = make_client(handler)
    response = client.get("/api/stream", params={"url": "http://origin.test/seg.ts"})
    assert response.status_code == 200
    assert response.content == payload
    assert response.headers["content-type"] == "video/mp2t"
    assert response.headers["cache-control"] == "no-store"
    assert response.headers["access-control-allow-origin"] == "*"


def test_stream_upstream_status_passthrough(make_client):
    client = make_client(lambda request: httpx.Response(404))
    target = "http://origin.test/missing.ts"
    response = client.get("/api/stream", params={"url": target})
    assert response.status_code == 404
    assert response.json() == {"error": "Upstream returned 404", "url": target}


def test_stream_timeout_maps_to_502(make_client):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = make_client(handler)
    response = client.get("/api/stream", params={"url": "http://slow.test/a.ts"})
    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "Failed to proxy stream"
    assert body["code"] == "ETIMEDOUT"


def test_stream_dns_failure_maps_to_enotfound(make_client):
    def handler(request):
        raise httpx.ConnectError("[Errno -2] Name or service not known", request=request)

    client = make_client(handler)
    response = client.get("/api/stream", params={"url": "http://nowhere.test/a.ts"})
    assert response.status_code == 502
    assert response.json()["code"] == "ENOTFOUND"


class _StalledBody(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield b"#EXTM3U\n"
        raise httpx.ReadTimeout("timed out")

    async def aclose(self):
        pass


def test_stream_manifest_body_timeout_maps_to_502(make_client):
    def handler(request):
        return httpx.Response(200, headers={"content-type": "application/vnd.apple.mpegurl"}, stream=_StalledBody())

    client = make_client(handler)
    response = client.get("/api/stream", params={"url": "https://cdn.test/x.m3u8"})
    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "Failed to proxy stream"
    assert body["code"] == "ETIMEDOUT"


def test_stream_manifest_resolves_against_redirect_target(make_client):
    def handler(request):
        if request.url.host == "origin.test":
            return httpx.Response(302, headers={"location": "https://cdn.test/hls/index.m3u8"})
        return httpx.Response(200, text="#EXTM3U\nseg1.ts", headers={"content-type": "application/x-mpegURL"})

    client = make_client(handler)
    response = client.get("/api/stream", params={"url": "http://origin.test/live/index.m3u8"})
    assert response.status_code == 200
    segment = response.text.split("\n")[1]
    assert parse_qs(urlparse(segment).query)["url"][0] == "https://cdn.test/hls/seg1.ts"


# --- METADATA ---

def test_tmdb_endpoints_need_token(make_client):
    client = make_client(tmdb_api_key=None)
    response = client.get("/api/movies/popular")
    assert response.status_code == 500
    assert response.json() == {"error": "TMDB_API_KEY is not configured"}


def test_movie_search_requires_query(make_client):
    client = make_client()
    response = client.get("/api/movies/search")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing query parameter"}


def test_metadata_responses_are_cached(make_client):
    calls = []

    def handler(request):
        calls.append(request.url.path)
        return httpx.Response(200, json={"results": [{"id": 1, "title": "Heat"}]})

    client = make_client(handler)
    first = client.get("/api/movies/search", params={"query": "heat"})
    second = client.get("/api/movies/search", params={"query": "heat"})
    assert first.json() == second.json()
    assert calls == ["/3/search/movie"]


def test_non_json_metadata_is_502(make_client):
    client = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    response = client.get("/api/movies/popular")
    assert response.status_code == 502
    body = response.json()
    assert body["error"] == "Upstream returned invalid JSON"
    assert body["url"] == "https://api.themoviedb.org/3/movie/popular"


def test_anime_popular_uses_jikan(make_client):
    def handler(request):
        assert request.url.host == "api.jikan.moe"
        return httpx.Response(200, json={"data": [{"mal_id": 21, "title": "One Piece"}]})

    client = make_client(handler, tmdb_api_key=None)
    response = client.get("/api/anime/popular")
    assert response.status_code == 200
    assert response.json()["data"][0]["mal_id"] == 21


def test_tv_seasons_skip_specials(make_client):
    def handler(request):
        return httpx.Response(200, json={"name": "Show", "seasons": [
            {"season_number": 0, "name": "Specials", "episode_count": 3},
            {"season_number": 1, "name": "Season 1", "episode_count": 10},
        ]})

    client = make_client(handler)
    data = client.get("/api/tv/99/seasons").json()
    assert data["title"] == "Show"
    assert [s["season_number"] for s in data["seasons"]] == [1]


def test_movie_watch_scrapes_mirrors(make_client):
    def handler(request):
        if request.url.host == "api.themoviedb.org":
            return httpx.Response(200, json={"id": 603, "title": "The Matrix"})
        if request.url.host == "mirror-one.test":
            return httpx.Response(200, text='<script>file:"https://cdn.test/matrix/master.m3u8"</script>')
        return httpx.Response(200, text='<video src="https://cdn.test/matrix.mp4"></video>')

    client = make_client(handler)
    data = client.get("/api/movies/603/watch").json()
    assert data["success"] is True
    assert data["title"] == "The Matrix"
    assert data["embedUrl"] == "https://mirror-one.test/embed/movie/603"
    assert data["streamUrl"] == "/api/stream?url=https%3A%2F%2Fcdn.test%2Fmatrix%2Fmaster.m3u8"
    assert data["alternateUrls"] == ["https://cdn.test/matrix.mp4"]


def test_tv_watch_without_results_returns_embed(make_client):
    def handler(request):
        if request.url.host == "api.themoviedb.org":
            return httpx.Response(200, json={"id": 1399, "name": "Thrones"})
        return httpx.Response(200, text="<html>nothing here</html>")

    client = make_client(handler)
    data = client.get("/api/tv/1399/watch?season=2&episode=3").json()
    assert data["success"] is False
    assert data["streamUrl"] is None
    assert data["embedUrl"] == "https://mirror-one.test/embed/tv/1399/2/3"


# --- VOD ---

def test_vod_unknown_provider(make_client):
    client = make_client()
    response = client.get("/api/vod/play?provider=bogus&query=test")
    assert response.status_code == 404
    assert response.json() == {"error": "Unknown provider"}


def test_vod_missing_query(make_client):
    client = make_client()
    response = client.get("/api/vod/play?provider=vidsrc")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing query parameter"}


def test_vod_providers_report_availability(make_client, monkeypatch):
    async def probe(binary):
        return binary == "lobster"

    monkeypatch.setattr(runner, "command_exists", probe)
    client = make_client()
    providers = {p["id"]: p for p in client.get("/api/vod/providers").json()["providers"]}
    assert set(providers) == {"vidsrc", "lobster", "ani-cli"}
    assert providers["vidsrc"]["available"] is True
    assert providers["lobster"]["available"] is True
    assert providers["ani-cli"]["available"] is False


def test_vod_unavailable_dependency(make_client, monkeypatch):
    monkeypatch.setattr(runner, "command_exists", _absent)
    client = make_client()
    response = client.get("/api/vod/play", params={"provider": "ani-cli", "query": "frieren"})
    assert response.status_code == 400
    assert response.json()["dependency"] == "ani-cli"


def test_vod_play_vidsrc(make_client):
    def handler(request):
        if request.url.host == "api.themoviedb.org":
            assert request.url.path == "/3/search/tv"
            assert request.url.params["query"] == "breaking bad"
            return httpx.Response(200, json={"results": [{"id": 1396, "name": "Breaking Bad"}]})
        assert request.url.path == "/embed/tv/1396/2/5"
        return httpx.Response(200, text="src='https://cdn.test/bb/index.m3u8'")

    client = make_client(handler)
    response = client.get("/api/vod/play", params={
        "provider": "vidsrc", "query": "breaking bad s02e05", "type": "tv",
    })
    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "vidsrc"
    assert data["title"] == "Breaking Bad"
    assert data["url"] == "https://cdn.test/bb/index.m3u8"
    assert data["alternatives"] == ["https://cdn.test/bb/index.m3u8"]
    decoded = parse_qs(urlparse(data["streamUrl"]).query)["url"][0]
    assert decoded == data["url"]


def test_vod_play_no_urls_is_500(make_client):
    def handler(request):
        if request.url.host == "api.themoviedb.org":
            return httpx.Response(200, json={"results": [{"id": 5, "title": "Obscure", "media_type": "movie"}]})
        return httpx.Response(200, text="no media")

    client = make_client(handler)
    response = client.get("/api/vod/play", params={"query": "obscure"})
    assert response.status_code == 500
    assert "No playable URLs" in response.json()["error"]
