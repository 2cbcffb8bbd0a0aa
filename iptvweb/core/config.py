"""
Process configuration. Values come from the environment (a local .env file is
honoured) and are frozen into a single Settings value at startup.
"""
from __future__ import annotations
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_PLAYLIST = "http://xteve:34400/m3u/xteve.m3u8"
DEFAULT_MAC_PORTAL = "http://xteve:34400"
DEFAULT_MIRRORS = ("vidsrc.xyz", "vidsrc.to", "vidsrc.net", "vidsrc.in")


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    try:
        return float(raw) if raw is not None else default
    except ValueError:
        logging.getLogger("iptvweb.config").warning(
            "Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    playlist_url: str = DEFAULT_PLAYLIST
    allow_insecure: bool = False
    host: str = "0.0.0.0"
    port: int = 8080
    tmdb_api_key: str | None = None
    mac_portal_url: str = DEFAULT_MAC_PORTAL
    fetch_timeout: float = 15.0          # seconds, every outbound call
    cache_ttl: float = 60.0              # seconds
    resolver_timeout: float = 60.0       # seconds, external CLI wall clock
    vidsrc_mirrors: tuple[str, ...] = DEFAULT_MIRRORS
    lobster_bin: str = "lobster"
    ani_cli_bin: str = "ani-cli"
    static_dir: str = "public"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        mirrors = _env("VIDSRC_MIRRORS")
        return cls(
            playlist_url=_env("PLAYLIST_URL", DEFAULT_PLAYLIST),
            allow_insecure=(_env("ALLOW_INSECURE", "false").lower() == "true"),
            host=_env("HOST", "0.0.0.0"),
            port=int(_env_float("PORT", 8080)),
            tmdb_api_key=_env("TMDB_API_KEY"),
            mac_portal_url=_env("MAC_PORTAL_URL", DEFAULT_MAC_PORTAL).rstrip("/"),
            fetch_timeout=_env_float("FETCH_TIMEOUT", 15.0),
            cache_ttl=_env_float("CACHE_TTL", 60.0),
            resolver_timeout=_env_float("RESOLVER_TIMEOUT", 60.0),
            vidsrc_mirrors=(
                tuple(m.strip() for m in mirrors.split(",") if m.strip())
                if mirrors else DEFAULT_MIRRORS
            ),
            lobster_bin=_env("LOBSTER_BIN", "lobster"),
            ani_cli_bin=_env("ANI_CLI_BIN", "ani-cli"),
            static_dir=_env("STATIC_DIR", "public"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
