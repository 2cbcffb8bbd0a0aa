"""
Core types for the VOD provider system.

Three provider kinds share one contract (resolve a query, report availability):
  - SCRAPE:   metadata search → mirror embed pages → regex media URLs
  - LOBSTER:  `lobster` CLI, JSON/text stdout
  - ANI_CLI:  `ani-cli` CLI in debug-player mode
"""
from __future__ import annotations
import enum
import re
from dataclasses import dataclass, field
from typing import Optional

EPISODE_MARKER_RE = re.compile(r"\bs(\d{1,3})\s*e(\d{1,4})\b", re.IGNORECASE)


class ProviderKind(enum.Enum):
    SCRAPE = "direct-scrape"
    LOBSTER = "subprocess-lobster"
    ANI_CLI = "subprocess-ani-cli"


@dataclass(frozen=True)
class Provider:
    id: str
    label: str
    description: str
    kind: ProviderKind

    def to_dict(self, available: bool):
        return {"id": self.id, "label": self.label, "description": self.description, "available": available}


# ──────────────────────────────
#  Request / result
# ──────────────────────────────
@dataclass
class PlayRequest:
    query: str
    episode: int = 1
    quality: Optional[str] = None
    media_type: Optional[str] = None       # "movie" | "tv" | None (search both)

    def __post_init__(self):
        if self.media_type == "show":
            self.media_type = "tv"


@dataclass
class ResolvedTitle:
    title: str
    urls: list[str] = field(default_factory=list)     # first = primary
    raw: str = ""                                      # diagnostic transcript

    @property
    def primary(self) -> Optional[str]:
        return self.urls[0] if self.urls else None


def split_episode_marker(query: str, fallback_episode: int = 1) -> tuple[str, int, int]:
    """Pull an `sNNeNN` marker out of free text.

    Returns (query without the marker, season, episode); season defaults to 1
    and episode to `fallback_episode` when no marker is present.
    """
    match = EPISODE_MARKER_RE.search(query)
    if not match:
        return query.strip(), 1, fallback_episode
    cleaned = (query[:match.start()] + query[match.end():]).strip()
    return " ".join(cleaned.split()) or query.strip(), int(match.group(1)), int(match.group(2))
