"""
M3U playlist parsing and playlist-source selection for /api/channels.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from ..core.errors import ValidationError
from .relay import relay_url

ATTR_RE = re.compile(r'([A-Za-z0-9\-]+)="([^"]*)"')
LINE_RE = re.compile(r"\r?\n")

MAC_PATTERNS = (
    re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$"),
    re.compile(r"^[0-9A-Fa-f]{2}(-[0-9A-Fa-f]{2}){5}$"),
    re.compile(r"^[0-9A-Fa-f]{12}$"),
)


@dataclass(frozen=True)
class Channel:
    name: str
    url: str
    stream_url: str
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def to_dict(self):
        # attribute keys sit beside name/url like the frontend expects
        return {"name": self.name, **self.attributes, "url": self.url, "streamUrl": self.stream_url}


def parse_attributes(line: str) -> dict[str, str]:
    return {key: value for key, value in ATTR_RE.findall(line)}


def parse_m3u(content: str) -> list[Channel]:
    channels: list[Channel] = []
    pending = None                    # (name, attributes) from the last #EXTINF

    for raw in LINE_RE.split(content):
        line = raw.strip()
        if not line:
            continue

        if line.startswith("#EXTINF"):
            _, _, title = line.partition(",")
            pending = (title.strip() or "Unknown", parse_attributes(line))
        elif not line.startswith("#") and pending is not None:
            name, attributes = pending
            channels.append(Channel(name=name, url=line, stream_url=relay_url(line), attributes=attributes))
            pending = None

    return channels


def normalize_mac(mac: str) -> str:
    """Validate a MAC address and return it as AA:BB:CC:DD:EE:FF."""
    mac = (mac or "").strip()
    if not any(p.match(mac) for p in MAC_PATTERNS):
        raise ValidationError("Invalid MAC address format")
    digits = re.sub(r"[:\-]", "", mac).upper()
    return ":".join(digits[i:i + 2] for i in range(0, 12, 2))


def mac_playlist_url(portal: str, mac: str) -> str:
    return f"{portal.rstrip('/')}/get.php?mac={normalize_mac(mac)}&type=m3u_plus&output=ts"
