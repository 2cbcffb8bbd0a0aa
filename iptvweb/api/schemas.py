from typing import List, Optional

from pydantic import BaseModel


class ProviderInfo(BaseModel):
    id: str
    label: str
    description: str
    available: bool


class ProvidersResponse(BaseModel):
    providers: List[ProviderInfo]


class PlayResponse(BaseModel):
    provider: str
    title: str
    url: str
    streamUrl: str
    alternatives: List[str] = []


class WatchResponse(BaseModel):
    success: bool
    title: str
    streamUrl: Optional[str] = None   # relay-wrapped primary
    embedUrl: Optional[str] = None
    alternateUrls: List[str] = []
