# contentbot/services/image_client.py
import logging
from typing import Optional

import httpx

from contentbot.config import settings
from contentbot.services.artifacts import CoverImageArtifact

log = logging.getLogger(__name__)

UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"


class ImageClient:
    def __init__(self, access_key: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.access_key = access_key if access_key is not None else settings.unsplash_access_key
        self.client = httpx.AsyncClient(timeout=httpx.Timeout(30, connect=5), transport=transport)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def find_cover(self, query: str) -> Optional[CoverImageArtifact]:
        """First landscape photo for `query`, or None when unconfigured or nothing matches."""
        if not self.access_key:
            log.info("[image] UNSPLASH_ACCESS_KEY not set, skipping cover image")
            return None
        try:
            r = await self.client.get(
                UNSPLASH_SEARCH_URL,
                params={"query": query, "per_page": 1, "orientation": "landscape"},
                headers={"Authorization": f"Client-ID {self.access_key}"},
            )
        except httpx.RequestError as e:
            log.warning("[image] request error: %s", e)
            return None
        if r.status_code != 200:
            log.warning("[image] non-200: %s %s", r.status_code, r.text[:200])
            return None
        results = r.json().get("results") or []
        if not results:
            return None
        photo = results[0]
        user = (photo.get("user") or {}).get("name")
        return CoverImageArtifact(
            image_url=(photo.get("urls") or {}).get("regular"),
            image_alt=photo.get("alt_description") or query,
            provider="unsplash",
            attribution=f"Photo by {user} on Unsplash" if user else None,
        )
