# contentbot/services/search_client.py
import logging
from typing import List, Optional

import anyio
import httpx
from pydantic import BaseModel

from contentbot.config import settings
from contentbot.services.artifacts import Source
from contentbot.services.errors import SearchError

log = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


class SearchResults(BaseModel):
    answer: Optional[str] = None
    results: List[Source] = []


class SearchClient:
    """Web search over a Tavily-compatible API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        max_attempts: int = 3,
        backoff: float = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.search_api_key
        self.url = url or settings.search_api_url
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.client = httpx.AsyncClient(timeout=httpx.Timeout(30, connect=5), transport=transport)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _post_with_retry(self, payload: dict) -> httpx.Response:
        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = await self.client.post(self.url, json=payload)
                if resp.status_code in RETRY_STATUSES and attempt < self.max_attempts:
                    log.warning("[search] attempt %s got %s, retrying...", attempt, resp.status_code)
                    await anyio.sleep(self.backoff * attempt)
                    continue
                return resp
            except httpx.RequestError as e:
                log.warning("[search] request error: %s", e)
                if attempt < self.max_attempts:
                    await anyio.sleep(self.backoff * attempt)
                    continue
                raise SearchError(f"Search request failed: {e}") from e
        raise SearchError(f"Search API failed after {self.max_attempts} attempts")

    async def search(
        self,
        query: str,
        max_results: int = 8,
        exclude_domains: Optional[List[str]] = None,
        include_domains: Optional[List[str]] = None,
        include_answer: bool = True,
    ) -> SearchResults:
        if not self.api_key:
            raise SearchError("SEARCH_API_KEY is not set")
        payload = {
            "api_key": self.api_key,
            "query": query,
            "max_results": max_results,
            "search_depth": "advanced",
            "include_answer": include_answer,
        }
        if exclude_domains:
            payload["exclude_domains"] = exclude_domains
        if include_domains:
            payload["include_domains"] = include_domains
        resp = await self._post_with_retry(payload)
        if resp.status_code != 200:
            raise SearchError(f"Search API error {resp.status_code}: {resp.text[:300]}")
        try:
            data = resp.json()
        except ValueError as e:
            raise SearchError(f"Search API returned a non-JSON body: {resp.text[:300]}") from e
        results = [
            Source(url=r["url"], title=r.get("title") or "", content=r.get("content"))
            for r in data.get("results", [])
            if r.get("url")
        ]
        return SearchResults(answer=data.get("answer"), results=results)
