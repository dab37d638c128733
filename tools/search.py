"""
tools/search.py — Web search provider adapters.

THE CORE CONCEPT: one shape, three providers
  Every provider answers search(query) with a list of SearchHit:

      SearchHit(id, title, url, display_url, snippet)

  The aggregator (pipeline/aggregator.py) only ever sees that shape. Which
  backend produced it is a configuration choice (settings.search_provider):

  Bing Web Search v7
    GET https://api.bing.microsoft.com/v7.0/search?q=...
    Header: Ocp-Apim-Subscription-Key
    Hits live in webPages.value[]. A body with _type == "ErrorResponse"
    is an error even when the HTTP status is 200.

  Google Custom Search JSON API
    GET https://www.googleapis.com/customsearch/v1?key=...&cx=...&q=...
    Hits live in items[]. Titles and snippets are optional — missing
    titles fall back to the URL, missing snippets to a placeholder.

  Tavily
    POST https://api.tavily.com/search  {"api_key", "query", "max_results"}
    Hits live in results[]; "content" is the snippet.

ERRORS:
  Providers RAISE (SearchProviderError, or httpx errors) instead of
  returning an empty list. An empty list means "the provider answered and
  found nothing"; an exception means "the provider did not answer". The
  aggregator turns both into zero hits for that one query.

USAGE:
  from tools.search import make_search_provider
  from config import settings

  provider = make_search_provider(settings)
  hits = await provider.search("solid state battery commercialization")
  for hit in hits:
      print(hit.url, hit.snippet[:80])
"""

import logging
import uuid
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_ENDPOINT = "https://www.googleapis.com/customsearch/v1"
TAVILY_SEARCH_ENDPOINT = "https://api.tavily.com/search"
NO_SNIPPET = "No Snippet Available"


# ── Result type ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SearchHit:
    """
    One organic search result. Immutable once returned.

    url is the deduplication key — compared as an exact string, never
    normalized. display_url is the human-friendly form shown in a UI.
    """
    id: str
    title: str
    url: str
    display_url: str
    snippet: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "displayUrl": self.display_url,
            "snippet": self.snippet,
        }


class SearchProviderError(Exception):
    """The search provider did not return a usable result set."""


# ── Shared HTTP plumbing ──────────────────────────────────────────────────────

class _HttpSearchProvider:
    name = "http"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        max_results: int = 10,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._max_results = max_results

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        """Send one request and return the decoded JSON body. Raises on HTTP errors."""
        if self._client is not None:
            response = await self._client.request(method, url, timeout=self._timeout, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(method, url, **kwargs)

        if response.status_code >= 400:
            raise SearchProviderError(
                f"{self.name} search returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SearchProviderError(f"{self.name} search returned invalid JSON") from e

        if not isinstance(data, dict):
            raise SearchProviderError(f"{self.name} search returned a non-object body")
        return data

    async def search(self, query: str) -> list[SearchHit]:
        raise NotImplementedError


# ── Bing ──────────────────────────────────────────────────────────────────────

class BingSearchProvider(_HttpSearchProvider):
    name = "bing"

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = "https://api.bing.microsoft.com/v7.0/search",
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._endpoint = endpoint

    async def search(self, query: str) -> list[SearchHit]:
        data = await self._request(
            "GET",
            self._endpoint,
            params={"q": query, "count": self._max_results},
            headers={"Ocp-Apim-Subscription-Key": self._api_key},
        )

        if data.get("_type") == "ErrorResponse":
            messages = [e.get("message", "") for e in data.get("errors", [])]
            raise SearchProviderError(f"Bing error response: {'; '.join(messages)}")

        pages = (data.get("webPages") or {}).get("value") or []
        hits = []
        for page in pages:
            url = page.get("url", "")
            if not url:
                continue
            hits.append(SearchHit(
                id=page.get("id") or uuid.uuid4().hex,
                title=page.get("name") or url,
                url=url,
                display_url=page.get("displayUrl") or url,
                snippet=page.get("snippet") or NO_SNIPPET,
            ))
        return hits


# ── Google ────────────────────────────────────────────────────────────────────

class GoogleSearchProvider(_HttpSearchProvider):
    name = "google"

    def __init__(self, api_key: str, search_engine_id: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._search_engine_id = search_engine_id

    async def search(self, query: str) -> list[SearchHit]:
        data = await self._request(
            "GET",
            GOOGLE_SEARCH_ENDPOINT,
            params={
                "key": self._api_key,
                "cx": self._search_engine_id,
                "q": query,
                "num": min(self._max_results, 10),  # API maximum
            },
        )

        if "error" in data:
            message = (data.get("error") or {}).get("message", "unknown error")
            raise SearchProviderError(f"Google error response: {message}")

        hits = []
        for index, item in enumerate(data.get("items") or []):
            url = item.get("link") or ""
            if not url:
                continue
            hits.append(SearchHit(
                id=f"{uuid.uuid4()}_{index}",
                title=item.get("title") or url,
                url=url,
                display_url=item.get("displayLink") or url,
                snippet=item.get("snippet") or NO_SNIPPET,
            ))
        return hits


# ── Tavily ────────────────────────────────────────────────────────────────────

class TavilySearchProvider(_HttpSearchProvider):
    name = "tavily"

    def __init__(self, api_key: str, *, search_depth: str = "basic", **kwargs) -> None:
        super().__init__(**kwargs)
        self._api_key = api_key
        self._search_depth = search_depth

    async def search(self, query: str) -> list[SearchHit]:
        data = await self._request(
            "POST",
            TAVILY_SEARCH_ENDPOINT,
            json={
                "api_key": self._api_key,
                "query": query,
                "max_results": self._max_results,
                "search_depth": self._search_depth,
                "include_answer": False,
            },
        )

        hits = []
        for index, item in enumerate(data.get("results") or []):
            url = item.get("url") or ""
            if not url:
                continue
            hits.append(SearchHit(
                id=f"tavily_{index}",
                title=item.get("title") or url,
                url=url,
                display_url=urlparse(url).netloc or url,
                snippet=item.get("content") or NO_SNIPPET,
            ))
        return hits


# ── Factory ───────────────────────────────────────────────────────────────────

def make_search_provider(settings, client: httpx.AsyncClient | None = None) -> _HttpSearchProvider:
    """Build the provider named by settings.search_provider."""
    common = dict(
        client=client,
        timeout=settings.search_timeout_seconds,
        max_results=settings.max_search_results,
    )
    if settings.search_provider == "bing":
        return BingSearchProvider(settings.bing_api_key, endpoint=settings.bing_endpoint, **common)
    if settings.search_provider == "google":
        return GoogleSearchProvider(
            settings.google_api_key, settings.google_search_engine_id, **common
        )
    if settings.search_provider == "tavily":
        return TavilySearchProvider(settings.tavily_api_key, **common)
    raise ValueError(f"Unknown search provider: {settings.search_provider!r}")
