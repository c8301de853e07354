"""Web search via the Tavily API.

Search is an optional enrichment: a missing key or any failure yields an
empty result list, never an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .config import get_config
from .providers.secrets import get_api_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    content: str
    score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "url": self.url, "content": self.content, "score": self.score}


class SearchClient(Protocol):
    def search(self, query: str, *, max_results: int = 5) -> list[SearchResult]: ...


class TavilyClient:
    def __init__(
        self,
        *,
        api_key: str | None = None,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        config = get_config().search
        self._api_key = api_key or config.tavily_api_key or get_api_key("tavily")
        self._url = url or config.tavily_url
        self._timeout = timeout if timeout is not None else config.timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    def search(self, query: str, *, max_results: int = 5) -> list[SearchResult]:
        if not self._api_key:
            logger.warning("TAVILY_API_KEY not configured, skipping web search")
            return []

        payload = {
            "api_key": self._api_key,
            "query": query,
            "search_depth": "basic",
            "include_answer": True,
            "max_results": max_results,
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                res = client.post(self._url, json=payload)
                res.raise_for_status()
                data = res.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Tavily search failed for %r: %s", query, e)
            return []

        results: list[SearchResult] = []
        for item in data.get("results") or []:
            if not isinstance(item, dict):
                continue
            results.append(
                SearchResult(
                    title=str(item.get("title") or ""),
                    url=str(item.get("url") or ""),
                    content=str(item.get("content") or ""),
                    score=float(item.get("score") or 0.0),
                )
            )
        logger.debug("Tavily returned %d results for %r", len(results), query)
        return results


def format_search_results(results: list[SearchResult]) -> str:
    if not results:
        return ""
    lines = ["**Sources:**", ""]
    for i, r in enumerate(results, start=1):
        lines.append(f"{i}. **{r.title}**")
        lines.append(f"   URL: {r.url}")
        lines.append(f"   {r.content}")
        lines.append("")
    return "\n".join(lines).rstrip()


def perform_web_search(
    client: SearchClient,
    queries: list[str],
    *,
    max_queries: int = 3,
    max_results: int = 3,
    keep: int = 5,
) -> list[SearchResult]:
    """Run several queries and merge their results, deduplicated by URL."""
    seen: set[str] = set()
    merged: list[SearchResult] = []
    for query in queries[:max_queries]:
        if not query or not query.strip():
            continue
        for result in client.search(query.strip(), max_results=max_results):
            key = result.url or result.title
            if key in seen:
                continue
            seen.add(key)
            merged.append(result)
    return merged[:keep]


SEARCH_UNAVAILABLE = "Search unavailable. Proceeding with existing knowledge."


@dataclass
class SearchContext:
    """Search results prepared for a generation prompt."""

    results: list[SearchResult]
    summary: str

    @property
    def sources(self) -> list[dict[str, str]]:
        return [{"title": r.title, "url": r.url} for r in self.results]

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_results": [r.to_dict() for r in self.results],
            "summary": self.summary,
            "sources": self.sources,
        }
