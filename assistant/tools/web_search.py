from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlparse

import httpx

from assistant.exceptions import SearchParseError
from assistant.models import SearchResult
from config.settings import Settings, get_settings


logger = logging.getLogger("infonex.search")

DUCKDUCKGO_URL = "https://duckduckgo.com/"
LINKS_URL = "https://links.duckduckgo.com/d.js"
INSTANT_ANSWER_URL = "https://api.duckduckgo.com/"
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/112.0.0.0 Safari/537.36"
)

_VQD_PATTERN = re.compile(r"""vqd=["']([^"']+)["']""")
_JSONP_PREFIX = re.compile(r"^\s*ddg_spice_light\.web\(")
_JSONP_SUFFIX = re.compile(r"\);?\s*$")


def search_url(query: str) -> str:
    return f"{DUCKDUCKGO_URL}?q={quote(query, safe='')}"


def fallback_result(query: str) -> SearchResult:
    return SearchResult(
        title=f'Search for "{query}" on DuckDuckGo',
        url=search_url(query),
        description="Click to search directly on DuckDuckGo",
    )


def _strip_jsonp(text: str) -> str:
    return _JSONP_SUFFIX.sub("", _JSONP_PREFIX.sub("", text, count=1), count=1)


def parse_links_payload(text: str) -> List[SearchResult]:
    """Parse the ``d.js`` JSONP body into results. Raises SearchParseError."""
    cleaned = _strip_jsonp(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SearchParseError(f"Failed to parse DuckDuckGo response: {exc}") from exc
    if not isinstance(data, dict):
        raise SearchParseError("DuckDuckGo response is not an object")

    results: List[SearchResult] = []
    for item in data.get("results") or []:
        if not isinstance(item, dict) or not item.get("u"):
            continue
        url = str(item["u"])
        results.append(
            SearchResult(
                title=item.get("t") or "No title",
                url=url,
                description=item.get("a") or "",
                source=item.get("i") or urlparse(url).hostname,
            )
        )
    return results


def parse_instant_answer(data: Any, query: str) -> List[SearchResult]:
    if not isinstance(data, dict):
        raise SearchParseError("Instant answer payload is not an object")

    results: List[SearchResult] = []
    if data.get("Abstract"):
        results.append(
            SearchResult(
                title=data.get("Heading") or "DuckDuckGo Result",
                url=data.get("AbstractURL") or search_url(query),
                description=data["Abstract"],
                source="DuckDuckGo Abstract",
            )
        )
    for topic in data.get("RelatedTopics") or []:
        if not isinstance(topic, dict):
            continue
        text, first_url = topic.get("Text"), topic.get("FirstURL")
        if text and first_url:
            results.append(
                SearchResult(
                    title=text.split(" - ")[0] or "Related Topic",
                    url=first_url,
                    description=text,
                    source="DuckDuckGo Related",
                )
            )
    return results


class WebSearch:
    """DuckDuckGo search with an instant-answer fallback and a link-out last resort."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.settings.search_timeout,
            transport=self._transport,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )

    def search_links(self, query: str) -> List[SearchResult]:
        with self._client() as client:
            page = client.get(DUCKDUCKGO_URL, params={"q": query})
            page.raise_for_status()
            match = _VQD_PATTERN.search(page.text)
            if not match:
                raise SearchParseError("Could not extract vqd parameter")

            params = {
                "q": query,
                "kl": "wt-wt",
                "dl": "en",
                "o": "json",
                "vqd": match.group(1),
                "p": 1,
            }
            response = client.get(LINKS_URL, params=params, headers={"Referer": DUCKDUCKGO_URL})
            response.raise_for_status()
        return parse_links_payload(response.text)

    def search_instant(self, query: str) -> List[SearchResult]:
        params: Dict[str, Any] = {
            "q": query,
            "format": "json",
            "no_html": 1,
            "no_redirect": 1,
            "skip_disambig": 1,
        }
        with self._client() as client:
            response = client.get(INSTANT_ANSWER_URL, params=params)
            response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise SearchParseError(f"Failed to parse instant answer: {exc}") from exc
        return parse_instant_answer(data, query)

    def search(self, query: str) -> List[SearchResult]:
        """Full, unranked result list; never empty."""
        try:
            results = self.search_links(query)
        except (httpx.HTTPError, SearchParseError) as exc:
            logger.warning("DuckDuckGo search failed for %r: %s", query, exc)
            results = []

        if not results:
            try:
                results = self.search_instant(query)
            except (httpx.HTTPError, SearchParseError) as exc:
                logger.warning("DuckDuckGo instant answer failed for %r: %s", query, exc)
                results = []

        if not results:
            logger.info("No search results for %r, returning link-out", query)
            return [fallback_result(query)]
        return results
