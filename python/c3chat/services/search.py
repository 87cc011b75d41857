"""Web search enrichment.

Queries the Google Custom Search JSON API and condenses the hits into a
SearchBundle for prompt injection:

- max_results is clamped to [1, 5]
- the top 3 hits are fetched concurrently, each under its own timeout, and
  reduced to plain body text (script/style/navigation dropped, 4000 chars max)
- a hit whose page cannot be fetched or parsed keeps its snippet only
- the search call itself has a 15s ceiling

`WebSearchClient.search` never raises: any failure yields an empty bundle
with `error` set, so a chat request continues without enrichment.
"""

import asyncio
import re
import time

import httpx
from lxml import etree
from lxml.html import document_fromstring

from c3chat.config import Settings
from c3chat.logging import get_logger
from c3chat.schemas.search import SearchBundle, SearchResult
from c3chat.services.redact import hash_text, safe_kv

logger = get_logger(__name__)

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

MAX_RESULTS = 5
MAX_EXTRACTED_RESULTS = 3
MAX_CONTENT_CHARS = 4000

DEFAULT_SEARCH_TIMEOUT_S = 15.0
DEFAULT_PAGE_TIMEOUT_S = 10.0

USER_AGENT = "Mozilla/5.0 (compatible; c3chat-search/1.0)"

# Removed with their content before text extraction
STRIP_XPATH = (
    "//script|//style|//noscript|//template|//iframe|//svg|//form"
    "|//nav|//header|//footer|//aside"
)

WHITESPACE_RE = re.compile(r"[\s ]+")


def clamp_max_results(max_results: int | None) -> int:
    if max_results is None:
        return MAX_RESULTS
    return max(1, min(int(max_results), MAX_RESULTS))


def extract_main_text(html: bytes | str, max_chars: int = MAX_CONTENT_CHARS) -> str:
    """Reduce an HTML page to its readable body text.

    Prefers <main>, then <article>, then <body>. Whitespace is collapsed and
    the result truncated to max_chars.

    Raises:
        ValueError: If the document cannot be parsed.
    """
    try:
        doc = document_fromstring(html)
    except (etree.ParserError, ValueError) as e:
        raise ValueError(f"Failed to parse HTML: {e}") from e

    for element in doc.xpath(STRIP_XPATH):
        if element.getparent() is not None:
            element.drop_tree()

    root = None
    for xpath in ("//main", "//article", "//body"):
        found = doc.xpath(xpath)
        if found:
            root = found[0]
            break
    if root is None:
        root = doc

    text = WHITESPACE_RE.sub(" ", root.text_content()).strip()
    return text[:max_chars]


def empty_bundle(query: str, error: str) -> SearchBundle:
    return SearchBundle(query=query, results=[], total_results=0, error=error)


class WebSearchClient:
    """Search + page extraction over a shared httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str | None,
        engine_id: str | None,
        search_timeout_s: float = DEFAULT_SEARCH_TIMEOUT_S,
        page_timeout_s: float = DEFAULT_PAGE_TIMEOUT_S,
    ):
        self._client = client
        self._api_key = api_key
        self._engine_id = engine_id
        self._search_timeout_s = search_timeout_s
        self._page_timeout_s = page_timeout_s

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "WebSearchClient":
        return cls(
            client,
            api_key=settings.google_search_api_key,
            engine_id=settings.google_search_engine_id,
            search_timeout_s=settings.search_timeout_s,
            page_timeout_s=settings.page_fetch_timeout_s,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._engine_id)

    async def search(self, query: str, max_results: int | None = MAX_RESULTS) -> SearchBundle:
        """Search and extract. Never raises."""
        query = (query or "").strip()
        num = clamp_max_results(max_results)
        log_fields = {"query_sha256": hash_text(query), "max_results": num}

        if not query:
            return empty_bundle(query, "Search query is empty")
        if not self.configured:
            logger.warning("search.not_configured")
            return empty_bundle(query, "Search is not configured")

        start = time.monotonic()
        try:
            hits = await asyncio.wait_for(
                self._fetch_hits(query, num), timeout=self._search_timeout_s
            )
            results = await self._extract_top(hits)
        except (TimeoutError, httpx.TimeoutException):
            logger.warning("search.failed", **safe_kv(**log_fields, reason="timeout"))
            return empty_bundle(query, "Search timed out")
        except httpx.HTTPStatusError as e:
            logger.warning(
                "search.failed",
                **safe_kv(**log_fields, reason="http_error", status_code=e.response.status_code),
            )
            return empty_bundle(query, "Search request failed")
        except httpx.HTTPError as e:
            logger.warning(
                "search.failed",
                **safe_kv(**log_fields, reason="network", error_type=type(e).__name__),
            )
            return empty_bundle(query, "Search request failed")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(
                "search.failed",
                **safe_kv(**log_fields, reason="malformed_response", error_type=type(e).__name__),
            )
            return empty_bundle(query, "Search returned an unexpected response")
        except Exception:
            logger.exception("search.failed", **safe_kv(**log_fields, reason="unexpected"))
            return empty_bundle(query, "Search is unavailable")

        logger.info(
            "search.completed",
            **safe_kv(
                **log_fields,
                result_count=len(results),
                extracted_count=sum(1 for r in results if r.content),
                latency_ms=int((time.monotonic() - start) * 1000),
            ),
        )
        return SearchBundle(query=query, results=results, total_results=len(results))

    async def _fetch_hits(self, query: str, num: int) -> list[SearchResult]:
        response = await self._client.get(
            GOOGLE_SEARCH_URL,
            params={"key": self._api_key, "cx": self._engine_id, "q": query, "num": num},
            timeout=self._search_timeout_s,
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("search response is not an object")

        return [
            SearchResult(
                title=item.get("title") or item["link"],
                url=item["link"],
                snippet=item.get("snippet") or "",
            )
            for item in (data.get("items") or [])[:num]
        ]

    async def _extract_top(self, hits: list[SearchResult]) -> list[SearchResult]:
        """Fetch the top hits concurrently; each fetch has its own timeout."""
        top = hits[:MAX_EXTRACTED_RESULTS]
        outcomes = await asyncio.gather(
            *(self._extract_one(hit) for hit in top), return_exceptions=True
        )
        enriched = []
        for hit, outcome in zip(top, outcomes):
            if isinstance(outcome, Exception):
                # one bad page never costs the other results
                logger.warning(
                    "search.extract_failed",
                    url_sha256=hash_text(hit.url),
                    error_type=type(outcome).__name__,
                )
                outcome = None
            elif isinstance(outcome, BaseException):
                raise outcome
            enriched.append(hit.model_copy(update={"content": outcome}))
        return enriched + hits[MAX_EXTRACTED_RESULTS:]

    async def _extract_one(self, hit: SearchResult) -> str | None:
        """Return the page body text, or None to fall back to the snippet."""
        try:
            response = await asyncio.wait_for(
                self._client.get(
                    hit.url,
                    headers={"User-Agent": USER_AGENT, "Accept": "text/html"},
                    follow_redirects=True,
                    timeout=self._page_timeout_s,
                ),
                timeout=self._page_timeout_s,
            )
            response.raise_for_status()
            if "html" not in response.headers.get("content-type", "html"):
                return None
            return extract_main_text(response.content) or None
        except (TimeoutError, httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.info(
                "search.extract_failed",
                url_sha256=hash_text(hit.url),
                error_type=type(e).__name__,
            )
            return None
