"""Tests for web search enrichment and search prompt assembly.

HTTP is mocked with respx; no live search or page fetches.
"""

import httpx
import pytest
import respx

from c3chat.schemas.search import SearchResult
from c3chat.services.llm import Turn
from c3chat.services.llm.prompt import render_search_system_prompt, with_search_context
from c3chat.services.search import (
    GOOGLE_SEARCH_URL,
    MAX_CONTENT_CHARS,
    WebSearchClient,
    clamp_max_results,
    extract_main_text,
)

ARTICLE_HTML = """
<html>
  <head><title>T</title><style>body { color: red; }</style></head>
  <body>
    <nav>Home | About</nav>
    <header>Site header</header>
    <main>
      <h1>Headline</h1>
      <p>First   paragraph.</p>
      <script>var tracking = 1;</script>
      <p>Second paragraph.</p>
    </main>
    <footer>Copyright</footer>
  </body>
</html>
"""


def search_items(n: int) -> dict:
    return {
        "items": [
            {
                "title": f"Result {i}",
                "link": f"https://site{i}.test/page",
                "snippet": f"Snippet {i}",
            }
            for i in range(n)
        ]
    }


@pytest.fixture
def search_client():
    return WebSearchClient(httpx.AsyncClient(), api_key="g-key", engine_id="cx-id")


class TestExtractMainText:
    def test_prefers_main_and_strips_noise(self):
        text = extract_main_text(ARTICLE_HTML)

        assert text == "Headline First paragraph. Second paragraph."
        assert "tracking" not in text
        assert "Home" not in text
        assert "Copyright" not in text

    def test_falls_back_to_article_then_body(self):
        html = "<html><body><article>Story</article><p>x</p></body></html>"
        assert extract_main_text(html) == "Story"
        assert extract_main_text("<html><body><p>Just body</p></body></html>") == "Just body"

    def test_truncates_to_max_chars(self):
        html = f"<html><body><p>{'word ' * 2000}</p></body></html>"
        assert len(extract_main_text(html)) == MAX_CONTENT_CHARS

    def test_unparseable_document_raises_value_error(self):
        with pytest.raises(ValueError):
            extract_main_text("")


class TestClampMaxResults:
    @pytest.mark.parametrize(
        "requested,expected", [(None, 5), (0, 1), (-3, 1), (3, 3), (5, 5), (50, 5)]
    )
    def test_clamped_to_one_through_five(self, requested, expected):
        assert clamp_max_results(requested) == expected


class TestWebSearchClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_top_three_pages_are_extracted(self, search_client):
        search_route = respx.get(GOOGLE_SEARCH_URL).respond(200, json=search_items(5))
        page_routes = [
            respx.get(f"https://site{i}.test/page").respond(
                200, html=ARTICLE_HTML
            )
            for i in range(5)
        ]

        bundle = await search_client.search("what is python", 5)

        assert bundle.error is None
        assert bundle.total_results == 5
        assert [r.content is not None for r in bundle.results] == [True, True, True, False, False]
        assert bundle.results[0].content == "Headline First paragraph. Second paragraph."
        params = search_route.calls.last.request.url.params
        assert params["q"] == "what is python"
        assert params["num"] == "5"
        # pages beyond the top three are never fetched
        assert [r.called for r in page_routes] == [True, True, True, False, False]

    @pytest.mark.asyncio
    @respx.mock
    async def test_max_results_is_clamped(self, search_client):
        route = respx.get(GOOGLE_SEARCH_URL).respond(200, json=search_items(5))
        respx.get(url__regex=r"https://site\d\.test/page").respond(200, html=ARTICLE_HTML)

        bundle = await search_client.search("q", 50)

        assert route.calls.last.request.url.params["num"] == "5"
        assert len(bundle.results) == 5

    @pytest.mark.asyncio
    @respx.mock
    async def test_failed_page_degrades_to_snippet(self, search_client):
        respx.get(GOOGLE_SEARCH_URL).respond(200, json=search_items(3))
        respx.get("https://site0.test/page").respond(200, html=ARTICLE_HTML)
        respx.get("https://site1.test/page").mock(side_effect=httpx.ConnectTimeout("slow"))
        respx.get("https://site2.test/page").respond(500)

        bundle = await search_client.search("q")

        assert bundle.error is None
        assert bundle.results[0].content
        assert bundle.results[1].content is None
        assert bundle.results[1].snippet == "Snippet 1"
        assert bundle.results[2].content is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_link_only_degrades_its_own_result(self, search_client):
        respx.get(GOOGLE_SEARCH_URL).respond(
            200,
            json={
                "items": [
                    {"title": "Good", "link": "https://good.test/p", "snippet": "good"},
                    {"title": "Bad", "link": "https://bad.test/p\x00q", "snippet": "bad"},
                ]
            },
        )
        respx.get("https://good.test/p").respond(200, html=ARTICLE_HTML)

        bundle = await search_client.search("q")

        assert bundle.error is None
        assert bundle.total_results == 2
        assert bundle.results[0].content == "Headline First paragraph. Second paragraph."
        assert bundle.results[1].content is None
        assert bundle.results[1].snippet == "bad"

    @pytest.mark.asyncio
    @respx.mock
    async def test_unexpected_page_error_keeps_other_results(self, search_client):
        respx.get(GOOGLE_SEARCH_URL).respond(200, json=search_items(2))
        respx.get("https://site0.test/page").mock(side_effect=RuntimeError("boom"))
        respx.get("https://site1.test/page").respond(200, html=ARTICLE_HTML)

        bundle = await search_client.search("q")

        assert bundle.error is None
        assert bundle.results[0].content is None
        assert bundle.results[0].snippet == "Snippet 0"
        assert bundle.results[1].content

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_html_page_is_not_extracted(self, search_client):
        respx.get(GOOGLE_SEARCH_URL).respond(200, json=search_items(1))
        respx.get("https://site0.test/page").respond(
            200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"}
        )

        bundle = await search_client.search("q")

        assert bundle.results[0].content is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_search_timeout_returns_error_bundle(self, search_client):
        respx.get(GOOGLE_SEARCH_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        bundle = await search_client.search("q")

        assert bundle.results == []
        assert bundle.total_results == 0
        assert bundle.error == "Search timed out"

    @pytest.mark.asyncio
    @respx.mock
    async def test_search_http_error_returns_error_bundle(self, search_client):
        respx.get(GOOGLE_SEARCH_URL).respond(403, json={"error": {"message": "quota"}})

        bundle = await search_client.search("q")

        assert bundle.error == "Search request failed"
        assert bundle.is_empty

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_search_response(self, search_client):
        respx.get(GOOGLE_SEARCH_URL).respond(200, json={"items": [{"title": "no link"}]})

        bundle = await search_client.search("q")

        assert bundle.error == "Search returned an unexpected response"

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_items_is_empty_without_error(self, search_client):
        respx.get(GOOGLE_SEARCH_URL).respond(200, json={"searchInformation": {}})

        bundle = await search_client.search("q")

        assert bundle.results == []
        assert bundle.error is None

    @pytest.mark.asyncio
    async def test_not_configured(self):
        client = WebSearchClient(httpx.AsyncClient(), api_key=None, engine_id=None)

        bundle = await client.search("q")

        assert bundle.error == "Search is not configured"

    @pytest.mark.asyncio
    async def test_blank_query(self, search_client):
        bundle = await search_client.search("   ")
        assert bundle.error == "Search query is empty"


class TestSearchPrompt:
    def results(self, n: int, content: str | None = None) -> list[SearchResult]:
        return [
            SearchResult(title=f"T{i}", url=f"https://s{i}.test", snippet=f"S{i}", content=content)
            for i in range(n)
        ]

    def test_renders_question_and_top_three(self):
        prompt = render_search_system_prompt("Why is the sky blue?", self.results(5))

        assert 'USER QUESTION: "Why is the sky blue?"' in prompt
        assert "https://s2.test" in prompt
        assert "https://s3.test" not in prompt

    def test_short_content_is_omitted(self):
        assert "Full Content" not in render_search_system_prompt("q", self.results(1, "tiny"))
        assert "Full Content" in render_search_system_prompt("q", self.results(1, "x" * 200))

    def test_no_results_means_no_prompt(self):
        assert render_search_system_prompt("q", []) is None

    def test_system_turn_goes_first(self):
        turns = [Turn(role="user", content="a"), Turn(role="assistant", content="b")]

        enriched = with_search_context(turns, "SYSTEM")

        assert enriched[0] == Turn(role="system", content="SYSTEM")
        assert enriched[1:] == turns
        assert with_search_context(turns, None) == turns
