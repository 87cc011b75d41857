"""Web search schemas.

A SearchBundle is always well-formed: on failure `results` is empty and
`error` says why.
"""

from c3chat.schemas.common import CamelModel


class SearchResult(CamelModel):
    """One search hit; `content` is the extracted page body when available."""

    title: str
    url: str
    snippet: str = ""
    content: str | None = None


class SearchBundle(CamelModel):
    query: str
    results: list[SearchResult] = []
    total_results: int = 0
    error: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.results
