"""Web search route.

GET /search?q=&limit= returns a SearchBundle. Search failures are reported
in the bundle's error field with a 200, never as an error response.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from c3chat.api.deps import get_search_client
from c3chat.auth.middleware import Viewer, get_viewer
from c3chat.responses import success_response
from c3chat.services.search import MAX_RESULTS, WebSearchClient

router = APIRouter(tags=["search"])


@router.get("/search")
async def search(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    search_client: Annotated[WebSearchClient, Depends(get_search_client)],
    q: Annotated[str, Query(min_length=1, max_length=500)],
    limit: Annotated[int, Query()] = MAX_RESULTS,
) -> dict:
    """Search the web; limit is clamped to 1-5."""
    bundle = await search_client.search(q, limit)
    return success_response(bundle.to_wire())
