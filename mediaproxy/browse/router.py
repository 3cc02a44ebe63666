from fastapi import APIRouter, Depends, Query, Request

from mediaproxy.auth import require_token
from mediaproxy.browse.listing import ListingEntry, list_entries
from mediaproxy.errors import NotFound
from mediaproxy.paths import resolve_path

router = APIRouter(tags=["browse"], dependencies=[Depends(require_token)])


@router.get("/list", response_model=list[ListingEntry])
async def list_folder(
    request: Request,
    path: str = Query(""),
    q: str = Query(""),
):
    settings = request.app.state.settings
    source = request.app.state.tree_source

    rel_path = resolve_path(path, settings, request.headers.get("host"))
    depth = source.search_depth if q.strip() else 0
    node = await source.load(rel_path, depth)
    if node is None:
        raise NotFound("Path not found")

    return list_entries(node, rel_path, q, tuple(settings.listing_extensions))
