import logging

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from mediaproxy.auth import require_token
from mediaproxy.content_types import extension_of
from mediaproxy.errors import InvalidInput, UnsupportedType
from mediaproxy.files.fetcher import FetchResult
from mediaproxy.paths import resolve_path

logger = logging.getLogger(__name__)
router = APIRouter(tags=["files"], dependencies=[Depends(require_token)])


def _to_response(result: FetchResult) -> Response:
    if result.content is not None:
        return Response(content=result.content, status_code=result.status_code, headers=result.headers)
    # The stream closes the upstream itself; the background task covers
    # a client that disconnects before the stream is exhausted.
    background = BackgroundTask(result.close) if result.close else None
    return StreamingResponse(
        result.stream,
        status_code=result.status_code,
        headers=result.headers,
        background=background,
    )


async def _serve(request: Request, path: str, allowed: set[str], kind: str) -> Response:
    if not path.strip():
        raise InvalidInput("File path is required")

    rel_path = resolve_path(path, request.app.state.settings, request.headers.get("host"))
    fetcher = request.app.state.fetcher
    ref = fetcher.reference(rel_path)
    if extension_of(ref.name) not in allowed:
        raise UnsupportedType(f"Unsupported {kind} type")

    result = await fetcher.fetch(ref, request.headers.get("range"))
    logger.info(f"Serving {ref.rel_path} ({result.status_code})")
    return _to_response(result)


@router.get("/file")
async def get_file(request: Request, path: str = Query("")):
    return await _serve(request, path, set(request.app.state.settings.file_extensions), "file")


@router.get("/video")
async def get_video(request: Request, path: str = Query("")):
    return await _serve(request, path, {"mp4"}, "video")


@router.get("/pdf")
async def get_pdf(request: Request, path: str = Query("")):
    return await _serve(request, path, {"pdf"}, "PDF")
