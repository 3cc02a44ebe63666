"""
Media Proxy - lists the origin's directory tree and relays its files.

Usage:
    uvicorn mediaproxy.main:app --host 0.0.0.0 --port 10000
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from mediaproxy.browse.router import router as browse_router
from mediaproxy.browse.sources import build_tree_source
from mediaproxy.config import Settings, settings as default_settings
from mediaproxy.crypto import CryptoCodec
from mediaproxy.errors import register_error_handlers
from mediaproxy.files.fetcher import FileFetcher
from mediaproxy.files.router import router as files_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

USAGE = """Media proxy running.

GET /list?path=<folder>&q=<keyword>   list a folder, or search below it
GET /file?path=<file>                 fetch a file (PDF, MP4, DOCX)
GET /video?path=<file.mp4>            stream a video, supports Range
GET /pdf?path=<file.pdf>              fetch a PDF
GET /health                           liveness check
"""


def create_app(settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the application. ``transport`` replaces the network transport (tests)."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = httpx.AsyncClient(
            timeout=settings.fetch_timeout,
            follow_redirects=True,
            transport=transport,
        )
        codec = CryptoCodec.from_settings(settings)
        app.state.settings = settings
        app.state.tree_source = build_tree_source(settings, client)
        app.state.fetcher = FileFetcher(settings, client, codec)
        origin = settings.origin_root or settings.origin_base_url
        logger.info(f"Media proxy started (origin {origin}, tree source {settings.tree_source})")
        yield
        await client.aclose()
        logger.info("Media proxy stopped")

    app = FastAPI(title="Media Proxy", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Range", "Content-Length", "Accept-Ranges", "Content-Disposition"],
    )
    register_error_handlers(app)

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return USAGE

    @app.get("/health")
    @app.get("/ping")
    async def health():
        return {"status": "ok"}


    app.include_router(browse_router)
    app.include_router(files_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=default_settings.host, port=default_settings.port)
