"""Retrieval of files from the origin, remote or on local disk."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Iterator
from urllib.parse import quote

import httpx
from starlette.concurrency import run_in_threadpool

from mediaproxy.config import Settings
from mediaproxy.content_types import content_type_for, is_encrypted, is_media, strip_encrypted_suffix
from mediaproxy.crypto import CryptoCodec
from mediaproxy.errors import (
    AccessDenied,
    InvalidInput,
    NotFound,
    RangeNotSatisfiable,
    UpstreamError,
    UpstreamUnreachable,
)
from mediaproxy.files.ranges import content_range, parse_range
from mediaproxy.paths import split_path

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Upstream headers relayed as-is when present
_RELAYED_HEADERS = ("content-length", "content-range", "content-encoding", "last-modified", "etag")


@dataclass
class FileReference:
    rel_path: str
    name: str
    encrypted: bool
    url: str | None = None
    local_path: Path | None = None


@dataclass
class FetchResult:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    content: bytes | None = None
    stream: AsyncIterator[bytes] | Iterator[bytes] | None = None
    close: Callable[[], Awaitable[None]] | None = None


def content_disposition(name: str) -> str:
    # Header values travel as ASCII; anything else goes in filename*
    if name.isascii() and '"' not in name and "\\" not in name:
        return f'inline; filename="{name}"'
    fallback = name.encode("ascii", "replace").decode().replace("?", "_")
    fallback = fallback.replace('"', "'").replace("\\", "_")
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"


class FileFetcher:
    def __init__(self, settings: Settings, client: httpx.AsyncClient, codec: CryptoCodec):
        self.settings = settings
        self.client = client
        self.codec = codec
        self.local_root = Path(settings.origin_root).resolve() if settings.origin_root else None

    def reference(self, rel_path: str) -> FileReference:
        """Map a normalized relative path onto the origin, before any I/O."""
        segments = split_path(rel_path)
        if not segments:
            raise InvalidInput("File path is required")
        name = segments[-1]
        ref = FileReference(
            rel_path=rel_path,
            name=strip_encrypted_suffix(name),
            encrypted=is_encrypted(name),
        )

        if self.local_root is not None:
            full = (self.local_root / rel_path).resolve()
            try:
                full.relative_to(self.local_root)
            except ValueError:
                raise AccessDenied()
            ref.local_path = full
            return ref

        url = self.settings.origin_base_url + quote(rel_path, safe="/")
        if not url.startswith(self.settings.origin_base_url):
            raise AccessDenied()
        ref.url = url
        return ref

    async def fetch(self, ref: FileReference, range_header: str | None = None) -> FetchResult:
        if not is_media(ref.name):
            range_header = None
        if ref.local_path is not None:
            return await self._fetch_local(ref, range_header)
        if ref.encrypted:
            data = await self._download(ref)
            return self._buffered(ref, await self._decrypt(data), range_header)
        return await self._stream_remote(ref, range_header)

    def _base_headers(self, ref: FileReference) -> dict[str, str]:
        headers = {"Content-Disposition": content_disposition(ref.name)}
        if is_media(ref.name):
            headers["Accept-Ranges"] = "bytes"
        return headers

    async def _decrypt(self, data: bytes) -> bytes:
        return await run_in_threadpool(self.codec.decrypt, data)

    def _buffered(self, ref: FileReference, data: bytes, range_header: str | None) -> FetchResult:
        size = len(data)
        headers = self._base_headers(ref)
        headers["Content-Type"] = content_type_for(ref.name)

        byte_range = parse_range(range_header, size)
        if byte_range is None:
            headers["Content-Length"] = str(size)
            return FetchResult(200, headers, content=data)

        start, end = byte_range
        headers["Content-Range"] = content_range(start, end, size)
        headers["Content-Length"] = str(end - start + 1)
        return FetchResult(206, headers, content=data[start : end + 1])

    # Remote origin

    def _check_status(self, ref: FileReference, resp: httpx.Response) -> None:
        if resp.status_code in (200, 206):
            return
        if resp.status_code == 404:
            raise NotFound("File not found on remote server")
        if resp.status_code == 416:
            size = resp.headers.get("content-range", "").rpartition("/")[2]
            raise RangeNotSatisfiable(int(size) if size.isdigit() else None)
        logger.warning(f"Origin returned {resp.status_code} for {ref.url}")
        raise UpstreamError(f"Origin responded with status {resp.status_code}")

    async def _download(self, ref: FileReference) -> bytes:
        try:
            resp = await self.client.get(ref.url)
        except httpx.TimeoutException:
            logger.warning(f"Timeout fetching {ref.url}")
            raise UpstreamUnreachable("Origin server timed out")
        except httpx.HTTPError as e:
            logger.warning(f"Cannot reach origin for {ref.url}: {e!r}")
            raise UpstreamUnreachable()
        self._check_status(ref, resp)
        if resp.status_code != 200:
            raise UpstreamError("Origin returned a partial response for a full request")
        return resp.content

    async def _stream_remote(self, ref: FileReference, range_header: str | None) -> FetchResult:
        request_headers = {"Accept-Encoding": "identity"}
        if range_header:
            request_headers["Range"] = range_header
        request = self.client.build_request("GET", ref.url, headers=request_headers)

        try:
            upstream = await self.client.send(request, stream=True)
        except httpx.TimeoutException:
            logger.warning(f"Timeout fetching {ref.url}")
            raise UpstreamUnreachable("Origin server timed out")
        except httpx.HTTPError as e:
            logger.warning(f"Cannot reach origin for {ref.url}: {e!r}")
            raise UpstreamUnreachable()

        try:
            self._check_status(ref, upstream)
        except Exception:
            await upstream.aclose()
            raise

        headers = self._base_headers(ref)
        headers["Content-Type"] = upstream.headers.get("content-type") or content_type_for(ref.name)
        for key in _RELAYED_HEADERS:
            if key in upstream.headers:
                headers[key.title()] = upstream.headers[key]

        status_code = upstream.status_code
        if status_code == 206:
            headers["Accept-Ranges"] = "bytes"
        else:
            # Origin ignored the range; relay the whole body
            headers.pop("Content-Range", None)

        return FetchResult(status_code, headers, stream=self._relay(ref, upstream), close=upstream.aclose)

    async def _relay(self, ref: FileReference, upstream: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in upstream.aiter_raw(CHUNK_SIZE):
                yield chunk
        except httpx.HTTPError as e:
            logger.warning(f"Stream from {ref.url} broke off: {e!r}")
            raise
        finally:
            await upstream.aclose()

    # Local origin

    async def _fetch_local(self, ref: FileReference, range_header: str | None) -> FetchResult:
        path = ref.local_path
        if not path.is_file():
            raise NotFound("File not found")
        if ref.encrypted:
            data = await run_in_threadpool(path.read_bytes)
            return self._buffered(ref, await self._decrypt(data), range_header)

        size = path.stat().st_size
        headers = self._base_headers(ref)
        headers["Content-Type"] = content_type_for(ref.name)

        byte_range = parse_range(range_header, size)
        if byte_range is None:
            headers["Content-Length"] = str(size)
            return FetchResult(200, headers, stream=_read_chunks(path, 0, size))

        start, end = byte_range
        length = end - start + 1
        headers["Content-Range"] = content_range(start, end, size)
        headers["Content-Length"] = str(length)
        return FetchResult(206, headers, stream=_read_chunks(path, start, length))


def _read_chunks(path: Path, start: int, length: int) -> Iterator[bytes]:
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(CHUNK_SIZE, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk
