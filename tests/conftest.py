import asyncio
import json
import re
from urllib.parse import unquote

import httpx
import pytest
from fastapi.testclient import TestClient

from mediaproxy.config import Settings
from mediaproxy.crypto import CryptoCodec

ORIGIN = "https://origin.test/webapp/MobileApp/"
ORIGIN_PREFIX = "/webapp/MobileApp/"
PASSPHRASE = "test-passphrase"

TREE = {
    "Senior 1": {
        "Agriculture": {
            "files": ["Agriculture_Notes.pdf", "~$Agriculture_Notes.docx", "Soil.mp4"],
        },
        "Biology": {
            "files": ["Biology.pdf", "Cells.mp4.enc"],
        },
        "files": ["Timetable.pdf"],
    },
    "Senior 2": ["Physics.pdf", "AGRI_Revision.pdf", "~$Physics.pdf"],
    "files": ["README.pdf"],
}

VIDEO = bytes(range(256)) * 40
PDF = b"%PDF-1.4 test document\n" * 10
SECRET_VIDEO = b"secret video frames " * 100
SECRET_PDF = b"%PDF-1.4 secret\n" * 7


def encrypted(data: bytes, mode: str = "ctr") -> bytes:
    return CryptoCodec(PASSPHRASE, mode).encrypt(data)


FILES = {
    "Senior 1/Agriculture/Agriculture_Notes.pdf": PDF,
    "Senior 1/Agriculture/Soil.mp4": VIDEO,
    "Senior 1/Biology/Cells.mp4.enc": encrypted(SECRET_VIDEO),
    "Senior 1/Biology/Biology.pdf.enc": encrypted(SECRET_PDF),
    "Senior 1/Notes.docx": b"PK\x03\x04 docx",
    "Senior 1/Setup.exe": b"MZ",
}

AUTOINDEX = """<html><head><title>Index of {title}</title></head><body>
<h1>Index of {title}</h1>
<table>
<tr><th><a href="?C=N;O=D">Name</a></th><th><a href="?C=M;O=A">Last modified</a></th></tr>
<tr><td><a href="/webapp/">Parent Directory</a></td></tr>
{rows}
</table></body></html>"""

LISTINGS = {
    "": ["Senior%201/", "README.pdf"],
    "Senior 1/": ["../", "Agriculture/", "Biology/", "Timetable.pdf"],
    "Senior 1/Agriculture/": ["Agriculture_Notes.pdf", "~%24Agriculture_Notes.docx", "Soil.mp4"],
    "Senior 1/Biology/": ["Biology.pdf", "Cells.mp4.enc"],
}


class OriginStream(httpx.AsyncByteStream):
    """Unread response body, so the proxy can stream it like a network body."""

    def __init__(self, data: bytes, chunk_size: int = 4096, error: Exception | None = None, endless: bool = False):
        self.data = data
        self.chunk_size = chunk_size
        self.error = error
        self.endless = endless
        self.closed = False

    async def __aiter__(self):
        while True:
            for i in range(0, len(self.data), self.chunk_size):
                yield self.data[i : i + self.chunk_size]
                if self.error:
                    raise self.error
                if self.endless:
                    await asyncio.sleep(0.01)
            if not self.endless:
                return

    async def aclose(self):
        self.closed = True


class FakeOrigin:
    """httpx MockTransport handler standing in for the origin web server."""

    def __init__(self):
        self.files = dict(FILES)
        self.tree = TREE
        self.listings = LISTINGS
        self.supports_ranges = True
        self.error: Exception | None = None
        self.status_override: int | None = None
        self.requests: list[httpx.Request] = []
        self.streams: list[OriginStream] = []
        # Raised by file bodies after their first chunk
        self.stream_error: Exception | None = None
        self.endless_streams = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error:
            raise self.error
        if self.status_override:
            return httpx.Response(self.status_override)

        path = unquote(request.url.path)
        if not path.startswith(ORIGIN_PREFIX):
            return httpx.Response(404)
        rel = path[len(ORIGIN_PREFIX):]

        if rel == "directory.json":
            return httpx.Response(200, content=json.dumps(self.tree).encode(),
                                  headers={"Content-Type": "application/json"})
        if rel in self.listings:
            rows = "\n".join(f'<tr><td><a href="{href}">{unquote(href)}</a></td></tr>'
                             for href in self.listings[rel])
            html = AUTOINDEX.format(title=path, rows=rows)
            return httpx.Response(200, text=html)

        data = self.files.get(rel)
        if data is None:
            return httpx.Response(404, text="Not Found")

        range_header = request.headers.get("range")
        match = re.fullmatch(r"bytes=(\d+)-(\d*)", range_header or "")
        if self.supports_ranges and match:
            start = int(match.group(1))
            end = int(match.group(2)) if match.group(2) else len(data) - 1
            if start >= len(data):
                return httpx.Response(416, headers={"Content-Range": f"bytes */{len(data)}"})
            end = min(end, len(data) - 1)
            return self._file_response(
                206,
                data[start : end + 1],
                {"Content-Range": f"bytes {start}-{end}/{len(data)}", "Accept-Ranges": "bytes"},
            )
        return self._file_response(200, data, {})

    def _file_response(self, status_code: int, body: bytes, headers: dict[str, str]) -> httpx.Response:
        stream = OriginStream(body, error=self.stream_error, endless=self.endless_streams)
        self.streams.append(stream)
        if not self.endless_streams:
            headers["Content-Length"] = str(len(body))
        return httpx.Response(status_code, headers=headers, stream=stream)


def make_settings(**overrides) -> Settings:
    values = {
        "origin_base_url": ORIGIN,
        "encryption_passphrase": PASSPHRASE,
        "self_hosts": ["proxy.example.com"],
        "_env_file": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def origin():
    return FakeOrigin()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def make_client(origin):
    """Factory for a TestClient against the fake origin, with settings overrides."""
    clients = []

    def _make(**overrides) -> TestClient:
        from mediaproxy.main import create_app

        app = create_app(make_settings(**overrides), transport=httpx.MockTransport(origin))
        c = TestClient(app)
        c.__enter__()
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def local_root(tmp_path):
    """A local origin directory mirroring the remote fixtures."""
    root = tmp_path / "MobileApp"
    for rel, data in FILES.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    (root / "Senior 1" / "Agriculture" / "~$Agriculture_Notes.docx").write_bytes(b"lock")
    (root / "Senior 1" / "Empty").mkdir()
    (tmp_path / "secret.txt").write_text("outside the root")
    return root
