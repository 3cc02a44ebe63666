"""Where the directory tree comes from.

Each source exposes ``load(path, depth)`` returning the node at ``path`` (or
None when it does not exist). ``depth`` is how many folder levels below the
node must be populated; sources that hold the whole tree in memory ignore it.
"""

import logging
import time
from pathlib import Path
from urllib.parse import quote, unquote

import httpx
from bs4 import BeautifulSoup
from starlette.concurrency import run_in_threadpool

from mediaproxy.browse.tree import MAX_TREE_DEPTH, FileLeaf, Folder, Node, parse_tree, resolve
from mediaproxy.config import Settings
from mediaproxy.errors import AccessDenied, TreeUnavailable
from mediaproxy.paths import join_path, split_path

logger = logging.getLogger(__name__)


class JsonTreeSource:
    """Tree described by a single JSON document on the origin."""

    search_depth = MAX_TREE_DEPTH

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.client = client
        self.url = settings.directory_json_url
        self.cache_seconds = settings.tree_cache_seconds
        # (fetched_at, tree); replaced as a whole on refresh
        self._cached: tuple[float, Node] | None = None

    async def tree(self) -> Node:
        cached = self._cached
        if cached and time.monotonic() - cached[0] < self.cache_seconds:
            return cached[1]
        tree = await self._fetch()
        if self.cache_seconds > 0:
            self._cached = (time.monotonic(), tree)
        return tree

    async def _fetch(self) -> Node:
        try:
            resp = await self.client.get(self.url)
        except httpx.HTTPError as e:
            logger.warning(f"Cannot fetch directory tree from {self.url}: {e!r}")
            raise TreeUnavailable()

        if not resp.is_success:
            logger.warning(f"Directory tree request returned {resp.status_code}")
            raise TreeUnavailable()
        try:
            return parse_tree(resp.json())
        except ValueError as e:
            logger.warning(f"Directory tree is not valid: {e}")
            raise TreeUnavailable()

    async def load(self, path: str, depth: int = 0) -> Node | None:
        return resolve(await self.tree(), path)


def parse_autoindex(html: str) -> tuple[list[str], list[str]]:
    """Extract (folders, files) from an Apache/Nginx autoindex page."""
    soup = BeautifulSoup(html, "html.parser")
    folders: list[str] = []
    files: list[str] = []
    seen = set()

    for link in soup.find_all("a", href=True):
        href = link["href"].strip()
        text = link.get_text(strip=True)
        if text.lower() == "parent directory":
            continue
        # Sort links, anchors, absolute links
        if not href or href.startswith(("?", "#", "/")) or "://" in href:
            continue
        if href.startswith("./"):
            href = href[2:]

        is_dir = href.endswith("/")
        name = unquote(href.split("?", 1)[0].rstrip("/"))
        if not name or name in (".", "..") or "/" in name:
            continue
        if name in seen:
            continue
        seen.add(name)
        (folders if is_dir else files).append(name)

    return folders, files


class HtmlTreeSource:
    """Tree discovered live from the origin's autoindex pages."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.client = client
        self.base_url = settings.origin_base_url
        self.search_depth = settings.html_search_depth

    async def _listing(self, path: str) -> tuple[list[str], list[str]] | None:
        url = self.base_url + (quote(path) + "/" if path else "")
        try:
            resp = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Cannot fetch directory listing {url}: {e!r}")
            raise TreeUnavailable()

        if resp.status_code == 404:
            return None
        if not resp.is_success:
            logger.warning(f"Directory listing {url} returned {resp.status_code}")
            raise TreeUnavailable()
        return parse_autoindex(resp.text)

    async def load(self, path: str, depth: int = 0) -> Node | None:
        listing = await self._listing(path)
        if listing is None:
            return await self._file_leaf(path)

        folders, files = listing
        children: dict[str, Node] = {}
        for name in folders:
            child = None
            if depth > 0:
                child = await self.load(join_path(path, name), depth - 1)
            children[name] = child if isinstance(child, Folder) else Folder()
        return Folder(children=children, files=tuple(files))

    async def _file_leaf(self, path: str) -> Node | None:
        segments = split_path(path)
        if not segments:
            return None
        parent = await self._listing("/".join(segments[:-1]))
        if parent is not None and segments[-1] in parent[1]:
            return FileLeaf(segments[-1])
        return None


class LocalTreeSource:
    """Tree read from a directory on local disk."""

    search_depth = MAX_TREE_DEPTH

    def __init__(self, settings: Settings):
        self.root = Path(settings.origin_root).resolve()

    def _locate(self, path: str) -> Path:
        full = (self.root / path).resolve()
        try:
            full.relative_to(self.root)
        except ValueError:
            raise AccessDenied()
        return full

    def _read(self, directory: Path, depth: int) -> Folder:
        children: dict[str, Node] = {}
        files = []
        for entry in sorted(directory.iterdir(), key=lambda p: p.name.lower()):
            if entry.is_dir():
                # Symlinked folders could leave the root or loop back into it
                if entry.is_symlink():
                    continue
                children[entry.name] = self._read(entry, depth - 1) if depth > 0 else Folder()
            elif entry.is_file():
                files.append(entry.name)
        return Folder(children=children, files=tuple(files))

    def _load(self, path: str, depth: int) -> Node | None:
        target = self._locate(path)
        if target.is_file():
            return FileLeaf(split_path(path)[-1])
        if not target.is_dir():
            return None
        return self._read(target, depth)

    async def load(self, path: str, depth: int = 0) -> Node | None:
        return await run_in_threadpool(self._load, path, depth)


def build_tree_source(settings: Settings, client: httpx.AsyncClient):
    if settings.tree_source == "html":
        return HtmlTreeSource(settings, client)
    if settings.tree_source == "local":
        return LocalTreeSource(settings)
    return JsonTreeSource(settings, client)
