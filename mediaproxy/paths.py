"""Normalization of client supplied paths.

Clients send either a path relative to the origin root, a full origin URL
(``https://host/webapp/MobileApp/Folder/file.pdf``) or a URL pointing back at
this proxy (``https://proxy/file?path=...``). All three resolve to the same
relative path. Anything that could leave the origin root is rejected.
"""

import re
from urllib.parse import SplitResult, parse_qs, unquote, urlsplit

from mediaproxy.config import Settings
from mediaproxy.errors import AccessDenied, InvalidInput

MAX_UNWRAP_DEPTH = 5

_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def resolve_path(raw: str | None, settings: Settings, request_host: str | None = None) -> str:
    """Return ``raw`` as a relative path under the origin root.

    ``request_host`` is the Host header of the current request; URLs on that
    host (or on any of ``settings.self_hosts``) are unwrapped through their
    ``path`` query parameter.
    """
    self_hosts = set(settings.self_hosts)
    if request_host:
        self_hosts.add(request_host.lower())
    return _resolve(raw or "", settings, self_hosts, 0)


def _resolve(raw: str, settings: Settings, self_hosts: set[str], depth: int) -> str:
    value = raw.strip()
    if not value:
        return ""
    if "\x00" in value:
        raise InvalidInput("Path contains a NUL byte")

    if _URL_RE.match(value):
        parts, hostname, host = _parse_url(value)
        if host in self_hosts or hostname in self_hosts:
            if depth >= MAX_UNWRAP_DEPTH:
                raise InvalidInput("Too many nested proxy URLs")
            inner = parse_qs(parts.query).get("path")
            if not inner:
                raise InvalidInput("Proxied URL has no path parameter")
            return _resolve(inner[0], settings, self_hosts, depth + 1)
        value = _strip_origin(parts, hostname, host, settings)

    return _normalize(value)


def _parse_url(value: str) -> tuple[SplitResult, str, str]:
    try:
        parts = urlsplit(value)
        hostname = (parts.hostname or "").lower()
        port = parts.port
    except ValueError:
        raise InvalidInput("Malformed URL in path")

    if parts.scheme.lower() not in ("http", "https") or not hostname:
        raise InvalidInput("Malformed URL in path")
    host = f"{hostname}:{port}" if port else hostname
    return parts, hostname, host


def _strip_origin(parts: SplitResult, hostname: str, host: str, settings: Settings) -> str:
    origin = urlsplit(settings.origin_base_url)
    if host != settings.origin_host and hostname != (origin.hostname or "").lower():
        raise AccessDenied("Path points outside the allowed origin")

    url_path = unquote(parts.path)
    base = unquote(settings.origin_path)
    if url_path.startswith(base):
        return url_path[len(base):]
    if url_path == base.rstrip("/"):
        return ""
    raise AccessDenied("Path points outside the allowed origin")


def _normalize(value: str) -> str:
    segments = []
    for segment in value.replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        # Also catches percent-encoded traversal that survived one decode
        decoded = unquote(segment)
        if segment == ".." or decoded in (".", "..") or "/" in decoded or "\\" in decoded:
            raise AccessDenied("Path traversal is not allowed")
        segments.append(segment)
    return "/".join(segments)


def split_path(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def join_path(base: str, name: str) -> str:
    return f"{base}/{name}" if base else name
