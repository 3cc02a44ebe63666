"""Error taxonomy for the proxy and its FastAPI exception handlers."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ProxyError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ProxyError):
    status_code = 400
    default_message = "Invalid path"


class Unauthorized(ProxyError):
    status_code = 401
    default_message = "Missing or invalid access token"


class AccessDenied(ProxyError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ProxyError):
    status_code = 404
    default_message = "Path not found"


class UnsupportedType(ProxyError):
    status_code = 415
    default_message = "Unsupported file type"


class RangeNotSatisfiable(ProxyError):
    status_code = 416
    default_message = "Requested range not satisfiable"

    def __init__(self, size: int | None = None, message: str | None = None):
        super().__init__(message)
        self.size = size


class DecryptionFailure(ProxyError):
    status_code = 500
    default_message = "Error decrypting file"


class TreeUnavailable(ProxyError):
    """The directory tree could not be fetched. Distinct from NotFound."""

    status_code = 500
    default_message = "Server error"


class UpstreamError(ProxyError):
    status_code = 502
    default_message = "Bad response from origin"


class UpstreamUnreachable(ProxyError):
    status_code = 502
    default_message = "Origin server unreachable"


async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    headers = {}
    if isinstance(exc, RangeNotSatisfiable) and exc.size is not None:
        headers["Content-Range"] = f"bytes */{exc.size}"
    if exc.status_code >= 500:
        logger.warning(f"{request.url.path} failed: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error serving {request.url.path}")
    return JSONResponse({"error": "Server error"}, status_code=500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProxyError, proxy_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
