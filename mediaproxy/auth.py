import secrets

from fastapi import Request

from mediaproxy.errors import Unauthorized


def require_token(request: Request) -> None:
    """Static token check; a no-op unless ACCESS_TOKEN is configured."""
    expected = request.app.state.settings.access_token
    if not expected:
        return

    token = request.headers.get("x-access-token") or request.query_params.get("token")
    if not token or not secrets.compare_digest(token.encode(), expected.encode()):
        raise Unauthorized()
