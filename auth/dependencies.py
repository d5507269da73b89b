"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Requests authenticate with an access token in the Authorization header:
    Authorization: Bearer <token>

get_current_claims() is the request guard. It fails closed: a missing header,
a non-Bearer scheme, a token that does not verify, or a token that is not the
active session's access token all raise AuthError(unauthorized). The app's
exception handler turns that into a 401.

get_auth_service() hands route handlers the AuthService built in the app
lifespan (request.app.state.auth_service).

Layer rule: auth/dependencies.py may import from fastapi because this module
is part of the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.errors import MSG_AUTH_REQUIRED, AuthError, ErrorKind
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def extract_bearer_token(request: Request) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" header, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme != "Bearer" or not token.strip():
        return None
    return token.strip()


def get_current_claims(request: Request, service: AuthService = Depends(get_auth_service)) -> dict:
    """Require a valid, non-revoked access token. Returns its claims.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(claims: dict = Depends(get_current_claims)): ...
    """
    token = extract_bearer_token(request)
    if token is None:
        raise AuthError(ErrorKind.unauthorized, MSG_AUTH_REQUIRED)
    return service.authenticate(token)
