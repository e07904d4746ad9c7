"""
auth/dependencies.py -- The authorization guard and its FastAPI Depends() helpers.

Token sources are checked in priority order:
  1. "accessToken" cookie -- set by POST /auth/login and /auth/refresh.
  2. Authorization: Bearer <token> header -- API clients.

AuthorizationGuard.authorize() is transport agnostic and returns a Result.
get_current_user() is the FastAPI dependency: it runs the guard, attaches the
identity to request.state.user, and raises the AuthError on failure. The app's
exception handler renders that as the standard 401 envelope.
require_admin() wraps get_current_user() and raises ForbiddenError (403).

Every check is synchronous, per request, with no retry: the first failure
short-circuits the request.

Layer rule: auth/dependencies.py may import from fastapi (for Request) because
this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fastapi import Request

from auth.errors import AuthError, ForbiddenError, TokenVerificationError
from auth.models import TokenKind, User, public_user
from auth.results import Result, captures_errors
from auth.store import CredentialStore
from auth.tokens import ACCESS_COOKIE, TokenIssuer

logger = logging.getLogger("gatekeeper.auth")


def extract_bearer_token(cookies: Mapping[str, str], headers: Mapping[str, str]) -> str | None:
    """Return the access token from the cookie, else from a Bearer header, else None."""
    token = cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth_header = headers.get("Authorization") or headers.get("authorization") or ""
    scheme, _, value = auth_header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


class AuthorizationGuard:
    def __init__(self, store: CredentialStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    @captures_errors
    def authorize(self, token: str | None) -> Result[User]:
        """Verify an access token and load its user (sanitized)."""
        if not token:
            raise AuthError("No token provided")
        try:
            claims = self.issuer.verify(token, TokenKind.ACCESS)
        except TokenVerificationError as exc:
            raise AuthError("Invalid token") from exc

        user = self.store.find_user_by_id(claims["sub"])
        if user is None:
            logger.info("Rejected access token for missing user %s", claims["sub"])
            raise AuthError("Unauthorized")
        return Result.success(public_user(user), "Authorized")


def get_current_user(request: Request) -> User:
    """Require authentication. Raises AuthError (401) if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    guard: AuthorizationGuard = request.app.state.guard
    token = extract_bearer_token(request.cookies, request.headers)
    user = guard.authorize(token).unwrap()
    request.state.user = user
    return user


def require_admin(request: Request) -> User:
    """Require the admin role. 401 if unauthenticated, 403 if not an admin."""
    user = get_current_user(request)
    if not user.is_admin:
        raise ForbiddenError("Admin access required.")
    return user
