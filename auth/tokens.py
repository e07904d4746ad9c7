"""
auth/tokens.py -- JWT issuance and verification, plus cookie helpers.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with two
       distinct secrets (TokenConfig.access_secret / refresh_secret). A leaked
       access secret cannot mint long-lived refresh tokens, and vice versa.

  Claims: access tokens carry sub, email, name, handle, role; refresh tokens
       carry only sub. Both carry iat, exp, a "type" claim and a random "jti".
       The type claim stops one kind being replayed as the other; the jti makes
       two tokens issued in the same second for the same user differ, which
       refresh-token rotation depends on.

  Verification: verify() raises TokenExpiredError or TokenInvalidError. The
       two are told apart for logging only -- every caller turns both into the
       same 401.

  Configuration: TokenIssuer receives a TokenConfig. Nothing here reads the
       environment.

Layer rule: no imports from api/ or media/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import secrets
import time

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import TokenExpiredError, TokenInvalidError
from auth.models import IssuedToken, TokenKind, TokenPair, User
from core.config import TokenConfig

logger = logging.getLogger("gatekeeper.auth")

_ALGORITHM = "HS256"

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

_REQUIRED_CLAIMS = {
    TokenKind.ACCESS: ("sub", "email", "role", "exp", "type"),
    TokenKind.REFRESH: ("sub", "exp", "type"),
}


class TokenIssuer:
    """Signs and verifies access and refresh tokens.

    Usage:
        issuer = TokenIssuer(TokenConfig.from_settings(get_settings()))
        pair = issuer.issue_pair(user)
        claims = issuer.verify(pair.access.token, TokenKind.ACCESS)
    """

    def __init__(self, config: TokenConfig) -> None:
        self.config = config

    def _secret(self, kind: TokenKind) -> str:
        return self.config.access_secret if kind == TokenKind.ACCESS else self.config.refresh_secret

    def _encode(self, claims: dict, kind: TokenKind, ttl: int) -> IssuedToken:
        now = int(time.time())
        payload = {
            **claims,
            "type": kind.value,
            "iat": now,
            "exp": now + ttl,
            "jti": secrets.token_hex(16),
        }
        token = jwt.encode(payload, self._secret(kind), algorithm=_ALGORITHM)
        return IssuedToken(token=token, expires_at=now + ttl, expires_in=ttl)

    def issue_access_token(self, user: User) -> IssuedToken:
        """Sign a short-lived access token from the given user's own fields."""
        claims = {
            "sub": user.id,
            "email": user.email,
            "name": user.display_name,
            "handle": user.handle,
            "role": user.role.value,
        }
        return self._encode(claims, TokenKind.ACCESS, self.config.access_ttl)

    def issue_refresh_token(self, user_id: str) -> IssuedToken:
        """Sign a long-lived refresh token carrying only the subject id."""
        return self._encode({"sub": user_id}, TokenKind.REFRESH, self.config.refresh_ttl)

    def issue_pair(self, user: User) -> TokenPair:
        return TokenPair(access=self.issue_access_token(user), refresh=self.issue_refresh_token(user.id))

    def verify(self, token: str, kind: TokenKind) -> dict:
        """Decode token with the secret for kind and return its claims.

        Raises TokenExpiredError when the signature is good but exp has passed,
        TokenInvalidError for anything else (bad signature, garbage, wrong type,
        missing claims).
        """
        try:
            claims = jwt.decode(token, self._secret(kind), algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            logger.info("Rejected %s token: expired", kind.value)
            raise TokenExpiredError() from exc
        except JWTError as exc:
            logger.info("Rejected %s token: %s", kind.value, type(exc).__name__)
            raise TokenInvalidError() from exc

        missing = [c for c in _REQUIRED_CLAIMS[kind] if c not in claims]
        if missing or claims.get("type") != kind.value:
            logger.info("Rejected %s token: wrong type or missing claims %s", kind.value, missing)
            raise TokenInvalidError()
        return claims


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookies(response, tokens: TokenPair, secure: bool = False) -> None:
    """Write both tokens as httpOnly cookies on the response.

    httponly=True: JS cannot read the cookies (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation for most cases.
    secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
    max_age: matches each token's lifetime so cookie and token expire together.
    """
    for name, issued in ((ACCESS_COOKIE, tokens.access), (REFRESH_COOKIE, tokens.refresh)):
        response.set_cookie(
            name,
            value=issued.token,
            httponly=True,
            samesite="lax",
            secure=secure,
            max_age=issued.expires_in,
        )


def clear_auth_cookies(response) -> None:
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)
