"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
session manager do the work; these only own shape.

Layer rule: no imports from api/, core/, or media/.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class Plan(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


@dataclass
class User:
    """An account known to the credential store.

    email and handle are stored lower-cased; lookups normalize the same way.

    refresh_tokens is a list so the store shape does not change if multi-device
    sessions are ever supported. The session manager always writes a list of at
    most one element: issuing a new refresh token replaces the stored one.

    hashed_password and refresh_tokens never leave the core -- use public_user()
    before returning a record to a caller.
    """

    email: str
    display_name: str
    hashed_password: str | None = None
    handle: str | None = None
    id: str | None = None
    role: Role = Role.USER
    plan: Plan = Plan.FREE
    profile_image_url: str | None = None
    refresh_tokens: list[str] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass(frozen=True)
class IssuedToken:
    """An encoded JWT plus its expiry (unix seconds) and lifetime (seconds)."""

    token: str
    expires_at: int
    expires_in: int


@dataclass(frozen=True)
class TokenPair:
    access: IssuedToken
    refresh: IssuedToken


@dataclass(frozen=True)
class SessionGrant:
    """What login and refresh hand back: the sanitized user and a fresh pair."""

    user: User
    tokens: TokenPair


def public_user(user: User) -> User:
    """Return a copy of user with the password hash and refresh tokens stripped."""
    return replace(user, hashed_password=None, refresh_tokens=[])
