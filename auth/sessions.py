"""
auth/sessions.py -- Registration, login, refresh-token rotation, and logout.

SessionManager is the orchestration layer of the auth core. It is transport
agnostic: every public method takes plain data, returns a Result, and never
touches a request or response object.

Security design decisions:
  Account enumeration: an unknown identifier and a wrong password produce the
      same "Invalid credentials" failure, and both pay for exactly one bcrypt
      check (PasswordHasher.verify_dummy for the unknown case). The reason is
      logged server-side only.

  Rotation: login and refresh both write refresh_tokens=[new_token], replacing
      whatever was stored. A refresh token is honoured only while it is the
      stored one, so each token is good for one refresh cycle. Presenting a
      superseded token fails and is logged as possible reuse.

  Races: two concurrent refreshes with the same token may both pass the
      stored-token check; the store keeps whichever write lands last and the
      other caller's pair fails on its next refresh. No lock is taken.

  Logout clears the stored refresh token. Access tokens already issued stay
      valid until they expire -- there is no access-token denylist.

Error policy: only AuthCoreError subclasses are turned into failure Results
(via captures_errors). Store or library exceptions propagate to the caller's
top-level handler.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from auth.errors import (
    AuthError,
    ConflictError,
    DuplicateUserError,
    NotFoundError,
    TokenVerificationError,
    ValidationError,
)
from auth.models import SessionGrant, TokenKind, User, public_user
from auth.passwords import PasswordHasher
from auth.results import Result, captures_errors
from auth.schemas import LoginInput, RefreshInput, RegisterInput, validate_input
from auth.store import CredentialStore
from auth.tokens import TokenIssuer

if TYPE_CHECKING:
    from media.store import ObjectStore

logger = logging.getLogger("gatekeeper.sessions")

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH = "Refresh token is expired or has been used"


class SessionManager:
    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        object_store: ObjectStore | None = None,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.object_store = object_store

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    @captures_errors
    def register(
        self,
        payload: Mapping[str, Any] | RegisterInput,
        image_path: str | Path | None = None,
    ) -> Result[User]:
        """Create an account and return it sanitized (201).

        Fails with ValidationError (missing/invalid fields, all listed at once, or
        a profile image of an unsupported type),
        ConflictError (email or handle taken), UploadError (profile image could
        not be stored), or PasswordHashingError. Nothing is persisted on failure.
        """
        data = validate_input(RegisterInput, payload)

        if self.store.find_user_by_email_or_handle(data.email) is not None:
            raise ConflictError("User with this email already exists.")
        if data.handle and self.store.find_user_by_email_or_handle(data.handle) is not None:
            raise ConflictError("User with this user name already exists.")

        image_url = None
        if image_path is not None:
            if self.object_store is None:
                raise ValidationError(
                    "Profile image uploads are not enabled.",
                    errors=["profileImage is not accepted"],
                )
            image_url = self.object_store.upload(image_path).url

        hashed = self.hasher.hash(data.password)
        try:
            created = self.store.create_user(
                User(
                    email=data.email,
                    display_name=data.display_name,
                    handle=data.handle,
                    hashed_password=hashed,
                    profile_image_url=image_url,
                )
            )
        except DuplicateUserError as exc:
            # Another request registered the same email between our check and insert.
            raise ConflictError("User with this email already exists.") from exc

        logger.info("Registered user %s", created.id)
        return Result.success(public_user(created), "User registered successfully", status_code=201)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    @captures_errors
    def login(self, payload: Mapping[str, Any] | LoginInput) -> Result[SessionGrant]:
        """Verify credentials, issue a token pair, and store the new refresh token."""
        data = validate_input(LoginInput, payload)

        user = self.store.find_user_by_email_or_handle(data.identifier)
        if user is None:
            self.hasher.verify_dummy(data.password)
            logger.info("Login failed: identifier not registered")
            raise AuthError(INVALID_CREDENTIALS)
        if not self.hasher.verify(data.password, user.hashed_password):
            logger.info("Login failed: wrong password for user %s", user.id)
            raise AuthError(INVALID_CREDENTIALS)

        grant = self._rotate(user)
        logger.info("User %s logged in", user.id)
        return Result.success(grant, "User logged in successfully")

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    @captures_errors
    def refresh(self, payload: Mapping[str, Any] | RefreshInput) -> Result[SessionGrant]:
        """Exchange the current refresh token for a new pair; the presented token dies."""
        data = validate_input(RefreshInput, payload)

        try:
            claims = self.issuer.verify(data.refresh_token, TokenKind.REFRESH)
        except TokenVerificationError as exc:
            raise AuthError(INVALID_REFRESH) from exc

        user = self.store.find_user_by_id(claims["sub"])
        if user is None:
            logger.info("Refresh rejected: user %s no longer exists", claims["sub"])
            raise AuthError(INVALID_REFRESH)
        if data.refresh_token not in user.refresh_tokens:
            logger.warning("Refresh rejected: superseded or revoked token presented for user %s", user.id)
            raise AuthError(INVALID_REFRESH)

        grant = self._rotate(user)
        logger.info("Rotated refresh token for user %s", user.id)
        return Result.success(grant, "Access token refreshed")

    # ------------------------------------------------------------------
    # Logout and profile
    # ------------------------------------------------------------------

    @captures_errors
    def logout(self, user_id: str) -> Result[None]:
        """Clear the stored refresh token so no further refresh succeeds."""
        if self.store.update_user(user_id, refresh_tokens=[]) is None:
            raise NotFoundError("User not found.")
        logger.info("User %s logged out", user_id)
        return Result.success(None, "User logged out successfully")

    @captures_errors
    def profile(self, user_id: str) -> Result[User]:
        user = self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return Result.success(public_user(user), "Current user fetched")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _rotate(self, user: User) -> SessionGrant:
        """Issue a pair for user and make its refresh token the only stored one."""
        tokens = self.issuer.issue_pair(user)
        updated = self.store.update_user(user.id, refresh_tokens=[tokens.refresh.token])
        if updated is None:
            raise AuthError("Unauthorized")
        return SessionGrant(user=public_user(updated), tokens=tokens)
