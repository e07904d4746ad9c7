"""
auth/errors.py -- Domain error kinds for the authentication core.

Every expected failure in auth/ is one of these classes. Each carries the HTTP
status it maps to and a stable machine-readable code, so the HTTP layer only
serializes -- it never decides what a failure means.

  ValidationError      400  missing or malformed input
  AuthError            401  bad credentials, missing/invalid/expired/reused token
  ForbiddenError       403  authenticated but not allowed (role check)
  NotFoundError        404  referenced record absent
  ConflictError        409  duplicate email or handle
  InternalError        500  hashing, upload or store failure

Anything that is not an AuthCoreError is unexpected and propagates to the
top-level handler in api/main.py.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthCoreError(Exception):
    """Base class for expected failures raised inside the auth core."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Something went wrong."

    def __init__(self, message: str | None = None, errors: list[str] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)


class ValidationError(AuthCoreError):
    status_code = 400
    code = "validation_error"
    default_message = "Request validation failed."


class AuthError(AuthCoreError):
    status_code = 401
    code = "unauthorized"
    default_message = "Unauthorized."


class ForbiddenError(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden."


class TokenVerificationError(AuthError):
    """A token failed signature, expiry, type or claim checks.

    `reason` is for logs only; callers show every subclass as the same 401.
    """

    reason = "invalid"


class TokenExpiredError(TokenVerificationError):
    reason = "expired"
    default_message = "Token has expired."


class TokenInvalidError(TokenVerificationError):
    reason = "invalid"
    default_message = "Token is invalid."


class NotFoundError(AuthCoreError):
    status_code = 404
    code = "not_found"
    default_message = "Not found."


class ConflictError(AuthCoreError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists."


class InternalError(AuthCoreError):
    status_code = 500
    code = "internal_error"
    default_message = "An unexpected error occurred."


class PasswordHashingError(InternalError):
    default_message = "Could not process the password."


class UploadError(InternalError):
    default_message = "Profile image upload failed."


class DuplicateUserError(ConflictError):
    """Raised by the store when a unique index (email or handle) rejects an insert."""

    default_message = "A user with that email or handle already exists."
