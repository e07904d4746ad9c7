"""
auth/results.py -- The Result contract returned by every core operation.

SessionManager and AuthorizationGuard never write responses and never let an
expected domain error escape. They return a Result instead:

    result = sessions.login({"identifier": "a@x.com", "password": "secret1"})
    if result.ok:
        tokens = result.value
    envelope = result.to_envelope()

to_envelope() produces the uniform body the HTTP layer serializes:

    success: {"statusCode", "message", "data", "success": True}
    failure: {"statusCode", "message", "errors", "data": None, "success": False}

captures_errors wraps a method so AuthCoreError subclasses raised inside it
become failure Results. Any other exception propagates untouched to the
caller's top-level boundary.

Layer rule: stdlib + auth.errors only.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, TypeVar

from auth.errors import AuthCoreError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    status_code: int
    message: str
    value: T | None = None
    error: AuthCoreError | None = None
    errors: list[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: T, message: str = "OK", status_code: int = 200) -> "Result[T]":
        return cls(ok=True, status_code=status_code, message=message, value=value)

    @classmethod
    def failure(cls, error: AuthCoreError) -> "Result[T]":
        return cls(
            ok=False,
            status_code=error.status_code,
            message=error.message,
            error=error,
            errors=list(error.errors),
        )

    def unwrap(self) -> T:
        """Return the value, or raise the captured error.

        Used by FastAPI dependencies, which signal failure by raising.
        """
        if not self.ok:
            raise self.error  # type: ignore[misc]
        return self.value  # type: ignore[return-value]

    def to_envelope(self, data: Any = None) -> dict:
        """Build the response envelope. `data` overrides the raw value (already-serialized payloads)."""
        if self.ok:
            return {
                "statusCode": self.status_code,
                "message": self.message,
                "data": self.value if data is None else data,
                "success": True,
            }
        return {
            "statusCode": self.status_code,
            "message": self.message,
            "errors": list(self.errors),
            "data": None,
            "success": False,
        }


def captures_errors(fn: Callable[..., Result]) -> Callable[..., Result]:
    """Turn expected AuthCoreError raises into failure Results."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return fn(*args, **kwargs)
        except AuthCoreError as exc:
            return Result.failure(exc)

    return wrapper
