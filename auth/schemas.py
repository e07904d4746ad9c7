"""
auth/schemas.py -- Typed input for each session operation.

Each operation validates its payload exactly once, here, before any store or
hashing work happens. Unknown keys are rejected (extra="forbid") so a payload
of the wrong shape fails loudly instead of being half-used.

Wire names follow the client contract (displayName, userName, refreshToken);
Python attributes are snake_case. validate_input() converts pydantic's error
list into a single auth ValidationError whose `errors` name every problem at
once, so a client missing three fields hears about all three.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from auth.errors import ValidationError
from auth.passwords import MAX_PASSWORD_BYTES

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
HANDLE_PATTERN = r"^[a-z0-9_.-]{3,32}$"

M = TypeVar("M", bound=BaseModel)

# Keys whose whitespace-only values are real input, not blanks.
_VERBATIM_KEYS = {"password"}


class _Input(BaseModel):
    # Whitespace is not stripped globally: passwords are taken byte-for-byte.
    model_config = ConfigDict(extra="forbid", frozen=True)


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class RegisterInput(_Input):
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    display_name: str = Field(
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("displayName", "fullName", "display_name"),
    )
    password: str = Field(min_length=6)
    handle: Optional[str] = Field(
        default=None,
        pattern=HANDLE_PATTERN,
        validation_alias=AliasChoices("userName", "handle"),
    )

    @field_validator("email", "handle", mode="before")
    @classmethod
    def lowercase(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("display_name", mode="before")
    @classmethod
    def strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginInput(_Input):
    identifier: str = Field(
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("identifier", "email", "userName"),
    )
    password: str = Field(min_length=1)

    @field_validator("identifier", mode="before")
    @classmethod
    def lowercase(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class RefreshInput(_Input):
    refresh_token: str = Field(min_length=1, validation_alias=AliasChoices("refreshToken", "refresh_token"))


def _describe(error: dict) -> tuple[str, str, str]:
    field = ".".join(str(p) for p in error.get("loc", ())) or "body"
    kind = error.get("type", "")
    if kind == "missing":
        return kind, field, f"{field} is required"
    if kind == "extra_forbidden":
        return kind, field, f"{field} is not allowed"
    return kind, field, f"{field}: {error.get('msg', 'invalid value')}"


def _is_blank(key: str, value) -> bool:
    """Blank form fields count as absent, so they are reported as missing."""
    if value is None or value == "":
        return True
    return isinstance(value, str) and key not in _VERBATIM_KEYS and not value.strip()


def validate_input(model: type[M], payload) -> M:
    """Return payload as an instance of model, or raise auth ValidationError.

    Already-validated instances pass straight through.
    """
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, Mapping):
        raise ValidationError("Request body must be an object.", errors=["body must be an object"])
    data = {k: v for k, v in payload.items() if not _is_blank(k, v)}
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        details = [_describe(e) for e in exc.errors()]
        missing = [field for kind, field, _ in details if kind == "missing"]
        message = f"Missing required fields: {', '.join(missing)}" if missing else "Invalid input."
        raise ValidationError(message, errors=[msg for _, _, msg in details]) from exc
