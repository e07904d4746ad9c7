"""
API response models for Gatekeeper REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire names are camelCase (statusCode, displayName, accessToken); Python
attributes stay snake_case via the to_camel alias generator. Always dump with
by_alias=True.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import SessionGrant, User


class _Wire(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Payloads (the "data" member of a success envelope)
# ---------------------------------------------------------------------------


class UserOut(_Wire):
    """Public view of a user. Never carries the password hash or refresh tokens."""

    id: str
    email: str
    display_name: str
    user_name: Optional[str] = None
    role: str
    plan: str
    profile_image_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            user_name=user.handle,
            role=user.role.value,
            plan=user.plan.value,
            profile_image_url=user.profile_image_url,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class UserData(_Wire):
    user: UserOut


class SessionData(_Wire):
    """Body of a successful login or refresh. The same tokens are also set as cookies."""

    user: UserOut
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    access_token_expires_in: int
    refresh_token_expires_in: int

    @classmethod
    def from_grant(cls, grant: SessionGrant) -> "SessionData":
        return cls(
            user=UserOut.from_user(grant.user),
            access_token=grant.tokens.access.token,
            refresh_token=grant.tokens.refresh.token,
            access_token_expires_in=grant.tokens.access.expires_in,
            refresh_token_expires_in=grant.tokens.refresh.expires_in,
        )


# ---------------------------------------------------------------------------
# Error envelope (OpenAPI schema for failure responses; auth.results.Result
# builds the actual dicts)
# ---------------------------------------------------------------------------


class ErrorEnvelope(_Wire):
    status_code: int
    message: str
    errors: list[str] = Field(default_factory=list)
    data: None = None
    success: bool = False


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
