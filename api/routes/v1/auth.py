"""
api/routes/v1/auth.py -- Registration, login, token refresh, logout, and identity.

Routes:
  POST /api/v1/auth/register   -- multipart form; optional profileImage file
  POST /api/v1/auth/login      -- JSON {identifier|email|userName, password}; sets cookies
  POST /api/v1/auth/refresh    -- refreshToken cookie or JSON {refreshToken}; rotates cookies
  POST /api/v1/auth/logout     -- requires auth; clears stored refresh token and cookies
  GET  /api/v1/auth/me         -- requires auth; current user

Every response body is the standard envelope produced by auth.results.Result.
Routes only translate HTTP into SessionManager calls and Results back into
JSONResponses; validation, status codes, and messages all come from the core.

Security:
  Cache-Control: no-store on every response that carries tokens.
  Uploaded images are spooled to a temp file, handed to the object store by
  path, and the temp file is always removed afterwards.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from api.models import ErrorEnvelope, SessionData, UserData, UserOut
from auth.dependencies import get_current_user
from auth.errors import ValidationError
from auth.models import SessionGrant, User
from auth.results import Result
from auth.sessions import SessionManager
from auth.tokens import REFRESH_COOKIE, clear_auth_cookies, set_auth_cookies
from core.config import get_settings

# Auth policy:
# - POST /auth/register: public
# - POST /auth/login:    public
# - POST /auth/refresh:  public -- the refresh token itself is the credential
# - POST /auth/logout:   requires auth (get_current_user)
# - GET  /auth/me:       requires auth (get_current_user)
router = APIRouter(
    responses={
        400: {"model": ErrorEnvelope, "description": "Missing or invalid input"},
        401: {"model": ErrorEnvelope, "description": "Bad credentials or token"},
        500: {"model": ErrorEnvelope, "description": "Unexpected server error"},
    }
)

_MAX_IMAGE_BYTES = 5 * 1024 * 1024


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _respond(result: Result, data: Any = None) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.to_envelope(data))


def _session_response(result: Result[SessionGrant]) -> JSONResponse:
    """Envelope a login/refresh Result and, on success, set both token cookies."""
    if not result.ok:
        resp = _respond(result)
    else:
        grant = result.value
        resp = _respond(result, SessionData.from_grant(grant).model_dump(by_alias=True))
        set_auth_cookies(resp, grant.tokens, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _spool_upload(upload: UploadFile) -> str:
    """Copy an uploaded file to a named temp file and return its path."""
    suffix = Path(upload.filename or "").suffix.lower()
    fd, path = tempfile.mkstemp(prefix="gatekeeper-upload-", suffix=suffix)
    with os.fdopen(fd, "wb") as out:
        shutil.copyfileobj(upload.file, out)
    return path


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/auth/register",
    status_code=201,
    responses={409: {"model": ErrorEnvelope, "description": "Email or user name already registered"}},
)
def register(
    request: Request,
    email: Optional[str] = Form(None),
    display_name: Optional[str] = Form(None, alias="displayName"),
    password: Optional[str] = Form(None),
    user_name: Optional[str] = Form(None, alias="userName"),
    profile_image: Optional[UploadFile] = File(None, alias="profileImage"),
) -> JSONResponse:
    """Create an account. Missing fields are reported together as a 400 envelope."""
    sessions: SessionManager = request.app.state.sessions
    payload = {"email": email, "displayName": display_name, "password": password, "userName": user_name}

    image_path: str | None = None
    if profile_image is not None and profile_image.filename:
        if profile_image.size is not None and profile_image.size > _MAX_IMAGE_BYTES:
            too_large = ValidationError(
                "Profile image is too large.",
                errors=[f"profileImage must be at most {_MAX_IMAGE_BYTES} bytes"],
            )
            return _respond(Result.failure(too_large))
        image_path = _spool_upload(profile_image)

    try:
        result = sessions.register(payload, image_path=image_path)
    finally:
        if image_path is not None:
            Path(image_path).unlink(missing_ok=True)

    if not result.ok:
        return _respond(result)
    return _respond(result, UserData(user=UserOut.from_user(result.value)).model_dump(by_alias=True))


@router.post("/auth/login")
def login(request: Request, body: dict[str, Any] = Body(...)) -> JSONResponse:
    """Authenticate with email or user name and password; set both token cookies."""
    sessions: SessionManager = request.app.state.sessions
    return _session_response(sessions.login(body))


@router.post("/auth/refresh")
def refresh(request: Request, body: Optional[dict[str, Any]] = Body(None)) -> JSONResponse:
    """Rotate the token pair. The refreshToken cookie wins over a body field."""
    sessions: SessionManager = request.app.state.sessions
    payload = dict(body or {})
    cookie_token = request.cookies.get(REFRESH_COOKIE)
    if cookie_token:
        payload.pop("refresh_token", None)
        payload["refreshToken"] = cookie_token
    return _session_response(sessions.refresh(payload))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout")
def logout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Invalidate the stored refresh token and clear both cookies."""
    sessions: SessionManager = request.app.state.sessions
    result = sessions.logout(current_user.id)
    resp = _respond(result, {})
    if result.ok:
        clear_auth_cookies(resp)
    return resp


@router.get("/auth/me")
def me(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Return the stored profile of the user the guard authenticated."""
    sessions: SessionManager = request.app.state.sessions
    result = sessions.profile(current_user.id)
    if not result.ok:
        return _respond(result)
    return _respond(result, UserData(user=UserOut.from_user(result.value)).model_dump(by_alias=True))
