"""
media/store.py -- Where profile images go.

Registration hands the store a path to a file already on local disk (the HTTP
layer spools the upload there) and stores only the URL it gets back. Image
bytes are never the auth core's concern.

Two backends:
  LocalObjectStore -- copies the file under MEDIA_DIR and serves it from
      MEDIA_BASE_URL. Default for development and tests.
  HttpObjectStore  -- multipart POST to a remote upload endpoint (e.g. an
      unsigned Cloudinary-style upload URL) and reads the URL from the JSON
      reply.

Both reject a file that is not an allowed image type with ValidationError
(client input, 400) and raise UploadError on any I/O or network failure, so
registration can stop before a user record is written.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import requests

from auth.errors import UploadError, ValidationError
from core.config import Settings

logger = logging.getLogger("gatekeeper.media")

_ALLOWED_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


@dataclass(frozen=True)
class UploadResult:
    url: str


class ObjectStore(Protocol):
    def upload(self, local_path: str | Path) -> UploadResult: ...


def _checked_file(local_path: str | Path) -> Path:
    path = Path(local_path).resolve()
    if not path.is_file():
        raise UploadError(errors=[f"{path.name} is not a readable file"])
    if path.suffix.lower() not in _ALLOWED_SUFFIXES:
        raise ValidationError(
            "Unsupported image type.",
            errors=[f"profileImage must be one of: {', '.join(sorted(_ALLOWED_SUFFIXES))}"],
        )
    return path


class LocalObjectStore:
    def __init__(self, root: str | Path, base_url: str = "/media") -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def upload(self, local_path: str | Path) -> UploadResult:
        source = _checked_file(local_path)
        name = f"{uuid.uuid4().hex}{source.suffix.lower()}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, self.root / name)
        except OSError as exc:
            logger.error("Could not store profile image: %s", exc)
            raise UploadError() from exc
        return UploadResult(url=f"{self.base_url}/{name}")


class HttpObjectStore:
    """Uploads to a remote object store over HTTP.

    max_redirects=3: the upload endpoint is a known service; following long
    redirect chains would only widen the SSRF surface.
    """

    def __init__(
        self,
        upload_url: str,
        preset: str = "",
        timeout: int = 15,
        session: requests.Session | None = None,
    ) -> None:
        if not upload_url:
            raise ValueError("upload_url is required for HttpObjectStore")
        self.upload_url = upload_url
        self.preset = preset
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    def upload(self, local_path: str | Path) -> UploadResult:
        source = _checked_file(local_path)
        data = {"upload_preset": self.preset} if self.preset else {}
        try:
            with source.open("rb") as fh:
                resp = self._session.post(
                    self.upload_url,
                    files={"file": (source.name, fh)},
                    data=data,
                    timeout=self.timeout,
                )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Remote image upload failed: %s", type(exc).__name__)
            raise UploadError() from exc

        url = (body.get("secure_url") or body.get("url")) if isinstance(body, dict) else None
        if not url:
            logger.warning("Remote image upload returned no URL")
            raise UploadError()
        return UploadResult(url=url)


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.media_backend == "http":
        return HttpObjectStore(
            settings.media_upload_url,
            preset=settings.media_upload_preset,
            timeout=settings.media_timeout_seconds,
        )
    return LocalObjectStore(settings.media_dir, settings.media_base_url)
