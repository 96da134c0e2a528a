# src/app/infra/media/cloudinary_provider.py
"""
Cloudinary media store implementation, plus the mock used when no
credentials are configured.
"""
from __future__ import annotations

import hashlib
import io
import logging
import os
from typing import Any, Optional

import cloudinary.uploader
import cloudinary.utils

from src.app.domain.errors import MediaStoreError
from src.app.domain.models import UploadResult
from src.app.infra.media.base import MediaStore, UploadSource

logger = logging.getLogger(__name__)

_NORMALIZED_KEYS = ("secure_url", "public_id", "width", "height", "format", "bytes")


def _is_data_uri(file: Any) -> bool:
    return isinstance(file, str) and file.startswith("data:image")


def _normalize(result: dict[str, Any]) -> UploadResult:
    return UploadResult(
        secure_url=result.get("secure_url") or result.get("url") or "",
        public_id=result.get("public_id"),
        width=result.get("width"),
        height=result.get("height"),
        format=result.get("format"),
        bytes=result.get("bytes"),
        extra={k: v for k, v in result.items() if k not in _NORMALIZED_KEYS},
    )


class CloudinaryMediaStore(MediaStore):
    """
    Cloudinary media store using the official SDK.

    Credentials are passed on every call instead of through the SDK's
    global config, so several stores can coexist in one process.

    Environment variables used as fallbacks:
    - CLOUDINARY_CLOUD_NAME
    - CLOUDINARY_API_KEY
    - CLOUDINARY_API_SECRET
    """

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
    ):
        self._cloud_name = cloud_name or os.getenv("CLOUDINARY_CLOUD_NAME")
        self._api_key = api_key or os.getenv("CLOUDINARY_API_KEY")
        self._api_secret = api_secret or os.getenv("CLOUDINARY_API_SECRET")

        if not all([self._cloud_name, self._api_key, self._api_secret]):
            raise MediaStoreError(
                "Missing Cloudinary configuration. Required: CLOUDINARY_CLOUD_NAME, "
                "CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET"
            )

        logger.info("Cloudinary configured: cloud_name=%s", self._cloud_name)

    @property
    def configured(self) -> bool:
        return True

    @property
    def cloud_name(self) -> Optional[str]:
        return self._cloud_name

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    def _credentials(self) -> dict[str, Any]:
        return {
            "cloud_name": self._cloud_name,
            "api_key": self._api_key,
            "api_secret": self._api_secret,
            "secure": True,
        }

    def upload(
        self,
        file: UploadSource,
        options: Optional[dict[str, Any]] = None,
    ) -> UploadResult:
        """Dispatch by input shape; provider errors propagate unchanged."""
        options = {**(options or {}), **self._credentials()}

        try:
            if _is_data_uri(file):
                payload = file.split(",", 1)[1] if "," in file else file
                logger.debug("Uploading base64 image")
                result = cloudinary.uploader.upload(
                    f"data:image/jpeg;base64,{payload}",
                    **{**options, "resource_type": "image"},
                )
            elif isinstance(file, (bytes, bytearray)) or hasattr(file, "read"):
                stream = io.BytesIO(bytes(file)) if isinstance(file, (bytes, bytearray)) else file
                logger.debug("Uploading file stream")
                result = cloudinary.uploader.upload(stream, **options)
            else:
                logger.debug("Attempting direct upload: %s", file)
                result = cloudinary.uploader.upload(file, **options)
        except Exception as e:
            logger.error("Cloudinary upload error: %s", e)
            raise

        uploaded = _normalize(result)
        logger.info(
            "Uploaded to Cloudinary: public_id=%s, bytes=%s",
            uploaded.public_id,
            uploaded.bytes,
        )
        return uploaded

    def destroy(self, public_id: str) -> dict[str, Any]:
        try:
            result = cloudinary.uploader.destroy(public_id, **self._credentials())
        except Exception as e:
            logger.error("Cloudinary destroy error: %s", e)
            raise
        logger.info("Destroyed Cloudinary asset: public_id=%s, result=%s", public_id, result)
        return result

    def sign_upload(self, params: dict[str, Any]) -> str:
        return cloudinary.utils.api_sign_request(params, self._api_secret)


class MockMediaStore(MediaStore):
    """
    Stand-in used when Cloudinary credentials are missing.
    Data URIs are passed through; anything else maps to a local path
    derived from a hash of the content, so the same bytes give the same URL.
    """

    def __init__(self) -> None:
        logger.warning("Cloudinary credentials not found. Image uploads will use mock URLs.")

    @property
    def configured(self) -> bool:
        return False

    def upload(
        self,
        file: UploadSource,
        options: Optional[dict[str, Any]] = None,
    ) -> UploadResult:
        logger.warning("No Cloudinary config found, using mock URL")
        if _is_data_uri(file):
            return UploadResult(secure_url=file)

        if isinstance(file, (bytes, bytearray)):
            content = bytes(file)
        elif hasattr(file, "read"):
            content = file.read()
        else:
            content = str(file).encode("utf-8")

        digest = hashlib.sha1(content).hexdigest()[:16]
        return UploadResult(
            secure_url=f"/uploads/{digest}.jpg",
            public_id=f"mock/{digest}",
            bytes=len(content),
        )

    def destroy(self, public_id: str) -> dict[str, Any]:
        logger.warning("No Cloudinary config found, skipping destroy: public_id=%s", public_id)
        return {"result": "ok"}

    def sign_upload(self, params: dict[str, Any]) -> str:
        raise MediaStoreError("Cloudinary is not configured; direct uploads cannot be signed")
