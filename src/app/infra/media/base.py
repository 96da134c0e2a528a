# src/app/infra/media/base.py
"""
Abstract base class for media stores.
This interface allows swapping the image CDN (Cloudinary today) or running
without credentials in mock mode.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Optional, Union

from src.app.domain.models import UploadResult

UploadSource = Union[str, bytes, bytearray, BinaryIO]

DEFAULT_FOLDER = "cooktopia/recipes"
MAX_DIMENSION = 1200

# Upload-time normalization: auto quality/format, bounded to 1200x1200
UPLOAD_TRANSFORMATION = [
    {"quality": "auto", "fetch_format": "auto"},
    {"width": MAX_DIMENSION, "height": MAX_DIMENSION, "crop": "limit"},
]
SIGNED_TRANSFORMATION = f"q_auto,f_auto,w_{MAX_DIMENSION},h_{MAX_DIMENSION},c_limit"


def image_upload_options(folder: str = DEFAULT_FOLDER) -> dict[str, Any]:
    """Options applied to every proxied image upload."""
    return {
        "resource_type": "image",
        "folder": folder,
        "transformation": UPLOAD_TRANSFORMATION,
    }


class MediaStore(ABC):
    """
    Abstract interface for the external media service.

    Implementations:
    - CloudinaryMediaStore: live uploads through the Cloudinary SDK
    - MockMediaStore: credential-less stand-in returning deterministic URLs
    """

    @property
    @abstractmethod
    def configured(self) -> bool:
        """True when backed by a live service."""
        pass

    @property
    def cloud_name(self) -> Optional[str]:
        return None

    @property
    def api_key(self) -> Optional[str]:
        return None

    @abstractmethod
    def upload(
        self,
        file: UploadSource,
        options: Optional[dict[str, Any]] = None,
    ) -> UploadResult:
        """
        Upload one asset.

        Args:
            file: base64 data URI, raw bytes, a binary stream, or a
                reference (URL/path) the service can fetch itself
            options: Provider upload options (folder, transformation, ...)

        Returns:
            The normalized UploadResult
        """
        pass

    @abstractmethod
    def destroy(self, public_id: str) -> dict[str, Any]:
        """
        Delete an asset by public id.

        Returns:
            The provider's deletion result
        """
        pass

    @abstractmethod
    def sign_upload(self, params: dict[str, Any]) -> str:
        """
        Sign a parameter set so a client can upload directly.

        Raises:
            MediaStoreError: If no signing secret is configured
        """
        pass
