from __future__ import annotations

import io
from typing import Any

import cloudinary.uploader
import cloudinary.utils
import pytest

from src.app.domain.errors import MediaStoreError
from src.app.infra.media.base import SIGNED_TRANSFORMATION, image_upload_options
from src.app.infra.media.cloudinary_provider import CloudinaryMediaStore, MockMediaStore

UPLOAD_RESPONSE = {
    "public_id": "cooktopia/recipes/abc",
    "secure_url": "https://res.cloudinary.com/demo/image/upload/abc.jpg",
    "width": 1200,
    "height": 800,
    "format": "jpg",
    "bytes": 2048,
    "version": 17,
}


class UploaderSpy:
    def __init__(self) -> None:
        self.calls: list[tuple[Any, dict[str, Any]]] = []

    def upload(self, file: Any, **options: Any) -> dict[str, Any]:
        self.calls.append((file, options))
        return dict(UPLOAD_RESPONSE)

    def destroy(self, public_id: str, **options: Any) -> dict[str, Any]:
        self.calls.append((public_id, options))
        return {"result": "ok"}


@pytest.fixture
def spy(monkeypatch: pytest.MonkeyPatch) -> UploaderSpy:
    spy = UploaderSpy()
    monkeypatch.setattr(cloudinary.uploader, "upload", spy.upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", spy.destroy)
    return spy


@pytest.fixture
def media() -> CloudinaryMediaStore:
    return CloudinaryMediaStore(cloud_name="demo", api_key="key", api_secret="secret")


class TestCloudinaryMediaStore:
    def test_missing_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(MediaStoreError):
            CloudinaryMediaStore(cloud_name="demo")

    def test_bytes_uploaded_as_stream_with_options(self, media: CloudinaryMediaStore, spy: UploaderSpy) -> None:
        result = media.upload(b"\x89PNG...", image_upload_options("cooktopia/recipes"))

        file, options = spy.calls[0]
        assert isinstance(file, io.BytesIO)
        assert options["folder"] == "cooktopia/recipes"
        assert options["resource_type"] == "image"
        assert options["transformation"][1] == {"width": 1200, "height": 1200, "crop": "limit"}
        assert options["api_secret"] == "secret"
        assert result.public_id == "cooktopia/recipes/abc"
        assert result.extra == {"version": 17}

    def test_data_uri_uploaded_as_base64(self, media: CloudinaryMediaStore, spy: UploaderSpy) -> None:
        media.upload("data:image/png;base64,AAAA")
        file, options = spy.calls[0]
        assert file == "data:image/jpeg;base64,AAAA"
        assert options["resource_type"] == "image"

    def test_reference_uploaded_directly(self, media: CloudinaryMediaStore, spy: UploaderSpy) -> None:
        media.upload("https://example.com/a.jpg")
        assert spy.calls[0][0] == "https://example.com/a.jpg"

    def test_provider_error_propagates(self, media: CloudinaryMediaStore, monkeypatch: pytest.MonkeyPatch) -> None:
        def failing(file: Any, **options: Any) -> dict[str, Any]:
            raise RuntimeError("Invalid image file")

        monkeypatch.setattr(cloudinary.uploader, "upload", failing)
        with pytest.raises(RuntimeError, match="Invalid image file"):
            media.upload(b"not an image")

    def test_destroy(self, media: CloudinaryMediaStore, spy: UploaderSpy) -> None:
        assert media.destroy("cooktopia/recipes/abc") == {"result": "ok"}
        assert spy.calls[0][0] == "cooktopia/recipes/abc"

    def test_sign_upload_uses_secret(self, media: CloudinaryMediaStore) -> None:
        params = {"timestamp": 1700000000, "folder": "cooktopia/recipes", "transformation": SIGNED_TRANSFORMATION}

        signature = media.sign_upload(params)

        assert signature == cloudinary.utils.api_sign_request(params, "secret")
        assert signature != cloudinary.utils.api_sign_request(params, "other")


class TestMockMediaStore:
    def test_not_configured(self) -> None:
        assert MockMediaStore().configured is False

    def test_same_bytes_same_url(self) -> None:
        media = MockMediaStore()
        first = media.upload(b"image-bytes")
        second = media.upload(io.BytesIO(b"image-bytes"))

        assert first.secure_url == second.secure_url
        assert first.secure_url.startswith("/uploads/")
        assert first.bytes == len(b"image-bytes")

    def test_data_uri_passthrough(self) -> None:
        uri = "data:image/png;base64,AAAA"
        assert MockMediaStore().upload(uri).secure_url == uri

    def test_cannot_sign(self) -> None:
        with pytest.raises(MediaStoreError):
            MockMediaStore().sign_upload({"timestamp": 1})
