# src/app/routers/upload.py
"""
Image upload proxy.
Files are checked here (image MIME type, size cap, file count) before the
media service is called; the service applies folder and transformation
options server-side.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from src.app.config import Settings
from src.app.deps import get_media_store, get_settings
from src.app.infra.media.base import SIGNED_TRANSFORMATION, MediaStore, image_upload_options
from src.app.schemas.upload import Envelope, ErrorEnvelope, UploadedImage, UploadSignature

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/upload",
    tags=["Upload"],
    responses={400: {"model": ErrorEnvelope}, 500: {"model": ErrorEnvelope}},
)


def _max_size_label(max_bytes: int) -> str:
    return f"{max_bytes // (1024 * 1024)}MB"


async def _read_image(file: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded image, rejecting non-images and oversize files with a 400."""
    content_type = file.content_type or ""
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only image files are allowed",
        )

    content = await file.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size: {_max_size_label(max_bytes)}",
        )
    return content


async def _upload(media: MediaStore, content: bytes, folder: str) -> dict[str, Any]:
    result = await run_in_threadpool(media.upload, content, image_upload_options(folder))
    return result.summary()


@router.post("/single", response_model=Envelope[UploadedImage])
async def upload_single(
    image: Optional[UploadFile] = File(None),
    media: MediaStore = Depends(get_media_store),
    settings: Settings = Depends(get_settings),
):
    if image is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image file provided")

    content = await _read_image(image, settings.UPLOAD_MAX_BYTES)
    try:
        data = await _upload(media, content, settings.UPLOAD_FOLDER)
    except Exception as e:
        logger.error("Single image upload error: filename=%s error=%s", image.filename, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Failed to upload image",
        )

    logger.info("Image uploaded: filename=%s, public_id=%s", image.filename, data["public_id"])
    return {"success": True, "data": data}


@router.post("/multiple", response_model=Envelope[list[UploadedImage]])
async def upload_multiple(
    images: Optional[list[UploadFile]] = File(None),
    bracketed: Optional[list[UploadFile]] = File(None, alias="images[]"),
    media: MediaStore = Depends(get_media_store),
    settings: Settings = Depends(get_settings),
):
    """
    Upload up to ``UPLOAD_MAX_FILES`` images. Every file is validated before
    any upload starts; uploads then run concurrently and results keep the
    request order.
    """
    files = [*(images or []), *(bracketed or [])]
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image files provided")
    if len(files) > settings.UPLOAD_MAX_FILES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Too many files. Maximum: {settings.UPLOAD_MAX_FILES}",
        )

    contents = [await _read_image(file, settings.UPLOAD_MAX_BYTES) for file in files]
    try:
        data = await asyncio.gather(
            *(_upload(media, content, settings.UPLOAD_FOLDER) for content in contents)
        )
    except Exception as e:
        logger.error("Multiple image upload error: files=%d error=%s", len(files), e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Failed to upload images",
        )

    logger.info("Images uploaded: count=%d", len(data))
    return {"success": True, "data": list(data)}


@router.get("/signature", response_model=Envelope[UploadSignature])
async def upload_signature(
    media: MediaStore = Depends(get_media_store),
    settings: Settings = Depends(get_settings),
):
    """Signed parameters for a direct browser-to-CDN upload."""
    params = {
        "timestamp": int(time.time()),
        "folder": settings.UPLOAD_FOLDER,
        "transformation": SIGNED_TRANSFORMATION,
    }
    try:
        signature = media.sign_upload(params)
    except Exception as e:
        logger.error("Signature generation error: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Failed to generate upload signature",
        )

    return {
        "success": True,
        "data": {
            "signature": signature,
            "timestamp": params["timestamp"],
            "cloudName": media.cloud_name,
            "apiKey": media.api_key,
            "folder": params["folder"],
            "transformation": params["transformation"],
        },
    }


@router.delete("/{public_id:path}", response_model=Envelope[dict[str, Any]])
async def delete_image(
    public_id: str,
    media: MediaStore = Depends(get_media_store),
):
    if not public_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Public ID is required")

    try:
        result = await run_in_threadpool(media.destroy, public_id)
    except Exception as e:
        logger.error("Image deletion error: public_id=%s error=%s", public_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Failed to delete image",
        )

    logger.info("Image deleted: public_id=%s", public_id)
    return {"success": True, "data": result}
