# src/app/schemas/upload.py
from __future__ import annotations

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class UploadedImage(BaseModel):
    public_id: Optional[str] = None
    secure_url: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    bytes: Optional[int] = None


class UploadSignature(BaseModel):
    signature: str
    timestamp: int
    cloudName: Optional[str] = None
    apiKey: Optional[str] = None
    folder: str
    transformation: str


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str


class HealthResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str

