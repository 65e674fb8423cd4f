"""Decoding, validation and upload of base64 images sent by clients."""

from __future__ import annotations

import base64
import binascii
import os
import time
import uuid
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from storefront.core.config import settings
from storefront.core.errors import IllegalUserArgument
from storefront.services import storage

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png"})
ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png"})

JPEG_MAGIC = b"\xff\xd8\xff"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

_EXTENSION_BY_TYPE = {"image/jpeg": ".jpg", "image/jpg": ".jpg", "image/png": ".png"}


def decode_base64_image(data: str) -> bytes:
    """Decode a base64 payload, tolerating a ``data:image/...;base64,`` prefix."""

    if not data:
        raise IllegalUserArgument("Image content is empty")
    if "," in data:
        data = data.split(",", 1)[1]
    try:
        raw = base64.b64decode(data.strip(), validate=True)
    except (binascii.Error, ValueError):
        raise IllegalUserArgument("Image is not valid base64")
    if not raw:
        raise IllegalUserArgument("Image content is empty")
    return raw


def detect_image_type(content: bytes) -> Optional[str]:
    if content.startswith(JPEG_MAGIC):
        return "image/jpeg"
    if content.startswith(PNG_MAGIC):
        return "image/png"
    return None


def validate_image(
    content: bytes,
    content_type: Optional[str] = None,
    file_name: Optional[str] = None,
) -> str:
    """Check size, declared type and magic bytes; return the detected type."""

    if not content:
        raise IllegalUserArgument("Image content is empty")
    if len(content) > settings.MAX_IMAGE_BYTES:
        limit_mb = settings.MAX_IMAGE_BYTES // (1024 * 1024)
        raise IllegalUserArgument(f"Image exceeds the maximum size of {limit_mb}MB")
    if content_type and content_type.lower() not in ALLOWED_CONTENT_TYPES:
        raise IllegalUserArgument("Only JPEG and PNG images are allowed")
    if file_name:
        ext = os.path.splitext(file_name)[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise IllegalUserArgument("Only .jpg, .jpeg and .png files are allowed")
    detected = detect_image_type(content)
    if detected is None:
        raise IllegalUserArgument("File content is not a valid JPEG or PNG image")
    return detected


def build_key(prefix: str, file_name: Optional[str], content_type: str) -> str:
    ext = os.path.splitext(file_name or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        ext = _EXTENSION_BY_TYPE[content_type]
    millis = int(time.time() * 1000)
    return f"{prefix.rstrip('/')}/{uuid.uuid4()}-{millis}{ext}"


async def upload_base64_image(
    prefix: str,
    base64_image: str,
    file_name: Optional[str] = None,
    content_type: Optional[str] = None,
) -> str:
    """Validate and store an image, returning its storage key."""

    content = decode_base64_image(base64_image)
    detected = validate_image(content, content_type, file_name)
    key = build_key(prefix, file_name, detected)
    try:
        return await storage.upload_object(key, content, content_type or detected)
    except (BotoCoreError, ClientError) as exc:
        raise IllegalUserArgument(f"Error uploading image: {exc}") from exc


def check_image(
    base64_image: str,
    file_name: Optional[str] = None,
    content_type: Optional[str] = None,
) -> str:
    """Decode and validate an image without storing it."""

    return validate_image(decode_base64_image(base64_image), content_type, file_name)
