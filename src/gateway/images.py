"""Inbound image payload handling for ingredient recognition.

Turns the base64 payload the UI sends (plain base64 or a ``data:`` URI) into raw
bytes plus a MIME type, checking format and size before any credential is used.

Core Functions:
- decode_image_payload(): base64 / data URI -> bytes
- detect_mime_type(): sniff JPEG/PNG/WEBP from magic bytes
- validate_image_size(): enforce MAX_IMAGE_SIZE_MB
- prepare_image(): all of the above, raising InvalidImage on failure
"""

import base64
import binascii
from typing import Optional

import filetype

from src.models.errors import InvalidImage
from src.utils.config import config
from src.utils.logger import logger


SUPPORTED_IMAGE_TYPES = {
    "jpg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def decode_image_payload(payload: str) -> bytes:
    """Decode a base64 image payload.

    Args:
        payload: Plain base64 or ``data:<mime>;base64,<data>``.

    Returns:
        Raw image bytes.

    Raises:
        InvalidImage: Empty payload or undecodable base64.
    """
    if not payload or not payload.strip():
        raise InvalidImage("No image data was provided.")

    encoded = payload.strip()
    if encoded.startswith("data:"):
        _, _, encoded = encoded.partition(",")

    try:
        image_bytes = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        logger.warning(f"Image payload is not valid base64 ({len(payload)} chars)")
        raise InvalidImage("Image data is not valid base64.") from None

    if not image_bytes:
        raise InvalidImage("No image data was provided.")
    return image_bytes


def detect_mime_type(image_bytes: bytes) -> Optional[str]:
    """Detect the MIME type from magic bytes, not from any declared type.

    Returns:
        The MIME type for JPEG, PNG or WEBP, otherwise None.
    """
    kind = filetype.guess(image_bytes)
    if kind is None:
        return None
    return SUPPORTED_IMAGE_TYPES.get(kind.extension)


def validate_image_size(image_bytes: bytes) -> bool:
    """Validate image size against MAX_IMAGE_SIZE_MB."""
    size_mb = len(image_bytes) / (1024 * 1024)
    if size_mb > config.MAX_IMAGE_SIZE_MB:
        logger.warning(f"Image size {size_mb:.2f}MB exceeds limit of {config.MAX_IMAGE_SIZE_MB}MB")
        return False
    return True


def prepare_image(payload: str) -> tuple[bytes, str]:
    """Decode and check an inbound image.

    Returns:
        Tuple of (image bytes, MIME type).

    Raises:
        InvalidImage: With a message naming the failed check.
    """
    image_bytes = decode_image_payload(payload)

    mime_type = detect_mime_type(image_bytes)
    if mime_type is None:
        raise InvalidImage("Unsupported image format. Only JPEG, PNG and WEBP are supported.")

    if not validate_image_size(image_bytes):
        raise InvalidImage(f"Image too large. Maximum size is {config.MAX_IMAGE_SIZE_MB}MB.")

    logger.debug(f"Prepared {mime_type} image ({len(image_bytes) / 1024:.1f}KB)")
    return image_bytes, mime_type
