"""Utilities for validating uploaded image payloads."""

from __future__ import annotations

import base64
import binascii
import re

# ~10MB decoded image is ~13MB once base64 encoded.
MAX_DATA_URL_LENGTH = 13 * 1024 * 1024
MAX_REQUEST_BYTES = 15 * 1024 * 1024

_DATA_URL_PREFIX = re.compile(r"^data:image/(jpeg|jpg|png|webp|gif);base64,")


def validate_image_data_url(value: object) -> str | None:
    """Return a user-facing error for an unusable data URL, or ``None`` if it is fine."""

    if not value:
        return "No image provided"
    if not isinstance(value, str):
        return "Invalid image format: expected string"
    if not _DATA_URL_PREFIX.match(value):
        return "Invalid image format. Supported formats: JPEG, PNG, WEBP, GIF"
    if len(value) > MAX_DATA_URL_LENGTH:
        return "Image too large. Maximum size is 10MB"
    return None


def decode_image_base64(raw: str) -> bytes:
    """Decode plain base64 or a ``data:image/...`` URL into image bytes."""

    candidate = raw.strip()
    if candidate.startswith("data:"):
        _, _, candidate = candidate.partition(",")
    try:
        return base64.b64decode(candidate, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid base64 image payload") from exc


def to_data_url(image_bytes: bytes, mime_type: str = "image/jpeg") -> str:
    encoded = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


__all__ = [
    "MAX_DATA_URL_LENGTH",
    "MAX_REQUEST_BYTES",
    "decode_image_base64",
    "to_data_url",
    "validate_image_data_url",
]
