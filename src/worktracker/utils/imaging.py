"""Image encoding helpers shared by the frame sources and the classifier."""

from __future__ import annotations

import base64
import binascii
import logging
import re

import cv2
import numpy as np

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(image/[\w.+-]+);base64,", re.IGNORECASE)


def fit_within(image: np.ndarray, max_width: int, max_height: int) -> np.ndarray:
    """Downscale an image to fit inside max_width x max_height.

    Preserves aspect ratio and never upscales.
    """
    h, w = image.shape[:2]
    scale = min(max_width / w, max_height / h, 1.0)
    if scale >= 1.0:
        return image
    new_w = max(1, int(w * scale))
    new_h = max(1, int(h * scale))
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)


def encode_image(image: np.ndarray, image_format: str = "png", jpeg_quality: int = 80) -> bytes:
    """Encode a BGR numpy image to PNG or JPEG bytes."""
    if image_format == "jpeg":
        success, buffer = cv2.imencode(".jpg", image, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality])
    else:
        success, buffer = cv2.imencode(".png", image)
    if not success:
        raise ValueError(f"Failed to encode image to {image_format}")
    return buffer.tobytes()


def mime_type_for(image_format: str) -> str:
    return "image/jpeg" if image_format == "jpeg" else "image/png"


def sniff_mime_type(data: bytes) -> str:
    """Guess the MIME type of encoded image bytes from their magic number."""
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "application/octet-stream"


def decode_base64_image(payload: str) -> tuple[bytes, str]:
    """Decode a base64 image, accepting an optional ``data:`` URL prefix.

    Returns:
        (image bytes, mime type) tuple.

    Raises:
        ValueError: If the payload is not valid base64.
    """
    payload = payload.strip()
    mime_type = None
    match = _DATA_URL_RE.match(payload)
    if match:
        mime_type = match.group(1).lower()
        payload = payload[match.end():]
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e
    if not data:
        raise ValueError("Empty image payload")
    return data, mime_type or sniff_mime_type(data)


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    """Encode image bytes as a base64 data URL for vision APIs."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('utf-8')}"
