"""Conversion of captured image payloads into binary blobs."""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass
from typing import Union
from urllib.parse import unquote_to_bytes

from PIL import Image, UnidentifiedImageError

from .errors import MissingPayloadError

logger = logging.getLogger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[\w.+-]+=[^;,]*)*)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


@dataclass(slots=True)
class ImageBlob:
    """Raw image bytes plus what Pillow could read from their header."""

    data: bytes
    mime_type: str
    width: int
    height: int

    @property
    def size(self) -> int:
        return len(self.data)


def _decode_data_url(data_url: str) -> tuple[bytes, str]:
    match = _DATA_URL.match(data_url.strip())
    if not match:
        raise MissingPayloadError("Image data must be a data URL")
    payload = match.group("data")
    try:
        raw = base64.b64decode(payload, validate=False) if match.group("b64") else unquote_to_bytes(payload)
    except (binascii.Error, ValueError) as exc:
        raise MissingPayloadError(f"Image data URL is not valid base64: {exc}") from exc
    return raw, match.group("mime") or "application/octet-stream"


def data_url_to_blob(image_data: Union[str, bytes]) -> ImageBlob:
    """Decode a data URL (or raw bytes) and confirm it holds a readable image."""

    if not image_data:
        raise MissingPayloadError("Image data is required")
    if isinstance(image_data, (bytes, bytearray)):
        raw, declared = bytes(image_data), ""
    else:
        raw, declared = _decode_data_url(image_data)
    try:
        with Image.open(io.BytesIO(raw)) as image:
            width, height = image.size
            mime_type = Image.MIME.get(image.format or "", declared or "application/octet-stream")
    except (UnidentifiedImageError, OSError) as exc:
        raise MissingPayloadError(f"Image data is not a readable image: {exc}") from exc
    logger.debug("Decoded %s image %sx%s (%s bytes)", mime_type, width, height, len(raw))
    return ImageBlob(data=raw, mime_type=mime_type, width=width, height=height)
