"""Qt-backed image helpers used for thumbnails and favicon probing."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from urllib.parse import unquote_to_bytes

from PySide6.QtCore import QBuffer, QByteArray, QIODevice, Qt
from PySide6.QtGui import QImage

__all__ = [
    "ImageCodecError",
    "ThumbnailCodec",
    "can_decode",
    "decode_data_url",
    "to_data_url",
]

LOGGER = logging.getLogger(__name__)

_MIME_TYPES = {"JPEG": "image/jpeg", "JPG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp"}


class ImageCodecError(RuntimeError):
    """Raised when image bytes cannot be decoded or re-encoded."""


@dataclass(slots=True, frozen=True)
class ThumbnailCodec:
    """Decode a captured surface, scale it to ``width`` and re-encode it.

    Aspect ratio is preserved; the output is returned as a ``data:`` url so it
    can be stored verbatim in session storage.
    """

    width: int = 500
    quality: int = 70
    image_format: str = "JPEG"

    def rescale(self, data: bytes) -> str:
        image = QImage()
        if not image.loadFromData(QByteArray(data)):
            raise ImageCodecError("captured image could not be decoded")
        if image.width() <= 0:
            raise ImageCodecError("captured image is empty")
        scaled = image.scaledToWidth(self.width, Qt.TransformationMode.SmoothTransformation)
        buffer = QBuffer()
        buffer.open(QIODevice.OpenModeFlag.WriteOnly)
        try:
            if not scaled.save(buffer, self.image_format, self.quality):
                raise ImageCodecError(f"could not encode thumbnail as {self.image_format}")
            encoded = bytes(buffer.data().data())
        finally:
            buffer.close()
        return to_data_url(encoded, _MIME_TYPES.get(self.image_format.upper(), "image/jpeg"))


def can_decode(data: bytes) -> bool:
    """Return ``True`` when Qt recognises ``data`` as a loadable image."""

    if not data:
        return False
    image = QImage()
    return bool(image.loadFromData(QByteArray(data))) and not image.isNull()


def to_data_url(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(url: str) -> bytes:
    """Return the payload of a ``data:`` url.

    Raises:
        ImageCodecError: If ``url`` is not a well-formed data url.
    """

    if not url.startswith("data:") or "," not in url:
        raise ImageCodecError("not a data url")
    header, _, payload = url[5:].partition(",")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageCodecError("invalid base64 payload") from exc
    return unquote_to_bytes(payload)
