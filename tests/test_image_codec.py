"""Tests for :mod:`panoview.services.image_codec`."""

from __future__ import annotations

import pytest
from PySide6.QtCore import QByteArray
from PySide6.QtGui import QImage

from panoview.services.image_codec import (
    ImageCodecError,
    ThumbnailCodec,
    can_decode,
    decode_data_url,
    to_data_url,
)

from tests.helpers import png_bytes


def test_rescale_preserves_aspect_ratio() -> None:
    codec = ThumbnailCodec(width=50, quality=70, image_format="PNG")

    url = codec.rescale(png_bytes(200, 100))

    assert url.startswith("data:image/png;base64,")
    image = QImage()
    assert image.loadFromData(QByteArray(decode_data_url(url)))
    assert (image.width(), image.height()) == (50, 25)


def test_rescale_rejects_garbage() -> None:
    with pytest.raises(ImageCodecError):
        ThumbnailCodec().rescale(b"not an image")


def test_can_decode() -> None:
    assert can_decode(png_bytes())
    assert not can_decode(b"")
    assert not can_decode(b"\x00\x01\x02")


def test_decode_data_url_variants() -> None:
    assert decode_data_url(to_data_url(b"abc", "image/png")) == b"abc"
    assert decode_data_url("data:text/plain,a%20b") == b"a b"

    with pytest.raises(ImageCodecError):
        decode_data_url("https://example.org/icon.png")
    with pytest.raises(ImageCodecError):
        decode_data_url("data:image/png;base64,***")
