"""Tests for image encoding helpers."""

from __future__ import annotations

import base64

import numpy as np
import pytest

from worktracker.utils.imaging import (
    decode_base64_image,
    encode_image,
    fit_within,
    sniff_mime_type,
    to_data_url,
)


class TestFitWithin:
    def test_downscales_preserving_aspect(self) -> None:
        image = np.zeros((1000, 2000, 3), dtype=np.uint8)
        assert fit_within(image, 1000, 1000).shape[:2] == (500, 1000)

    def test_never_upscales(self) -> None:
        image = np.zeros((10, 20, 3), dtype=np.uint8)
        assert fit_within(image, 1000, 1000) is image


class TestEncoding:
    def test_png_and_jpeg(self) -> None:
        image = np.zeros((8, 8, 3), dtype=np.uint8)
        png = encode_image(image, "png")
        jpeg = encode_image(image, "jpeg", 70)
        assert sniff_mime_type(png) == "image/png"
        assert sniff_mime_type(jpeg) == "image/jpeg"

    def test_sniff_unknown(self) -> None:
        assert sniff_mime_type(b"hello") == "application/octet-stream"


class TestBase64:
    def test_data_url_round_trip(self) -> None:
        data = b"\x89PNG\r\n\x1a\nrest"
        assert decode_base64_image(to_data_url(data, "image/png")) == (data, "image/png")

    def test_bare_base64_sniffs_mime(self) -> None:
        data = b"\xff\xd8\xff\xe0jpeg"
        assert decode_base64_image(base64.b64encode(data).decode()) == (data, "image/jpeg")

    def test_invalid_payload(self) -> None:
        with pytest.raises(ValueError):
            decode_base64_image("%%%")

    def test_empty_payload(self) -> None:
        with pytest.raises(ValueError):
            decode_base64_image("data:image/png;base64,")
