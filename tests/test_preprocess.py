"""
Tests for chart image preprocessing
"""
from unittest.mock import patch

import cv2
import numpy as np
import pytest

from trade_chart_analyzer.preprocess import ImagePreprocessor, decode_image, fit_inside


@pytest.fixture
def preprocessor():
    return ImagePreprocessor()


class TestFitInside:
    def test_small_image_untouched(self):
        im = np.zeros((300, 500, 3), dtype=np.uint8)
        assert fit_inside(im) is im

    def test_wide_image_downscaled_keeping_ratio(self):
        im = np.zeros((1000, 4000, 3), dtype=np.uint8)
        out = fit_inside(im)
        assert out.shape[:2] == (500, 2000)

    def test_tall_image_downscaled(self):
        im = np.zeros((3000, 1500), dtype=np.uint8)
        out = fit_inside(im)
        assert out.shape[:2] == (2000, 1000)


class TestPreprocess:
    def test_output_is_grayscale_png(self, preprocessor, chart_png):
        out = preprocessor.preprocess(chart_png)
        assert out != chart_png
        assert out.startswith(b"\x89PNG")
        im = decode_image(out, cv2.IMREAD_UNCHANGED)
        assert im.ndim == 2
        assert im.shape == (400, 640)

    def test_contrast_is_stretched(self, preprocessor):
        im = np.full((100, 100), 100, dtype=np.uint8)
        im[:, 50:] = 140
        ok, buf = cv2.imencode(".png", im)
        out = decode_image(preprocessor.preprocess(buf.tobytes()), cv2.IMREAD_UNCHANGED)
        assert out.min() == 0
        assert out.max() == 255

    def test_large_image_resized(self, preprocessor, large_chart_png):
        out = decode_image(preprocessor.preprocess(large_chart_png), cv2.IMREAD_UNCHANGED)
        assert max(out.shape[:2]) == 2000
        assert out.shape[:2] == (500, 2000)

    def test_corrupt_bytes_returned_unchanged(self, preprocessor):
        junk = b"definitely not an image"
        assert preprocessor.preprocess(junk) is junk

    def test_library_error_returns_original(self, preprocessor, chart_png):
        with patch("trade_chart_analyzer.preprocess.cv2.medianBlur", side_effect=cv2.error("boom")):
            assert preprocessor.preprocess(chart_png) is chart_png

    def test_decode_empty_raises(self):
        with pytest.raises(ValueError):
            decode_image(b"")
