# trade_chart_analyzer/preprocess.py
import logging

import cv2
import numpy as np

from .config import MAX_IMAGE_SIDE, MEDIAN_KSIZE, SHARPEN_SIGMA

logger = logging.getLogger(__name__)


def decode_image(data: bytes, flags: int = cv2.IMREAD_COLOR) -> np.ndarray:
    """Decode encoded image bytes into an np.ndarray (BGR by default)."""
    if not data:
        raise ValueError("Empty image buffer")
    buf = np.frombuffer(data, dtype=np.uint8)
    im = cv2.imdecode(buf, flags)
    if im is None:
        raise ValueError("Failed to decode image (corrupt or unsupported format)")
    return im


def encode_png(im: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", im)
    if not ok:
        raise ValueError("Failed to encode image as PNG")
    return buf.tobytes()


def fit_inside(im: np.ndarray, max_side: int = MAX_IMAGE_SIDE) -> np.ndarray:
    """Downscale to fit within max_side x max_side, keeping aspect ratio; never enlarges."""
    h, w = im.shape[:2]
    if w <= max_side and h <= max_side:
        return im
    scale = min(max_side / w, max_side / h)
    size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    return cv2.resize(im, size, interpolation=cv2.INTER_AREA)


def _to_gray(im: np.ndarray) -> np.ndarray:
    if im.ndim == 2:
        return im
    if im.shape[2] == 4:
        return cv2.cvtColor(im, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(im, cv2.COLOR_BGR2GRAY)


def _sharpen(gray: np.ndarray, sigma: float = SHARPEN_SIGMA) -> np.ndarray:
    """Mild unsharp mask."""
    blur = cv2.GaussianBlur(gray, (0, 0), sigma)
    return cv2.addWeighted(gray, 1.5, blur, -0.5, 0)


class ImagePreprocessor:
    """
    Makes chart screenshots easier to read for OCR.

    Steps: fit inside 2000x2000 -> grayscale -> min/max contrast stretch
    -> unsharp mask -> 3x3 median. Any failure returns the input untouched.
    """

    def __init__(
        self,
        max_side: int = MAX_IMAGE_SIDE,
        sharpen_sigma: float = SHARPEN_SIGMA,
        median_ksize: int = MEDIAN_KSIZE,
    ):
        self.max_side = max_side
        self.sharpen_sigma = sharpen_sigma
        self.median_ksize = median_ksize

    def enhance(self, im: np.ndarray) -> np.ndarray:
        im = fit_inside(im, self.max_side)
        g = _to_gray(im)
        g = cv2.normalize(g, None, 0, 255, cv2.NORM_MINMAX)
        g = _sharpen(g, self.sharpen_sigma)
        return cv2.medianBlur(g, self.median_ksize)

    def preprocess(self, image_bytes: bytes) -> bytes:
        try:
            im = decode_image(image_bytes, cv2.IMREAD_UNCHANGED)
            if im.dtype != np.uint8:
                im = cv2.normalize(im, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
            return encode_png(self.enhance(im))
        except Exception as e:
            logger.warning(f"Image preprocessing failed, using original: {e}")
            return image_bytes
