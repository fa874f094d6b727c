# trade_chart_analyzer/ocr/engines.py
import logging
import shlex
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Protocol

import cv2
import numpy as np

from ..errors import OCRSessionError

logger = logging.getLogger(__name__)

# Tesseract OSD "Rotate" -> cv2 rotation that uprights the page
_OSD_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


@dataclass
class OCRPage:
    text: str
    confidence: float | None  # mean word/line confidence, 0-100


class OCRSession(Protocol):
    def configure(
        self, *, whitelist: str, preserve_interword_spaces: bool, page_seg_mode: int
    ) -> None: ...

    def recognize(
        self,
        im: np.ndarray,
        rectangle: tuple[int, int, int, int] | None = None,
        rotate_auto: bool = True,
    ) -> OCRPage: ...

    def terminate(self) -> None: ...


def _crop(im: np.ndarray, rect: tuple[int, int, int, int] | None) -> np.ndarray:
    """Safe crop by (left, top, width, height), clamped to the image."""
    if rect is None:
        return im
    left, top, width, height = rect
    h, w = im.shape[:2]
    x1 = max(0, min(left, w - 1))
    y1 = max(0, min(top, h - 1))
    x2 = max(0, min(left + width, w))
    y2 = max(0, min(top + height, h))
    return im[y1:y2, x1:x2]


@contextmanager
def ocr_session(factory: Callable[[], OCRSession]) -> Iterator[OCRSession]:
    """Acquire a fresh engine session and terminate it on every exit path."""
    session = factory()
    try:
        yield session
    finally:
        try:
            session.terminate()
        except Exception as e:
            logger.warning(f"OCR session terminate failed: {e}")


class TesseractSession:
    """One Tesseract session (pytesseract). Requires the tesseract binary on PATH."""

    def __init__(self, lang: str = "eng", timeout: float = 30.0):
        import pytesseract

        self._tess = pytesseract
        # fails fast when the binary is missing
        self._tess.get_tesseract_version()
        self.lang = lang
        self.timeout = timeout
        self._config: str | None = None
        self._closed = False

    def configure(
        self, *, whitelist: str, preserve_interword_spaces: bool = True, page_seg_mode: int = 6
    ) -> None:
        self._check_open()
        parts = [f"--psm {int(page_seg_mode)}"]
        if whitelist:
            parts.append("-c " + shlex.quote(f"tessedit_char_whitelist={whitelist}"))
        parts.append(f"-c preserve_interword_spaces={1 if preserve_interword_spaces else 0}")
        self._config = " ".join(parts)

    def _auto_rotate(self, im: np.ndarray) -> np.ndarray:
        try:
            osd = self._tess.image_to_osd(
                im, output_type=self._tess.Output.DICT, timeout=self.timeout
            )
        except Exception as e:
            # OSD needs enough text and osd.traineddata; recognize unrotated otherwise
            logger.debug(f"Orientation detection skipped: {e}")
            return im
        rotation = _OSD_ROTATIONS.get(int(osd.get("rotate", 0)) % 360)
        return cv2.rotate(im, rotation) if rotation is not None else im

    def recognize(
        self,
        im: np.ndarray,
        rectangle: tuple[int, int, int, int] | None = None,
        rotate_auto: bool = True,
    ) -> OCRPage:
        self._check_open()
        if self._config is None:
            raise OCRSessionError("Session used before configure()")
        if rotate_auto:
            im = self._auto_rotate(im)
        region = _crop(im, rectangle)
        if region.size == 0:
            return OCRPage(text="", confidence=None)

        # image_to_string keeps the spacing preserve_interword_spaces asks for
        text = self._tess.image_to_string(
            region, lang=self.lang, config=self._config, timeout=self.timeout
        )
        data = self._tess.image_to_data(
            region,
            lang=self.lang,
            config=self._config,
            output_type=self._tess.Output.DICT,
            timeout=self.timeout,
        )
        confs = [
            float(conf)
            for word, conf in zip(data.get("text", []), data.get("conf", []))
            if word and word.strip() and float(conf) >= 0
        ]
        return OCRPage(
            text=text.strip(), confidence=sum(confs) / len(confs) if confs else None
        )

    def terminate(self) -> None:
        self._config = None
        self._closed = True

    def _check_open(self):
        if self._closed:
            raise OCRSessionError("OCR session already terminated")


class RapidOCRSession:
    """One RapidOCR (onnxruntime) session; whitelist is applied to the recognized text."""

    def __init__(self):
        # Lazy import to keep import-time light
        from rapidocr_onnxruntime import RapidOCR

        self._engine = RapidOCR()
        self._whitelist: set[str] | None = None
        self._configured = False

    def configure(
        self, *, whitelist: str, preserve_interword_spaces: bool = True, page_seg_mode: int = 6
    ) -> None:
        self._check_open()
        self._whitelist = set(whitelist) if whitelist else None
        self._configured = True

    def recognize(
        self,
        im: np.ndarray,
        rectangle: tuple[int, int, int, int] | None = None,
        rotate_auto: bool = True,
    ) -> OCRPage:
        self._check_open()
        if not self._configured:
            raise OCRSessionError("Session used before configure()")
        region = _crop(im, rectangle)
        if region.size == 0:
            return OCRPage(text="", confidence=None)
        if region.ndim == 2:
            region = cv2.cvtColor(region, cv2.COLOR_GRAY2BGR)

        result, _ = self._engine(region, use_cls=rotate_auto)  # [box, text, score]
        if not result:
            return OCRPage(text="", confidence=None)
        # reading order: top-to-bottom, then left-to-right
        result = sorted(result, key=lambda r: (r[0][0][1], r[0][0][0]))
        lines = []
        for _, text, _score in result:
            if self._whitelist is not None:
                text = "".join(ch for ch in text if ch in self._whitelist)
            if text.strip():
                lines.append(text)
        scores = [float(r[2]) * 100 for r in result]
        return OCRPage(text="\n".join(lines), confidence=sum(scores) / len(scores))

    def terminate(self) -> None:
        self._engine = None

    def _check_open(self):
        if self._engine is None:
            raise OCRSessionError("OCR session already terminated")
