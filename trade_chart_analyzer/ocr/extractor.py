# trade_chart_analyzer/ocr/extractor.py
import logging
from functools import partial
from typing import Callable

import cv2

from ..config import OCR_CHAR_WHITELIST, OCR_PAGE_SEG_MODE, OCR_REGION, Settings
from ..parsers.ocr_text import OCRTextParser
from ..preprocess import decode_image
from ..types import OCRResult
from .engines import OCRSession, RapidOCRSession, TesseractSession, ocr_session

logger = logging.getLogger(__name__)


def session_factory_for(settings: Settings) -> Callable[[], OCRSession]:
    if settings.ocr_engine == "rapid":
        return RapidOCRSession
    return partial(TesseractSession, lang=settings.ocr_language, timeout=settings.ocr_timeout)


class OCRExtractor:
    """
    Reads chart text with a per-call OCR session.

    Parameters
    ----------
    session_factory : Callable[[], OCRSession]
        Creates a new engine session; one per call, never shared.
    parser : OCRTextParser | None
        Parser used by extract().
    region : tuple[int, int]
        Width/height of the recognition rectangle anchored at the top-left.
    whitelist : str
        Characters the engine may emit.
    page_seg_mode : int
        Tesseract page segmentation mode (6 = uniform block of text).
    rotate_auto : bool
        Correct page orientation before recognition.
    """

    def __init__(
        self,
        session_factory: Callable[[], OCRSession] | None = None,
        parser: OCRTextParser | None = None,
        region: tuple[int, int] = OCR_REGION,
        whitelist: str = OCR_CHAR_WHITELIST,
        page_seg_mode: int = OCR_PAGE_SEG_MODE,
        rotate_auto: bool = True,
    ):
        self.session_factory = session_factory or TesseractSession
        self.parser = parser or OCRTextParser()
        self.region = region
        self.whitelist = whitelist
        self.page_seg_mode = page_seg_mode
        self.rotate_auto = rotate_auto

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "OCRExtractor":
        return cls(session_factory=session_factory_for(settings), region=settings.ocr_region, **kwargs)

    def read_text(self, image_bytes: bytes) -> str:
        """Raw recognized text, or "" on any failure."""
        try:
            im = decode_image(image_bytes, cv2.IMREAD_COLOR)
            with ocr_session(self.session_factory) as session:
                session.configure(
                    whitelist=self.whitelist,
                    preserve_interword_spaces=True,
                    page_seg_mode=self.page_seg_mode,
                )
                page = session.recognize(
                    im, rectangle=(0, 0, *self.region), rotate_auto=self.rotate_auto
                )
        except Exception as e:
            logger.warning(f"OCR extraction failed: {e}")
            return ""
        conf = f"{page.confidence:.1f}" if page.confidence is not None else "n/a"
        logger.debug(f"OCR read {len(page.text)} chars (confidence {conf})")
        return page.text

    def extract(self, image_bytes: bytes) -> OCRResult:
        text = self.read_text(image_bytes)
        if not text:
            return OCRResult.empty()
        return self.parser.parse(text)
