import json

import cv2
import numpy as np
import pytest

from trade_chart_analyzer.clients.deepseek import AIReply
from trade_chart_analyzer.ocr.engines import OCRPage
from trade_chart_analyzer.types import AnalysisRequest


class SessionLog:
    """Counts OCR session lifecycle events across fake sessions."""

    def __init__(self):
        self.acquired = 0
        self.released = 0
        self.configured = []
        self.rectangles = []


class FakeOCRSession:
    def __init__(self, log: SessionLog, text: str = "", fail_on: str | None = None):
        if fail_on == "init":
            raise RuntimeError("tesseract not installed")
        self.log = log
        self.text = text
        self.fail_on = fail_on
        log.acquired += 1

    def configure(self, *, whitelist, preserve_interword_spaces, page_seg_mode):
        if self.fail_on == "configure":
            raise RuntimeError("invalid parameter")
        self.log.configured.append(
            {
                "whitelist": whitelist,
                "preserve_interword_spaces": preserve_interword_spaces,
                "page_seg_mode": page_seg_mode,
            }
        )

    def recognize(self, im, rectangle=None, rotate_auto=True):
        self.log.rectangles.append((rectangle, rotate_auto))
        if self.fail_on == "recognize":
            raise RuntimeError("Tesseract process timeout")
        return OCRPage(text=self.text, confidence=91.5)

    def terminate(self):
        self.log.released += 1


@pytest.fixture
def session_log():
    return SessionLog()


@pytest.fixture
def make_session_factory(session_log):
    def factory(text: str = "", fail_on: str | None = None):
        return lambda: FakeOCRSession(session_log, text=text, fail_on=fail_on)

    return factory


def _chart_image(width: int = 640, height: int = 400) -> np.ndarray:
    im = np.full((height, width, 3), 24, dtype=np.uint8)
    cv2.putText(im, "EURUSD 1.08452", (20, 40), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (230, 230, 230), 2)
    cv2.putText(im, "RSI 55.2", (20, 90), cv2.FONT_HERSHEY_SIMPLEX, 0.8, (0, 200, 0), 2)
    cv2.line(im, (0, height - 50), (width, 60), (0, 0, 255), 2)
    return im


@pytest.fixture
def chart_png() -> bytes:
    ok, buf = cv2.imencode(".png", _chart_image())
    assert ok
    return buf.tobytes()


@pytest.fixture
def large_chart_png() -> bytes:
    ok, buf = cv2.imencode(".png", _chart_image(4000, 1000))
    assert ok
    return buf.tobytes()


@pytest.fixture
def request_factory(chart_png):
    def factory(**overrides):
        params = {
            "symbol": "EURUSD",
            "timeframe": "H4",
            "trade_type": "swing",
            "extra_notes": "Watching the 1.0850 level",
        }
        params.update(overrides)
        return AnalysisRequest.from_user_input(chart_png, **params)

    return factory


@pytest.fixture
def ai_payload() -> dict:
    return {
        "vision_summary": {
            "trend_structure": "bullish",
            "trend_confidence": "medium",
            "support_zone": {"level": "1.0820", "description": "prior swing low", "confidence": "medium"},
            "resistance_zone": {"level": "1.0900", "description": "round number", "confidence": "high"},
            "rsi": {"approx_value": "55", "status": "neutral", "divergence": False},
            "macd": {"cross": "bullish", "histogram": "rising", "momentum": "moderate"},
            "key_notes": "Higher lows; price holding above support",
        },
        "decision": {
            "action": "BUY",
            "entry": "1.0850",
            "sl": "1.0815",
            "tp1": "1.0905",
            "tp2": "1.0940",
            "probability": "72%",
            "risk_reward": "1:1.6",
            "reason": "Support bounce with bullish MACD cross.",
            "invalid_if": "H4 close below 1.0815",
        },
        "risk_assessment": {
            "level": "medium",
            "recommended_position": "small",
            "timeframe_suitability": "good",
        },
    }


@pytest.fixture
def ai_reply(ai_payload) -> AIReply:
    return AIReply(
        content=json.dumps(ai_payload),
        usage={"prompt_tokens": 1200, "completion_tokens": 350, "total_tokens": 1550},
        model="deepseek-chat",
    )
