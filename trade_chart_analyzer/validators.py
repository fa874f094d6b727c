# trade_chart_analyzer/validators.py
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any

from .clients.deepseek import AIReply
from .config import DISCLAIMER
from .errors import ResponseValidationError
from .types import AnalysisResult, Stage

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("decision", "vision_summary")
KNOWN_FIELDS = ("vision_summary", "decision", "risk_assessment", "disclaimer", "api_usage")
USAGE_KEYS = ("prompt_tokens", "completion_tokens", "total_tokens")

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.I)
_JSON_TAG_RE = re.compile(r"^json\s*", re.I)


def strip_code_fences(content: str) -> str:
    """Remove ```json / ``` fences and a bare leading 'json' tag."""
    cleaned = _FENCE_RE.sub("", content)
    return _JSON_TAG_RE.sub("", cleaned.strip()).strip()


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ResponseValidator:
    """Checks the reasoning reply against the expected top-level shape."""

    def __init__(self, disclaimer: str = DISCLAIMER, required: tuple[str, ...] = REQUIRED_FIELDS):
        self.disclaimer = disclaimer
        self.required = required

    def parse(self, content: str | None) -> dict[str, Any]:
        if not content or not content.strip():
            raise ResponseValidationError("Empty response from AI")
        cleaned = strip_code_fences(content)
        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise ResponseValidationError(f"AI response is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ResponseValidationError(
                f"AI response must be a JSON object, got {type(payload).__name__}"
            )
        missing = tuple(f for f in self.required if payload.get(f) is None)
        if missing:
            raise ResponseValidationError(
                f"Invalid response structure from AI: missing {', '.join(missing)}", missing=missing
            )
        not_objects = [f for f in self.required if not isinstance(payload[f], dict)]
        if not_objects:
            raise ResponseValidationError(
                f"Invalid response structure from AI: {', '.join(not_objects)} must be objects"
            )
        return payload

    def validate(self, reply: AIReply | str) -> AnalysisResult:
        content = reply.content if isinstance(reply, AIReply) else reply
        usage = reply.usage if isinstance(reply, AIReply) else {}
        payload = self.parse(content)

        return AnalysisResult(
            vision_summary=payload["vision_summary"],
            decision=payload["decision"],
            risk_assessment=payload.get("risk_assessment") or {},
            disclaimer=self.disclaimer,
            api_usage={k: (usage or {}).get(k) for k in USAGE_KEYS},
            extra={k: v for k, v in payload.items() if k not in KNOWN_FIELDS},
        )

    def fallback(
        self,
        error: BaseException | None,
        request_id: Any = None,
        stage: Stage | None = None,
    ) -> AnalysisResult:
        """Conservative HOLD result for any failure; always schema-valid."""
        message = str(error) if error is not None and str(error) else "Analysis failed"
        reason_cause = str(error) if error is not None and str(error) else "Insufficient or unclear chart data"
        return AnalysisResult(
            vision_summary={
                "trend_structure": "Analysis failed",
                "trend_confidence": "low",
                "support_zone": {
                    "level": "N/A",
                    "description": "Technical analysis incomplete",
                    "confidence": "low",
                },
                "resistance_zone": {
                    "level": "N/A",
                    "description": "Technical analysis incomplete",
                    "confidence": "low",
                },
                "rsi": {"approx_value": "N/A", "status": "unknown", "divergence": False},
                "macd": {"cross": "unknown", "histogram": "unknown", "momentum": "unknown"},
                "key_notes": (
                    "Unable to complete technical analysis. Please ensure chart image is clear, "
                    "well-lit, and contains visible price/indicator data."
                ),
            },
            decision={
                "action": "HOLD",
                "entry": "N/A",
                "sl": "N/A",
                "tp1": "N/A",
                "tp2": "N/A",
                "probability": "0%",
                "risk_reward": "N/A",
                "reason": (
                    f"Technical analysis failed: {reason_cause}. "
                    "Please upload a clearer screenshot with visible price levels."
                ),
                "invalid_if": "N/A",
            },
            risk_assessment={
                "level": "high",
                "recommended_position": "none",
                "timeframe_suitability": "poor",
            },
            disclaimer=self.disclaimer,
            error={
                "message": message,
                "kind": getattr(error, "kind", type(error).__name__ if error else "unknown"),
                "stage": stage.value if stage is not None else None,
                "request_id": request_id,
                "timestamp": utc_now(),
            },
        )
