# trade_chart_analyzer/types.py
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from .config import (
    DEFAULT_SYMBOL,
    DEFAULT_TIMEFRAME,
    DEFAULT_TRADE_TYPE,
    MAX_FILE_SIZE,
    MAX_NOTES_LENGTH,
    MESSAGES,
    TIMEFRAMES,
    TRADE_TYPES,
    TRADING_PAIRS,
)
from .errors import InvalidRequestError

Symbol = Enum("Symbol", {s: s for s in TRADING_PAIRS}, type=str)
Timeframe = Enum("Timeframe", {t: t for t in TIMEFRAMES}, type=str)
TradeType = Enum("TradeType", {t.upper(): t for t in TRADE_TYPES}, type=str)


class Stage(str, Enum):
    """Pipeline states; DONE and FALLBACK are terminal."""

    PREPROCESSING = "preprocessing"
    EXTRACTING = "extracting"
    PARSING = "parsing"
    PROMPTING = "prompting"
    INVOKING = "invoking"
    VALIDATING = "validating"
    DONE = "done"
    FALLBACK = "fallback"


def _pick(enum_cls, value: str, code: str, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidRequestError(f"Invalid {label}. Allowed: {allowed}", code=code) from None


@dataclass(frozen=True)
class AnalysisRequest:
    """One chart analysis request, validated at the boundary.

    Attributes
    ----------
    image_bytes : bytes
        Encoded chart image (PNG/JPEG/WEBP), non-empty.
    symbol : Symbol
        Traded instrument, e.g. Symbol.XAUUSD.
    timeframe : Timeframe
        Chart timeframe, e.g. Timeframe.H1.
    trade_type : TradeType
        Trading style, e.g. TradeType.INTRADAY.
    extra_notes : str
        Free text from the user, at most 500 characters.
    """

    image_bytes: bytes
    symbol: Symbol
    timeframe: Timeframe
    trade_type: TradeType
    extra_notes: str = ""

    def __post_init__(self):
        if not self.image_bytes:
            raise InvalidRequestError(MESSAGES["NO_IMAGE"], code="NO_IMAGE")
        if len(self.extra_notes) > MAX_NOTES_LENGTH:
            raise InvalidRequestError(
                f"Notes exceed {MAX_NOTES_LENGTH} characters", code="INVALID_NOTES"
            )

    @classmethod
    def from_user_input(
        cls,
        image_bytes: bytes | None,
        symbol: str | None = None,
        timeframe: str | None = None,
        trade_type: str | None = None,
        extra_notes: str | None = None,
        max_image_bytes: int = MAX_FILE_SIZE,
    ) -> "AnalysisRequest":
        """Normalize raw user input and reject anything outside the fixed enumerations."""
        if not image_bytes:
            raise InvalidRequestError(MESSAGES["NO_IMAGE"], code="NO_IMAGE")
        if len(image_bytes) > max_image_bytes:
            raise InvalidRequestError(
                MESSAGES["FILE_TOO_LARGE"].format(max_mb=max_image_bytes / 1024 / 1024),
                code="FILE_TOO_LARGE",
            )
        sym = (symbol or DEFAULT_SYMBOL).upper().strip()
        tf = (timeframe or DEFAULT_TIMEFRAME).upper().strip()
        tt = (trade_type or DEFAULT_TRADE_TYPE).lower().strip()
        notes = (extra_notes or "")[:MAX_NOTES_LENGTH].strip()
        return cls(
            image_bytes=bytes(image_bytes),
            symbol=_pick(Symbol, sym, "INVALID_SYMBOL", "symbol"),
            timeframe=_pick(Timeframe, tf, "INVALID_TIMEFRAME", "timeframe"),
            trade_type=_pick(TradeType, tt, "INVALID_TRADE_TYPE", "trade type"),
            extra_notes=notes,
        )


@dataclass(frozen=True)
class OCRResult:
    """Structured data read off a chart image."""

    raw_text: str = ""
    price_levels: tuple[float, ...] = ()
    indicators: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        # freeze the mapping so the result cannot change after parsing
        object.__setattr__(self, "indicators", MappingProxyType(dict(self.indicators)))
        object.__setattr__(self, "price_levels", tuple(self.price_levels))

    @property
    def has_data(self) -> bool:
        return len(self.price_levels) > 0 or len(self.indicators) > 0

    @classmethod
    def empty(cls) -> "OCRResult":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_text": self.raw_text,
            "price_levels": list(self.price_levels),
            "indicators": dict(self.indicators),
            "has_data": self.has_data,
        }


@dataclass
class AnalysisResult:
    """Validated (or fallback) analysis handed back to the caller.

    Attributes
    ----------
    vision_summary : dict
        Trend/support/resistance/RSI/MACD narrative.
    decision : dict
        action (BUY/SELL/HOLD), entry, sl, tp1, tp2, probability,
        risk_reward, reason, invalid_if.
    risk_assessment : dict
        level, recommended_position, timeframe_suitability.
    disclaimer : str
        Fixed educational-use disclaimer.
    api_usage : dict | None
        Token accounting reported by the reasoning service.
    error : dict | None
        Diagnostic block; set only on the fallback path.
    metadata : dict
        Request id, timing and parameters attached by the orchestrator.
    extra : dict
        Any other top-level reply fields, passed through unchanged.
    """

    vision_summary: dict[str, Any]
    decision: dict[str, Any]
    risk_assessment: dict[str, Any] = field(default_factory=dict)
    disclaimer: str = ""
    api_usage: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def action(self) -> str | None:
        return self.decision.get("action")

    @property
    def is_fallback(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.extra)
        out["vision_summary"] = self.vision_summary
        out["decision"] = self.decision
        out["risk_assessment"] = self.risk_assessment
        out["disclaimer"] = self.disclaimer
        if self.api_usage is not None:
            out["api_usage"] = self.api_usage
        if self.error is not None:
            out["error"] = self.error
        if self.metadata:
            out["metadata"] = self.metadata
        return out
