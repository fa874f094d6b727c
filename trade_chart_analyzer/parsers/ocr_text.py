# trade_chart_analyzer/parsers/ocr_text.py
import logging
import re
from dataclasses import dataclass
from typing import Iterator

from ..config import MAX_PRICE_LEVELS, OCR_RAW_TEXT_LIMIT
from ..types import OCRResult

logger = logging.getLogger(__name__)

CURRENCY_CHARS = "$€£¥"
# commas are always grouping in a price candidate
_STRIP_RE = re.compile(rf"[{re.escape(CURRENCY_CHARS)},\s]")
_LEADING_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


@dataclass(frozen=True)
class PriceRule:
    """One numeric pattern that yields raw price candidates from OCR text."""

    name: str
    pattern: re.Pattern

    def candidates(self, text: str) -> Iterator[str]:
        for m in self.pattern.finditer(text):
            yield m.group(0)


PRICE_RULES = (
    # 12345.67, 1.23456
    PriceRule("decimal", re.compile(r"\d{1,6}[.,]\d{2,5}")),
    # 1,234.56 or 1.234,56
    PriceRule("grouped", re.compile(r"\d{1,3}(?:[.,]\d{3})*[.,]\d{2}")),
    # $1.23, € 1234,5
    PriceRule("currency", re.compile(rf"[{re.escape(CURRENCY_CHARS)}]\s*\d+[.,]\d+")),
)

_RSI_RES = (
    re.compile(r"RSI[\s:=]*(\d{1,3}(?:[.,]\d{1,2})?)", re.I),
    re.compile(r"Relative Strength Index[\s:=]*(\d{1,3}(?:[.,]\d{1,2})?)", re.I),
)
_MACD_RE = re.compile(r"MACD[\s:=]*(-?\d{1,6}(?:[.,]\d{1,5})?)", re.I)
_MA_RE = re.compile(r"(MA|SMA|EMA)[\s:=]*(\d{1,6}(?:[.,]\d{1,5})?)", re.I)


def normalize_number(raw: str) -> float | None:
    """
    Clean a matched price candidate and parse it.

    Currency symbols, whitespace and commas are dropped, then the leading
    number is read up to its first decimal point ("1,234.56" -> 1234.56,
    "1.234,56" -> 1.23456). Returns None when no digits remain.
    """
    clean = _STRIP_RE.sub("", raw)
    m = _LEADING_NUMBER_RE.match(clean)
    return float(m.group(0)) if m else None


def _to_float(raw: str) -> float | None:
    """Indicator reading with a single '.' or ',' decimal separator."""
    try:
        return float(raw.replace(",", ".", 1))
    except ValueError:
        return None


def round_price(value: float) -> float:
    """5 decimals below 10 (forex), 4 below 1000, else 2."""
    if value < 10:
        return round(value, 5)
    if value < 1000:
        return round(value, 4)
    return round(value, 2)


def extract_price_levels(text: str, rules=PRICE_RULES, limit: int = MAX_PRICE_LEVELS) -> list[float]:
    prices: set[float] = set()
    for rule in rules:
        for raw in rule.candidates(text):
            value = normalize_number(raw)
            if value is None or value <= 0:
                continue
            prices.add(round_price(value))
    return sorted(prices)[:limit]


def _parse_rsi(text: str) -> float | None:
    """First labelled RSI reading inside [0, 100]."""
    for pattern in _RSI_RES:
        for m in pattern.finditer(text):
            value = _to_float(m.group(1))
            if value is not None and 0 <= value <= 100:
                return value
    return None


def _parse_macd(text: str) -> float | None:
    m = _MACD_RE.search(text)
    if not m:
        return None
    return _to_float(m.group(1))


def _parse_moving_averages(text: str) -> dict[str, float]:
    out: dict[str, float] = {}
    for m in _MA_RE.finditer(text):
        value = _to_float(m.group(2))
        if value is not None:
            out[m.group(1).upper()] = value
    return out


class OCRTextParser:
    """Turns raw OCR text into price levels and indicator readings. No I/O."""

    def __init__(self, rules=PRICE_RULES, max_levels: int = MAX_PRICE_LEVELS):
        self.rules = rules
        self.max_levels = max_levels

    def parse(self, raw_text: str | None) -> OCRResult:
        text = raw_text or ""
        price_levels: list[float] = []
        indicators: dict[str, float] = {}
        try:
            price_levels = extract_price_levels(text, self.rules, self.max_levels)

            rsi = _parse_rsi(text)
            if rsi is not None:
                indicators["RSI"] = rsi

            macd = _parse_macd(text)
            if macd is not None:
                indicators["MACD"] = macd

            indicators.update(_parse_moving_averages(text))
        except Exception as e:
            # keep whatever was extracted before the failure
            logger.warning(f"OCR parsing error: {e}")

        return OCRResult(
            raw_text=text[:OCR_RAW_TEXT_LIMIT],
            price_levels=tuple(price_levels),
            indicators=indicators,
        )
