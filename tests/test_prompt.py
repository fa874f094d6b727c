"""
Tests for the instruction document sent to the reasoning service
"""
import pytest

from trade_chart_analyzer.config import DISCLAIMER, SYSTEM_PERSONA
from trade_chart_analyzer.prompt import NO_DATA_NOTICE, PromptBuilder
from trade_chart_analyzer.types import OCRResult, Symbol, Timeframe, TradeType


@pytest.fixture
def builder():
    return PromptBuilder()


@pytest.fixture
def ocr_with_data():
    return OCRResult(
        raw_text="...",
        price_levels=(1.0815, 1.085, 1.09),
        indicators={"RSI": 55.2, "MACD": -0.0004},
    )


def _build(builder, ocr, notes=""):
    return builder.build(ocr, Symbol.EURUSD, Timeframe.H4, TradeType.SWING, notes)


class TestPromptBuilder:
    def test_contains_market_data(self, builder, ocr_with_data):
        doc = _build(builder, ocr_with_data, "Watching 1.0850")
        assert "- Symbol: EURUSD" in doc
        assert "- Timeframe: H4" in doc
        assert "- Strategy: SWING" in doc
        assert "- Data Quality: GOOD" in doc
        assert "Watching 1.0850" in doc

    def test_price_levels_numbered_in_order(self, builder, ocr_with_data):
        doc = _build(builder, ocr_with_data)
        assert "1. 1.0815\n2. 1.085\n3. 1.09" in doc
        assert "- RSI: 55.2" in doc
        assert "- MACD: -0.0004" in doc

    def test_no_data_notice(self, builder):
        doc = _build(builder, OCRResult.empty())
        assert NO_DATA_NOTICE in doc
        assert "PRICE LEVELS" not in doc
        assert "- Data Quality: POOR" in doc
        assert "Acknowledge data limitations" in doc
        assert "None provided" in doc

    def test_decision_rules_and_schema(self, builder, ocr_with_data):
        doc = _build(builder, ocr_with_data)
        assert "If confidence < 70% -> HOLD" in doc
        assert "If data is insufficient -> HOLD" in doc
        assert "Risk/Reward >= 1:1.5" in doc
        for key in ('"vision_summary"', '"decision"', '"risk_assessment"', '"invalid_if"'):
            assert key in doc
        assert "Return ONLY valid JSON, no additional text" in doc
        assert f'Add "{DISCLAIMER}" to reasoning' in doc

    def test_deterministic(self, builder, ocr_with_data):
        assert _build(builder, ocr_with_data, "n") == _build(builder, ocr_with_data, "n")

    def test_accepts_plain_strings(self, builder, ocr_with_data):
        doc = builder.build(ocr_with_data, "XAUUSD", "D1", "position", "")
        assert "- Symbol: XAUUSD" in doc
        assert "- Strategy: POSITION" in doc

    def test_messages(self, builder):
        messages = builder.messages("DOC")
        assert messages == [
            {"role": "system", "content": SYSTEM_PERSONA},
            {"role": "user", "content": "DOC"},
        ]
