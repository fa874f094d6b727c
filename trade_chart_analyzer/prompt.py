# trade_chart_analyzer/prompt.py
from enum import Enum

from .config import DISCLAIMER, SYSTEM_PERSONA
from .types import OCRResult

OUTPUT_SCHEMA = """{
  "vision_summary": {
    "trend_structure": "bullish/bearish/sideways/uncertain",
    "trend_confidence": "high/medium/low",
    "support_zone": {
      "level": "specific_price_or_N/A",
      "description": "brief_description",
      "confidence": "high/medium/low"
    },
    "resistance_zone": {
      "level": "specific_price_or_N/A",
      "description": "brief_description",
      "confidence": "high/medium/low"
    },
    "rsi": {
      "approx_value": "number_or_estimated_range_or_N/A",
      "status": "overbought/oversold/neutral/unknown",
      "divergence": true/false
    },
    "macd": {
      "cross": "bullish/bearish/neutral/unknown",
      "histogram": "rising/falling/neutral/unknown",
      "momentum": "strong/moderate/weak/unknown"
    },
    "key_notes": "concise_market_observations_max_3_points"
  },
  "decision": {
    "action": "BUY/SELL/HOLD",
    "entry": "exact_price_or_N/A",
    "sl": "exact_stop_loss_or_N/A",
    "tp1": "first_take_profit_or_N/A",
    "tp2": "second_take_profit_or_N/A",
    "probability": "0-100%",
    "risk_reward": "ratio_e.g._1:1.5_or_N/A",
    "reason": "detailed_technical_explanation_min_3_points",
    "invalid_if": "clear_invalidation_conditions"
  },
  "risk_assessment": {
    "level": "low/medium/high",
    "recommended_position": "small/medium/full",
    "timeframe_suitability": "excellent/good/fair/poor"
  }
}"""

REQUIREMENTS = """ANALYSIS REQUIREMENTS:

1. TREND ANALYSIS:
   - Primary trend direction
   - Trend strength and structure
   - Momentum assessment

2. KEY LEVELS:
   - Support levels (use available price data)
   - Resistance levels (use available price data)
   - Pivot points if identifiable

3. PATTERN RECOGNITION:
   - Chart patterns (triangles, flags, H&S, etc.)
   - Candlestick patterns
   - Breakout/breakdown signals

4. RISK ASSESSMENT:
   - Market volatility
   - Signal reliability
   - Risk/Reward potential

TRADING DECISION CRITERIA:

BUY SIGNAL (LONG):
   - Bullish pattern confirmation
   - Support bounce with volume
   - Positive momentum alignment
   - Risk/Reward >= 1:1.5
   - Clear entry/exit levels

SELL SIGNAL (SHORT):
   - Bearish pattern confirmation
   - Resistance rejection
   - Negative momentum alignment
   - Risk/Reward >= 1:1.5
   - Clear entry/exit levels

HOLD SIGNAL:
   - Sideways/consolidation
   - No clear pattern
   - Low confidence signal
   - High uncertainty
   - Waiting for confirmation

CONSERVATIVE APPROACH REQUIRED:
   - Better to miss a trade than take a bad one
   - If data is insufficient -> HOLD
   - If confidence < 70% -> HOLD
   - Always prioritize capital preservation

RISK MANAGEMENT:
   - Calculate precise price levels
   - Suggest realistic stop loss
   - Provide 2 take profit targets
   - Assess position size suitability
   - Define invalidation conditions"""

NO_DATA_NOTICE = "NO DATA EXTRACTED - Chart may be unclear or contain no readable text"


def _value(v) -> str:
    return v.value if isinstance(v, Enum) else str(v)


def _fmt_number(x: float) -> str:
    # repr keeps full precision without float noise for already-rounded values
    return repr(float(x))


class PromptBuilder:
    """Renders OCR data and trading parameters into the instruction document."""

    def __init__(self, disclaimer: str = DISCLAIMER, system_persona: str = SYSTEM_PERSONA):
        self.disclaimer = disclaimer
        self.system_persona = system_persona

    def _chart_data(self, ocr: OCRResult) -> str:
        if not ocr.has_data:
            return NO_DATA_NOTICE
        levels = "\n".join(
            f"{i}. {_fmt_number(p)}" for i, p in enumerate(sorted(ocr.price_levels), start=1)
        )
        indicators = "\n".join(f"- {k}: {_fmt_number(v)}" for k, v in ocr.indicators.items())
        return (
            f"PRICE LEVELS (sorted):\n{levels or 'None'}\n\n"
            f"TECHNICAL INDICATORS:\n{indicators or 'None'}"
        )

    def build(self, ocr_result: OCRResult, symbol, timeframe, trade_type, extra_notes: str = "") -> str:
        has_data = ocr_result.has_data
        first_instruction = (
            "Use available price data for calculations"
            if has_data
            else "Acknowledge data limitations"
        )
        return f"""TRADING CHART ANALYSIS REQUEST

MARKET DATA:
- Symbol: {_value(symbol)}
- Timeframe: {_value(timeframe)}
- Strategy: {_value(trade_type).upper()}
- Data Quality: {'GOOD' if has_data else 'POOR'}

EXTRACTED CHART DATA:
{self._chart_data(ocr_result)}

USER NOTES:
{extra_notes or 'None provided'}

{REQUIREMENTS}

OUTPUT FORMAT - STRICT JSON ONLY:

{OUTPUT_SCHEMA}

FINAL INSTRUCTIONS:
1. {first_instruction}
2. Be conservative - err on side of caution
3. Provide realistic price levels
4. Include clear risk warnings
5. Return ONLY valid JSON, no additional text
6. Add "{self.disclaimer}" to reasoning"""

    def messages(self, document: str) -> list[dict[str, str]]:
        """Single-turn chat payload: analyst persona + the instruction document."""
        return [
            {"role": "system", "content": self.system_persona},
            {"role": "user", "content": document},
        ]
