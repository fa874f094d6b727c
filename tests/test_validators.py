"""
Tests for reply validation and the conservative fallback result
"""
import json

import pytest

from trade_chart_analyzer.clients.deepseek import AIReply
from trade_chart_analyzer.config import DISCLAIMER
from trade_chart_analyzer.errors import AIServiceError, ResponseValidationError
from trade_chart_analyzer.types import Stage
from trade_chart_analyzer.validators import ResponseValidator, strip_code_fences


@pytest.fixture
def validator():
    return ResponseValidator()


class TestStripFences:
    @pytest.mark.parametrize(
        "content",
        [
            '```json\n{"a": 1}\n```',
            '```\n{"a": 1}\n```',
            'json {"a": 1}',
            '  {"a": 1}  ',
        ],
    )
    def test_variants(self, content):
        assert json.loads(strip_code_fences(content)) == {"a": 1}


class TestParse:
    def test_valid_reply(self, validator, ai_reply, ai_payload):
        result = validator.validate(ai_reply)
        assert result.decision == ai_payload["decision"]
        assert result.vision_summary == ai_payload["vision_summary"]
        assert result.risk_assessment == ai_payload["risk_assessment"]
        assert result.disclaimer == DISCLAIMER
        assert result.api_usage == {"prompt_tokens": 1200, "completion_tokens": 350, "total_tokens": 1550}
        assert result.error is None

    def test_fenced_reply_unchanged(self, validator, ai_payload):
        content = "```json\n" + json.dumps(ai_payload) + "\n```"
        result = validator.validate(AIReply(content=content))
        assert result.decision == ai_payload["decision"]
        assert result.vision_summary == ai_payload["vision_summary"]

    def test_missing_decision(self, validator, ai_payload):
        del ai_payload["decision"]
        with pytest.raises(ResponseValidationError) as exc:
            validator.validate(json.dumps(ai_payload))
        assert exc.value.missing == ("decision",)
        assert "Invalid response structure" in str(exc.value)

    def test_null_field_counts_as_missing(self, validator, ai_payload):
        ai_payload["vision_summary"] = None
        with pytest.raises(ResponseValidationError) as exc:
            validator.validate(json.dumps(ai_payload))
        assert exc.value.missing == ("vision_summary",)

    def test_required_field_must_be_object(self, validator, ai_payload):
        ai_payload["decision"] = "BUY"
        with pytest.raises(ResponseValidationError, match="must be objects"):
            validator.validate(json.dumps(ai_payload))

    @pytest.mark.parametrize("content", ["", "   ", "Sure! Here is my analysis.", "[1, 2]"])
    def test_unusable_content(self, validator, content):
        with pytest.raises(ResponseValidationError):
            validator.validate(content)

    def test_reply_disclaimer_and_usage_overridden(self, validator, ai_payload):
        ai_payload["disclaimer"] = "trust me"
        ai_payload["api_usage"] = {"total_tokens": 1}
        result = validator.validate(AIReply(content=json.dumps(ai_payload), usage={"total_tokens": 9}))
        assert result.disclaimer == DISCLAIMER
        assert result.api_usage == {"prompt_tokens": None, "completion_tokens": None, "total_tokens": 9}

    def test_extra_fields_passed_through(self, validator, ai_payload):
        ai_payload["market_context"] = {"session": "London"}
        result = validator.validate(json.dumps(ai_payload))
        assert result.to_dict()["market_context"] == {"session": "London"}


class TestFallback:
    def test_shape(self, validator):
        err = AIServiceError("AI service timeout after 45s", kind="timeout")
        result = validator.fallback(err, request_id=7, stage=Stage.INVOKING)

        assert result.action == "HOLD"
        assert result.is_fallback
        assert result.decision["probability"] == "0%"
        for key in ("entry", "sl", "tp1", "tp2", "risk_reward", "invalid_if"):
            assert result.decision[key] == "N/A"
        assert result.decision["reason"].startswith("Technical analysis failed: AI service timeout")
        assert "clearer screenshot" in result.decision["reason"]
        assert result.risk_assessment == {
            "level": "high",
            "recommended_position": "none",
            "timeframe_suitability": "poor",
        }
        assert result.vision_summary["trend_confidence"] == "low"
        assert result.disclaimer == DISCLAIMER

        error = result.error
        assert error["kind"] == "timeout"
        assert error["stage"] == "invoking"
        assert error["request_id"] == 7
        assert "timeout" in error["message"]
        assert error["timestamp"]

    def test_validation_kind(self, validator):
        result = validator.fallback(ResponseValidationError("not JSON"), stage=Stage.VALIDATING)
        assert result.error["kind"] == "validation"

    def test_unexpected_exception_kind(self, validator):
        result = validator.fallback(KeyError("boom"))
        assert result.error["kind"] == "KeyError"
        assert result.error["stage"] is None

    def test_serializable(self, validator):
        data = validator.fallback(RuntimeError("x"), request_id=1).to_dict()
        assert json.loads(json.dumps(data))["decision"]["action"] == "HOLD"
