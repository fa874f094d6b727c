# trade_chart_analyzer/clients/deepseek.py
"""
DeepSeek reasoning client (OpenAI-compatible chat completions API).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import openai
from openai import OpenAI

from ..config import (
    AI_FREQUENCY_PENALTY,
    AI_MAX_TOKENS,
    AI_PRESENCE_PENALTY,
    AI_TEMPERATURE,
    AI_TOP_P,
    CONNECTION_TEST_TIMEOUT,
    SYSTEM_PERSONA,
    Settings,
)
from ..errors import AIServiceError

logger = logging.getLogger(__name__)


@dataclass
class AIReply:
    content: str
    usage: dict[str, Any] = field(default_factory=dict)
    model: str | None = None


def classify_openai_error(e: Exception, timeout: float) -> AIServiceError:
    """Map SDK/transport exceptions onto AIServiceError kinds."""
    # APITimeoutError subclasses APIConnectionError, check it first
    if isinstance(e, openai.APITimeoutError):
        return AIServiceError(f"AI service timeout after {timeout:g}s: {e}", kind="timeout")
    if isinstance(e, openai.AuthenticationError):
        return AIServiceError(f"AI service authentication failed: {e}", kind="auth", status_code=e.status_code)
    if isinstance(e, openai.APIStatusError):
        return AIServiceError(f"AI service error: {e}", kind="http", status_code=e.status_code)
    if isinstance(e, openai.APIConnectionError):
        return AIServiceError(f"AI service connection error: {e}", kind="network")
    return AIServiceError(f"AI service error: {e}", kind="network")


def _usage_dict(usage) -> dict[str, Any]:
    if usage is None:
        return {}
    if hasattr(usage, "model_dump"):
        return usage.model_dump(exclude_none=True)
    return dict(usage)


class AIAnalysisClient:
    """
    Sends one instruction document per call and returns the raw reply.

    No retries: the SDK client is built with max_retries=0 so a single
    failure surfaces immediately as AIServiceError.
    """

    def __init__(self, settings: Settings | None = None, client: OpenAI | None = None):
        self.settings = settings or Settings()
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.settings.api_key:
                raise AIServiceError("DeepSeek API key not configured", kind="config")
            self._client = OpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.api_url,
                timeout=self.settings.ai_timeout,
                max_retries=0,
            )
        return self._client

    def analyze(self, document: str, messages: list[dict[str, str]] | None = None) -> AIReply:
        messages = messages or [
            {"role": "system", "content": SYSTEM_PERSONA},
            {"role": "user", "content": document},
        ]
        client = self.client
        try:
            response = client.chat.completions.create(
                model=self.settings.model,
                messages=messages,
                max_tokens=AI_MAX_TOKENS,
                temperature=AI_TEMPERATURE,
                top_p=AI_TOP_P,
                frequency_penalty=AI_FREQUENCY_PENALTY,
                presence_penalty=AI_PRESENCE_PENALTY,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            err = classify_openai_error(e, self.settings.ai_timeout)
            logger.error(f"DeepSeek API error ({err.kind}, status={err.status_code}): {e}")
            raise err from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise AIServiceError(f"Malformed response from AI service: {e}", kind="malformed") from e
        if not content:
            raise AIServiceError("Empty response from AI service", kind="malformed")

        return AIReply(
            content=content,
            usage=_usage_dict(getattr(response, "usage", None)),
            model=getattr(response, "model", None),
        )

    def test_connection(self) -> dict[str, Any]:
        """Probe the models endpoint; never raises."""
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            models = self.client.with_options(timeout=CONNECTION_TEST_TIMEOUT).models.list()
            count = len(getattr(models, "data", None) or [])
            return {
                "ok": True,
                "message": "DeepSeek API is operational",
                "models_count": count,
                "timestamp": timestamp,
            }
        except Exception as e:
            logger.error(f"DeepSeek connection test failed: {e}")
            return {
                "ok": False,
                "message": f"API connection failed: {e}",
                "models_count": 0,
                "timestamp": timestamp,
            }
