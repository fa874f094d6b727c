# trade_chart_analyzer/errors.py
"""Exception types raised across the analysis pipeline."""


class ChartAnalyzerError(Exception):
    """Base exception for chart analysis errors"""


class InvalidRequestError(ChartAnalyzerError):
    """Rejected at the request boundary, before the pipeline starts."""

    def __init__(self, message: str, code: str = "INVALID_REQUEST"):
        super().__init__(message)
        self.code = code


class OCRSessionError(ChartAnalyzerError):
    """Misuse of an OCR session (e.g. recognize after terminate)."""


class AIServiceError(ChartAnalyzerError):
    """
    Failure talking to the reasoning service.

    kind is one of: "timeout", "auth", "http", "network", "malformed", "config".
    """

    def __init__(self, message: str, kind: str = "network", status_code: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class ResponseValidationError(ChartAnalyzerError):
    """The reply could not be parsed or misses required fields."""

    kind = "validation"

    def __init__(self, message: str, missing: tuple[str, ...] = ()):
        super().__init__(message)
        self.missing = missing
