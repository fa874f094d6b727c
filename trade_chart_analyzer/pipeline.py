# trade_chart_analyzer/pipeline.py
import itertools
import logging
import threading
import time

from .clients.deepseek import AIAnalysisClient
from .config import API_PROVIDER, VERSION, Settings
from .errors import AIServiceError, ResponseValidationError
from .ocr.extractor import OCRExtractor
from .parsers.ocr_text import OCRTextParser
from .preprocess import ImagePreprocessor
from .prompt import PromptBuilder
from .types import AnalysisRequest, AnalysisResult, Stage
from .validators import ResponseValidator, utc_now

logger = logging.getLogger(__name__)


class RequestCounter:
    """Process-wide, thread-safe, strictly increasing request ids."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            return next(self._counter)


_default_counter = RequestCounter()


class AnalysisPipeline:
    """
    Preprocess -> OCR -> parse -> prompt -> reasoning call -> validate.

    Preprocessing, OCR and parsing recover in place. Errors while invoking the
    reasoning service or validating its reply end in the fallback result, so
    analyze() always returns an AnalysisResult. The terminal stage ("done" or
    "fallback") is recorded in result.metadata["stage"].
    """

    def __init__(
        self,
        preprocessor: ImagePreprocessor | None = None,
        extractor: OCRExtractor | None = None,
        parser: OCRTextParser | None = None,
        prompt_builder: PromptBuilder | None = None,
        client: AIAnalysisClient | None = None,
        validator: ResponseValidator | None = None,
        counter: RequestCounter | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or Settings()
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.parser = parser or OCRTextParser()
        self.extractor = extractor or OCRExtractor.from_settings(settings, parser=self.parser)
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.client = client or AIAnalysisClient(settings)
        self.validator = validator or ResponseValidator()
        self.counter = counter or _default_counter

    def analyze(self, request: AnalysisRequest, request_id=None) -> AnalysisResult:
        if request_id is None:
            request_id = self.counter.next()
        start = time.perf_counter()
        symbol = request.symbol.value
        timeframe = request.timeframe.value
        trade_type = request.trade_type.value
        logger.info(f"[{request_id}] Starting analysis: {symbol} | {timeframe} | {trade_type}")

        stage = Stage.PREPROCESSING
        try:
            image = self.preprocessor.preprocess(request.image_bytes)

            stage = Stage.EXTRACTING
            raw_text = self.extractor.read_text(image)

            stage = Stage.PARSING
            ocr = self.parser.parse(raw_text)
            logger.info(
                f"[{request_id}] OCR found {len(ocr.price_levels)} price levels, "
                f"indicators: {', '.join(ocr.indicators) or 'none'}"
            )

            stage = Stage.PROMPTING
            document = self.prompt_builder.build(
                ocr, request.symbol, request.timeframe, request.trade_type, request.extra_notes
            )

            stage = Stage.INVOKING
            logger.info(f"[{request_id}] Sending request to {API_PROVIDER} API...")
            reply = self.client.analyze(document, messages=self.prompt_builder.messages(document))
            logger.info(f"[{request_id}] Received response from {API_PROVIDER} API")

            stage = Stage.VALIDATING
            result = self.validator.validate(reply)
            stage = Stage.DONE
        except (AIServiceError, ResponseValidationError) as e:
            logger.error(f"[{request_id}] Analysis failed at {stage.value}: {e}")
            result = self.validator.fallback(e, request_id=request_id, stage=stage)
            stage = Stage.FALLBACK
        except Exception as e:
            # a bug in any stage still yields a well-formed result
            logger.exception(f"[{request_id}] Unexpected error at {stage.value}: {e}")
            result = self.validator.fallback(e, request_id=request_id, stage=stage)
            stage = Stage.FALLBACK

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        result.metadata = {
            **result.metadata,
            "request_id": request_id,
            "processing_time_ms": elapsed_ms,
            "api_provider": API_PROVIDER,
            "symbol": symbol,
            "timeframe": timeframe,
            "trade_type": trade_type,
            "timestamp": utc_now(),
            "version": VERSION,
            "stage": stage.value,
        }
        if stage is Stage.DONE:
            logger.info(f"[{request_id}] Analysis completed in {elapsed_ms}ms")
        return result


def analyze(request: AnalysisRequest, settings: Settings | None = None, request_id=None) -> AnalysisResult:
    """One-shot helper: build a pipeline from settings and analyze a request."""
    pipeline = AnalysisPipeline(settings=settings or Settings.from_env())
    return pipeline.analyze(request, request_id=request_id)
