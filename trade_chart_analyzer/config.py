# trade_chart_analyzer/config.py
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# ---------- Config ----------
# Trading parameters accepted at the request boundary
TRADING_PAIRS = ("XAUUSD", "EURUSD", "BTCUSD", "GBPUSD", "USDJPY", "ETHUSD", "US30", "NAS100")
TIMEFRAMES = ("M1", "M5", "M15", "H1", "H4", "D1", "W1", "MN")
TRADE_TYPES = ("scalping", "intraday", "swing", "position")

DEFAULT_SYMBOL = "XAUUSD"
DEFAULT_TIMEFRAME = "H1"
DEFAULT_TRADE_TYPE = "intraday"

MAX_NOTES_LENGTH = 500
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

# Image preprocessing
MAX_IMAGE_SIDE = 2000
SHARPEN_SIGMA = 1.0
MEDIAN_KSIZE = 3  # radius 1

# OCR (Tesseract semantics; RapidOCR applies the whitelist as a post-filter)
OCR_CHAR_WHITELIST = (
    "0123456789.$%:,-+ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz /()[]"
)
OCR_PAGE_SEG_MODE = 6  # assume a uniform block of text
OCR_REGION = (1000, 1000)  # width, height from the top-left corner
OCR_RAW_TEXT_LIMIT = 1500

# Parsed data limits
MAX_PRICE_LEVELS = 15

# Reasoning service (OpenAI-compatible DeepSeek endpoint)
DEEPSEEK_API_URL = "https://api.deepseek.com"
DEEPSEEK_MODEL = "deepseek-chat"
DEEPSEEK_TIMEOUT = 45.0  # seconds
CONNECTION_TEST_TIMEOUT = 10.0
AI_MAX_TOKENS = 2500
AI_TEMPERATURE = 0.1
AI_TOP_P = 0.9
AI_FREQUENCY_PENALTY = 0.1
AI_PRESENCE_PENALTY = 0.1
API_PROVIDER = "DeepSeek"

SYSTEM_PERSONA = (
    "You are a professional trading analyst with 15+ years experience in technical analysis."
)

DISCLAIMER = (
    "⚠️ This is AI-generated analysis for educational purposes only. "
    "Trading involves substantial risk of loss. "
    "Past performance is not indicative of future results."
)

MESSAGES = {
    "NO_IMAGE": "No chart image provided",
    "FILE_TOO_LARGE": "File too large. Maximum size is {max_mb:g}MB.",
}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
        if value <= 0:
            raise ValueError(raw)
        return value
    except ValueError:
        logger.warning(f"Invalid value for {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
        if value <= 0:
            raise ValueError(raw)
        return value
    except ValueError:
        logger.warning(f"Invalid value for {name}={raw!r}, using {default}")
        return default


def _env_region(name: str, default: tuple[int, int]) -> tuple[int, int]:
    """Parse 'WIDTHxHEIGHT' (e.g. '1000x1000')."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        w, h = (int(part) for part in raw.lower().split("x"))
        if w <= 0 or h <= 0:
            raise ValueError(raw)
        return w, h
    except ValueError:
        logger.warning(f"Invalid value for {name}={raw!r}, using {default}")
        return default


@dataclass
class Settings:
    """Runtime settings resolved from the environment (and a local .env file).

    Attributes
    ----------
    api_key : str
        DeepSeek API key. Empty means the reasoning call fails with a config error.
    api_url, model : str
        OpenAI-compatible endpoint and model name.
    ai_timeout : float
        Upper bound for one reasoning round trip, in seconds.
    ocr_engine : str
        "tesseract" | "rapid".
    ocr_language : str
        Tesseract language pack.
    ocr_timeout : float
        Per-recognition timeout in seconds (Tesseract only).
    ocr_region : tuple[int, int]
        Width/height of the recognition rectangle anchored at the top-left.
    max_file_size : int
        Largest accepted image, in bytes.
    log_level : str
        Root logging level used by the CLI.
    """

    api_key: str = ""
    api_url: str = DEEPSEEK_API_URL
    model: str = DEEPSEEK_MODEL
    ai_timeout: float = DEEPSEEK_TIMEOUT
    ocr_engine: str = "tesseract"
    ocr_language: str = "eng"
    ocr_timeout: float = 30.0
    ocr_region: tuple[int, int] = OCR_REGION
    max_file_size: int = MAX_FILE_SIZE
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        engine = os.getenv("OCR_ENGINE", "tesseract").strip().lower()
        if engine not in ("tesseract", "rapid"):
            logger.warning(f"Unknown OCR_ENGINE {engine!r}, using 'tesseract'")
            engine = "tesseract"
        return cls(
            api_key=os.getenv("DEEPSEEK_API_KEY", "").strip(),
            api_url=os.getenv("DEEPSEEK_API_URL", DEEPSEEK_API_URL),
            model=os.getenv("DEEPSEEK_MODEL", DEEPSEEK_MODEL),
            ai_timeout=_env_float("DEEPSEEK_TIMEOUT", DEEPSEEK_TIMEOUT),
            ocr_engine=engine,
            ocr_language=os.getenv("OCR_LANGUAGE", "eng"),
            ocr_timeout=_env_float("OCR_TIMEOUT", 30.0),
            ocr_region=_env_region("OCR_REGION", OCR_REGION),
            max_file_size=_env_int("MAX_FILE_SIZE", MAX_FILE_SIZE),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
