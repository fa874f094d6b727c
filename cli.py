# cli.py
import json
import logging
from pathlib import Path

import typer

from trade_chart_analyzer.clients.deepseek import AIAnalysisClient
from trade_chart_analyzer.config import Settings
from trade_chart_analyzer.errors import InvalidRequestError
from trade_chart_analyzer.ocr.extractor import OCRExtractor
from trade_chart_analyzer.pipeline import AnalysisPipeline
from trade_chart_analyzer.preprocess import ImagePreprocessor
from trade_chart_analyzer.types import AnalysisRequest

app = typer.Typer(help="Analyze trading chart screenshots with OCR + DeepSeek.")


def _setup(settings: Settings):
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _dump(data: dict):
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


@app.command()
def analyze(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    symbol: str = typer.Option("XAUUSD", help="Instrument, e.g. XAUUSD, EURUSD, BTCUSD"),
    timeframe: str = typer.Option("H1", help="M1, M5, M15, H1, H4, D1, W1 or MN"),
    trade_type: str = typer.Option("intraday", help="scalping, intraday, swing or position"),
    notes: str = typer.Option("", help="Extra notes for the analyst (max 500 chars)"),
):
    """Run the full chart analysis and print the result as JSON."""
    settings = Settings.from_env()
    _setup(settings)
    try:
        request = AnalysisRequest.from_user_input(
            path.read_bytes(),
            symbol=symbol,
            timeframe=timeframe,
            trade_type=trade_type,
            extra_notes=notes,
            max_image_bytes=settings.max_file_size,
        )
    except InvalidRequestError as e:
        typer.echo(f"{e.code}: {e}", err=True)
        raise typer.Exit(code=2)

    result = AnalysisPipeline(settings=settings).analyze(request)
    _dump(result.to_dict())


@app.command()
def ocr(path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True)):
    """Preprocess + OCR only; print the parsed chart data."""
    settings = Settings.from_env()
    _setup(settings)
    image = ImagePreprocessor().preprocess(path.read_bytes())
    _dump(OCRExtractor.from_settings(settings).extract(image).to_dict())


@app.command()
def check():
    """Test the connection to the DeepSeek API."""
    settings = Settings.from_env()
    _setup(settings)
    status = AIAnalysisClient(settings).test_connection()
    _dump(status)
    if not status["ok"]:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
