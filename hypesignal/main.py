import asyncio
import json
import logging
import os
from typing import Optional

import typer
import uvicorn

from hypesignal import server
from hypesignal.config import settings, tracked_accounts
from hypesignal.exec.positions import PositionStore
from hypesignal.exec.reconcile import ReconciliationService
from hypesignal.exec.trading import ExecutionEngine
from hypesignal.ingest.mock import MockSource
from hypesignal.llm.oracle import OracleError, build_oracle
from hypesignal.pipeline import Pipeline
from hypesignal.strategy.decision import decide
from hypesignal.strategy.sentiment import SignalExtractor

app = typer.Typer()

# --- Logging setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger("hypesignal")


def build_extractor() -> SignalExtractor:
    try:
        oracle = build_oracle(settings)
    except OracleError as e:
        logger.warning(f"[oracle] {e}; every post will fall back to no-trade")
        oracle = None
    return SignalExtractor(oracle, settings.minimum_confidence)


def build_pipeline(store: Optional[PositionStore] = None) -> Pipeline:
    store = store or PositionStore()
    return Pipeline(build_extractor(), ExecutionEngine(store, settings), store, cfg=settings)


def _source(mock: bool):
    if mock:
        return MockSource()
    from hypesignal.ingest.twitter_ingest import TwitterSource

    return TwitterSource(tracked_accounts())


@app.command()
def run(
    mock: bool = typer.Option(False, help="use built-in mock posts instead of Twitter"),
    debug: bool = typer.Option(False, help="verbose logs"),
    poll_interval: float = typer.Option(60.0, help="seconds between polls"),
    max_polls: int = typer.Option(0, help="stop after N polls (0=unlimited)"),
):
    if debug:
        logger.setLevel(logging.DEBUG)

    logger.info(
        f"Starting HypeSignal (env={settings.hyperliquid_environment}, testing={settings.testing}, "
        f"trading={'on' if settings.trading_enabled() else 'off'})"
    )
    pipeline = build_pipeline()
    asyncio.run(pipeline.run(_source(mock), poll_interval=poll_interval, max_polls=max_polls))


@app.command()
def analyze(text: str, debug: bool = typer.Option(False, help="verbose logs")):
    """Print the trade decision for a piece of text without trading."""
    if debug:
        logger.setLevel(logging.DEBUG)

    async def _run():
        extractor = build_extractor()
        seeds = await extractor.extract_token_mentions(text)
        return await decide(extractor, text, seeds)

    decision = asyncio.run(_run())
    typer.echo(json.dumps(decision.model_dump(), indent=2))


@app.command()
def status():
    """Print local and exchange positions with mark prices."""
    summary = asyncio.run(ReconciliationService(PositionStore()).get_positions_summary())
    typer.echo(f"positions={summary.total_positions} total_units={summary.total_value:.6f}")
    for p in summary.positions:
        px = f"{p.market_price_usd:.4f}" if p.market_price_usd is not None else "n/a"
        held = f"{p.hours_held:.1f}h" if p.hours_held is not None else "-"
        typer.echo(f" {p.token:<10} {p.amount:>14.6f} px={px} held={held} source={p.source}")


async def _serve_with_pipeline(pipeline: Pipeline, source, host: str, port: int, poll_interval: float, max_polls: int):
    server.running_pipeline = pipeline
    web = uvicorn.Server(uvicorn.Config(server.app, host=host, port=port, log_level="info"))
    web_task = asyncio.create_task(web.serve())
    poll_task = asyncio.create_task(pipeline.run(source, poll_interval=poll_interval, max_polls=max_polls))
    try:
        done, pending = await asyncio.wait({web_task, poll_task}, return_when=asyncio.FIRST_COMPLETED)
        # whichever side stops first takes the other down with it
        web.should_exit = True
        poll_task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            task.result()
    finally:
        server.running_pipeline = None


@app.command()
def serve(
    mock: bool = typer.Option(False, help="use built-in mock posts instead of Twitter"),
    debug: bool = typer.Option(False, help="verbose logs"),
    poll_interval: float = typer.Option(60.0, help="seconds between polls"),
    max_polls: int = typer.Option(0, help="stop after N polls (0=unlimited)"),
    host: str = typer.Option("0.0.0.0", help="status API bind address"),
    port: Optional[int] = typer.Option(None, help="status API port (default $PORT or 8787)"),
):
    """Run the polling pipeline and the status API in one process."""
    if debug:
        logger.setLevel(logging.DEBUG)
    if port is None:
        port = int(os.getenv("PORT", "8787"))

    logger.info(f"[server] status API on {host}:{port}")
    pipeline = build_pipeline()
    asyncio.run(_serve_with_pipeline(pipeline, _source(mock), host, port, poll_interval, max_polls))


if __name__ == "__main__":
    app()
