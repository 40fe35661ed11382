"""
Command-line interface for market structure snapshots.

Commands fetch live snapshots from Binance, analyze recorded CSV candles
offline, and validate YAML request presets.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from infra.feeds.exceptions import FeedError

from ..data_loader import CsvCandleSource
from ..models import BatchSnapshotRequest, SnapshotConfig, SnapshotRequest
from ..service import MarketSnapshotService

DEFAULT_INTERVAL = "1h"

app = typer.Typer(
    name="market-snapshot",
    help="Market structure snapshots: pivots, order blocks and hidden order blocks",
    add_completion=False,
)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_configuration(config_path: str | None) -> dict[str, Any]:
    """Load a YAML request preset.

    Args:
        config_path: Path to preset file, or None for no preset

    Returns:
        Preset dictionary (empty when no path is given)

    Raises:
        FileNotFoundError: If the preset file does not exist
        ValueError: If the file does not contain a mapping
    """
    if config_path is None:
        return {}

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file) as f:
        config_dict = yaml.safe_load(f)

    if config_dict is None:
        return {}
    if not isinstance(config_dict, dict):
        raise ValueError(
            f"Configuration file must contain a dictionary, got {type(config_dict).__name__}"
        )
    return config_dict


def _request_data(
    preset: dict[str, Any],
    interval: str | None,
    limit: int | None,
    full: bool,
) -> dict[str, Any]:
    data = {k: v for k, v in preset.items() if k not in ("symbol", "symbols")}
    data["interval"] = interval or preset.get("interval", DEFAULT_INTERVAL)
    if limit is not None:
        data["limit"] = limit
    if full:
        data["compact"] = False
    return data


def render_snapshot_table(console: Console, doc: dict[str, Any]) -> None:
    """Print a snapshot document as rich tables."""
    if "error" in doc:
        console.print(f"[red]{doc['symbol']}: {doc['error']}[/red]")
        return

    summary = Table(title=f"{doc['symbol']} {doc['interval']}", border_style="cyan")
    summary.add_column("Field", style="cyan", no_wrap=True)
    summary.add_column("Value", style="white")
    for key in ("bos", "trend", "sma50", "sma200", "atr", "rsi", "vwap",
                "daily_open", "weekly_open", "prev_day_high", "prev_day_low"):
        summary.add_row(key, _fmt(doc.get(key)))
    sfp = doc.get("sfp", {})
    summary.add_row("sfp", f"bullish={sfp.get('bullish')} bearish={sfp.get('bearish')}")
    summary.add_row("pivots", str(len(doc.get("pivots", []))))
    summary.add_row("fvg", str(len(doc.get("fvg", []))))
    console.print(summary)

    hobs = Table(title="Hidden order blocks", border_style="green")
    for column in ("kind", "index", "revisit", "quality", "label", "invalidated", "mitigated", "ltf"):
        hobs.add_column(column)
    for hob in doc.get("hidden_order_blocks", []):
        ltf = [name for name, ok in hob["ltf_confirmations"].items() if ok]
        hobs.add_row(
            hob["kind"],
            str(hob["index"]),
            str(hob["revisit_index"]),
            f"{hob['quality_score']:.3f}",
            hob["strength_label"],
            str(hob["invalidated"]),
            str(hob["fully_mitigated"]),
            ",".join(ltf) or "-",
        )
    console.print(hobs)


def _fmt(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


def _emit(docs: list[dict[str, Any]] | dict[str, Any], table: bool) -> None:
    if not table:
        typer.echo(json.dumps(docs, indent=2, default=str))
        return
    console = Console()
    for doc in docs if isinstance(docs, list) else [docs]:
        render_snapshot_table(console, doc)


async def _run_live(
    request: SnapshotRequest | BatchSnapshotRequest,
    use_ltf: bool,
    overrides_dir: str | None,
) -> Any:
    service = MarketSnapshotService.from_settings(overrides_dir=overrides_dir)
    service.ltf_enabled = use_ltf
    try:
        if isinstance(request, BatchSnapshotRequest):
            return await service.snapshots(request)
        return await service.snapshot(request)
    finally:
        await service.close()


@app.command()
def snapshot(
    symbol: str = typer.Argument(..., help="Trading symbol (e.g., BTCUSDT)"),
    interval: str | None = typer.Option(None, "--interval", "-i", help="Candle interval"),
    config: str | None = typer.Option(None, "--config", "-c", help="YAML request preset"),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Candles to fetch"),
    full: bool = typer.Option(False, "--full", help="Return full snapshot with candles"),
    table: bool = typer.Option(False, "--table", help="Render rich tables instead of JSON"),
    ltf: bool = typer.Option(True, "--ltf/--no-ltf", help="Lower-timeframe confirmation"),
    overrides_dir: str | None = typer.Option(
        None, "--overrides-dir", help="Directory with learned iteration-*.json overrides"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Compute a live snapshot for one symbol.

    Examples:
        market-snapshot snapshot BTCUSDT -i 4h
        market-snapshot snapshot ethusdt -i 1d --config presets/strict.yaml --table
    """
    setup_logging(verbose)
    try:
        data = _request_data(load_configuration(config), interval, limit, full)
        request = SnapshotRequest(symbol=symbol, **data)
        doc = asyncio.run(_run_live(request, ltf, overrides_dir))
    except (FileNotFoundError, ValueError, ValidationError) as e:
        typer.echo(f"❌ Invalid request: {e}", err=True)
        raise typer.Exit(1) from e
    except FeedError as e:
        typer.echo(f"❌ Snapshot failed: {e}", err=True)
        raise typer.Exit(1) from e

    _emit(doc, table)
    if "error" in doc:
        raise typer.Exit(1)


@app.command()
def snapshots(
    symbols: list[str] = typer.Argument(..., help="Trading symbols"),
    interval: str | None = typer.Option(None, "--interval", "-i", help="Candle interval"),
    config: str | None = typer.Option(None, "--config", "-c", help="YAML request preset"),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Candles to fetch"),
    full: bool = typer.Option(False, "--full", help="Return full snapshots with candles"),
    table: bool = typer.Option(False, "--table", help="Render rich tables instead of JSON"),
    ltf: bool = typer.Option(True, "--ltf/--no-ltf", help="Lower-timeframe confirmation"),
    overrides_dir: str | None = typer.Option(
        None, "--overrides-dir", help="Directory with learned iteration-*.json overrides"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Compute live snapshots for several symbols; failures are reported per symbol."""
    setup_logging(verbose)
    try:
        data = _request_data(load_configuration(config), interval, limit, full)
        request = BatchSnapshotRequest(symbols=symbols, **data)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        typer.echo(f"❌ Invalid request: {e}", err=True)
        raise typer.Exit(1) from e

    _emit(asyncio.run(_run_live(request, ltf, overrides_dir)), table)


@app.command()
def analyze(
    data: str = typer.Argument(..., help="CSV file with timestamp,open,high,low,close,volume"),
    symbol: str = typer.Option("OFFLINE", "--symbol", "-s", help="Symbol label for the file"),
    interval: str | None = typer.Option(None, "--interval", "-i", help="Interval of the candles"),
    config: str | None = typer.Option(None, "--config", "-c", help="YAML request preset"),
    limit: int | None = typer.Option(None, "--limit", "-l", help="Most recent candles to use"),
    full: bool = typer.Option(False, "--full", help="Return full snapshot with candles"),
    table: bool = typer.Option(False, "--table", help="Render rich tables instead of JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Analyze recorded candles offline (no lower-timeframe confirmation)."""
    setup_logging(verbose)

    data_path = Path(data)
    if not data_path.exists():
        typer.echo(f"Error: Data file not found: {data_path}", err=True)
        raise typer.Exit(1)

    try:
        request_data = _request_data(load_configuration(config), interval, limit, full)
        request = SnapshotRequest(symbol=symbol, **request_data)
        service = MarketSnapshotService(
            CsvCandleSource({request.symbol: data_path}), ltf_enabled=False
        )
        doc = asyncio.run(service.snapshot(request))
    except (FileNotFoundError, ValueError, ValidationError) as e:
        typer.echo(f"❌ Analysis failed: {e}", err=True)
        raise typer.Exit(1) from e

    _emit(doc, table)
    if "error" in doc:
        raise typer.Exit(1)


@app.command()
def validate(
    config: str = typer.Argument(..., help="YAML request preset to validate"),
) -> None:
    """Validate a YAML request preset."""
    try:
        preset = load_configuration(config)
        cfg = SnapshotConfig(**{k: v for k, v in preset.items() if k in SnapshotConfig.model_fields})
        if "interval" in preset:
            SnapshotRequest(symbol="BTCUSDT", interval=preset["interval"])
    except (FileNotFoundError, ValueError, ValidationError) as e:
        typer.echo(f"❌ Configuration invalid: {e}", err=True)
        raise typer.Exit(1) from e

    unknown = sorted(set(preset) - set(SnapshotConfig.model_fields) - {"interval", "symbol", "symbols"})
    typer.echo(f"✅ Configuration valid: {config}")
    typer.echo(f"Interval: {preset.get('interval', DEFAULT_INTERVAL)}")
    typer.echo(f"Min quality: {cfg.min_quality}")
    typer.echo(f"Very strong min quality: {cfg.very_strong_min_quality}")
    if unknown:
        typer.echo(f"Warning: unknown keys ignored: {', '.join(unknown)}", err=True)


if __name__ == "__main__":
    app()
