import dataclasses
import logging
from typing import Optional

import typer

from .classify import contract_type
from .config import default_snapshot_path, load_settings
from .csv_io import export_index
from .fetch import RangeTooDenseError
from .main import crawl
from .rpc import HttpError, JsonRpcClient, RpcError
from .storage import MetadataCache, SnapshotError, UnknownContractError
from .types import ContractKind, normalize_address

app = typer.Typer(help="Transfer-log crawler & ERC-721 metadata index")
logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# collaborator and cache failures end the run, see the log for details
FATAL_ERRORS = (RpcError, HttpError, SnapshotError, RangeTooDenseError, UnknownContractError)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def _settings(**overrides):
    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as e:
        logger.error("Bad configuration: %s", e)
        raise typer.Exit(code=1)
    changes = {k: v for k, v in overrides.items() if v is not None}
    return dataclasses.replace(settings, **changes)


@app.command("crawl")
def crawl_cmd(
    start_block: Optional[int] = typer.Option(None, help="First block (default: START_BLOCK)"),
    end_block: Optional[int] = typer.Option(None, help="Last block, inclusive (default: chain head)"),
    max_windows: Optional[int] = typer.Option(None, help="Stop after this many windows"),
    initial_window: Optional[int] = typer.Option(None, help="Initial window size in blocks"),
    target: Optional[int] = typer.Option(None, help="Target number of events per window"),
    snapshot: Optional[str] = typer.Option(None, "--snapshot", "-s", help="Snapshot JSON path"),
    max_events: Optional[int] = typer.Option(None, help="Events processed per batch"),
    sleep: Optional[float] = typer.Option(None, "--sleep", help="Seconds to sleep between windows (0 to disable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    _setup_logging(verbose)
    settings = _settings(
        initial_window=initial_window,
        target_matches=target,
        snapshot_path=snapshot,
        max_events_per_batch=max_events,
        sleep_between_windows=sleep,
    )
    client = JsonRpcClient(settings.rpc_url, timeout=settings.rpc_timeout)
    try:
        summary = crawl(client, settings, start_block=start_block, end_block=end_block, max_windows=max_windows)
    except FATAL_ERRORS as e:
        logger.error("Crawl aborted: %s", e)
        raise typer.Exit(code=1)
    typer.echo(
        f"Covered up to block {summary.last_block}: {summary.windows} windows, "
        f"{summary.events} events, next window {summary.window_size} blocks"
    )
    typer.echo(f"Results are in {settings.snapshot_path}")


@app.command("classify")
def classify_cmd(
    address: str = typer.Argument(..., help="Contract address"),
    snapshot: Optional[str] = typer.Option(None, "--snapshot", "-s", help="Snapshot JSON path"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    _setup_logging(verbose)
    try:
        address = normalize_address(address)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="ADDRESS")
    settings = _settings(snapshot_path=snapshot)
    client = JsonRpcClient(settings.rpc_url, timeout=settings.rpc_timeout)
    try:
        cache = MetadataCache.load(settings.snapshot_path)
        fresh = contract_type(client, address, gas=settings.probe_gas)
        # without EIP-165 the type depends on a Transfer log, leave it to the crawler
        if fresh.kind is ContractKind.UNKNOWN:
            typer.echo(f"{address}: {cache.get_type(address) or fresh} (not stored, needs a Transfer log)")
            return
        stored = cache.store_type(address, fresh)
        cache.persist()
    except FATAL_ERRORS as e:
        logger.error("Classification failed: %s", e)
        raise typer.Exit(code=1)
    typer.echo(f"{address}: {stored}")


@app.command("stats")
def stats_cmd(
    snapshot: Optional[str] = typer.Option(None, "--snapshot", "-s", help="Snapshot JSON path (default: SNAPSHOT_PATH)"),
):
    snapshot = snapshot or default_snapshot_path()
    cache = MetadataCache.load(snapshot)
    typer.echo(f"{len(cache)} contracts in {snapshot}")
    for kind, count in cache.stats().items():
        typer.echo(f"  {kind:<14} {count}")


@app.command("export")
def export_cmd(
    outfile: str = typer.Argument(..., help="CSV output path"),
    snapshot: Optional[str] = typer.Option(None, "--snapshot", "-s", help="Snapshot JSON path (default: SNAPSHOT_PATH)"),
):
    snapshot = snapshot or default_snapshot_path()
    rows = export_index(MetadataCache.load(snapshot), outfile)
    typer.echo(f"Wrote {rows} contracts to {outfile}")


if __name__ == "__main__":
    app()
