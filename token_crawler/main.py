import logging
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from .classify import classify
from .config import Settings
from .erc721 import metadata_token_uri
from .fetch import FetchEngine
from .rpc import RpcClient
from .storage import MetadataCache
from .types import TransferLog
from .window import WindowController

logger = logging.getLogger(__name__)


@dataclass
class CrawlSummary:
    windows: int = 0
    events: int = 0
    overflows: int = 0
    last_block: Optional[int] = None
    window_size: int = 0


def process_logs(client: RpcClient, logs: Sequence[TransferLog], settings: Settings) -> int:
    """
    One batch: classify the emitting contracts and collect token URIs.

    The snapshot is re-read here and written back at the end, so the file is
    the only state shared between batches. Returns the number of logs looked at.
    """
    cache = MetadataCache.load(settings.snapshot_path)

    batch = logs[: settings.max_events_per_batch]
    if len(batch) < len(logs):
        logger.info("Processing %d of %d logs (per-batch limit)", len(batch), len(logs))

    for log in batch:
        contract_type = classify(client, cache, log, gas=settings.probe_gas)
        if not (contract_type.is_erc721 and contract_type.metadata):
            continue

        token_id = log.token_id
        # A burned token has no metadata. Tokens burned later than this log
        # fail as well, nothing to do about that without an archive node.
        if token_id is None or log.is_burn:
            continue
        if cache.token_uri(log.address, token_id) is not None:
            continue

        if not cache.want_more_uris(log.address):
            cache.record_unchecked_token(log.address, token_id)
            continue

        uri = metadata_token_uri(client, log.address, token_id, gas=settings.token_uri_gas)
        if uri is None:
            continue
        logger.info("URI %s #%d: %s", log.address, token_id, uri)
        cache.record_token_uri(log.address, token_id, uri)

    cache.persist()
    return len(batch)


def crawl(
    client: RpcClient,
    settings: Settings,
    start_block: Optional[int] = None,
    end_block: Optional[int] = None,
    max_windows: Optional[int] = None,
) -> CrawlSummary:
    start = settings.start_block if start_block is None else start_block
    if end_block is None:
        end_block = client.block_number()
        logger.info("Chain head at block %d", end_block)
    if end_block < start:
        logger.info("Nothing to do: start block %d is after end block %d", start, end_block)
        return CrawlSummary(window_size=settings.initial_window)

    window = WindowController(start, settings.initial_window, settings.target_matches)
    engine = FetchEngine(client, lambda logs: process_logs(client, logs, settings))
    summary = CrawlSummary()

    for block_range in window:
        block_range = block_range.clip(end_block + 1)
        overflows_before = engine.overflows

        amount = engine.fetch(block_range)

        summary.windows += 1
        summary.events += amount
        summary.last_block = block_range.last
        window.tune(amount)
        if settings.halve_on_overflow and engine.overflows > overflows_before:
            window.halve()
        logger.info("Blocks %s: %d events, next window %d blocks", block_range, amount, window.size)

        if block_range.end > end_block:
            break
        if max_windows is not None and summary.windows >= max_windows:
            break
        if settings.sleep_between_windows:
            time.sleep(settings.sleep_between_windows)

    summary.overflows = engine.overflows
    summary.window_size = window.size
    logger.info(
        "Covered blocks %d -> %s: %d windows, %d events, %d overflows",
        start, summary.last_block, summary.windows, summary.events, summary.overflows,
    )
    return summary
