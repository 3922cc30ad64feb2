from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence

from web3 import Web3

from .rpc import RpcClient, RpcError, is_too_many_results
from .types import TransferLog
from .window import BlockRange

logger = logging.getLogger(__name__)

# Transfer(address,address,uint256) is shared by ERC-20 and ERC-721; they only
# differ in whether the third argument is indexed
TRANSFER_TOPIC = bytes(Web3.keccak(text="Transfer(address,address,uint256)"))

LogHandler = Callable[[Sequence[TransferLog]], None]


class RangeTooDenseError(RuntimeError):
    """A range that can't be split any further still exceeds the provider's result cap."""
    def __init__(self, block_range: BlockRange, cause: RpcError):
        super().__init__(f"Too many results for {block_range} and it cannot be split further: {cause.message}")
        self.block_range = block_range
        self.cause = cause


class FetchEngine:
    """
    Runs the transfer-log query for a block range and hands the logs to
    `handler`, splitting the range in two whenever the provider answers with
    "too many results".

    Halves are processed lower first so the handler sees logs in ascending
    block order.
    """

    def __init__(
        self,
        client: RpcClient,
        handler: LogHandler,
        topics: Iterable[bytes] = (TRANSFER_TOPIC,),
        min_span: int = 1,
    ):
        if min_span < 1:
            raise ValueError("min_span must be >= 1")
        self.client = client
        self.handler = handler
        self.topics = tuple(topics)
        self.min_span = min_span
        self.overflows = 0
        self.queries = 0

    def fetch(self, block_range: BlockRange) -> int:
        """Number of matched logs in `block_range`, after all of them went through the handler."""
        if len(block_range) == 0:
            return 0

        self.queries += 1
        try:
            logs = self.client.query_logs(block_range.start, block_range.last, self.topics)
        except RpcError as e:
            if not is_too_many_results(e):
                logger.error("RPC error %s for %s: %s", e.code, block_range, e.message)
                raise
            self.overflows += 1
            if len(block_range) <= self.min_span:
                raise RangeTooDenseError(block_range, e) from e

            # Try to avoid getting here: the failed query is paid for and useless
            lower, upper = block_range.split()
            logger.info("Too many results for %s, splitting into %s and %s", block_range, lower, upper)
            return self.fetch(lower) + self.fetch(upper)

        logger.debug("Got %d logs for %s", len(logs), block_range)
        self.handler(logs)
        return len(logs)
