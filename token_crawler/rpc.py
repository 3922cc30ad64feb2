"""
JSON-RPC collaborator used by the crawler.

Only three node methods are needed: eth_call (read-only contract calls with a
gas cap), eth_getLogs and eth_blockNumber. Errors returned by the node are
raised as RpcError so callers can tell "too many results" (-32005) and
"execution reverted" apart from everything else.
"""
from __future__ import annotations

import itertools
import logging
from typing import Iterable, Optional, Protocol

import requests

from .http_helper import HttpError, post_json_with_retries
from .types import TransferLog, normalize_address

logger = logging.getLogger(__name__)

# Geth-style log query cap ("query returned more than 10000 results")
TOO_MANY_RESULTS_CODE = -32005
# 3 carries revert data, -32000 is what most nodes send for a bare revert or a
# call into a contract without that method
EXECUTION_REVERTED_CODES = frozenset({3, -32000})

__all__ = [
    "EXECUTION_REVERTED_CODES",
    "HttpError",
    "JsonRpcClient",
    "RpcClient",
    "RpcError",
    "TOO_MANY_RESULTS_CODE",
    "is_execution_reverted",
    "is_too_many_results",
]


class RpcError(RuntimeError):
    def __init__(self, code: int, message: str, data: dict | str | None = None):
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data or {}


def is_too_many_results(exc: BaseException) -> bool:
    return isinstance(exc, RpcError) and exc.code == TOO_MANY_RESULTS_CODE


def is_execution_reverted(exc: BaseException) -> bool:
    return isinstance(exc, RpcError) and exc.code in EXECUTION_REVERTED_CODES


class RpcClient(Protocol):
    def call_read_only(self, address: str, selector: bytes, args: bytes, gas: int) -> bytes: ...

    def query_logs(self, from_block: int, to_block: int, topics: Iterable[bytes]) -> list[TransferLog]: ...

    def block_number(self) -> int: ...


def _hex(i: int) -> str:
    return hex(i)


class JsonRpcClient:
    """Plain JSON-RPC over HTTP (requests), one POST per call."""

    def __init__(self, rpc_url: str, timeout: int = 60, retries: int = 3, session: Optional[requests.Session] = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.retries = retries
        self.session = session or requests.Session()
        self._ids = itertools.count(1)

    def call(self, method: str, params: list):
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        j = post_json_with_retries(
            self.rpc_url, payload, retries=self.retries, timeout=self.timeout, session=self.session
        )
        if not isinstance(j, dict):
            raise RpcError(-32603, f"unexpected response for {method}: {j!r}")
        if "error" in j and j["error"]:
            err = j["error"]
            raise RpcError(int(err.get("code", -1)), str(err.get("message", "")), err.get("data"))
        return j.get("result")

    def block_number(self) -> int:
        return int(self.call("eth_blockNumber", []), 16)

    def call_read_only(self, address: str, selector: bytes, args: bytes, gas: int) -> bytes:
        if len(selector) != 4:
            raise ValueError(f"Bad selector: {selector!r}")
        tx = {
            "to": normalize_address(address),
            "data": "0x" + (selector + args).hex(),
            "gas": _hex(gas),
        }
        res = self.call("eth_call", [tx, "latest"])
        if not isinstance(res, str):
            raise RpcError(-32603, f"unexpected eth_call result: {res!r}")
        body = res[2:] if res.startswith("0x") else res
        return bytes.fromhex(body)

    def query_logs(self, from_block: int, to_block: int, topics: Iterable[bytes]) -> list[TransferLog]:
        params = [{
            "fromBlock": _hex(from_block),
            "toBlock": _hex(to_block),
            # a single position-0 filter; alternatives are OR-ed
            "topics": [["0x" + t.hex() for t in topics]],
        }]
        logger.debug("eth_getLogs [%d - %d]", from_block, to_block)
        res = self.call("eth_getLogs", params)
        if not isinstance(res, list):
            raise RpcError(-32603, f"unexpected eth_getLogs result: {res!r}")
        return [TransferLog.from_rpc(r) for r in res if isinstance(r, dict)]
