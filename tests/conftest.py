"""Fake JSON-RPC collaborator shared by the test modules."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
from eth_abi import encode
from web3 import Web3

from token_crawler.config import Settings
from token_crawler.erc165 import FN_SUPPORTS_INTERFACE, INTERFACE_ERC165
from token_crawler.erc721 import FN_TOKEN_URI
from token_crawler.fetch import TRANSFER_TOPIC
from token_crawler.rpc import RpcError
from token_crawler.types import TransferLog


def addr(n: int) -> str:
    return Web3.to_checksum_address(f"0x{n:040x}")


def word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def erc20_log(address: str, block: int, log_index: int = 0) -> TransferLog:
    return TransferLog(
        address=address,
        topics=(TRANSFER_TOPIC, word(0xAA), word(0xBB)),
        data=word(1000),
        block_number=block,
        log_index=log_index,
    )


def erc721_log(address: str, block: int, token_id: int, to: int = 0xBB, log_index: int = 0) -> TransferLog:
    return TransferLog(
        address=address,
        topics=(TRANSFER_TOPIC, word(0xAA), word(to), word(token_id)),
        data=b"",
        block_number=block,
        log_index=log_index,
    )


@dataclass
class FakeContract:
    interfaces: set[bytes] = field(default_factory=set)
    # answers true to everything, like a naive fallback function
    always_true: bool = False
    # raw bytes returned by every supportsInterface call
    raw_answer: bytes | None = None
    uris: dict[int, str] = field(default_factory=dict)


def erc721_contract(metadata: bool = True, enumerable: bool = False, uris: dict[int, str] | None = None) -> FakeContract:
    ifaces = {INTERFACE_ERC165, bytes.fromhex("80ac58cd")}
    if metadata:
        ifaces.add(bytes.fromhex("5b5e139f"))
    if enumerable:
        ifaces.add(bytes.fromhex("780e9d63"))
    return FakeContract(interfaces=ifaces, uris=dict(uris or {}))


class FakeChain:
    """
    In-memory stand-in for JsonRpcClient.

    Unknown addresses revert like an account without code. eth_getLogs fails
    with -32005 whenever a query would match more than `cap` logs.
    """

    def __init__(self, logs=(), contracts=None, cap: int = 10_000, head: int = 0):
        self.logs = sorted(logs, key=lambda lg: (lg.block_number, lg.log_index))
        self.contracts: dict[str, FakeContract] = dict(contracts or {})
        self.cap = cap
        self.head = head
        self.calls: list[tuple[str, bytes, bytes, int]] = []
        self.log_queries: list[tuple[int, int]] = []
        self.fail_calls_with: RpcError | None = None

    def block_number(self) -> int:
        return self.head

    def call_read_only(self, address, selector, args, gas):
        self.calls.append((address, selector, args, gas))
        if self.fail_calls_with is not None:
            raise self.fail_calls_with
        c = self.contracts.get(address)
        if c is None:
            raise RpcError(-32000, "execution reverted")

        if selector == FN_SUPPORTS_INTERFACE:
            if c.raw_answer is not None:
                return c.raw_answer
            if c.always_true:
                return word(1)
            if INTERFACE_ERC165 not in c.interfaces:
                raise RpcError(-32000, "execution reverted")
            return word(1 if args[:4] in c.interfaces else 0)

        if selector == FN_TOKEN_URI:
            token_id = int.from_bytes(args, "big")
            if token_id in c.uris:
                return encode(["string"], [c.uris[token_id]])
            raise RpcError(3, "execution reverted: ERC721: invalid token ID")

        raise RpcError(-32000, "execution reverted")

    def query_logs(self, from_block, to_block, topics):
        self.log_queries.append((from_block, to_block))
        matched = [
            lg for lg in self.logs
            if from_block <= lg.block_number <= to_block and lg.topics and lg.topics[0] in tuple(topics)
        ]
        if len(matched) > self.cap:
            raise RpcError(-32005, "query returned more than 10000 results")
        return matched

    def selectors_called(self) -> list[bytes]:
        return [c[1] for c in self.calls]


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "contracts.json"


@pytest.fixture
def settings(snapshot_path):
    return Settings(
        rpc_url="http://localhost:8545",
        start_block=100,
        initial_window=10,
        target_matches=8_000,
        snapshot_path=str(snapshot_path),
    )
