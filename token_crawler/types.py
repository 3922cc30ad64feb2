from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from web3 import Web3

ZERO_WORD = bytes(32)


def normalize_address(addr: str) -> str:
    """EIP-55 checksum form; raises ValueError on anything that isn't a 20-byte address."""
    a = (addr or "").strip()
    if not Web3.is_address(a):
        raise ValueError(f"Invalid address: {addr!r}")
    return Web3.to_checksum_address(a.lower())


def _hex_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    s = str(value or "")
    if s.startswith("0x") or s.startswith("0X"):
        s = s[2:]
    return bytes.fromhex(s)


def _int(value: Any) -> int:
    if isinstance(value, int):
        return value
    if value is None:
        return 0
    return int(str(value), 16)


# ----------------------
# Logs
# ----------------------

@dataclass(frozen=True)
class TransferLog:
    address: str            # emitting contract (checksum)
    topics: tuple[bytes, ...]
    data: bytes
    block_number: int = 0
    log_index: int = 0
    transaction_hash: str = ""

    @classmethod
    def from_rpc(cls, raw: dict) -> "TransferLog":
        return cls(
            address=normalize_address(raw["address"]),
            topics=tuple(_hex_bytes(t) for t in raw.get("topics") or []),
            data=_hex_bytes(raw.get("data") or "0x"),
            block_number=_int(raw.get("blockNumber")),
            log_index=_int(raw.get("logIndex")),
            transaction_hash=str(raw.get("transactionHash") or ""),
        )

    @property
    def is_burn(self) -> bool:
        # topics[2] is the recipient
        return len(self.topics) > 2 and self.topics[2] == ZERO_WORD

    @property
    def token_id(self) -> int | None:
        """ERC-721 transfers index the token id as the fourth topic."""
        if len(self.topics) != 4:
            return None
        return int.from_bytes(self.topics[3], "big")


# ----------------------
# Contract classification
# ----------------------

class ContractKind(str, Enum):
    UNKNOWN = "Unknown"
    UNKNOWN_ERC165 = "UnknownERC165"
    ERC721 = "ERC721"
    MAYBE_ERC20 = "MaybeERC20"


@dataclass(frozen=True)
class ContractType:
    kind: ContractKind
    metadata: bool = False
    enumerable: bool = False

    @classmethod
    def unknown(cls) -> "ContractType":
        return cls(ContractKind.UNKNOWN)

    @classmethod
    def unknown_erc165(cls) -> "ContractType":
        return cls(ContractKind.UNKNOWN_ERC165)

    @classmethod
    def erc721(cls, *, metadata: bool, enumerable: bool) -> "ContractType":
        return cls(ContractKind.ERC721, metadata=bool(metadata), enumerable=bool(enumerable))

    @classmethod
    def maybe_erc20(cls) -> "ContractType":
        return cls(ContractKind.MAYBE_ERC20)

    @property
    def is_erc721(self) -> bool:
        return self.kind is ContractKind.ERC721

    def to_json(self) -> Any:
        # Unit variants are bare strings, ERC721 carries its flags
        if self.kind is ContractKind.ERC721:
            return {self.kind.value: {"metadata": self.metadata, "enumerable": self.enumerable}}
        return self.kind.value

    @classmethod
    def from_json(cls, value: Any) -> "ContractType":
        if isinstance(value, str):
            kind = ContractKind(value)
            if kind is ContractKind.ERC721:
                raise ValueError("ERC721 contract type requires metadata/enumerable flags")
            return cls(kind)
        if isinstance(value, dict) and len(value) == 1:
            (name, fields), = value.items()
            if ContractKind(name) is not ContractKind.ERC721 or not isinstance(fields, dict):
                raise ValueError(f"Unexpected contract type: {value!r}")
            return cls.erc721(metadata=fields["metadata"], enumerable=fields["enumerable"])
        raise ValueError(f"Unexpected contract type: {value!r}")

    def __str__(self) -> str:
        if self.kind is ContractKind.ERC721:
            return f"ERC721(metadata={self.metadata}, enumerable={self.enumerable})"
        return self.kind.value
