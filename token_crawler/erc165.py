"""EIP-165 interface detection via supportsInterface(bytes4)."""
from __future__ import annotations

from .rpc import RpcClient, RpcError, is_execution_reverted

FN_SUPPORTS_INTERFACE = bytes.fromhex("01ffc9a7")

INTERFACE_ERC165 = FN_SUPPORTS_INTERFACE
# every compliant contract must answer false for this one
INTERFACE_INVALID = bytes.fromhex("ffffffff")
INTERFACE_ERC721 = bytes.fromhex("80ac58cd")
INTERFACE_ERC721_METADATA = bytes.fromhex("5b5e139f")
INTERFACE_ERC721_ENUMERABLE = bytes.fromhex("780e9d63")

PROBE_GAS = 30_000


def decode_bool_word(ret: bytes) -> bool:
    """
    A well-formed answer is one 32-byte word with only the lowest bit possibly
    set. Anything else counts as "not supported" rather than an error.
    """
    if len(ret) != 32 or any(ret[:31]) or ret[31] & 0xFE:
        return False
    return ret[31] == 1


def supports_interface_unchecked(client: RpcClient, address: str, interface_id: bytes, gas: int = PROBE_GAS) -> bool:
    if len(interface_id) != 4:
        raise ValueError(f"interface id must be 4 bytes, got {interface_id!r}")
    arg = interface_id.ljust(32, b"\x00")
    try:
        ret = client.call_read_only(address, FN_SUPPORTS_INTERFACE, arg, gas)
    except RpcError as e:
        if is_execution_reverted(e):
            return False
        raise
    return decode_bool_word(ret)


def is_erc165(client: RpcClient, address: str, gas: int = PROBE_GAS) -> bool:
    return (
        supports_interface_unchecked(client, address, INTERFACE_ERC165, gas)
        and not supports_interface_unchecked(client, address, INTERFACE_INVALID, gas)
    )


def supports_interface(client: RpcClient, address: str, interface_id: bytes, gas: int = PROBE_GAS) -> bool:
    return is_erc165(client, address, gas) and supports_interface_unchecked(client, address, interface_id, gas)


def is_erc721(client: RpcClient, address: str, gas: int = PROBE_GAS) -> bool:
    return supports_interface(client, address, INTERFACE_ERC721, gas)


def is_erc721_metadata(client: RpcClient, address: str, gas: int = PROBE_GAS) -> bool:
    return supports_interface(client, address, INTERFACE_ERC721_METADATA, gas)


def is_erc721_enumerable(client: RpcClient, address: str, gas: int = PROBE_GAS) -> bool:
    return supports_interface(client, address, INTERFACE_ERC721_ENUMERABLE, gas)


# Callers that already know the contract speaks EIP-165 skip the re-check
def is_erc721_unchecked(client: RpcClient, address: str, gas: int = PROBE_GAS) -> bool:
    return supports_interface_unchecked(client, address, INTERFACE_ERC721, gas)


def is_erc721_metadata_unchecked(client: RpcClient, address: str, gas: int = PROBE_GAS) -> bool:
    return supports_interface_unchecked(client, address, INTERFACE_ERC721_METADATA, gas)


def is_erc721_enumerable_unchecked(client: RpcClient, address: str, gas: int = PROBE_GAS) -> bool:
    return supports_interface_unchecked(client, address, INTERFACE_ERC721_ENUMERABLE, gas)
