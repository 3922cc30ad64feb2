from __future__ import annotations

import logging
from typing import Optional

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from .rpc import RpcClient, RpcError, is_execution_reverted

logger = logging.getLogger(__name__)

# tokenURI(uint256)
FN_TOKEN_URI = bytes.fromhex("c87b56dd")

TOKEN_URI_GAS = 300_000


def encode_token_id(token_id: int) -> bytes:
    if token_id < 0 or token_id >= 2**256:
        raise ValueError(f"token id out of uint256 range: {token_id}")
    return token_id.to_bytes(32, "big")


def metadata_token_uri(
    client: RpcClient,
    address: str,
    token_id: int,
    gas: int = TOKEN_URI_GAS,
) -> Optional[str]:
    """
    tokenURI(token_id) of an ERC-721 metadata contract.

    Returns None when the call reverts (burned or never minted token, which we
    can't tell apart without an archive node) or when the contract returns
    something that doesn't decode as a string.
    """
    try:
        ret = client.call_read_only(address, FN_TOKEN_URI, encode_token_id(token_id), gas)
    except RpcError as e:
        if is_execution_reverted(e):
            logger.info("tokenURI reverted for %s #%d: %s", address, token_id, e.message)
            return None
        raise

    try:
        (uri,) = decode(["string"], ret)
    except (DecodingError, UnicodeDecodeError, ValueError) as e:
        logger.warning("Undecodable tokenURI for %s #%d (%d bytes): %s", address, token_id, len(ret), e)
        return None
    return uri
