from __future__ import annotations

import logging
from typing import Optional

from . import erc165
from .rpc import RpcClient
from .storage import MetadataCache
from .types import ContractType, TransferLog

logger = logging.getLogger(__name__)


def _looks_like_erc20(log: Optional[TransferLog]) -> bool:
    # ERC-20 leaves the value un-indexed: topic0 + from + to, one data word
    return log is not None and len(log.topics) == 3 and len(log.data) == 32


def contract_type(
    client: RpcClient,
    address: str,
    log: Optional[TransferLog] = None,
    gas: int = erc165.PROBE_GAS,
) -> ContractType:
    """
    Work out what kind of contract emitted `log`.

    Contracts without EIP-165 can only be judged by the shape of the
    triggering event. EIP-165 contracts are asked for ERC-721 and, if that
    holds, for the metadata and enumerable extensions.
    """
    logger.debug("Request type for %s", address)
    if not erc165.is_erc165(client, address, gas):
        return ContractType.maybe_erc20() if _looks_like_erc20(log) else ContractType.unknown()

    # EIP-165 support is established, no need to re-check it for every probe
    if erc165.is_erc721_unchecked(client, address, gas):
        metadata = erc165.is_erc721_metadata_unchecked(client, address, gas)
        enumerable = erc165.is_erc721_enumerable_unchecked(client, address, gas)
        return ContractType.erc721(metadata=metadata, enumerable=enumerable)
    return ContractType.unknown_erc165()


def classify(
    client: RpcClient,
    cache: MetadataCache,
    log: TransferLog,
    gas: int = erc165.PROBE_GAS,
) -> ContractType:
    """Cached type of the log's contract, probing and storing it on first sight."""
    known = cache.get_type(log.address)
    if known is not None:
        return known

    fresh = contract_type(client, log.address, log, gas)
    # Earliest write wins; if somebody stored a type meanwhile, that one counts
    stored = cache.store_type(log.address, fresh)
    if stored != fresh:
        logger.warning("Discarding %s for %s, already stored as %s", fresh, log.address, stored)
    else:
        logger.info("Classified %s as %s", log.address, stored)
    return stored
