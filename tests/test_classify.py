"""Tests for contract classification."""

from __future__ import annotations

from tests.conftest import FakeChain, FakeContract, addr, erc20_log, erc721_contract, erc721_log
from token_crawler import classify as classify_mod
from token_crawler.classify import classify, contract_type
from token_crawler.erc165 import INTERFACE_ERC165, INTERFACE_ERC721, INTERFACE_ERC721_ENUMERABLE
from token_crawler.storage import MetadataCache
from token_crawler.types import ContractKind, ContractType

A = addr(0xA)


def test_non_erc165_with_erc20_shape_is_maybe_erc20() -> None:
    chain = FakeChain()
    assert contract_type(chain, A, erc20_log(A, 1)) == ContractType.maybe_erc20()


def test_non_erc165_with_other_shape_is_unknown() -> None:
    chain = FakeChain()
    assert contract_type(chain, A, erc721_log(A, 1, token_id=5)) == ContractType.unknown()
    assert contract_type(chain, A) == ContractType.unknown()


def test_erc165_without_erc721_is_unknown_erc165() -> None:
    chain = FakeChain(contracts={A: FakeContract(interfaces={INTERFACE_ERC165})})
    assert contract_type(chain, A, erc20_log(A, 1)).kind is ContractKind.UNKNOWN_ERC165


def test_erc721_flags_are_probed_independently() -> None:
    c = FakeContract(interfaces={INTERFACE_ERC165, INTERFACE_ERC721, INTERFACE_ERC721_ENUMERABLE})
    chain = FakeChain(contracts={A: c})

    ct = contract_type(chain, A, erc721_log(A, 1, token_id=1))

    assert ct == ContractType.erc721(metadata=False, enumerable=True)


def test_erc721_probes_skip_repeated_erc165_checks() -> None:
    chain = FakeChain(contracts={A: erc721_contract(metadata=True, enumerable=True)})
    contract_type(chain, A, erc721_log(A, 1, token_id=1))
    # 2 for EIP-165 itself, then 721 / metadata / enumerable
    assert len(chain.calls) == 5


def test_classify_stores_and_reuses(tmp_path) -> None:
    chain = FakeChain(contracts={A: erc721_contract()})
    cache = MetadataCache(tmp_path / "c.json")

    first = classify(chain, cache, erc721_log(A, 1, token_id=1))
    n_calls = len(chain.calls)
    second = classify(chain, cache, erc721_log(A, 2, token_id=2))

    assert first == second == ContractType.erc721(metadata=True, enumerable=False)
    assert cache.get_type(A) == first
    assert len(chain.calls) == n_calls


def test_classify_prefers_earlier_write(tmp_path, monkeypatch) -> None:
    cache = MetadataCache(tmp_path / "c.json")
    earlier = ContractType.unknown_erc165()

    def racing_contract_type(client, address, log=None, gas=0):
        # somebody else finishes first
        cache.store_type(address, earlier)
        return ContractType.maybe_erc20()

    monkeypatch.setattr(classify_mod, "contract_type", racing_contract_type)

    assert classify(FakeChain(), cache, erc20_log(A, 1)) == earlier
    assert cache.get_type(A) == earlier
