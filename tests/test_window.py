"""Tests for the proportional window controller."""

from __future__ import annotations

import itertools

import pytest

from token_crawler.window import BlockRange, WindowController


def test_next_advances_by_current_size() -> None:
    w = WindowController(100, 10, 8_000)
    assert next(w) == BlockRange(100, 110)
    assert next(w) == BlockRange(110, 120)
    assert w.position == 120


def test_iterator_is_endless() -> None:
    w = WindowController(0, 1, 1)
    ranges = list(itertools.islice(w, 1000))
    assert len(ranges) == 1000
    assert ranges[-1] == BlockRange(999, 1000)


@pytest.mark.parametrize(
    ("size", "target", "observed"),
    [(10, 8_000, 2), (1_000, 8_000, 9_999), (7, 3, 2), (12_345, 8_000, 8_000), (3, 10, 7)],
)
def test_tune_is_floor_of_proportional_law(size: int, target: int, observed: int) -> None:
    w = WindowController(0, size, target)
    assert w.tune(observed) == size * target // observed
    assert w.size == size * target // observed


def test_tune_with_zero_keeps_size() -> None:
    w = WindowController(0, 42, 8_000)
    w.tune(0)
    assert w.size == 42


def test_tune_uses_only_last_observation() -> None:
    w = WindowController(0, 100, 10)
    w.tune(1_000)
    assert w.size == 1
    w.tune(1)
    assert w.size == 10


def test_tune_never_reaches_zero() -> None:
    w = WindowController(0, 2, 10)
    w.tune(1_000_000)
    assert w.size == 1


def test_next_uses_size_in_effect_at_call_time() -> None:
    w = WindowController(50, 10, 100)
    first = next(w)
    w.tune(50)
    second = next(w)
    assert len(first) == 10
    assert len(second) == 20
    assert second.start == first.end
    assert w.position == 80


def test_halve() -> None:
    w = WindowController(0, 9, 100)
    assert w.halve() == 4
    assert w.halve() == 2
    assert w.halve() == 1
    assert w.halve() == 1


def test_invalid_arguments() -> None:
    with pytest.raises(ValueError):
        WindowController(0, 0, 10)
    with pytest.raises(ValueError):
        WindowController(0, 10, 0)
    with pytest.raises(ValueError):
        WindowController(0, 10, 10).tune(-1)


def test_block_range_helpers() -> None:
    r = BlockRange(10, 21)
    assert len(r) == 11
    assert r.last == 20
    assert r.split() == (BlockRange(10, 15), BlockRange(15, 21))
    assert r.clip(15) == BlockRange(10, 15)
    assert len(BlockRange(5, 5)) == 0
