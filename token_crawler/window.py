from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BlockRange:
    """Half-open block interval [start, end)."""
    start: int
    end: int

    def __len__(self) -> int:
        return max(0, self.end - self.start)

    @property
    def last(self) -> int:
        # eth_getLogs takes inclusive bounds
        return self.end - 1

    def split(self) -> tuple["BlockRange", "BlockRange"]:
        mid = (self.start + self.end) // 2
        return BlockRange(self.start, mid), BlockRange(mid, self.end)

    def clip(self, end: int) -> "BlockRange":
        return BlockRange(self.start, min(self.end, end))

    def __str__(self) -> str:
        return f"[{self.start:,} - {self.end:,})"


class WindowController:
    """
    Endless generator of consecutive block ranges whose size follows the number
    of matches seen in the previous window.

    Note that this does NOT average over multiple windows. Only the last
    observation counts, so a sudden jump in event density results in an
    equally sudden change of the window size.
    """

    def __init__(self, start: int, initial_size: int, target: int):
        if initial_size <= 0:
            raise ValueError("initial_size must be > 0")
        if target <= 0:
            raise ValueError("target must be > 0")
        self._pos = int(start)
        self._size = int(initial_size)
        self._target = int(target)

    @property
    def position(self) -> int:
        return self._pos

    @property
    def size(self) -> int:
        return self._size

    @property
    def target(self) -> int:
        return self._target

    def __iter__(self) -> "WindowController":
        return self

    def __next__(self) -> BlockRange:
        window = BlockRange(self._pos, self._pos + self._size)
        self._pos += self._size
        return window

    next = __next__

    def tune(self, observed: int) -> int:
        """Scale future windows so they are closer to the target amount."""
        if observed < 0:
            raise ValueError("observed must be >= 0")
        # Nothing to learn from an empty window
        if observed > 0:
            self._size = max(1, self._size * self._target // observed)
        return self._size

    def halve(self) -> int:
        self._size = max(1, self._size // 2)
        return self._size

    def __repr__(self) -> str:
        return f"WindowController(position={self._pos}, size={self._size}, target={self._target})"
