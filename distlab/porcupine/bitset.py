"""Fixed-size set of bit positions stored in 64-bit chunks."""

from __future__ import annotations

_MASK = (1 << 64) - 1


class Bitset:
    """A set of positions in [0, bits rounded up to 64)."""

    __slots__ = ("_chunks",)

    def __init__(self, bits: int = 0) -> None:
        self._chunks = [0] * ((bits + 63) // 64)

    def _index(self, pos: int) -> tuple[int, int]:
        if pos < 0 or pos >= len(self._chunks) * 64:
            raise IndexError(f"bit position {pos} out of range")
        return divmod(pos, 64)

    def copy(self) -> Bitset:
        other = Bitset()
        other._chunks = list(self._chunks)
        return other

    def set(self, pos: int) -> Bitset:
        major, minor = self._index(pos)
        self._chunks[major] |= 1 << minor
        return self

    def clear(self, pos: int) -> Bitset:
        major, minor = self._index(pos)
        self._chunks[major] &= ~(1 << minor) & _MASK
        return self

    def get(self, pos: int) -> bool:
        major, minor = self._index(pos)
        return bool(self._chunks[major] >> minor & 1)

    def popcount(self) -> int:
        return sum(bin(chunk).count("1") for chunk in self._chunks)

    def hash(self) -> int:
        result = self.popcount()
        for chunk in self._chunks:
            result ^= chunk
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitset):
            return NotImplemented
        return self._chunks == other._chunks

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"Bitset({self._chunks!r})"