"""Interning of byte strings into one contiguous buffer."""

from __future__ import annotations

from dataclasses import dataclass, field

_MAX_OFFSET = 2**32 - 1


@dataclass(frozen=True, order=True)
class Symbol:
    """A half-open range into a `BStringTable` buffer."""

    start: int
    end: int


@dataclass
class BStringTable:
    """Interns byte strings, handing out a `Symbol` for each distinct value."""

    _storage: bytearray = field(default_factory=bytearray, repr=False)
    _mapping: dict[bytes, Symbol] = field(default_factory=dict, repr=False)

    def get_or_intern(self, s: bytes | bytearray | memoryview | str) -> Symbol:
        """Return the symbol for `s`, adding it to the table if new."""
        key = s.encode("utf-8") if isinstance(s, str) else bytes(s)
        symbol = self._mapping.get(key)
        if symbol is not None:
            return symbol
        start = len(self._storage)
        end = start + len(key)
        if end > _MAX_OFFSET:
            raise OverflowError("string table exceeds 32-bit offsets")
        self._storage += key
        symbol = Symbol(start, end)
        self._mapping[key] = symbol
        return symbol

    def resolve(self, symbol: Symbol) -> bytes:
        """Return the bytes a symbol refers to."""
        if not 0 <= symbol.start <= symbol.end <= len(self._storage):
            raise IndexError(f"symbol {symbol} is out of range")
        return bytes(self._storage[symbol.start : symbol.end])