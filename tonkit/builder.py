"""Mutable builders that assemble bits and references into cells."""

from __future__ import annotations

from typing import List, Optional

from .cell import (
    MAX_BITS,
    MAX_INT_BITS,
    MAX_REFS,
    Cell,
    NegativeValueError,
    NotFit1023Error,
    RefCannotBeNoneError,
    SmallSliceError,
    TooBigSizeError,
    TooBigValueError,
    TooMuchRefsError,
)

_FIRST_SNAKE_CHUNK = 127 - 4
_SNAKE_CHUNK = 127


def _left_aligned(value: int, bits: int) -> bytes:
    length = (bits + 7) // 8
    return (value << (length * 8 - bits)).to_bytes(length, "big")


def _leading_bits(data: bytes, bits: int) -> int:
    length = (bits + 7) // 8
    if length == 0:
        return 0
    return int.from_bytes(data[:length], "big") >> (length * 8 - bits)


class Builder:
    """Accumulates up to 1023 bits and four references, then produces a cell.

    Every ``store_*`` method returns the builder so calls can be chained, and
    raises a :class:`~tonkit.cell.CellError` subclass when the value does not fit.
    """

    __slots__ = ("_value", "_size", "_refs")

    def __init__(self) -> None:
        self._value = 0
        self._size = 0
        self._refs: List[Cell] = []

    @classmethod
    def from_cell(cls, cell: Cell) -> "Builder":
        """A builder holding the bits and references of ``cell``, ready to be extended."""
        builder = cls()
        builder._value = _leading_bits(cell.data, cell.bits_size)
        builder._size = cell.bits_size
        builder._refs = list(cell.refs)
        return builder

    def _append(self, value: int, size: int) -> None:
        self._value = (self._value << size) | (value & ((1 << size) - 1))
        self._size += size

    def _ensure_fits(self, extra_bits: int) -> None:
        if self._size + extra_bits > MAX_BITS:
            raise NotFit1023Error()

    def store_uint(self, value: int, size: int) -> "Builder":
        """Store an unsigned integer in ``size`` bits; higher bits are dropped."""
        if value.bit_length() > MAX_INT_BITS:
            raise TooBigValueError()
        if value < 0:
            raise NegativeValueError()
        if size > MAX_INT_BITS:
            raise TooBigSizeError()
        return self._store_bits(value, size)

    def store_int(self, value: int, size: int) -> "Builder":
        """Store a two's complement signed integer in ``size`` bits."""
        if abs(value).bit_length() > MAX_INT_BITS:
            raise TooBigValueError()
        if size > MAX_INT_BITS + 1:
            raise TooBigSizeError()
        if value < 0:
            value += 1 << size
        return self._store_bits(value, size)

    def _store_bits(self, value: int, size: int) -> "Builder":
        if size == 0:
            return self
        self._ensure_fits(size)
        self._append(value, size)
        return self

    def store_bool_bit(self, value: bool) -> "Builder":
        return self.store_uint(1 if value else 0, 1)

    def store_coins(self, value: int) -> "Builder":
        """Store a VarUInteger 16 amount: a 4-bit byte length and then the value."""
        if value < 0:
            raise NegativeValueError()
        length = (value.bit_length() + 7) >> 3
        if length >= 16:
            raise TooBigValueError()
        self._ensure_fits(4 + length * 8)
        self.store_uint(length, 4)
        return self.store_uint(value, length * 8)

    def store_slice(self, data: bytes, size: int) -> "Builder":
        """Store the first ``size`` bits of ``data``."""
        if size == 0:
            return self
        if len(data) < (size + 7) // 8:
            raise SmallSliceError()
        self._ensure_fits(size)
        self._append(_leading_bits(bytes(data), size), size)
        return self

    def store_ref(self, ref: Cell) -> "Builder":
        if len(self._refs) >= MAX_REFS:
            raise TooMuchRefsError()
        if ref is None:
            raise RefCannotBeNoneError()
        self._refs.append(ref)
        return self

    def store_maybe_ref(self, ref: Optional[Cell]) -> "Builder":
        """Store a presence bit and, when ``ref`` is given, the reference itself."""
        if ref is None:
            return self.store_uint(0, 1)
        if len(self._refs) >= MAX_REFS:
            raise TooMuchRefsError()
        self._ensure_fits(1)
        self.store_uint(1, 1)
        return self.store_ref(ref)

    def store_dict(self, dictionary) -> "Builder":
        """Store a dictionary as a maybe-reference to its root cell.

        ``dictionary`` is anything with a ``to_cell()`` method returning the root
        cell or ``None`` when empty; ``None`` itself stores an empty dictionary.
        """
        if dictionary is None:
            return self.store_maybe_ref(None)
        return self.store_maybe_ref(dictionary.to_cell())

    def store_builder(self, builder: "Builder") -> "Builder":
        """Append the bits and references of another builder."""
        if len(self._refs) + len(builder._refs) > MAX_REFS:
            raise TooMuchRefsError()
        self._ensure_fits(builder._size)
        self._refs.extend(builder._refs)
        self._append(builder._value, builder._size)
        return self

    def store_string_snake(self, text: str) -> "Builder":
        return self.store_binary_snake(text.encode("utf-8"))

    def store_binary_snake(self, data: bytes) -> "Builder":
        """Store bytes here and in a chain of single references, 127 bytes per cell."""
        data = bytes(data)
        head, rest = data[:_FIRST_SNAKE_CHUNK], data[_FIRST_SNAKE_CHUNK:]
        chunks = [rest[start:start + _SNAKE_CHUNK] for start in range(0, len(rest), _SNAKE_CHUNK)]

        tail: Optional[Cell] = None
        for chunk in reversed(chunks):
            part = Builder().store_slice(chunk, len(chunk) * 8)
            if tail is not None:
                part.store_ref(tail)
            tail = part.end_cell()

        snake = Builder().store_slice(head, len(head) * 8)
        if tail is not None:
            snake.store_ref(tail)
        return self.store_builder(snake)

    def bits_used(self) -> int:
        return self._size

    def bits_left(self) -> int:
        return MAX_BITS - self._size

    def refs_used(self) -> int:
        return len(self._refs)

    def refs_left(self) -> int:
        return MAX_REFS - len(self._refs)

    def copy(self) -> "Builder":
        """An independent builder with the same content."""
        twin = Builder()
        twin._value = self._value
        twin._size = self._size
        twin._refs = list(self._refs)
        return twin

    def end_cell(self) -> Cell:
        """A cell holding the current content; the builder stays usable."""
        return Cell(_left_aligned(self._value, self._size), self._size, self._refs)

    def __repr__(self) -> str:
        return f"Builder(bits={self._size}, refs={len(self._refs)})"


def begin_cell() -> Builder:
    """Start building a new cell."""
    return Builder()