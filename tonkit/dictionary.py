"""Hashmap dictionaries stored as binary trees of cells."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .builder import Builder, begin_cell
from .cell import Cell, CellError, NoMoreRefsError, NotEnoughDataError, Slice


@dataclass(frozen=True)
class HashmapKV:
    """One dictionary entry: the key as a cell of key-size bits, and its value cell."""

    key: Cell
    value: Cell


def _left_aligned(value: int, bits: int) -> bytes:
    length = (bits + 7) // 8
    return (value << (length * 8 - bits)).to_bytes(length, "big")


def _leading_bits(data: bytes, bits: int) -> int:
    length = (bits + 7) // 8
    if length == 0:
        return 0
    return int.from_bytes(data[:length], "big") >> (length * 8 - bits)


def _load_label(size: int, loader: Slice, key: Builder) -> int:
    """Read an edge label, append its bits to ``key`` and return its length."""
    if not loader.load_bool_bit():
        # hml_short$0: unary length, then the bits
        length = 0
        while loader.load_bool_bit():
            length += 1
        key.store_slice(loader.load_slice(length), length)
        return length

    bits_len = size.bit_length()
    if not loader.load_bool_bit():
        # hml_long$10: explicit length, then the bits
        length = loader.load_uint(bits_len)
        key.store_slice(loader.load_slice(length), length)
        return length

    # hml_same$11: one bit repeated length times
    bit = loader.load_uint(1)
    length = loader.load_uint(bits_len)
    fill = b"\xff" if bit else b"\x00"
    key.store_slice(fill * (length // 8 + 1), length)
    return length


class Dictionary:
    """A dictionary with fixed-size bit-string keys and cell values."""

    def __init__(self, key_size: int) -> None:
        if key_size < 0:
            raise ValueError("key size cannot be negative")
        self._key_size = key_size
        self._storage: Dict[bytes, HashmapKV] = {}

    @property
    def key_size(self) -> int:
        return self._key_size

    @classmethod
    def from_slice(cls, slice_: Slice, key_size: int) -> "Dictionary":
        """Parse a dictionary whose root node starts at ``slice_``."""
        dictionary = cls(key_size)
        dictionary._map_inner(key_size, slice_, Builder())
        return dictionary

    def _map_inner(self, left_key_size: int, loader: Slice, prefix: Builder) -> None:
        if left_key_size < 0:
            raise CellError("invalid dictionary label length")
        size = _load_label(left_key_size, loader, prefix)

        if prefix.bits_used() < self._key_size:
            try:
                left = loader.load_ref()
            except NoMoreRefsError:
                return
            rest = left_key_size - (1 + size)
            self._map_inner(rest, left, prefix.copy().store_uint(0, 1))
            right = loader.load_ref()
            self._map_inner(rest, right, prefix.copy().store_uint(1, 1))
            return

        key_cell = prefix.end_cell()
        raw_key = key_cell.begin_parse().load_slice(self._key_size)
        self._storage[raw_key] = HashmapKV(key_cell, loader.to_cell())

    def set(self, key: Cell, value: Cell) -> None:
        """Store ``value`` under ``key``, a cell of exactly key-size bits."""
        if key.bits_size != self._key_size:
            raise ValueError("invalid key size")
        raw_key = key.begin_parse().load_slice(self._key_size)
        self._storage[raw_key] = HashmapKV(key, value)

    def set_int_key(self, key: int, value: Cell) -> None:
        """Store ``value`` under a signed integer key."""
        self.set(begin_cell().store_int(key, self._key_size).end_cell(), value)

    def get(self, key: Cell) -> Optional[Cell]:
        """The value under ``key``, or ``None`` if there is none."""
        try:
            raw_key = key.begin_parse().load_slice(self._key_size)
        except NotEnoughDataError:
            return None
        entry = self._storage.get(raw_key)
        return entry.value if entry is not None else None

    def get_by_int_key(self, key: int) -> Optional[Cell]:
        return self.get(begin_cell().store_int(key, self._key_size).end_cell())

    def all(self) -> List[HashmapKV]:
        """All entries, in insertion order."""
        return list(self._storage.values())

    def __len__(self) -> int:
        return len(self._storage)

    def to_cell(self) -> Optional[Cell]:
        """The root cell of the dictionary tree, or ``None`` when it is empty."""
        if not self._storage:
            return None
        entries = [
            (_leading_bits(raw_key, self._key_size), entry.value)
            for raw_key, entry in self._storage.items()
        ]
        return self._build(entries, 0, 0)

    def _build(self, entries: Sequence[Tuple[int, Cell]], committed: int, offset: int) -> Cell:
        key_size = self._key_size
        while offset < key_size:
            shift = key_size - 1 - offset
            zeros = [entry for entry in entries if not (entry[0] >> shift) & 1]
            ones = [entry for entry in entries if (entry[0] >> shift) & 1]
            if zeros and ones:
                node = Builder()
                self._store_label(node, zeros[0][0], committed, offset)
                branch0 = self._build(zeros, offset + 1, offset + 1)
                branch1 = self._build(ones, offset + 1, offset + 1)
                return node.store_ref(branch0).store_ref(branch1).end_cell()
            entries = zeros or ones
            offset += 1

        if len(entries) > 1:
            raise CellError("not single key in a leaf")
        key, value = entries[0]
        leaf = Builder()
        self._store_label(leaf, key, committed, offset)
        leaf.store_builder(Builder.from_cell(value))
        return leaf.end_cell()

    def _store_label(self, builder: Builder, key: int, committed: int, offset: int) -> None:
        part = offset - committed
        if part == 0:
            builder.store_uint(0, 2)
            return
        builder.store_uint(0b10, 2)
        builder.store_uint(part, (self._key_size - committed).bit_length())
        bits = (key >> (self._key_size - offset)) & ((1 << part) - 1)
        builder.store_slice(_left_aligned(bits, part), part)

    def __repr__(self) -> str:
        return f"Dictionary(key_size={self._key_size}, entries={len(self._storage)})"


def load_dict(slice_: Slice, key_size: int) -> Dictionary:
    """Read a maybe-reference to a dictionary; an absent reference is an empty dictionary."""
    root = slice_.load_maybe_ref()
    if root is None:
        return Dictionary(key_size)
    return Dictionary.from_slice(root, key_size)