"""Bag-of-cells serialization: turning cell trees into bytes and back."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .cell import Cell, CellError

BOC_MAGIC = bytes((0xB5, 0xEE, 0x9C, 0x72))

_HASH_SIZE = 32
_DEPTH_SIZE = 2

_FLAG_HAS_INDEX = 1 << 7
_FLAG_HAS_CRC32C = 1 << 6
_FLAG_HAS_CACHE_BITS = 1 << 5
_SIZE_MASK = 0b111


class BocError(CellError):
    """Raised when bag-of-cells bytes are malformed."""

    default_message = "invalid boc"


def _make_crc32c_table() -> Tuple[int, ...]:
    table = []
    for byte in range(256):
        crc = byte
        for _ in range(8):
            crc = (crc >> 1) ^ 0x82F63B78 if crc & 1 else crc >> 1
        table.append(crc)
    return tuple(table)


_CRC32C_TABLE = _make_crc32c_table()


def crc32c(data: bytes) -> int:
    """CRC-32C (Castagnoli) checksum of ``data``."""
    crc = 0xFFFFFFFF
    for byte in bytes(data):
        crc = _CRC32C_TABLE[(crc ^ byte) & 0xFF] ^ (crc >> 8)
    return crc ^ 0xFFFFFFFF


def _bytes_for(value: int) -> int:
    """Number of bytes needed to hold ``value``."""
    return (value.bit_length() + 7) // 8


def _ordered_cells(root: Cell) -> List[Cell]:
    """Unique cells of the tree, each before every cell it references, root first."""
    visited = {root.hash()}
    post_order: List[Cell] = []
    stack = [(root, iter(root.refs))]
    while stack:
        cell, children = stack[-1]
        for ref in children:
            key = ref.hash()
            if key not in visited:
                visited.add(key)
                stack.append((ref, iter(ref.refs)))
                break
        else:
            stack.pop()
            post_order.append(cell)
    post_order.reverse()
    return post_order


def to_boc(cell: Cell, with_crc: bool = True) -> bytes:
    """Serialize a single-root cell tree, optionally followed by a CRC-32C checksum."""
    cells = _ordered_cells(cell)
    positions: Dict[bytes, int] = {c.hash(): i for i, c in enumerate(cells)}

    cell_size = _bytes_for(len(cells))
    payload = b"".join(
        c.descriptors()
        + c.augmented_data()
        + b"".join(positions[ref.hash()].to_bytes(cell_size, "big") for ref in c.refs)
        for c in cells
    )
    offset_size = _bytes_for(len(payload))

    flags = cell_size
    if with_crc:
        flags |= _FLAG_HAS_CRC32C

    data = bytearray(BOC_MAGIC)
    data.append(flags)
    data.append(offset_size)
    data += len(cells).to_bytes(cell_size, "big")
    data += (1).to_bytes(cell_size, "big")
    data += (0).to_bytes(cell_size, "big")
    data += len(payload).to_bytes(offset_size, "big")
    data += (0).to_bytes(cell_size, "big")
    data += payload

    if with_crc:
        data += crc32c(bytes(data)).to_bytes(4, "little")
    return bytes(data)


class _Reader:
    """Sequential reader over a byte string."""

    __slots__ = ("_data", "_pos")

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def read(self, count: int) -> bytes:
        if self.left() < count:
            raise BocError("not enough data in reader")
        chunk = self._data[self._pos:self._pos + count]
        self._pos += count
        return chunk

    def read_int(self, count: int) -> int:
        return int.from_bytes(self.read(count), "big")

    def left(self) -> int:
        return len(self._data) - self._pos


@dataclass(frozen=True)
class _RawCell:
    special: bool
    level: int
    bits_size: int
    data: bytes
    refs: Tuple[int, ...]


def from_boc(data: bytes) -> Cell:
    """Parse bag-of-cells bytes and return the first root cell."""
    roots = from_boc_multi_root(data)
    if not roots:
        raise BocError("boc has no root cells")
    return roots[0]


def from_boc_multi_root(data: bytes) -> List[Cell]:
    """Parse bag-of-cells bytes and return all root cells."""
    data = bytes(data)
    if len(data) < 10:
        raise BocError("invalid boc")

    reader = _Reader(data)
    if reader.read(4) != BOC_MAGIC:
        raise BocError("invalid boc magic header")

    flags = reader.read(1)[0]
    has_index = bool(flags & _FLAG_HAS_INDEX)
    has_crc = bool(flags & _FLAG_HAS_CRC32C)
    has_cache_bits = bool(flags & _FLAG_HAS_CACHE_BITS)
    cell_size = flags & _SIZE_MASK
    offset_size = reader.read(1)[0]

    cells_num = reader.read_int(cell_size)
    roots_num = reader.read_int(cell_size)
    reader.read(cell_size)  # absent cells
    payload_size = reader.read_int(offset_size)

    if has_crc:
        expected = int.from_bytes(data[-4:], "little")
        if crc32c(data[:-4]) != expected:
            raise BocError("checksum not matches")

    reader.read(roots_num * cell_size)  # root list

    if has_cache_bits and not has_index:
        raise BocError("cache flag cant be set without index flag")

    index: Optional[List[int]] = None
    if has_index:
        try:
            raw_index = reader.read(cells_num * offset_size)
        except BocError as exc:
            raise BocError(f"failed to read custom index, err: {exc}") from exc
        index = []
        for position in range(cells_num):
            start = position * offset_size
            value = int.from_bytes(raw_index[start:start + offset_size], "big")
            if has_cache_bits:
                value //= 2
            index.append(value)

    if reader.left() < payload_size:
        raise BocError(f"failed to read payload, want {payload_size}, has {reader.left()}")
    payload = reader.read(payload_size)

    try:
        return _parse_cells(roots_num, cells_num, cell_size, payload, index)
    except CellError as exc:
        raise BocError(f"failed to parse payload: {exc}") from exc


def _parse_cells(
    roots_num: int,
    cells_num: int,
    ref_size: int,
    data: bytes,
    index: Optional[Sequence[int]],
) -> List[Cell]:
    raw_cells: List[_RawCell] = []
    referred = [False] * cells_num

    offset = 0
    for position in range(cells_num):
        if index is not None:
            offset = index[position - 1] if position > 0 else 0

        if len(data) - offset < 2:
            raise BocError("failed to parse cell header, corrupted data")

        descriptor = data[offset]
        refs_num = descriptor & 0b111
        special = bool(descriptor & 0b1000)
        with_hashes = bool(descriptor & 0b10000)
        level_mask = descriptor >> 5

        if refs_num > 4:
            raise BocError("too many refs in cell")

        length_code = data[offset + 1]
        size = length_code // 2 + length_code % 2
        offset += 2

        if with_hashes:
            hashes_num = level_mask.bit_length() + 1
            offset += hashes_num * (_HASH_SIZE + _DEPTH_SIZE)

        if len(data) - offset < size:
            raise BocError("failed to parse cell payload, corrupted data")
        cell_data = data[offset:offset + size]
        offset += size

        if len(data) - offset < refs_num * ref_size:
            raise BocError("failed to parse cell refs, corrupted data")

        refs = []
        for _ in range(refs_num):
            ref_id = int.from_bytes(data[offset:offset + ref_size], "big")
            offset += ref_size
            if ref_id == position:
                raise BocError("recursive reference of cells")
            if ref_id < position and index is None:
                raise BocError("reference to index which is behind parent cell")
            if ref_id >= cells_num:
                raise BocError("invalid index, out of scope")
            refs.append(ref_id)
            referred[ref_id] = True

        bits_size = length_code * 4
        if length_code % 2:
            last = cell_data[-1]
            for bit in range(8):
                if (last >> bit) & 1:
                    bits_size += 3 - bit
                    break

        raw_cells.append(_RawCell(special, level_mask, bits_size, cell_data, tuple(refs)))

    cells = _build_cells(raw_cells)
    roots = [cells[position] for position, is_ref in enumerate(referred) if not is_ref]
    if len(roots) != roots_num:
        raise BocError("roots num not match actual num")
    return roots


def _build_cells(raw_cells: Sequence[_RawCell]) -> List[Cell]:
    """Create cells so that every cell is built after the cells it references."""
    unvisited, in_progress, done = 0, 1, 2
    state = [unvisited] * len(raw_cells)
    built: List[Optional[Cell]] = [None] * len(raw_cells)

    for start in range(len(raw_cells)):
        if state[start] == done:
            continue
        stack = [start]
        while stack:
            current = stack[-1]
            if state[current] == done:
                stack.pop()
                continue
            raw = raw_cells[current]
            if state[current] == unvisited:
                state[current] = in_progress
                for ref_id in raw.refs:
                    if state[ref_id] == in_progress:
                        raise BocError("recursive reference of cells")
                    if state[ref_id] == unvisited:
                        stack.append(ref_id)
                continue
            built[current] = Cell(
                raw.data,
                raw.bits_size,
                [built[ref_id] for ref_id in raw.refs],
                special=raw.special,
                level=raw.level,
            )
            state[current] = done
            stack.pop()

    return [cell for cell in built if cell is not None]