"""Immutable cells of up to 1023 bits and four references, and slices that read them."""

from __future__ import annotations

import hashlib
from typing import Iterable, Optional, Union

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

MAX_BITS = 1023
MAX_REFS = 4
MAX_INT_BITS = 256


class CellError(Exception):
    """Base error for cell building and parsing."""

    default_message = "cell error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class TooBigValueError(CellError):
    default_message = "too big value"


class NegativeValueError(CellError):
    default_message = "value should be non negative"


class RefCannotBeNoneError(CellError):
    default_message = "ref cannot be nil"


class SmallSliceError(CellError):
    default_message = "too small slice for this size"


class TooBigSizeError(CellError):
    default_message = "too big size"


class TooMuchRefsError(CellError):
    default_message = "too much refs"


class NotFit1023Error(CellError):
    default_message = "cell data size should fit into 1023 bits"


class NoMoreRefsError(CellError):
    default_message = "no more refs exists"


class NotEnoughDataError(CellError):
    default_message = "not enough data in reader"


def _bytes_len(bits: int) -> int:
    return (bits + 7) // 8


def _bits_to_int(data: bytes, bits: int) -> int:
    """Read the first ``bits`` bits of left-aligned ``data`` as an unsigned integer."""
    n = _bytes_len(bits)
    if n == 0:
        return 0
    return int.from_bytes(data[:n], "big") >> (n * 8 - bits)


def _int_to_bits(value: int, bits: int) -> bytes:
    """Write ``value`` as ``bits`` bits, left-aligned, padded with zero bits."""
    n = _bytes_len(bits)
    return (value << (n * 8 - bits)).to_bytes(n, "big")


PrivateKeyLike = Union[Ed25519PrivateKey, bytes, bytearray]


def _as_private_key(key: PrivateKeyLike) -> Ed25519PrivateKey:
    if isinstance(key, Ed25519PrivateKey):
        return key
    raw = bytes(key)
    if len(raw) not in (32, 64):
        raise ValueError("ed25519 private key must be 32 or 64 bytes")
    return Ed25519PrivateKey.from_private_bytes(raw[:32])


class Cell:
    """An immutable cell: a bit string of up to 1023 bits plus up to four child cells."""

    __slots__ = ("_data", "_bits_size", "_refs", "_special", "_level", "_hash", "_depth")

    def __init__(
        self,
        data: bytes = b"",
        bits_size: Optional[int] = None,
        refs: Iterable["Cell"] = (),
        *,
        special: bool = False,
        level: int = 0,
    ) -> None:
        data = bytes(data)
        if bits_size is None:
            bits_size = len(data) * 8
        if bits_size < 0:
            raise ValueError("bits size cannot be negative")
        if bits_size > MAX_BITS:
            raise NotFit1023Error()
        if len(data) < _bytes_len(bits_size):
            raise SmallSliceError()
        refs = tuple(refs)
        if len(refs) > MAX_REFS:
            raise TooMuchRefsError()
        if any(ref is None for ref in refs):
            raise RefCannotBeNoneError()
        if not 0 <= level <= 7:
            raise ValueError("cell level must be between 0 and 7")

        self._data = _int_to_bits(_bits_to_int(data, bits_size), bits_size)
        self._bits_size = bits_size
        self._refs = refs
        self._special = bool(special)
        self._level = level
        self._hash: Optional[bytes] = None
        self._depth: Optional[int] = None

    @property
    def data(self) -> bytes:
        """The cell bits, left-aligned, with unused trailing bits zeroed."""
        return self._data

    @property
    def bits_size(self) -> int:
        return self._bits_size

    @property
    def refs(self) -> tuple:
        return self._refs

    @property
    def special(self) -> bool:
        return self._special

    @property
    def level(self) -> int:
        return self._level

    def begin_parse(self) -> "Slice":
        """Start reading this cell from its first bit and first reference."""
        return Slice(
            self._data,
            self._bits_size,
            self._refs,
            special=self._special,
            level=self._level,
        )

    def descriptors(self) -> bytes:
        """The two descriptor bytes: refs/special/level, then the data length code."""
        d1 = len(self._refs) + (8 if self._special else 0) + self._level * 32
        d2 = _bytes_len(self._bits_size) + self._bits_size // 8
        return bytes((d1, d2))

    def augmented_data(self) -> bytes:
        """The data bytes, with a completion bit after the last bit of a partial byte."""
        unused = (-self._bits_size) % 8
        if unused == 0:
            return self._data
        augmented = bytearray(self._data)
        augmented[-1] |= 1 << (unused - 1)
        return bytes(augmented)

    def depth(self) -> int:
        """Length of the longest chain of references below this cell."""
        if self._depth is None:
            self._depth = 1 + max((ref.depth() for ref in self._refs), default=-1)
        return self._depth

    def hash(self) -> bytes:
        """The SHA-256 representation hash of the cell."""
        if self._hash is None:
            digest = hashlib.sha256()
            digest.update(self.descriptors())
            digest.update(self.augmented_data())
            for ref in self._refs:
                digest.update((ref.depth() & 0xFFFF).to_bytes(2, "big"))
            for ref in self._refs:
                digest.update(ref.hash())
            self._hash = digest.digest()
        return self._hash

    def sign(self, private_key: PrivateKeyLike) -> bytes:
        """Sign the cell hash with an ed25519 key (key object, 32-byte seed or 64-byte key)."""
        return _as_private_key(private_key).sign(self.hash())

    def dump(self) -> str:
        """A readable tree of the cell, data in hex."""
        return self._dump(0, binary=False)

    def dump_bits(self) -> str:
        """A readable tree of the cell, data in binary."""
        return self._dump(0, binary=True)

    def _dump(self, deep: int, binary: bool) -> str:
        size = self._bits_size
        if binary:
            value = "".join(f"{byte:08b}" for byte in self._data)[:size]
        else:
            value = self._data.hex().upper()
            if 0 < size % 8 <= 4:
                value = value[:-1] + "_"

        text = "  " * deep + f"{size}[{value}]"
        if not self._refs:
            return text

        text += " -> {"
        last = len(self._refs) - 1
        for position, ref in enumerate(self._refs):
            text += "\n" + ref._dump(deep + 1, binary)
            text += "\n" if position == last else ","
        return text + "  " * deep + "}"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Cell):
            return NotImplemented
        return self.hash() == other.hash()

    def __hash__(self) -> int:
        return hash(self.hash())

    def __repr__(self) -> str:
        return f"Cell({self.dump()!r})"


class Slice:
    """A read cursor over a cell's bits and references."""

    __slots__ = ("_value", "_size", "_pos", "_refs", "_special", "_level")

    def __init__(
        self,
        data: bytes = b"",
        bits_size: Optional[int] = None,
        refs: Iterable[Cell] = (),
        *,
        special: bool = False,
        level: int = 0,
    ) -> None:
        data = bytes(data)
        if bits_size is None:
            bits_size = len(data) * 8
        if len(data) < _bytes_len(bits_size):
            raise SmallSliceError()
        self._value = _bits_to_int(data, bits_size)
        self._size = bits_size
        self._pos = 0
        self._refs = list(refs)
        self._special = special
        self._level = level

    def bits_left(self) -> int:
        return self._size - self._pos

    def refs_num(self) -> int:
        return len(self._refs)

    def _take(self, size: int) -> int:
        if size < 0:
            raise ValueError("size cannot be negative")
        if self.bits_left() < size:
            raise NotEnoughDataError()
        shift = self._size - self._pos - size
        value = (self._value >> shift) & ((1 << size) - 1)
        self._pos += size
        return value

    def load_ref(self) -> "Slice":
        """Take the next reference and return a slice over it."""
        if not self._refs:
            raise NoMoreRefsError()
        return self._refs.pop(0).begin_parse()

    def load_maybe_ref(self) -> Optional["Slice"]:
        """Read a presence bit and, if set, the next reference."""
        if not self.load_bool_bit():
            return None
        if not self._refs:
            raise NoMoreRefsError()
        return self._refs.pop(0).begin_parse()

    def load_coins(self) -> int:
        """Read a VarUInteger 16 amount: a 4-bit byte length and then the value."""
        length = self.load_uint(4)
        return self.load_uint(length * 8)

    def load_uint(self, size: int) -> int:
        if size > MAX_INT_BITS:
            raise TooBigValueError()
        return self._take(size)

    def load_int(self, size: int) -> int:
        """Read a two's complement signed integer."""
        value = self.load_uint(size)
        if size and value >> (size - 1):
            value -= 1 << size
        return value

    def load_bool_bit(self) -> bool:
        return self.load_uint(1) == 1

    def load_var_uint(self, size: int) -> int:
        """Read a VarUInteger ``size``: a byte length and then the value."""
        if size < 1:
            raise ValueError("var uint size must be positive")
        length = self.load_uint((size - 1).bit_length())
        return self.load_uint(length * 8)

    def load_slice(self, size: int) -> bytes:
        """Read ``size`` bits as left-aligned bytes, unused trailing bits zeroed."""
        value = self._take(size)
        return _int_to_bits(value, size)

    def load_binary_snake(self) -> bytes:
        """Read bytes stored across this slice and a chain of single references."""
        parts = []
        current = self
        while True:
            parts.append(current.load_slice(current.bits_left()))
            if current.refs_num() > 1:
                raise CellError("more than one ref, it is not snake string")
            if current.refs_num() == 0:
                return b"".join(parts)
            current = current.load_ref()

    def load_string_snake(self) -> str:
        return self.load_binary_snake().decode("utf-8", errors="replace")

    def rest_bits(self) -> tuple:
        """Read all remaining bits; returns ``(size, data)``."""
        size = self.bits_left()
        return size, self.load_slice(size)

    def copy(self) -> "Slice":
        """An independent slice at the same read position."""
        twin = Slice.__new__(Slice)
        twin._value = self._value
        twin._size = self._size
        twin._pos = self._pos
        twin._refs = list(self._refs)
        twin._special = self._special
        twin._level = self._level
        return twin

    def to_cell(self) -> Cell:
        """A cell of the bits and references not read yet; the slice is left as it was."""
        left = self.bits_left()
        value = self._value & ((1 << left) - 1)
        return Cell(
            _int_to_bits(value, left),
            left,
            self._refs,
            special=self._special,
            level=self._level,
        )

    def __repr__(self) -> str:
        return f"Slice(bits_left={self.bits_left()}, refs={self.refs_num()})"