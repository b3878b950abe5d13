import pytest

from tonkit.builder import Builder, begin_cell
from tonkit.cell import (
    NegativeValueError,
    NotFit1023Error,
    RefCannotBeNoneError,
    SmallSliceError,
    TooBigSizeError,
    TooBigValueError,
    TooMuchRefsError,
)

DATA_1024 = bytes.fromhex(
    "0000000000000000000000000000000000000000000000000000000000000003"
    "0000000000000000000000000000000000000000000000000000000000000003"
    "0000000000000000000000000000000000000000000000000000000000000003"
    "0000000000000000000000000000000000000000000000000000000000000003"
)


def test_cell_mixed_values():
    bs = bytes([11, 22, 33])
    ref = begin_cell().store_coins(777).end_cell()
    cell = (
        begin_cell()
        .store_uint(1, 1)
        .store_slice(bs, 24)
        .store_ref(ref)
        .store_uint(0xAABBCCF, 40)
        .end_cell()
    )

    parser = cell.begin_parse()
    assert parser.load_uint(1) == 1
    assert parser.load_slice(24) == bs
    assert parser.load_uint(40) == 0xAABBCCF
    assert parser.load_ref().load_coins() == 777


def test_cell_24_bits():
    bs = bytes([11, 22, 33])
    parser = begin_cell().store_slice(bs, 24).end_cell().begin_parse()
    assert parser.load_slice(24) == bs


def test_cell_25_bits():
    bs = bytes([11, 22, 33, 0x80])
    parser = begin_cell().store_slice(bs, 25).end_cell().begin_parse()
    assert parser.load_slice(25) == bs


def test_cell_read_small():
    parser = begin_cell().store_slice(bytes([0b10101010, 0, 0]), 24).end_cell().begin_parse()
    bits = [parser.load_uint(1) for _ in range(8)]
    assert bits == [1, 0, 1, 0, 1, 0, 1, 0]
    assert parser.load_uint(1) == 0


def test_cell_read_empty():
    size, data = begin_cell().end_cell().begin_parse().rest_bits()
    assert size == 0
    assert data == b""


@pytest.mark.parametrize(
    "value, store_size, load_size, expected",
    [
        (516783, 23, 23, 516783),
        (2, 64, 64, 2),
        (0xFFFFFF, 24, 24, 0xFFFFFF),
        (0xFFFFFF, 24, 20, 0xFFFFF),
        (2, 2, 2, 2),
        (1, 1, 1, 1),
        (123456789, 70, 70, 123456789),
        (0xFFFFFFFFFFFFFFFF, 60, 60, 0xFFFFFFFFFFFFFFF),
    ],
)
def test_store_uint(value, store_size, load_size, expected):
    cell = begin_cell().store_uint(value, store_size).end_cell()
    assert cell.begin_parse().load_uint(load_size) == expected


def test_store_big_int_errors_and_value():
    builder = begin_cell()
    with pytest.raises(TooBigSizeError):
        builder.store_int(0, 300)
    with pytest.raises(TooBigValueError):
        builder.store_int(1 << 257, 256)

    builder.store_int(-3, 256)
    data = builder.end_cell().begin_parse().load_slice(256)
    assert data.hex() == "fffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffd"


def test_store_big_uint_errors_and_value():
    builder = begin_cell()
    with pytest.raises(TooBigSizeError):
        builder.store_uint(0, 300)
    with pytest.raises(TooBigValueError):
        builder.store_uint(1 << 257, 256)
    with pytest.raises(NegativeValueError):
        builder.store_uint(-1, 256)

    builder.store_uint(3, 256)
    data = builder.end_cell().begin_parse().load_slice(256)
    assert data.hex() == "0000000000000000000000000000000000000000000000000000000000000003"


def test_store_slice_limits():
    builder = begin_cell()
    with pytest.raises(SmallSliceError):
        builder.store_slice(b"", 1023)
    with pytest.raises(NotFit1023Error):
        builder.store_slice(DATA_1024, 1024)
    builder.store_slice(DATA_1024, 1023)
    assert builder.bits_used() == 1023


def test_store_ref_limits():
    builder = begin_cell()
    with pytest.raises(RefCannotBeNoneError):
        builder.store_ref(None)
    for _ in range(4):
        builder.store_ref(begin_cell().end_cell())
    with pytest.raises(TooMuchRefsError):
        builder.store_ref(begin_cell().end_cell())
    assert builder.refs_used() == 4


def test_store_builder_limits():
    empty = begin_cell().end_cell()
    target = begin_cell().store_slice(DATA_1024, 1015).store_ref(empty)
    too_many_bits = begin_cell().store_slice(b"\xaa\xbb", 16).store_ref(empty)
    too_many_refs = begin_cell().store_slice(b"\xaa", 8)
    for _ in range(4):
        too_many_refs.store_ref(empty)
    fits = begin_cell().store_slice(b"\xaa", 8)
    for _ in range(3):
        fits.store_ref(empty)

    with pytest.raises(NotFit1023Error):
        target.store_builder(too_many_bits)
    with pytest.raises(TooMuchRefsError):
        target.store_builder(too_many_refs)
    target.store_builder(fits)

    assert target.refs_left() == 0
    assert target.bits_left() == 0
    assert target.bits_used() == 1023
    assert target.refs_used() == 4


def test_loaders_round_trip():
    empty = begin_cell().end_cell()
    inner = begin_cell().store_ref(empty).store_slice(b"\xff\xff\xff", 20).store_uint(0, 2)
    ref = begin_cell().store_bool_bit(True).store_builder(inner).end_cell()

    a = (
        begin_cell()
        .store_uint(54310, 17)
        .store_coins(41282931)
        .store_maybe_ref(ref)
        .store_maybe_ref(None)
        .end_cell()
    )
    b = a.begin_parse().to_cell()

    assert b.hash() == a.hash()
    assert b.bits_size == a.bits_size
    assert b.dump() == a.dump()

    parser = b.begin_parse()
    assert parser.refs_num() == 1
    assert parser.load_uint(17) == 54310
    assert parser.load_coins() == 41282931

    loaded = parser.load_maybe_ref()
    assert loaded is not None
    assert loaded.load_bool_bit() is True
    assert loaded.load_ref().bits_left() == 0
    assert loaded.load_slice(20) == b"\xff\xff\xf0"
    assert loaded.load_uint(2) == 0

    assert parser.load_maybe_ref() is None


@pytest.mark.parametrize("value, size", [(-5, 5), (-53276879, 256), (0, 8), (127, 8)])
def test_store_int_round_trip(value, size):
    assert begin_cell().store_int(value, size).end_cell().begin_parse().load_int(size) == value


def test_snake_string_round_trip():
    text = "big brown cherry-pick going to the market 😃😃😄😇🤪🤪🙁😤😨💅👏☝️👍👃👃👨‍👩‍👩🧑👨‍" * 3
    cell = begin_cell().store_string_snake(text).end_cell()
    assert cell.begin_parse().load_string_snake() == text


def test_snake_chunk_layout():
    data = bytes(range(256)) + bytes(100)
    cell = begin_cell().store_binary_snake(data).end_cell()
    assert cell.bits_size == 123 * 8
    second = cell.refs[0]
    assert second.bits_size == 127 * 8
    third = second.refs[0]
    assert third.bits_size == (len(data) - 123 - 127) * 8
    assert third.refs == ()


def test_snake_after_prefix():
    cell = begin_cell().store_uint(0, 32).store_string_snake("hello").end_cell()
    parser = cell.begin_parse()
    assert parser.load_uint(32) == 0
    assert parser.load_string_snake() == "hello"


def test_empty_snake_stores_nothing():
    cell = begin_cell().store_binary_snake(b"").end_cell()
    assert cell.bits_size == 0
    assert cell.refs == ()


def test_coins_limits():
    with pytest.raises(TooBigValueError):
        begin_cell().store_coins(1 << 120)
    with pytest.raises(NegativeValueError):
        begin_cell().store_coins(-1)
    cell = begin_cell().store_coins(0).end_cell()
    assert cell.bits_size == 4
    assert cell.begin_parse().load_coins() == 0


def test_maybe_ref_none_is_single_zero_bit():
    cell = begin_cell().store_maybe_ref(None).end_cell()
    assert cell.bits_size == 1
    assert cell.begin_parse().load_bool_bit() is False


def test_maybe_ref_full_refs():
    builder = begin_cell()
    for _ in range(4):
        builder.store_ref(begin_cell().end_cell())
    with pytest.raises(TooMuchRefsError):
        builder.store_maybe_ref(begin_cell().end_cell())
    assert builder.bits_used() == 0


class _FakeDict:
    def __init__(self, root):
        self._root = root

    def to_cell(self):
        return self._root


def test_store_dict_variants():
    root = begin_cell().store_uint(5, 8).end_cell()
    with_root = begin_cell().store_dict(_FakeDict(root)).end_cell()
    parser = with_root.begin_parse()
    assert parser.load_maybe_ref().load_uint(8) == 5

    empty = begin_cell().store_dict(_FakeDict(None)).end_cell()
    assert empty.bits_size == 1 and empty.refs == ()
    missing = begin_cell().store_dict(None).end_cell()
    assert missing == empty


def test_from_cell_and_extend():
    original = begin_cell().store_uint(0b101, 3).store_ref(begin_cell().end_cell()).end_cell()
    builder = Builder.from_cell(original)
    assert builder.end_cell() == original
    extended = builder.store_uint(1, 1).end_cell()
    parser = extended.begin_parse()
    assert parser.load_uint(4) == 0b1011
    assert parser.refs_num() == 1


def test_copy_is_independent():
    builder = begin_cell().store_uint(7, 3)
    twin = builder.copy()
    twin.store_uint(1, 1).store_ref(begin_cell().end_cell())
    assert builder.bits_used() == 3
    assert builder.refs_used() == 0
    assert twin.bits_used() == 4
    assert twin.refs_used() == 1


def test_end_cell_leaves_builder_usable():
    builder = begin_cell().store_uint(1, 1)
    first = builder.end_cell()
    builder.store_uint(0, 1)
    assert first.bits_size == 1
    assert builder.end_cell().bits_size == 2