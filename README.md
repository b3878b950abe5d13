# tonkit

Build, parse and serialise TON cells, bags of cells and hashmap
dictionaries, and compute the initial state and account id of standard
wallet contracts. Everything runs offline.

## What it covers

- `tonkit.cell`: the immutable `Cell`, with its representation hash
  (`hash()`), Ed25519 signing of that hash (`sign()`), and readable dumps
  (`dump()`, `dump_bits()`). It also holds the `Slice` reader, which loads
  unsigned and signed integers, coins, booleans, references,
  maybe-references, raw bits and snake-encoded bytes or text.
- `tonkit.builder`: the `Builder` that writes bits and references into a new
  cell, starting from `begin_cell()`. It enforces the 1023-bit and
  four-reference limits. Every `store_*` method returns the builder, so calls
  can be chained.
- `tonkit.boc`: the bag-of-cells format. `to_boc` writes a single-root tree,
  with an optional CRC-32C checksum. `from_boc` and `from_boc_multi_root` read
  it. `crc32c` is exposed as well.
- `tonkit.dictionary`: hashmap dictionaries with fixed-size keys. It provides
  `Dictionary`, `HashmapKV` and `load_dict`.
- `tonkit.contracts`: code and initial data for the V3, V4R2 and Highload
  V2R2 wallet versions. It provides `Version`, `StateInit`, `wallet_code`,
  `state_init_data`, `get_state_init`, `account_id_from_public_key` and
  `DEFAULT_SUBWALLET`.

## Installation

```
pip install tonkit
```

To run the test suite, install the test extra and run pytest:

```
pip install "tonkit[test]"
pytest
```

## Building and reading cells

```python
from tonkit.builder import begin_cell
from tonkit.boc import to_boc, from_boc

cell = (
    begin_cell()
    .store_uint(1, 1)
    .store_slice(bytes([11, 22, 33]), 24)
    .store_coins(777)
    .end_cell()
)

data = to_boc(cell, True)      # serialised with a CRC-32C checksum
restored = from_boc(data)
assert restored.hash() == cell.hash()

reader = restored.begin_parse()
assert reader.load_uint(1) == 1
assert reader.load_slice(24) == bytes([11, 22, 33])
assert reader.load_coins() == 777
```

Errors are raised as exceptions derived from `tonkit.cell.CellError`:

- Storing past the 1023-bit limit raises `NotFit1023Error`.
- A fifth reference raises `TooMuchRefsError`.
- Reading past the end of a slice raises `NotEnoughDataError`.
- Taking a reference that is not there raises `NoMoreRefsError`.

Malformed bags of cells raise `tonkit.boc.BocError`.

## Snake-encoded text

Long strings are split across a chain of cells, each linked to the next by a
single reference:

```python
from tonkit.builder import begin_cell

cell = begin_cell().store_string_snake("a comment longer than one cell can hold").end_cell()
text = cell.begin_parse().load_string_snake()
```

## Dictionaries

```python
from tonkit.builder import begin_cell
from tonkit.dictionary import Dictionary, load_dict

messages = Dictionary(16)
messages.set_int_key(0, begin_cell().store_uint(128, 8).end_cell())

holder = begin_cell().store_dict(messages).end_cell()
loaded = load_dict(holder.begin_parse(), 16)
assert loaded.get_by_int_key(0).begin_parse().load_uint(8) == 128
```

`Dictionary.all()` returns the entries as `HashmapKV(key, value)` pairs.
`Dictionary.to_cell()` returns the root cell, or `None` when the dictionary is
empty.

## Wallet state init and account id

The account id of a wallet in the base workchain is the hash of its state
init. The state init is made of the wallet code and the initial data, and the
data is built from the public key and the subwallet id:

```python
from tonkit.contracts import DEFAULT_SUBWALLET, Version, account_id_from_public_key, get_state_init

public_key = bytes(32)  # a made-up 32-byte Ed25519 public key
account_id = account_id_from_public_key(public_key, Version.V3, DEFAULT_SUBWALLET)

state = get_state_init(public_key, Version.V4R2, DEFAULT_SUBWALLET)
state_cell = state.to_cell()
```

An unknown version raises `tonkit.contracts.WalletError`.

## What it does not do

- It does not build or sign wallet transfer messages.
- It does not talk to the network. It cannot query balances or sequence
  numbers, send messages, or look up transactions.
- It does not turn an account id into a user-friendly address string.