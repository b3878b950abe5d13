"""Wallet contract code, initial data and state init for the supported wallet versions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from functools import lru_cache
from typing import Optional, Union

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from .boc import from_boc
from .builder import begin_cell
from .cell import Cell, CellError

DEFAULT_SUBWALLET = 698983191


class WalletError(Exception):
    """Raised for unsupported wallet versions and failed wallet operations."""


class Version(IntEnum):
    V3 = 3
    V4R2 = 42
    HIGHLOAD_V2R2 = 122


_CODE_HEX = {
    Version.V3: "B5EE9C724101010100710000DEFF0020DD2082014C97BA218201339CBAB19F71B0ED44D0D31FD31F31D70BFFE304E0A4F2608308D71820D31FD31FD31FF82313BBF263ED44D0D31FD31FD3FFD15132BAF2A15144BAF2A204F901541055F910F2A3F8009320D74A96D307D402FB00E8D101A4C8CB1FCB1FCBFFC9ED5410BD6DAD",
    Version.V4R2: "B5EE9C72410214010002D4000114FF00F4A413F4BCF2C80B010201200203020148040504F8F28308D71820D31FD31FD31F02F823BBF264ED44D0D31FD31FD3FFF404D15143BAF2A15151BAF2A205F901541064F910F2A3F80024A4C8CB1F5240CB1F5230CBFF5210F400C9ED54F80F01D30721C0009F6C519320D74A96D307D402FB00E830E021C001E30021C002E30001C0039130E30D03A4C8CB1F12CB1FCBFF1011121302E6D001D0D3032171B0925F04E022D749C120925F04E002D31F218210706C7567BD22821064737472BDB0925F05E003FA403020FA4401C8CA07CBFFC9D0ED44D0810140D721F404305C810108F40A6FA131B3925F07E005D33FC8258210706C7567BA923830E30D03821064737472BA925F06E30D06070201200809007801FA00F40430F8276F2230500AA121BEF2E0508210706C7567831EB17080185004CB0526CF1658FA0219F400CB6917CB1F5260CB3F20C98040FB0006008A5004810108F45930ED44D0810140D720C801CF16F400C9ED540172B08E23821064737472831EB17080185005CB055003CF1623FA0213CB6ACB1FCB3FC98040FB00925F03E20201200A0B0059BD242B6F6A2684080A06B90FA0218470D4080847A4937D29910CE6903E9FF9837812801B7810148987159F31840201580C0D0011B8C97ED44D0D70B1F8003DB29DFB513420405035C87D010C00B23281F2FFF274006040423D029BE84C600201200E0F0019ADCE76A26840206B90EB85FFC00019AF1DF6A26840106B90EB858FC0006ED207FA00D4D422F90005C8CA0715CBFFC9D077748018C8CB05CB0222CF165005FA0214CB6B12CCCCC973FB00C84014810108F451F2A7020070810108D718FA00D33FC8542047810108F451F2A782106E6F746570748018C8CB05CB025006CF165004FA0214CB6A12CB1FCB3FC973FB0002006C810108D718FA00D33F305224810108F459F2A782106473747270748018C8CB05CB025005CF165003FA0213CB6ACB1F12CB3FC973FB00000AF400C9ED54696225E5",
    Version.HIGHLOAD_V2R2: "B5EE9C720101090100E9000114FF00F4A413F4BCF2C80B010201200203020148040501EEF28308D71820D31FD33FF823AA1F5320B9F263ED44D0D31FD33FD3FFF404D153608040F40E6FA131F2605173BAF2A207F901541087F910F2A302F404D1F8007F8E18218010F4786FA16FA1209802D307D43001FB009132E201B3E65B8325A1C840348040F4438AE631C812CB1F13CB3FCBFFF400C9ED54080004D03002012006070017BD9CE76A26869AF98EB85FFC0041BE5F976A268698F98E99FE9FF98FA0268A91040207A0737D098C92DBFC95DD1F140038208040F4966FA16FA132511094305303B9DE2093333601923230E2B3",
}

PublicKeyLike = Union[Ed25519PublicKey, bytes, bytearray]


def _as_version(version: Union[Version, int]) -> Optional[Version]:
    try:
        return Version(version)
    except ValueError:
        return None


def _public_key_bytes(key: PublicKeyLike) -> bytes:
    if isinstance(key, Ed25519PublicKey):
        return key.public_bytes(Encoding.Raw, PublicFormat.Raw)
    return bytes(key)


def _check_subwallet(subwallet: int) -> int:
    if not 0 <= subwallet < 1 << 32:
        raise ValueError("subwallet must fit into 32 bits")
    return subwallet


@dataclass(frozen=True)
class StateInit:
    """Initial code and data of a contract, which together fix its address."""

    code: Optional[Cell] = None
    data: Optional[Cell] = None

    def to_cell(self) -> Cell:
        return (
            begin_cell()
            .store_bool_bit(False)  # split_depth
            .store_bool_bit(False)  # special
            .store_maybe_ref(self.code)
            .store_maybe_ref(self.data)
            .store_dict(None)  # library
            .end_cell()
        )

    def account_id(self) -> bytes:
        """The 32-byte account id in the base workchain: the hash of the state init cell."""
        return self.to_cell().hash()


@lru_cache(maxsize=None)
def _code_cell(version: Version) -> Cell:
    return from_boc(bytes.fromhex(_CODE_HEX[version]))


def wallet_code(version: Union[Version, int]) -> Cell:
    """The contract code cell of a wallet version."""
    known = _as_version(version)
    if known is None:
        raise WalletError("cannot get code: unknown version")
    try:
        return _code_cell(known)
    except (ValueError, CellError) as exc:
        raise WalletError(f"failed to convert code boc to cell: {exc}") from exc


def state_init_data(public_key: PublicKeyLike, version: Union[Version, int], subwallet: int) -> Cell:
    """The initial data cell of a fresh wallet of the given version."""
    key = _public_key_bytes(public_key)
    subwallet = _check_subwallet(subwallet)
    known = _as_version(version)

    if known is Version.V3:
        return (
            begin_cell()
            .store_uint(0, 32)  # seqno
            .store_uint(subwallet, 32)
            .store_slice(key, 256)
            .end_cell()
        )
    if known is Version.V4R2:
        return (
            begin_cell()
            .store_uint(0, 32)  # seqno
            .store_uint(subwallet, 32)
            .store_slice(key, 256)
            .store_dict(None)  # plugins
            .end_cell()
        )
    if known is Version.HIGHLOAD_V2R2:
        return (
            begin_cell()
            .store_uint(subwallet, 32)
            .store_uint(0, 64)  # last cleaned
            .store_slice(key, 256)
            .store_dict(None)  # old queries
            .end_cell()
        )
    raise WalletError("wallet version is not supported")


def get_state_init(public_key: PublicKeyLike, version: Union[Version, int], subwallet: int) -> StateInit:
    """Code and initial data of a wallet for ``public_key``."""
    code = wallet_code(version)
    return StateInit(code=code, data=state_init_data(public_key, version, subwallet))


def account_id_from_public_key(
    public_key: PublicKeyLike, version: Union[Version, int], subwallet: int
) -> bytes:
    """The account id of the wallet for ``public_key`` in the base workchain."""
    return get_state_init(public_key, version, subwallet).account_id()