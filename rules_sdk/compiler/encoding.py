"""
ABI and hashing helpers.

Literal text that is not numeric is carried in the instruction stream as a
uint256 surrogate: keccak256 of the ABI encoding of the text. The original
text travels alongside in the raw-data table so the decompiler can restore
it. Event parameters are ABI-encoded with the type sniffed from their text.
"""

import re

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, is_address, keccak, to_checksum_address

from rules_sdk.domain.enums import RawDataKind, ValueType

UINT256_MAX = 2**256 - 1

_DECIMAL_RE = re.compile(r"^[0-9]+$")
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]+$")

# "0x" plus 64 hex digits is the widest value that fits in one word
MAX_NUMERIC_HEX_LENGTH = 66


def is_decimal(token: str) -> bool:
    return bool(_DECIMAL_RE.match(token))


def is_hex(token: str) -> bool:
    return bool(_HEX_RE.match(token))


def is_numeric_hex(token: str) -> bool:
    """Hex literals up to one word wide (addresses included) are numbers."""
    return is_hex(token) and len(token) <= MAX_NUMERIC_HEX_LENGTH


def encode_text(text: str, kind: RawDataKind = RawDataKind.STRING) -> bytes:
    """ABI-encode literal text as a single ``string`` or ``bytes`` parameter."""
    if kind == RawDataKind.BYTES:
        return encode(["bytes"], [bytes.fromhex(text[2:])])
    return encode(["string"], [text])


def decode_text(encoded: bytes, kind: RawDataKind = RawDataKind.STRING) -> str:
    """Inverse of :func:`encode_text`."""
    if kind == RawDataKind.BYTES:
        (value,) = decode(["bytes"], encoded)
        return "0x" + value.hex()
    (value,) = decode(["string"], encoded)
    return value


def text_surrogate(text: str, kind: RawDataKind = RawDataKind.STRING) -> int:
    """
    Compute the uint256 stand-in for a text literal.

    Example:
        >>> text_surrogate("test") == int.from_bytes(keccak(encode(["string"], ["test"])), "big")
        True
    """
    return int.from_bytes(keccak(encode_text(text, kind)), "big")


def encode_event_param(value: str) -> tuple[ValueType, str | int, bytes]:
    """
    Sniff and encode an event parameter.

    Returns:
        Tuple of (value type, normalized value, ABI-encoded bytes). Valid
        addresses are checksummed, integers parsed, anything else is a string.
    """
    if value.startswith("0x") and is_address(value):
        address = to_checksum_address(value)
        return ValueType.ADDRESS, address, encode(["address"], [address])
    if is_decimal(value):
        number = int(value)
        if number <= UINT256_MAX:
            return ValueType.UINT256, number, encode(["uint256"], [number])
    return ValueType.STRING, value, encode(["string"], [value])


def decode_event_param(param_type: ValueType, encoded: bytes) -> str | int | None:
    if param_type == ValueType.VOID or not encoded:
        return None
    if param_type == ValueType.ADDRESS:
        (address,) = decode(["address"], encoded)
        return to_checksum_address(address)
    if param_type == ValueType.UINT256:
        (number,) = decode(["uint256"], encoded)
        return number
    (text,) = decode(["string"], encoded)
    return text


def function_selector(signature: str) -> str:
    """4-byte selector of a function signature such as ``transfer(address,uint256)``."""
    return "0x" + function_signature_to_4byte_selector(signature.replace(" ", "")).hex()


def hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)
