"""Minimal ABI helpers for ERC-20 / ERC-721 reads and Transfer logs.

Calls are built from 4-byte selectors and hand-padded arguments, and
return data is decoded at the boundary into Python values. Malformed
return data raises `AbiDecodeError` so callers can fall back per item.
"""

from __future__ import annotations

import re
from typing import Any

# Transfer(address,address,uint256): shared by ERC-20 and ERC-721.
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

BALANCE_OF_SELECTOR = "0x70a08231"
DECIMALS_SELECTOR = "0x313ce567"
SYMBOL_SELECTOR = "0x95d89b41"
NAME_SELECTOR = "0x06fdde03"
TOKEN_URI_SELECTOR = "0xc87b56dd"
SUPPORTS_INTERFACE_SELECTOR = "0x01ffc9a7"

ERC721_INTERFACE_ID = "0x80ac58cd"
ERC1155_INTERFACE_ID = "0xd9b67a26"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7e]")

# Payloads up to one word pair are treated as bytes32-style strings.
_SIMPLE_STRING_MAX_HEX = 128


class AbiDecodeError(ValueError):
    """Raised when contract return data cannot be decoded."""


def is_address(value: str) -> bool:
    return bool(_ADDRESS_RE.match(value))


def to_hex(value: Any) -> str:
    """Normalize HexBytes, bytes or hex strings into a lower-case 0x string."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        hexed = value.lower()
        return hexed if hexed.startswith("0x") else "0x" + hexed
    hex_method = getattr(value, "hex", None)
    if callable(hex_method):
        return to_hex(hex_method())
    raise AbiDecodeError(f"Cannot convert {type(value).__name__} to hex")


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def pad_address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte log topic."""
    return "0x" + _strip_0x(address.lower()).zfill(64)


def topic_to_address(topic: Any) -> str:
    hexed = _strip_0x(to_hex(topic))
    if len(hexed) < 40:
        raise AbiDecodeError(f"Topic too short for an address: {topic!r}")
    return "0x" + hexed[-40:]


def topic_to_int(topic: Any) -> int:
    hexed = _strip_0x(to_hex(topic))
    if not hexed:
        raise AbiDecodeError("Empty topic")
    return int(hexed, 16)


def encode_address_arg(address: str) -> str:
    return _strip_0x(address.lower()).zfill(64)


def encode_uint_arg(value: int) -> str:
    if value < 0:
        raise ValueError("uint arguments must be non-negative")
    return format(value, "x").zfill(64)


def balance_of_call(owner: str) -> str:
    return BALANCE_OF_SELECTOR + encode_address_arg(owner)


def token_uri_call(token_id: int) -> str:
    return TOKEN_URI_SELECTOR + encode_uint_arg(token_id)


def supports_interface_call(interface_id: str) -> str:
    # bytes4 arguments are right-padded.
    return SUPPORTS_INTERFACE_SELECTOR + _strip_0x(interface_id).ljust(64, "0")


def decode_uint(data: Any) -> int:
    """Decode a single 32-byte big-endian word.

    Raises:
        AbiDecodeError: If the payload is empty or not hex.
    """
    hexed = _strip_0x(to_hex(data))
    if not hexed:
        raise AbiDecodeError("Empty return data")
    try:
        return int(hexed[:64], 16)
    except ValueError as e:
        raise AbiDecodeError(f"Invalid uint return data: {e}") from e


def decode_bool(data: Any) -> bool:
    return decode_uint(data) != 0


def decode_string(data: Any) -> str:
    """Decode an ERC-20 style string return value.

    Short payloads are treated as right-padded bytes32 strings; longer ones
    are dynamic ABI strings laid out as ``(offset, length, bytes)``. Null and
    non-printable characters are stripped in both cases.

    Raises:
        AbiDecodeError: If the payload is empty, malformed, or decodes to an
            empty string.
    """
    hexed = _strip_0x(to_hex(data))
    if not hexed:
        raise AbiDecodeError("Empty return data")

    try:
        if len(hexed) > _SIMPLE_STRING_MAX_HEX:
            offset = int(hexed[0:64], 16) * 2
            length = int(hexed[offset : offset + 64], 16) * 2
            start = offset + 64
            if start + length > len(hexed):
                raise AbiDecodeError("String length exceeds return data")
            raw = bytes.fromhex(hexed[start : start + length])
        else:
            raw = bytes.fromhex(hexed)
    except ValueError as e:
        raise AbiDecodeError(f"Invalid string return data: {e}") from e

    text = _NON_PRINTABLE_RE.sub("", raw.decode("utf-8", errors="ignore")).strip()
    if not text:
        raise AbiDecodeError("String return data decoded to an empty value")
    return text
