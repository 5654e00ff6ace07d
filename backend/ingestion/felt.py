"""Helpers for Starknet field elements: addresses, selectors and hex encodings."""

from __future__ import annotations

import string

from web3 import Web3

FELT_BITS = 252
_SELECTOR_MASK = (1 << 250) - 1
_HEX_DIGITS = frozenset(string.hexdigits)


def parse_felt(value: str | int) -> int:
    """Return the integer behind a felt given as an int or a ``0x`` hex string."""

    if isinstance(value, bool):
        raise ValueError("Felt values cannot be booleans")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            text = text[2:]
        if not text or not _HEX_DIGITS.issuperset(text):
            raise ValueError(f"Invalid felt hex string: {value!r}")
        number = int(text, 16)
    else:
        raise ValueError(f"Unsupported felt value type: {type(value).__name__}")

    if number < 0 or number >= 1 << FELT_BITS:
        raise ValueError(f"Felt out of range: {value!r}")
    return number


def format_address(value: str | int) -> str:
    """Canonical stored form: ``0x`` followed by 64 zero-padded lowercase hex digits."""

    return f"0x{parse_felt(value):064x}"


def to_felt_hex(value: str | int) -> str:
    """Minimal hex form expected by Starknet JSON-RPC nodes (no leading zeros)."""

    return hex(parse_felt(value))


def get_selector_from_name(name: str) -> int:
    """Starknet keccak of an entry point or event name."""

    digest = Web3.keccak(text=name)
    return int.from_bytes(bytes(digest), "big") & _SELECTOR_MASK
