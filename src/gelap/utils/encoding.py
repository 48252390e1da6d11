"""Encoding and decoding utilities."""

from typing import Union


def bytes_to_hex(data: bytes) -> str:
    """
    Convert bytes to hexadecimal string.

    Args:
        data: Bytes to convert

    Returns:
        str: Lowercase hexadecimal string with '0x' prefix
    """
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """
    Convert hexadecimal string to bytes.

    Args:
        hex_str: Hexadecimal string (with or without '0x' prefix, any case)

    Returns:
        bytes: Decoded bytes

    Raises:
        ValueError: If hex string is invalid
    """
    if hex_str[:2] in ("0x", "0X"):
        hex_str = hex_str[2:]

    if len(hex_str) % 2 != 0:
        raise ValueError("Hex string must have even number of characters")

    return bytes.fromhex(hex_str)


def ensure_bytes(data: Union[bytes, str], length: int = None) -> bytes:
    """
    Coerce a hex string or raw bytes to bytes, optionally checking the length.

    Hex input is accepted in any letter case, so comparisons done on the
    result are canonical.

    Raises:
        ValueError: If the hex is malformed or the length does not match
        TypeError: If data is neither bytes nor str
    """
    if isinstance(data, (bytes, bytearray)):
        raw = bytes(data)
    elif isinstance(data, str):
        raw = hex_to_bytes(data)
    else:
        raise TypeError(f"Expected bytes or str, got {type(data)}")

    if length is not None and len(raw) != length:
        raise ValueError(f"Expected {length} bytes, got {len(raw)}")
    return raw


def int_to_bytes32(value: int) -> bytes:
    """Encode a non-negative integer as 32 big-endian bytes."""
    return value.to_bytes(32, byteorder='big')


def bytes_to_int(data: bytes) -> int:
    """Decode big-endian bytes to an integer."""
    return int.from_bytes(data, byteorder='big')


def normalize_address(address: str) -> str:
    """
    Canonical form of a 20-byte account or token address: lowercase, '0x' prefixed.

    Raises:
        ValueError: If address is not 20 bytes of hex
    """
    return bytes_to_hex(ensure_bytes(address, 20))
