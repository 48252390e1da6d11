"""Cryptographic hash utilities (keccak256, the hash used by the on-chain contract)."""

from typing import Union

from Crypto.Hash import keccak


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash of data.

    This is the pre-standard Keccak used by the EVM, not NIST SHA3-256.

    Args:
        data: Bytes or string to hash

    Returns:
        bytes: 32-byte digest
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return keccak.new(digest_bits=256, data=data).digest()


def hash_concatenate(*data: Union[bytes, str]) -> bytes:
    """
    Hash concatenated data.

    Args:
        *data: Multiple bytes or strings to concatenate and hash

    Returns:
        bytes: Keccak-256 hash of concatenated data
    """
    concatenated = b""
    for item in data:
        if isinstance(item, str):
            concatenated += item.encode('utf-8')
        else:
            concatenated += item
    return keccak256(concatenated)


def merkle_hash(left: bytes, right: bytes) -> bytes:
    """
    Compute Merkle tree hash of two siblings.

    Matches the contract's keccak256(abi.encodePacked(left, right)).

    Args:
        left: Left child hash (32 bytes)
        right: Right child hash (32 bytes)

    Returns:
        bytes: Parent hash (32 bytes)
    """
    if not isinstance(left, bytes) or len(left) != 32:
        raise ValueError("Left hash must be 32 bytes")
    if not isinstance(right, bytes) or len(right) != 32:
        raise ValueError("Right hash must be 32 bytes")

    return keccak256(left + right)


def hash_to_int(*data: Union[bytes, str]) -> int:
    """Hash concatenated data and read the digest as a big-endian integer."""
    return int.from_bytes(hash_concatenate(*data), byteorder='big')
