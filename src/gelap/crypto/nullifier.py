"""Nullifier derivation.

A nullifier is the public tag published when a note is spent. The contract
rejects a nullifier it has seen before, which is what prevents double spends.

Derivation:
    nf = keccak256(spend_private_key || leaf_index || commitment)

with every field fixed at 32 bytes (leaf index big-endian). The value is a
pure function of the wallet's spend key and the note's position and leaf,
so a wallet can always recompute the nullifiers of its own notes, and two
distinct notes never share one.
"""

from typing import Union

from gelap.exceptions import InvalidCommitmentError
from gelap.utils.hash import hash_concatenate
from gelap.utils.encoding import ensure_bytes, int_to_bytes32

NULLIFIER_SIZE = 32


def compute_nullifier(
    spend_private_key: Union[bytes, int],
    leaf_index: int,
    commitment: Union[bytes, str],
) -> bytes:
    """
    Compute the nullifier of a note.

    Args:
        spend_private_key: Wallet spend scalar (32 bytes or int)
        leaf_index: Position of the note's commitment in the Merkle tree
        commitment: The 32-byte on-chain commitment (leaf)

    Returns:
        bytes: 32-byte nullifier
    """
    if isinstance(spend_private_key, int):
        spend_private_key = int_to_bytes32(spend_private_key)
    if len(spend_private_key) != 32:
        raise ValueError("Spend private key must be 32 bytes")
    if leaf_index < 0:
        raise ValueError(f"Invalid leaf index: {leaf_index}")
    try:
        leaf = ensure_bytes(commitment, 32)
    except (ValueError, TypeError) as e:
        raise InvalidCommitmentError(f"Commitment must be 32 bytes: {e}")

    return hash_concatenate(spend_private_key, int_to_bytes32(leaf_index), leaf)
