"""Append-only Merkle accumulator mirroring the on-chain commitment tree."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from gelap.exceptions import (
    TreeHeightExceededError,
    InvalidLeafIndexError,
    DeserializationError,
)
from gelap.models.schemas import MerkleTreeRecord
from gelap.utils.hash import keccak256, merkle_hash
from gelap.utils.encoding import bytes_to_hex, ensure_bytes

logger = logging.getLogger(__name__)

LEAF_SIZE = 32


def compute_zero_hashes(depth: int) -> List[bytes]:
    """
    Roots of empty subtrees, one per level.

    zero[0] = keccak256(32 zero bytes), zero[i] = H(zero[i-1], zero[i-1]).
    The list has depth + 1 entries; the last one is the root of an empty tree.
    """
    zeros = [keccak256(b"\x00" * LEAF_SIZE)]
    for _ in range(depth):
        zeros.append(merkle_hash(zeros[-1], zeros[-1]))
    return zeros


def verify_merkle_path(
    leaf: bytes,
    path_elements: Sequence[bytes],
    path_indices: Sequence[int],
    root: bytes,
) -> bool:
    """
    Recompute the root from a leaf and its path and compare it to root.

    A path index of 0 means the tracked node is the left child at that level.
    """
    try:
        if len(path_elements) != len(path_indices):
            return False
        current = leaf
        for sibling, bit in zip(path_elements, path_indices):
            if bit == 0:
                current = merkle_hash(current, sibling)
            elif bit == 1:
                current = merkle_hash(sibling, current)
            else:
                return False
        return current == root
    except (ValueError, TypeError):
        return False


@dataclass(frozen=True)
class MerkleProof:
    """Inclusion proof for one leaf."""

    leaf: bytes
    leaf_index: int
    path_elements: List[bytes]
    path_indices: List[int]
    root: bytes

    def compute_root(self) -> bytes:
        current = self.leaf
        for sibling, bit in zip(self.path_elements, self.path_indices):
            current = merkle_hash(sibling, current) if bit else merkle_hash(current, sibling)
        return current

    def verify(self, root: Optional[bytes] = None) -> bool:
        """Check the proof against root, or against the root it was generated for."""
        return verify_merkle_path(
            self.leaf, self.path_elements, self.path_indices, self.root if root is None else root
        )


class MerkleTree:
    """
    Fixed-depth binary Merkle tree over 32-byte leaves.

    Hashing matches the contract: parent = keccak256(left || right), with the
    left child at the even index. Empty positions take the precomputed zero
    hash of their level.

    Nodes live in one growable array per level, addressed by (level, index).
    Only the populated prefix of each level is stored.
    """

    DEFAULT_DEPTH = 32

    def __init__(self, depth: int = DEFAULT_DEPTH):
        """
        Initialize an empty tree.

        Args:
            depth: Number of levels above the leaves (1..64)

        Raises:
            ValueError: If depth is out of range
        """
        if not isinstance(depth, int) or depth < 1 or depth > 64:
            raise ValueError("Tree depth must be between 1 and 64")

        self.depth = depth
        self.max_leaves = 2 ** depth
        self.zeros = compute_zero_hashes(depth)

        # levels[0] holds the leaves, levels[depth] the root
        self.levels: List[List[bytes]] = [[] for _ in range(depth + 1)]
        self._index_of: Dict[bytes, int] = {}
        self._root = self.zeros[depth]

    @property
    def root(self) -> bytes:
        """Current Merkle root."""
        return self._root

    @property
    def next_leaf_index(self) -> int:
        return len(self.levels[0])

    @property
    def leaves(self) -> List[bytes]:
        return list(self.levels[0])

    def node(self, level: int, index: int) -> bytes:
        """Node at (level, index), or the level's zero hash if not populated."""
        nodes = self.levels[level]
        return nodes[index] if index < len(nodes) else self.zeros[level]

    def insert_leaf(self, leaf: bytes) -> int:
        """
        Append a leaf and update the path to the root.

        Returns:
            int: Index of the inserted leaf

        Raises:
            ValueError: If leaf is not 32 bytes
            TreeHeightExceededError: If the tree is full
        """
        if not isinstance(leaf, bytes) or len(leaf) != LEAF_SIZE:
            raise ValueError("Leaf must be 32 bytes")

        leaf_index = self.next_leaf_index
        if leaf_index >= self.max_leaves:
            raise TreeHeightExceededError(f"Tree is full (max {self.max_leaves} leaves)")

        self.levels[0].append(leaf)
        self._index_of.setdefault(leaf, leaf_index)

        current = leaf
        position = leaf_index
        for level in range(self.depth):
            if position % 2 == 0:
                current = merkle_hash(current, self.node(level, position + 1))
            else:
                current = merkle_hash(self.node(level, position - 1), current)
            position >>= 1

            parents = self.levels[level + 1]
            if position < len(parents):
                parents[position] = current
            else:
                parents.append(current)

        self._root = current
        return leaf_index

    def generate_proof(self, leaf_index: int) -> MerkleProof:
        """
        Build the inclusion proof of the leaf at leaf_index.

        Raises:
            InvalidLeafIndexError: If no leaf exists at that index
        """
        if not isinstance(leaf_index, int) or leaf_index < 0 or leaf_index >= self.next_leaf_index:
            raise InvalidLeafIndexError(f"Invalid leaf index: {leaf_index}")

        path_elements = []
        path_indices = []
        position = leaf_index
        for level in range(self.depth):
            path_elements.append(self.node(level, position ^ 1))
            path_indices.append(position & 1)
            position >>= 1

        return MerkleProof(
            leaf=self.levels[0][leaf_index],
            leaf_index=leaf_index,
            path_elements=path_elements,
            path_indices=path_indices,
            root=self._root,
        )

    def find_leaf_index(self, leaf) -> Optional[int]:
        """Index of the first occurrence of leaf, or None."""
        try:
            key = ensure_bytes(leaf, LEAF_SIZE)
        except (ValueError, TypeError):
            return None
        return self._index_of.get(key)

    def copy(self) -> "MerkleTree":
        """Independent copy, used to stage changes before committing them."""
        clone = MerkleTree.__new__(MerkleTree)
        clone.depth = self.depth
        clone.max_leaves = self.max_leaves
        clone.zeros = self.zeros
        clone.levels = [list(nodes) for nodes in self.levels]
        clone._index_of = dict(self._index_of)
        clone._root = self._root
        return clone

    def serialize(self) -> str:
        """JSON of depth and leaves; inner nodes are recomputed on load."""
        return MerkleTreeRecord(
            depth=self.depth,
            leaves=[bytes_to_hex(leaf) for leaf in self.levels[0]],
        ).model_dump_json()

    @classmethod
    def deserialize(cls, serialized: str) -> "MerkleTree":
        """
        Rebuild a tree by re-inserting the serialized leaves.

        Raises:
            DeserializationError: If the data is malformed
        """
        try:
            record = MerkleTreeRecord.model_validate_json(serialized)
        except ValidationError as e:
            raise DeserializationError(f"Invalid serialized tree: {e}")

        tree = cls(record.depth)
        for leaf in record.leaves:
            tree.insert_leaf(ensure_bytes(leaf, LEAF_SIZE))
        logger.debug(f"Restored Merkle tree with {len(tree)} leaves")
        return tree

    def __len__(self) -> int:
        return self.next_leaf_index

    def __repr__(self) -> str:
        return f"MerkleTree(depth={self.depth}, leaves={len(self)}, root={self._root.hex()[:16]}...)"
