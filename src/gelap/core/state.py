"""Mutable state owned by one wallet instance."""

from dataclasses import dataclass, field
from typing import Optional, Set

from gelap.core.keys import WalletKeys
from gelap.core.merkle_tree import MerkleTree
from gelap.core.notes import NoteLedger


@dataclass
class WalletState:
    """
    Everything a wallet mutates: keys, notes, tree and the sync watermark.

    Passed explicitly to the components that read or change it.
    ``last_synced_block`` only ever moves forward. ``pending_commitments``
    holds confirmed deposit leaves not yet seen by a sync; it lives in
    memory only.
    """

    keys: Optional[WalletKeys] = None
    ledger: NoteLedger = field(default_factory=NoteLedger)
    tree: MerkleTree = field(default_factory=MerkleTree)
    last_synced_block: int = 0
    is_initialized: bool = False
    pending_commitments: Set[bytes] = field(default_factory=set)

    def advance_watermark(self, block: int) -> None:
        self.last_synced_block = max(self.last_synced_block, block)
