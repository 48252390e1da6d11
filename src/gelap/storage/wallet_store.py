"""Typed wallet persistence over an opaque string key-value store."""

import logging
from typing import Optional

from gelap.core.collaborators import KeyValueStore
from gelap.core.keys import KeyDerivation, WalletKeys
from gelap.core.merkle_tree import MerkleTree
from gelap.core.notes import NoteLedger
from gelap.core.state import WalletState
from gelap.exceptions import DeserializationError

logger = logging.getLogger(__name__)


class WalletStorage:
    """
    Save and load wallet state under fixed namespaced keys.

    Saves never raise: a failed write is logged and the in-memory state
    stays ahead of the durable copy. Loads return None for absent entries
    and raise ``DeserializationError`` for malformed ones.
    """

    def __init__(self, store: KeyValueStore, namespace: str = "gelap"):
        self.store = store
        self.namespace = namespace

    @property
    def keys_key(self) -> str:
        return f"{self.namespace}_wallet_keys"

    @property
    def notes_key(self) -> str:
        return f"{self.namespace}_notes"

    @property
    def tree_key(self) -> str:
        return f"{self.namespace}_merkle_tree"

    @property
    def watermark_key(self) -> str:
        return f"{self.namespace}_last_synced_block"

    def _write(self, key: str, value: str) -> bool:
        try:
            self.store.set(key, value)
            return True
        except Exception as e:
            logger.error(f"Failed to persist {key}: {e}", exc_info=True)
            return False

    def save_keys(self, keys: WalletKeys) -> bool:
        return self._write(self.keys_key, KeyDerivation.serialize_keys(keys))

    def load_keys(self) -> Optional[WalletKeys]:
        raw = self.store.get(self.keys_key)
        return KeyDerivation.deserialize_keys(raw) if raw else None

    def save_notes(self, ledger: NoteLedger) -> bool:
        return self._write(self.notes_key, ledger.serialize())

    def load_notes(self) -> Optional[NoteLedger]:
        raw = self.store.get(self.notes_key)
        return NoteLedger.deserialize(raw) if raw else None

    def save_tree(self, tree: MerkleTree) -> bool:
        return self._write(self.tree_key, tree.serialize())

    def load_tree(self) -> Optional[MerkleTree]:
        raw = self.store.get(self.tree_key)
        return MerkleTree.deserialize(raw) if raw else None

    def save_last_synced_block(self, block: int) -> bool:
        return self._write(self.watermark_key, str(block))

    def load_last_synced_block(self) -> Optional[int]:
        raw = self.store.get(self.watermark_key)
        if not raw:
            return None
        try:
            block = int(raw)
        except ValueError:
            raise DeserializationError(f"Invalid watermark: {raw!r}")
        if block < 0:
            raise DeserializationError(f"Invalid watermark: {raw!r}")
        return block

    def save_state(self, state: WalletState) -> bool:
        """Write notes, tree and watermark. True only if every write succeeded."""
        results = [
            self.save_notes(state.ledger),
            self.save_tree(state.tree),
            self.save_last_synced_block(state.last_synced_block),
        ]
        return all(results)

    def load_state_into(self, state: WalletState) -> None:
        """
        Replace notes, tree and watermark of state with the persisted copies.

        Entries that are absent or malformed are logged and left at their
        current value.
        """
        for name, loader in (
            ("notes", self.load_notes),
            ("tree", self.load_tree),
            ("last_synced_block", self.load_last_synced_block),
        ):
            try:
                value = loader()
            except DeserializationError as e:
                logger.error(f"Ignoring persisted {name}: {e}")
                continue
            if value is None:
                continue
            if name == "notes":
                state.ledger = value
            elif name == "tree":
                state.tree = value
            else:
                state.last_synced_block = value

    def clear(self) -> None:
        for key in (self.keys_key, self.notes_key, self.tree_key, self.watermark_key):
            self.store.remove(key)
        logger.info(f"Cleared wallet storage for namespace {self.namespace}")
