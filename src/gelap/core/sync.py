"""Reconcile local wallet state with the chain."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from gelap.core.collaborators import ChainClient, CommitmentEvent, settle
from gelap.core.commitment import CommitmentEngine
from gelap.core.keys import WalletKeys
from gelap.core.memo import NoteMemo
from gelap.core.notes import Note, NoteLedger
from gelap.core.state import WalletState
from gelap.crypto.nullifier import compute_nullifier
from gelap.exceptions import SyncFailure, MerkleTreeError, InvalidCommitmentError
from gelap.utils.encoding import ensure_bytes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncReport:
    """Outcome of one sync attempt. Failures are reported here, never raised."""

    ok: bool
    error: Optional[str] = None
    skipped: bool = False
    events_applied: int = 0
    notes_discovered: int = 0
    notes_spent: int = 0
    last_synced_block: int = 0


class SyncCoordinator:
    """
    Pull new commitments and spent nullifiers from the chain into a wallet.

    A sync runs in three phases:
        1. fetch commitment events since the watermark and stage them on
           copies of the tree and ledger, discovering notes from their memos
        2. ask the chain which staged unspent notes have been nullified
        3. mark those spent and swap the copies in

    All chain calls happen before anything is applied, so a failed call
    leaves the state exactly as it was and the attempt can simply be retried.
    """

    def __init__(self, chain: ChainClient):
        self.chain = chain

    async def sync(self, state: WalletState, force: bool = False) -> SyncReport:
        """
        Run one sync attempt against state.

        An empty wallet at watermark 0 with no pending deposits has nothing
        to reconcile and is skipped without contacting the chain unless
        force is set.
        """
        if state.keys is None:
            return SyncReport(ok=False, error="Wallet keys are not loaded")

        idle = not state.ledger.notes and not state.pending_commitments and state.last_synced_block == 0
        if not force and idle:
            logger.info("Nothing to reconcile yet, skipping sync")
            return SyncReport(ok=True, skipped=True, last_synced_block=state.last_synced_block)

        try:
            return await self._sync(state)
        except SyncFailure as e:
            logger.error(f"Sync failed, state left untouched: {e}", exc_info=True)
            return SyncReport(ok=False, error=str(e), last_synced_block=state.last_synced_block)

    async def _sync(self, state: WalletState) -> SyncReport:
        events = await self._fetch_events(state.last_synced_block)

        tree = state.tree.copy()
        ledger = state.ledger.copy()
        applied = 0
        discovered = 0

        for event in events:
            try:
                leaf = ensure_bytes(event.commitment, 32)
            except (ValueError, TypeError) as e:
                raise SyncFailure(f"Malformed commitment in block {event.block_number}: {e}")

            if tree.find_leaf_index(leaf) is not None:
                continue
            try:
                leaf_index = tree.insert_leaf(leaf)
            except MerkleTreeError as e:
                raise SyncFailure(f"Cannot append commitment: {e}")
            applied += 1

            note = self.discover_note(state.keys, event, leaf, leaf_index)
            if note is not None and ledger.find_by_commitment(leaf) is None:
                ledger.add(note)
                discovered += 1

        # Covers notes discovered in this pass
        spent_nullifiers = await self._fetch_spent_nullifiers(ledger)
        spent = ledger.mark_spent(spent_nullifiers)

        state.tree = tree
        state.ledger = ledger
        state.pending_commitments = {
            leaf for leaf in state.pending_commitments if tree.find_leaf_index(leaf) is None
        }
        if events:
            state.advance_watermark(events[-1].block_number + 1)

        logger.info(
            f"Sync applied {applied} commitments, discovered {discovered} notes, "
            f"marked {spent} spent, watermark {state.last_synced_block}"
        )
        return SyncReport(
            ok=True,
            events_applied=applied,
            notes_discovered=discovered,
            notes_spent=spent,
            last_synced_block=state.last_synced_block,
        )

    async def _fetch_events(self, from_block: int) -> List[CommitmentEvent]:
        result = await settle(self.chain.get_new_commitment_events(from_block))
        if not result.ok:
            raise SyncFailure(f"Fetching commitment events failed: {result.error}")
        return list(result.value or [])

    async def _fetch_spent_nullifiers(self, ledger: NoteLedger) -> List[bytes]:
        spent = []
        for note in ledger.unspent_notes():
            result = await settle(self.chain.is_nullifier_used(note.nullifier))
            if not result.ok:
                raise SyncFailure(f"Nullifier query failed: {result.error}")
            if result.value:
                spent.append(note.nullifier)
        return spent

    @staticmethod
    def discover_note(keys: WalletKeys, event: CommitmentEvent, leaf: bytes, leaf_index: int) -> Optional[Note]:
        """
        Build a note from an event whose memo is addressed to keys.

        The decrypted opening must reproduce the published leaf, otherwise
        the event is ignored.
        """
        opened = NoteMemo.open(event.memo, keys.view_private_key, keys.spend_public_key)
        if opened is None:
            return None

        try:
            matches = CommitmentEngine.leaf_for(opened.amount, opened.blinding) == leaf
        except InvalidCommitmentError:
            matches = False
        if not matches:
            logger.warning(f"Memo opening does not match commitment at leaf {leaf_index}")
            return None

        return Note(
            commitment=leaf,
            amount=opened.amount,
            blinding=opened.blinding,
            token=opened.token,
            leaf_index=leaf_index,
            nullifier=compute_nullifier(keys.spend_private_key, leaf_index, leaf),
            block_number=event.block_number,
        )
