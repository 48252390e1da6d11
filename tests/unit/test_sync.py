"""Tests for the sync coordinator."""

import asyncio
import pytest

from gelap.core.collaborators import CallResult, CommitmentEvent
from gelap.core.commitment import CommitmentEngine
from gelap.core.memo import NoteMemo
from gelap.core.merkle_tree import MerkleTree
from gelap.core.state import WalletState
from gelap.core.stealth import StealthAddressEngine
from gelap.core.sync import SyncCoordinator
from gelap.crypto.nullifier import compute_nullifier
from gelap.utils.hash import keccak256


def deposit_for(chain, keys, token, amount):
    """Put a commitment with a memo for keys on the chain."""
    commitment = CommitmentEngine.create_commitment(amount)
    stealth, shared = StealthAddressEngine.generate_with_secret(keys.view_public_key, keys.spend_public_key)
    memo = NoteMemo.seal(shared, stealth, amount, commitment.blinding, token)
    asyncio.run(chain.submit_deposit(token, amount, commitment.leaf, memo))
    return commitment


class RaisingChain:
    """Chain whose calls raise instead of returning a result."""

    async def get_new_commitment_events(self, from_block):
        raise ConnectionError("node unreachable")

    async def is_nullifier_used(self, nullifier):
        raise ConnectionError("node unreachable")


@pytest.fixture
def state(alice_keys, settings):
    return WalletState(keys=alice_keys, tree=MerkleTree(settings.merkle_tree_depth), is_initialized=True)


class TestSyncCoordinator:

    def test_empty_wallet_short_circuits(self, state, chain):
        chain.fail_event_queries = True
        report = asyncio.run(SyncCoordinator(chain).sync(state))
        assert report.ok
        assert report.skipped

    def test_discovers_own_notes(self, state, chain, alice_keys, bob_keys, token):
        mine = deposit_for(chain, alice_keys, token, 30)
        deposit_for(chain, bob_keys, token, 99)

        report = asyncio.run(SyncCoordinator(chain).sync(state, force=True))

        assert report.ok
        assert report.events_applied == 2
        assert report.notes_discovered == 1
        assert state.tree.root == chain.tree.root
        assert state.last_synced_block == chain.block_number + 1
        [note] = state.ledger.notes
        assert note.amount == 30
        assert note.commitment == mine.leaf
        assert note.leaf_index == 0
        assert not note.spent

    def test_second_sync_is_incremental(self, state, chain, alice_keys, token):
        deposit_for(chain, alice_keys, token, 1)
        coordinator = SyncCoordinator(chain)
        asyncio.run(coordinator.sync(state, force=True))
        deposit_for(chain, alice_keys, token, 2)
        report = asyncio.run(coordinator.sync(state))
        assert report.events_applied == 1
        assert [n.amount for n in state.ledger.notes] == [1, 2]
        assert state.tree.root == chain.tree.root

    def test_duplicate_events_are_skipped(self, state, chain, alice_keys, token):
        deposit_for(chain, alice_keys, token, 5)
        coordinator = SyncCoordinator(chain)
        asyncio.run(coordinator.sync(state, force=True))
        state.last_synced_block = 0
        report = asyncio.run(coordinator.sync(state))
        assert report.events_applied == 0
        assert len(state.ledger.notes) == 1
        assert len(state.tree) == 1

    def test_marks_spent_nullifiers(self, state, chain, alice_keys, token):
        deposit_for(chain, alice_keys, token, 5)
        coordinator = SyncCoordinator(chain)
        asyncio.run(coordinator.sync(state, force=True))
        chain.nullifiers.add(state.ledger.notes[0].nullifier)
        report = asyncio.run(coordinator.sync(state))
        assert report.notes_spent == 1
        assert state.ledger.notes[0].spent

    def test_discovered_note_already_spent(self, state, chain, alice_keys, token):
        mine = deposit_for(chain, alice_keys, token, 5)
        chain.nullifiers.add(compute_nullifier(alice_keys.spend_private_key, 0, mine.leaf))

        report = asyncio.run(SyncCoordinator(chain).sync(state, force=True))

        assert report.notes_discovered == 1
        assert report.notes_spent == 1
        [note] = state.ledger.notes
        assert note.spent
        assert state.ledger.shielded_balance() == 0

    def test_pending_deposit_prevents_short_circuit(self, state, chain, alice_keys, token):
        mine = deposit_for(chain, alice_keys, token, 5)
        state.pending_commitments.add(mine.leaf)

        report = asyncio.run(SyncCoordinator(chain).sync(state))

        assert not report.skipped
        assert report.notes_discovered == 1
        assert state.pending_commitments == set()

    @pytest.mark.parametrize("switch", ["fail_event_queries", "fail_nullifier_queries"])
    def test_failure_leaves_state_untouched(self, state, chain, alice_keys, token, switch):
        deposit_for(chain, alice_keys, token, 5)
        coordinator = SyncCoordinator(chain)
        asyncio.run(coordinator.sync(state, force=True))
        root, notes, watermark = state.tree.root, list(state.ledger.notes), state.last_synced_block

        deposit_for(chain, alice_keys, token, 6)
        chain.nullifiers.add(notes[0].nullifier)
        setattr(chain, switch, True)
        report = asyncio.run(coordinator.sync(state))

        assert not report.ok
        assert report.error
        assert state.tree.root == root
        assert state.ledger.notes == notes
        assert state.last_synced_block == watermark

        setattr(chain, switch, False)
        assert asyncio.run(coordinator.sync(state)).ok
        assert len(state.ledger.notes) == 2
        assert state.ledger.notes[0].spent

    def test_raising_chain_is_reported(self, state):
        report = asyncio.run(SyncCoordinator(RaisingChain()).sync(state, force=True))
        assert not report.ok
        assert "node unreachable" in report.error

    def test_malformed_event_aborts(self, state):
        class BadChain:
            async def get_new_commitment_events(self, from_block):
                return CallResult.success([
                    CommitmentEvent(commitment=keccak256(b"ok"), block_number=1),
                    CommitmentEvent(commitment=b"short", block_number=2),
                ])

            async def is_nullifier_used(self, nullifier):
                return CallResult.success(False)

        report = asyncio.run(SyncCoordinator(BadChain()).sync(state, force=True))
        assert not report.ok
        assert len(state.tree) == 0

    def test_memo_with_wrong_opening_is_ignored(self, state, alice_keys, token):
        stealth, shared = StealthAddressEngine.generate_with_secret(
            alice_keys.view_public_key, alice_keys.spend_public_key
        )
        memo = NoteMemo.seal(shared, stealth, 10, 12345, token)
        event = CommitmentEvent(commitment=keccak256(b"unrelated"), block_number=1, memo=memo)
        assert SyncCoordinator.discover_note(alice_keys, event, event.commitment, 0) is None

    def test_missing_keys(self):
        report = asyncio.run(SyncCoordinator(RaisingChain()).sync(WalletState()))
        assert not report.ok
