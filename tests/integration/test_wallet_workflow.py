"""Integration tests for the wallet against the local devnet."""

import asyncio
import pytest

from gelap.core.commitment import CommitmentEngine
from gelap.core.keys import NoncePolicy
from gelap.core.wallet import PrivacyWallet, TransferOutput
from gelap.crypto.nullifier import compute_nullifier
from gelap.devnet import LocalSigner
from gelap.exceptions import (
    ChainError,
    DepositPendingError,
    InitializationError,
    InsufficientBalanceError,
    ProverError,
    StorageError,
)
from gelap.storage import DatabaseManager, MemoryKeyValueStore, SQLKeyValueStore

RECEIVER = "0x" + "ab" * 20


class ReadOnlyStore(MemoryKeyValueStore):
    """Store whose writes always fail."""

    def set(self, key, value):
        raise StorageError("read-only")


@pytest.fixture
def make_wallet(chain, prover, settings):
    def _make(store=None):
        return PrivacyWallet(chain, prover, store if store is not None else MemoryKeyValueStore(), settings)
    return _make


async def _ready(wallet, name=b"alice"):
    await wallet.initialize(LocalSigner(name), NoncePolicy.FIXED)
    return wallet


class TestLifecycle:
    """Tests for initialization and persistence."""

    def test_initialize(self, make_wallet, alice_keys):
        wallet = make_wallet()
        assert not wallet.is_initialized
        keys = asyncio.run(wallet.initialize(LocalSigner(b"alice"), NoncePolicy.FIXED))
        assert wallet.is_initialized
        assert keys == alice_keys
        assert wallet.address == alice_keys.address
        assert wallet.public_keys.spend_public_key == alice_keys.spend_public_key
        assert wallet.shielded_balance() == 0

    def test_use_before_initialize(self, make_wallet, token):
        wallet = make_wallet()
        with pytest.raises(InitializationError):
            wallet.keys
        with pytest.raises(InitializationError):
            asyncio.run(wallet.deposit(token, 10))

    def test_signer_without_address(self, make_wallet):
        with pytest.raises(InitializationError):
            asyncio.run(make_wallet().initialize(LocalSigner(b"x", address="")))

    def test_rehydrate_from_sql_store(self, make_wallet, token, tmp_path):
        db = DatabaseManager(f"sqlite:///{tmp_path / 'wallet.db'}")
        db.create_tables()

        async def scenario():
            first = make_wallet(SQLKeyValueStore(db))
            await first.initialize(LocalSigner(b"alice"))
            await first.deposit(token, 100)

            second = make_wallet(SQLKeyValueStore(db))
            # Timestamp nonces would give new keys; the persisted ones must win
            keys = await second.initialize(LocalSigner(b"alice"))
            return first, second, keys

        first, second, keys = asyncio.run(scenario())
        assert keys == first.keys
        assert second.shielded_balance() == 100
        assert second.merkle_root == first.merkle_root
        assert second.last_synced_block == first.last_synced_block

    def test_other_address_gets_fresh_state(self, make_wallet, token):
        store = MemoryKeyValueStore()

        async def scenario():
            await (await _ready(make_wallet(store))).deposit(token, 100)
            first = await _ready(make_wallet(store), b"bob")
            restarted = await _ready(make_wallet(store), b"bob")
            return first, restarted

        first, restarted = asyncio.run(scenario())
        for bob in (first, restarted):
            assert bob.shielded_balance() == 0
            assert bob.unspent_notes() == []
            assert bob.last_synced_block == 0
        assert restarted.keys == first.keys
        assert len(restarted.state.tree) == 0

    def test_clear_storage(self, make_wallet, token):
        store = MemoryKeyValueStore()
        wallet = make_wallet(store)

        async def scenario():
            await _ready(wallet)
            await wallet.deposit(token, 5)
            await wallet.clear_storage()

        asyncio.run(scenario())
        assert len(store) == 0
        assert not wallet.is_initialized

    def test_persistence_failure_keeps_memory(self, make_wallet, token):
        wallet = make_wallet(ReadOnlyStore())

        async def scenario():
            await _ready(wallet)
            return await wallet.deposit(token, 10)

        note = asyncio.run(scenario())
        assert wallet.unspent_notes() == [note]


class TestDeposit:
    """Tests for the deposit transition."""

    def test_deposit_creates_note(self, make_wallet, chain, token, alice_keys):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            return await wallet.deposit(token, 100)

        note = asyncio.run(scenario())
        assert note.amount == 100
        assert not note.spent
        assert note.leaf_index == 0
        assert note.token == token
        assert note.commitment == CommitmentEngine.leaf_for(100, note.blinding)
        assert note.nullifier == compute_nullifier(alice_keys.spend_private_key, 0, note.commitment)
        assert wallet.shielded_balance() == 100
        assert wallet.merkle_root == chain.tree.root
        assert wallet.generate_merkle_proof(0).verify(chain.tree.root)

    def test_deposit_lands_at_chain_index(self, make_wallet, chain, token):
        """Leaves already on chain are picked up before the deposit is recorded."""
        alice, bob = make_wallet(), make_wallet()

        async def scenario():
            await _ready(bob, b"bob")
            await bob.deposit(token, 7)
            await _ready(alice)
            return await alice.deposit(token, 3)

        note = asyncio.run(scenario())
        assert note.leaf_index == 1
        assert alice.merkle_root == chain.tree.root
        assert alice.shielded_balance() == 3

    def test_deposit_without_event_feed(self, make_wallet, chain, token):
        """A confirmed deposit stays pending until a sync sees it at its chain index."""
        alice, bob = make_wallet(), make_wallet()

        async def scenario():
            await _ready(bob, b"bob")
            await bob.deposit(token, 7)
            await _ready(alice)
            chain.fail_event_queries = True
            with pytest.raises(DepositPendingError) as info:
                await alice.deposit(token, 3)
            pending = (alice.shielded_balance(), len(alice.state.tree), info.value)
            chain.fail_event_queries = False
            report = await alice.sync()
            return pending, report

        (balance, tree_size, error), report = asyncio.run(scenario())
        assert isinstance(error, ChainError)
        assert error.block_number == chain.block_number
        assert (balance, tree_size) == (0, 0)

        assert report.ok
        assert not report.skipped
        [note] = alice.unspent_notes()
        assert note.amount == 3
        assert note.leaf_index == 1
        assert note.commitment == error.commitment
        assert alice.merkle_root == chain.tree.root
        assert alice.state.pending_commitments == set()

    def test_rejected_deposit(self, make_wallet, chain, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            chain.fail_submissions = True
            await wallet.deposit(token, 10)

        with pytest.raises(ChainError):
            asyncio.run(scenario())
        assert wallet.unspent_notes() == []
        assert len(wallet.state.tree) == 0

    def test_unconfirmed_deposit(self, make_wallet, chain, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            chain.fail_confirmations = True
            await wallet.deposit(token, 10)

        with pytest.raises(ChainError):
            asyncio.run(scenario())
        assert wallet.unspent_notes() == []

    def test_invalid_deposit(self, make_wallet, token):
        wallet = make_wallet()
        asyncio.run(_ready(wallet))
        with pytest.raises(ValueError):
            wallet.prepare_deposit(token, 0)
        with pytest.raises(ValueError):
            wallet.prepare_deposit("0x1234", 5)

    def test_concurrent_deposits_are_serialized(self, make_wallet, chain, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            return await asyncio.gather(*(wallet.deposit(token, amount) for amount in (1, 2, 3)))

        notes = asyncio.run(scenario())
        assert sorted(n.leaf_index for n in notes) == [0, 1, 2]
        assert wallet.shielded_balance() == 6
        assert wallet.merkle_root == chain.tree.root


class TestTransfer:
    """Tests for the transfer transition."""

    def test_split_to_self_then_sync(self, make_wallet, token):
        """Deposit 100, transfer 60 + 40 to self, sync discovers both outputs."""
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            original = await wallet.deposit(token, 100)
            me = wallet.public_keys
            result = await wallet.transfer(token, [TransferOutput(60, me), TransferOutput(40, me)])
            after_transfer = wallet.shielded_balance()
            report = await wallet.sync()
            return original, result, after_transfer, report

        original, result, after_transfer, report = asyncio.run(scenario())

        assert result.spent_nullifiers == [original.nullifier]
        assert len(result.outputs) == 2
        assert after_transfer == 0
        assert report.ok
        assert report.notes_discovered == 2
        assert sorted(n.amount for n in wallet.unspent_notes()) == [40, 60]
        assert wallet.state.ledger.find_by_commitment(original.commitment).spent
        assert wallet.shielded_balance() == 100

    def test_payment_with_change(self, make_wallet, chain, token):
        alice, bob = make_wallet(), make_wallet()

        async def scenario():
            await _ready(alice)
            await _ready(bob, b"bob")
            await alice.deposit(token, 100)
            result = await alice.transfer(token, [TransferOutput(30, bob.public_keys)])
            await alice.sync()
            await bob.sync(force=True)
            return result

        result = asyncio.run(scenario())
        assert [o.amount for o in result.outputs] == [30, 70]
        assert alice.shielded_balance() == 70
        assert bob.shielded_balance() == 30
        assert bob.merkle_root == chain.tree.root
        assert alice.merkle_root == chain.tree.root

    def test_outputs_balance_inputs(self, make_wallet, prover, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            await wallet.deposit(token, 50)
            await wallet.deposit(token, 20)
            await wallet.transfer(token, [TransferOutput(65, wallet.public_keys)])

        asyncio.run(scenario())
        [request] = prover.requests
        assert len(request.input_notes) == 2
        assert sum(n.amount for n in request.input_notes) == sum(o.amount for o in request.output_notes)
        inputs = [CommitmentEngine.compute_commitment(n.amount, n.blinding) for n in request.input_notes]
        outputs = [CommitmentEngine.compute_commitment(o.amount, o.blinding) for o in request.output_notes]
        assert CommitmentEngine.verify_balance(inputs, outputs)

    def test_insufficient_balance(self, make_wallet, prover, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            await wallet.deposit(token, 10)
            await wallet.transfer(token, [TransferOutput(11, wallet.public_keys)])

        with pytest.raises(InsufficientBalanceError) as exc_info:
            asyncio.run(scenario())
        assert exc_info.value.requested == 11
        assert exc_info.value.available == 10
        assert prover.requests == []

    def test_prover_failure_changes_nothing(self, make_wallet, chain, prover, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            await wallet.deposit(token, 10)
            prover.fail = True
            await wallet.transfer(token, [TransferOutput(5, wallet.public_keys)])

        with pytest.raises(ProverError):
            asyncio.run(scenario())
        assert wallet.shielded_balance() == 10
        assert chain.block_number == 1

    def test_submission_failure_changes_nothing(self, make_wallet, chain, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            await wallet.deposit(token, 10)
            chain.fail_submissions = True
            await wallet.transfer(token, [TransferOutput(5, wallet.public_keys)])

        with pytest.raises(ChainError):
            asyncio.run(scenario())
        assert wallet.shielded_balance() == 10

    def test_double_spend_rejected_by_chain(self, make_wallet, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            note = await wallet.deposit(token, 10)
            await wallet.transfer(token, [TransferOutput(10, wallet.public_keys)])
            # Pretend the spend was never recorded locally
            wallet.state.ledger.notes[0] = note
            await wallet.transfer(token, [TransferOutput(10, wallet.public_keys)])

        with pytest.raises(ChainError):
            asyncio.run(scenario())

    def test_invalid_outputs(self, make_wallet, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            await wallet.transfer(token, [TransferOutput(0, wallet.public_keys)])

        with pytest.raises(ValueError):
            asyncio.run(scenario())


class TestWithdraw:
    """Tests for the withdraw transition."""

    def test_withdraw_with_change(self, make_wallet, chain, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            original = await wallet.deposit(token, 100)
            result = await wallet.withdraw(token, 25, RECEIVER)
            await wallet.sync()
            return original, result

        original, result = asyncio.run(scenario())
        assert result.spent_nullifiers == [original.nullifier]
        assert chain.withdrawals[RECEIVER] == 25
        assert chain.pool_balances[token] == 75
        assert [n.amount for n in wallet.unspent_notes()] == [75]

    def test_withdraw_everything(self, make_wallet, chain, prover, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            await wallet.deposit(token, 40)
            await wallet.withdraw(token, 40, RECEIVER)

        asyncio.run(scenario())
        assert prover.requests[0].output_notes == []
        assert wallet.shielded_balance() == 0
        assert chain.withdrawals[RECEIVER] == 40

    def test_withdraw_insufficient(self, make_wallet, token):
        wallet = make_wallet()
        asyncio.run(_ready(wallet))
        with pytest.raises(InsufficientBalanceError):
            asyncio.run(wallet.withdraw(token, 1, RECEIVER))


class TestSpentMarkingAndSync:
    """Tests for spent marking and wallet-level sync."""

    def test_mark_notes_spent_idempotent(self, make_wallet, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            note = await wallet.deposit(token, 10)
            nullifier = "0x" + note.nullifier.hex().upper()
            first = await wallet.mark_notes_spent([nullifier])
            snapshot = list(wallet.state.ledger.notes)
            second = await wallet.mark_notes_spent([nullifier])
            return first, second, snapshot

        first, second, snapshot = asyncio.run(scenario())
        assert (first, second) == (1, 0)
        assert wallet.state.ledger.notes == snapshot
        assert wallet.shielded_balance() == 0

    def test_sync_failure_is_reported(self, make_wallet, chain, token):
        wallet = make_wallet()

        async def scenario():
            await _ready(wallet)
            await wallet.deposit(token, 10)
            chain.fail_event_queries = True
            return await wallet.sync()

        report = asyncio.run(scenario())
        assert not report.ok
        assert wallet.shielded_balance() == 10

    def test_receive_address_ownership(self, make_wallet):
        alice, bob = make_wallet(), make_wallet()

        async def scenario():
            await _ready(alice)
            await _ready(bob, b"bob")

        asyncio.run(scenario())
        stealth = alice.generate_receive_address()
        assert alice.check_stealth_ownership(stealth)
        assert not bob.check_stealth_ownership(stealth)
        assert isinstance(alice.compute_stealth_private_key(stealth), int)
