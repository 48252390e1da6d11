"""Privacy wallet: the single owner of keys, notes, tree and sync watermark."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Dict, List, Optional, Sequence, Union

from gelap.config import GelapSettings, get_settings
from gelap.core.collaborators import (
    ChainClient,
    Prover,
    KeyValueStore,
    Signer,
    TxReceipt,
    InputNoteWitness,
    OutputNoteSpec,
    ProofResponse,
    TransferProofRequest,
    WithdrawProofRequest,
    settle,
)
from gelap.core.commitment import Commitment, CommitmentEngine
from gelap.core.keys import KeyDerivation, NoncePolicy, PublicKeys, WalletKeys
from gelap.core.memo import NoteMemo
from gelap.core.merkle_tree import MerkleProof, MerkleTree
from gelap.core.notes import Note, NoteSelection
from gelap.core.state import WalletState
from gelap.core.stealth import StealthAddress, StealthAddressEngine
from gelap.core.sync import SyncCoordinator, SyncReport
from gelap.exceptions import (
    InitializationError,
    InsufficientBalanceError,
    InvalidLeafIndexError,
    ChainError,
    DepositPendingError,
    ProverError,
    DeserializationError,
)
from gelap.storage.memory import MemoryKeyValueStore
from gelap.storage.wallet_store import WalletStorage
from gelap.utils.encoding import normalize_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferOutput:
    """One requested payment of a transfer."""

    amount: int
    recipient: PublicKeys


@dataclass(frozen=True)
class PreparedDeposit:
    """A deposit ready to be submitted: commitment plus self-addressed memo."""

    token: str
    amount: int
    commitment: Commitment
    memo: bytes
    stealth: StealthAddress


@dataclass(frozen=True)
class TransactionResult:
    """Confirmed transfer or withdraw."""

    tx_hash: str
    block_number: int
    spent_nullifiers: List[bytes] = field(default_factory=list)
    outputs: List[OutputNoteSpec] = field(default_factory=list)


class PrivacyWallet:
    """
    Shielded-balance wallet.

    Mutating operations (deposit, transfer, withdraw, mark_notes_spent, sync)
    are serialized by an ``asyncio.Lock``. Every chain or prover result is
    checked before any state changes, so a failed call leaves the wallet as
    it was. State is written to storage at the end of each mutating
    operation; a failed write is logged and does not roll anything back.
    """

    def __init__(
        self,
        chain: ChainClient,
        prover: Prover,
        store: Optional[KeyValueStore] = None,
        settings: Optional[GelapSettings] = None,
    ):
        self.settings = settings or get_settings()
        self.chain = chain
        self.prover = prover
        self.storage = WalletStorage(store if store is not None else MemoryKeyValueStore(),
                                     self.settings.storage_namespace)
        self.coordinator = SyncCoordinator(chain)
        self.state = self._fresh_state()
        self._lock = asyncio.Lock()

    def _fresh_state(self) -> WalletState:
        return WalletState(tree=MerkleTree(self.settings.merkle_tree_depth))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(
        self, signer: Signer, nonce_policy: Optional[Union[NoncePolicy, str]] = None
    ) -> WalletKeys:
        """
        Load or derive the wallet keys, restore persisted state and sync.

        Persisted keys are reused when they belong to the signer's address.
        Otherwise fresh keys are derived from two signatures, the persisted
        notes, tree and watermark are overwritten with an empty state, and
        only then are the new keys persisted.

        Raises:
            InitializationError: If the signer exposes no address
        """
        async with self._lock:
            address = await signer.get_address()
            if not address:
                raise InitializationError("No address found")

            try:
                keys = self.storage.load_keys()
            except DeserializationError as e:
                logger.error(f"Ignoring unreadable persisted keys: {e}")
                keys = None

            state = self._fresh_state()
            if keys is not None and keys.address == address.lower():
                logger.info(f"Reusing persisted keys for {keys.address}")
                state.keys = keys
                self.storage.load_state_into(state)
            else:
                policy = nonce_policy or self.settings.key_nonce_policy
                state.keys = await KeyDerivation.derive_keys(signer, policy)
                # Keys are only written once the previous owner's state is overwritten
                if self.storage.save_state(state):
                    self.storage.save_keys(state.keys)
                else:
                    logger.error("Could not reset persisted state, new keys kept in memory only")
                logger.info(f"Derived new keys for {state.keys.address}")

            state.is_initialized = True
            self.state = state

            report = await self.coordinator.sync(self.state)
            if report.ok and not report.skipped:
                self._persist()
            return self.state.keys

    @property
    def is_initialized(self) -> bool:
        return self.state.is_initialized

    def _require_initialized(self) -> WalletKeys:
        if not self.state.is_initialized or self.state.keys is None:
            raise InitializationError("Wallet not initialized")
        return self.state.keys

    @property
    def keys(self) -> WalletKeys:
        return self._require_initialized()

    @property
    def public_keys(self) -> PublicKeys:
        return KeyDerivation.export_public_keys(self._require_initialized())

    @property
    def address(self) -> str:
        return self._require_initialized().address

    @property
    def last_synced_block(self) -> int:
        return self.state.last_synced_block

    async def clear_storage(self) -> None:
        """Wipe persisted data and return to the uninitialized state."""
        async with self._lock:
            self.storage.clear()
            self.state = self._fresh_state()

    def _persist(self) -> None:
        if not self.storage.save_state(self.state):
            logger.warning("Wallet state is ahead of persisted state")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def shielded_balance(self) -> int:
        return self.state.ledger.shielded_balance()

    def balance_by_token(self) -> Dict[str, int]:
        return self.state.ledger.balance_by_token()

    def unspent_notes(self) -> List[Note]:
        return self.state.ledger.unspent_notes()

    def notes_for_token(self, token: str) -> List[Note]:
        return self.state.ledger.notes_for_token(token)

    def select_notes_for_amount(self, token: str, target: int) -> NoteSelection:
        return self.state.ledger.select_notes_for_amount(token, target)

    @property
    def merkle_root(self) -> bytes:
        return self.state.tree.root

    def generate_merkle_proof(self, leaf_index: int) -> MerkleProof:
        return self.state.tree.generate_proof(leaf_index)

    # ------------------------------------------------------------------
    # Stealth addresses and commitments
    # ------------------------------------------------------------------

    def generate_receive_address(self) -> StealthAddress:
        """Fresh one-time address paying into this wallet."""
        keys = self._require_initialized()
        return StealthAddressEngine.generate(keys.view_public_key, keys.spend_public_key)

    def check_stealth_ownership(self, stealth: StealthAddress) -> bool:
        keys = self._require_initialized()
        return StealthAddressEngine.check_ownership(stealth, keys.view_private_key, keys.spend_public_key)

    def compute_stealth_private_key(self, stealth: StealthAddress) -> int:
        keys = self._require_initialized()
        return StealthAddressEngine.compute_stealth_private_key(
            stealth.ephemeral_public_key, keys.view_private_key, keys.spend_private_key
        )

    @staticmethod
    def create_commitment(amount: int) -> Commitment:
        return CommitmentEngine.create_commitment(amount)

    @staticmethod
    def verify_commitment(commitment: Union[bytes, str], amount: int, blinding: int) -> bool:
        return CommitmentEngine.verify_commitment(commitment, amount, blinding)

    # ------------------------------------------------------------------
    # Deposit
    # ------------------------------------------------------------------

    def prepare_deposit(self, token: str, amount: int) -> PreparedDeposit:
        """
        Build the commitment and self-addressed memo of a deposit.

        Raises:
            ValueError: If amount is not positive or token is not an address
        """
        keys = self._require_initialized()
        if amount <= 0:
            raise ValueError("Deposit amount must be positive")
        token = normalize_address(token)

        commitment = CommitmentEngine.create_commitment(amount)
        stealth, shared = StealthAddressEngine.generate_with_secret(keys.view_public_key, keys.spend_public_key)
        memo = NoteMemo.seal(shared, stealth, amount, commitment.blinding, token)
        return PreparedDeposit(token=token, amount=amount, commitment=commitment, memo=memo, stealth=stealth)

    async def execute_deposit(self, prepared: PreparedDeposit) -> Note:
        """
        Submit a prepared deposit and record the note once confirmed.

        After confirmation the wallet catches up with the chain so the leaf
        lands at its on-chain index. The local tree only ever grows in chain
        order, so if that sync fails nothing is inserted; the deposit stays
        pending and the next sync picks the note up from its memo.

        Raises:
            ChainError: If submission or confirmation fails
            DepositPendingError: If the deposit is confirmed but the catch-up
                sync fails
        """
        async with self._lock:
            self._require_initialized()
            leaf = prepared.commitment.leaf

            submitted = await settle(
                self.chain.submit_deposit(prepared.token, prepared.amount, leaf, prepared.memo)
            )
            if not submitted.ok:
                raise ChainError(f"Deposit submission failed: {submitted.error}")
            receipt = await self._confirm(submitted.value)

            self.state.pending_commitments.add(leaf)
            report = await self.coordinator.sync(self.state, force=True)
            if report.ok:
                self._persist()

            note = self.state.ledger.find_by_commitment(leaf)
            if note is None:
                raise DepositPendingError(
                    submitted.value,
                    receipt.block_number,
                    leaf,
                    report.error or "commitment not found in the event feed",
                )

            logger.info(f"Deposit confirmed in block {receipt.block_number} at leaf {note.leaf_index}")
            return note

    async def deposit(self, token: str, amount: int) -> Note:
        """Prepare and execute a deposit."""
        return await self.execute_deposit(self.prepare_deposit(token, amount))

    # ------------------------------------------------------------------
    # Transfer and withdraw
    # ------------------------------------------------------------------

    def _select_inputs(self, token: str, required: int) -> NoteSelection:
        available = self.state.ledger.unspent_total(token)
        if available < required:
            raise InsufficientBalanceError(token, required, available)
        return self.state.ledger.select_notes_for_amount(token, required)

    def _witness(self, note: Note) -> InputNoteWitness:
        proof = self.state.tree.generate_proof(note.leaf_index)
        if proof.leaf != note.commitment:
            raise InvalidLeafIndexError(f"Leaf {note.leaf_index} does not hold the note's commitment")
        return InputNoteWitness(
            commitment=note.commitment,
            amount=note.amount,
            blinding=note.blinding,
            leaf_index=note.leaf_index,
            nullifier=note.nullifier,
            path_elements=proof.path_elements,
            path_indices=proof.path_indices,
        )

    def _build_outputs(
        self, token: str, inputs: Sequence[Note], payments: Sequence[TransferOutput]
    ) -> List[OutputNoteSpec]:
        """Balanced commitments, stealth addresses and memos for each payment."""
        commitments = CommitmentEngine.create_balanced_outputs(
            [note.blinding for note in inputs], [p.amount for p in payments]
        )
        outputs = []
        for payment, commitment in zip(payments, commitments):
            stealth, shared = StealthAddressEngine.generate_with_secret(
                payment.recipient.view_public_key, payment.recipient.spend_public_key
            )
            outputs.append(OutputNoteSpec(
                amount=payment.amount,
                recipient_public_key=stealth.ephemeral_public_key,
                commitment=commitment.leaf,
                blinding=commitment.blinding,
                memo=NoteMemo.seal(shared, stealth, payment.amount, commitment.blinding, token),
            ))
        return outputs

    async def _prove(self, request: Awaitable[ProofResponse]) -> ProofResponse:
        result = await settle(request)
        if not result.ok:
            raise ProverError(f"Proof request failed: {result.error}")
        response = result.value
        if not response.success:
            raise ProverError(response.error or "Proof generation failed")
        return response

    async def _confirm(self, tx_hash: str) -> TxReceipt:
        result = await settle(self.chain.wait_for_confirmation(tx_hash))
        if not result.ok:
            raise ChainError(f"Confirmation of {tx_hash} failed: {result.error}")
        if not result.value.success:
            raise ChainError(f"Transaction {tx_hash} failed on-chain")
        return result.value

    async def transfer(self, token: str, outputs: Sequence[TransferOutput]) -> TransactionResult:
        """
        Pay one or more recipients from the notes of token.

        Change, if any, is sent back to this wallet as an extra output. The
        new notes are not recorded locally; they show up on a later sync.

        Raises:
            ValueError: If no outputs are given or an amount is not positive
            InsufficientBalanceError: If unspent notes of token cannot cover the outputs
            ProverError: If the proof cannot be produced (no state change)
            ChainError: If submission or confirmation fails (no state change)
        """
        async with self._lock:
            self._require_initialized()
            token = normalize_address(token)
            if not outputs:
                raise ValueError("Transfer needs at least one output")
            if any(o.amount <= 0 for o in outputs):
                raise ValueError("Output amounts must be positive")

            total_out = sum(o.amount for o in outputs)
            selection = self._select_inputs(token, total_out)

            payments = list(outputs)
            change = selection.total - total_out
            if change > 0:
                payments.append(TransferOutput(amount=change, recipient=self.public_keys))

            request = TransferProofRequest(
                input_notes=[self._witness(note) for note in selection.notes],
                output_notes=self._build_outputs(token, selection.notes, payments),
                current_root=self.state.tree.root,
            )
            proof = await self._prove(self.prover.request_transfer_proof(request))

            submitted = await settle(self.chain.submit_transfer(proof.public_inputs, proof.proof_bytes))
            if not submitted.ok:
                raise ChainError(f"Transfer submission failed: {submitted.error}")
            receipt = await self._confirm(submitted.value)

            nullifiers = [note.nullifier for note in selection.notes]
            self.state.ledger.mark_spent(nullifiers)
            self._persist()

            logger.info(
                f"Transfer confirmed in block {receipt.block_number}: "
                f"{len(nullifiers)} inputs, {len(request.output_notes)} outputs"
            )
            return TransactionResult(
                tx_hash=submitted.value,
                block_number=receipt.block_number,
                spent_nullifiers=nullifiers,
                outputs=request.output_notes,
            )

    async def withdraw(self, token: str, amount: int, receiver: str) -> TransactionResult:
        """
        Move amount of token out of the shielded pool to a public receiver.

        Raises:
            ValueError: If amount is not positive or receiver is not an address
            InsufficientBalanceError: If unspent notes of token cannot cover amount
            ProverError: If the proof cannot be produced (no state change)
            ChainError: If submission or confirmation fails (no state change)
        """
        async with self._lock:
            self._require_initialized()
            token = normalize_address(token)
            receiver = normalize_address(receiver)
            if amount <= 0:
                raise ValueError("Withdraw amount must be positive")

            selection = self._select_inputs(token, amount)
            change = selection.total - amount
            payments = [TransferOutput(amount=change, recipient=self.public_keys)] if change > 0 else []

            request = WithdrawProofRequest(
                input_notes=[self._witness(note) for note in selection.notes],
                output_notes=self._build_outputs(token, selection.notes, payments) if payments else [],
                withdraw_amount=amount,
                receiver=receiver,
                token=token,
                current_root=self.state.tree.root,
            )
            proof = await self._prove(self.prover.request_withdraw_proof(request))

            submitted = await settle(
                self.chain.submit_withdraw(proof.public_inputs, proof.proof_bytes, receiver)
            )
            if not submitted.ok:
                raise ChainError(f"Withdraw submission failed: {submitted.error}")
            receipt = await self._confirm(submitted.value)

            nullifiers = [note.nullifier for note in selection.notes]
            self.state.ledger.mark_spent(nullifiers)
            self._persist()

            logger.info(f"Withdraw confirmed in block {receipt.block_number}")
            return TransactionResult(
                tx_hash=submitted.value,
                block_number=receipt.block_number,
                spent_nullifiers=nullifiers,
                outputs=request.output_notes,
            )

    # ------------------------------------------------------------------
    # Spent marking and sync
    # ------------------------------------------------------------------

    async def mark_notes_spent(self, nullifiers: Sequence[Union[bytes, str]]) -> int:
        """Mark notes spent by nullifier. Idempotent; returns how many flipped."""
        async with self._lock:
            flipped = self.state.ledger.mark_spent(nullifiers)
            self._persist()
            return flipped

    async def sync(self, force: bool = False) -> SyncReport:
        """Reconcile with the chain. Never raises on collaborator failure."""
        async with self._lock:
            self._require_initialized()
            report = await self.coordinator.sync(self.state, force=force)
            if report.ok and not report.skipped:
                self._persist()
            return report
