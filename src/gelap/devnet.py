"""In-process stand-ins for the chain, the prover and the connected wallet.

``LocalChain`` models the shielded pool contract closely enough to run the
wallet end to end: it keeps its own commitment tree and root history,
rejects reused nullifiers and unknown roots, and serves commitment events
in bounded block ranges. ``MockProver`` produces public inputs the local
chain understands together with a placeholder proof; nothing is proven.
"""

import logging
from typing import Dict, List, Optional, Set, Union

from Crypto.Hash import SHA256
from Crypto.PublicKey import ECC
from Crypto.Signature import DSS
from pydantic import ValidationError

from gelap.config import get_settings
from gelap.core.collaborators import (
    CallResult,
    CommitmentEvent,
    ProofResponse,
    TransferProofRequest,
    TxReceipt,
    WithdrawProofRequest,
)
from gelap.core.merkle_tree import MerkleTree
from gelap.crypto.curve import CURVE_NAME, ORDER, encode_point
from gelap.models.schemas import ProofPublicInputs
from gelap.utils.hash import keccak256, hash_concatenate, hash_to_int
from gelap.utils.encoding import bytes_to_hex, ensure_bytes, normalize_address

logger = logging.getLogger(__name__)

MOCK_PROOF_DOMAIN = b"gelap.mock.proof"


def mock_proof_bytes(public_inputs: bytes) -> bytes:
    """Placeholder proof bound to its public inputs."""
    return hash_concatenate(MOCK_PROOF_DOMAIN, public_inputs)


class LocalChain:
    """
    In-memory shielded pool.

    Every accepted transaction is mined into its own block. The failure
    switches make the next calls of a kind fail, for exercising error paths.
    """

    def __init__(self, depth: Optional[int] = None, max_block_range: Optional[int] = None):
        settings = get_settings()
        self.tree = MerkleTree(depth or settings.merkle_tree_depth)
        self.max_block_range = max_block_range or settings.devnet_max_block_range
        self.block_number = 0
        self.events: List[CommitmentEvent] = []
        self.known_roots: Set[bytes] = {self.tree.root}
        self.nullifiers: Set[bytes] = set()
        self.receipts: Dict[str, TxReceipt] = {}
        self.pool_balances: Dict[str, int] = {}
        self.withdrawals: Dict[str, int] = {}
        self._tx_count = 0

        self.fail_submissions = False
        self.fail_confirmations = False
        self.fail_event_queries = False
        self.fail_nullifier_queries = False

    def _mine(self) -> str:
        self.block_number += 1
        self._tx_count += 1
        tx_hash = bytes_to_hex(keccak256(f"gelap-devnet-tx-{self._tx_count}"))
        self.receipts[tx_hash] = TxReceipt(success=True, block_number=self.block_number)
        return tx_hash

    def _append(self, leaf: bytes, memo: bytes, tx_hash: str) -> None:
        self.tree.insert_leaf(leaf)
        self.known_roots.add(self.tree.root)
        self.events.append(CommitmentEvent(
            commitment=leaf,
            block_number=self.block_number,
            memo=memo,
            transaction_hash=tx_hash,
        ))

    def _check_proof(self, public_inputs: bytes, proof_bytes: bytes) -> ProofPublicInputs:
        if proof_bytes != mock_proof_bytes(public_inputs):
            raise ValueError("Invalid proof")
        inputs = ProofPublicInputs.model_validate_json(public_inputs)
        if ensure_bytes(inputs.root, 32) not in self.known_roots:
            raise ValueError("Unknown Merkle root")
        nullifiers = [ensure_bytes(n, 32) for n in inputs.nullifiers]
        if len(set(nullifiers)) != len(nullifiers) or any(n in self.nullifiers for n in nullifiers):
            raise ValueError("Nullifier already spent")
        return inputs

    def _apply_spend(self, inputs: ProofPublicInputs) -> str:
        tx_hash = self._mine()
        self.nullifiers.update(ensure_bytes(n, 32) for n in inputs.nullifiers)
        memos = inputs.memos + [""] * (len(inputs.new_commitments) - len(inputs.memos))
        for commitment, memo in zip(inputs.new_commitments, memos):
            self._append(ensure_bytes(commitment, 32), ensure_bytes(memo) if memo else b"", tx_hash)
        return tx_hash

    async def submit_deposit(
        self, token: str, amount: int, commitment: bytes, memo: bytes = b""
    ) -> CallResult[str]:
        if self.fail_submissions:
            return CallResult.failure("Deposit rejected")
        if amount <= 0:
            return CallResult.failure("Amount must be positive")
        try:
            token = normalize_address(token)
            leaf = ensure_bytes(commitment, 32)
        except (ValueError, TypeError) as e:
            return CallResult.failure(str(e))

        tx_hash = self._mine()
        self._append(leaf, bytes(memo), tx_hash)
        self.pool_balances[token] = self.pool_balances.get(token, 0) + amount
        logger.debug(f"Deposit of {token} mined in block {self.block_number}")
        return CallResult.success(tx_hash)

    async def submit_transfer(self, public_inputs: bytes, proof_bytes: bytes) -> CallResult[str]:
        if self.fail_submissions:
            return CallResult.failure("Transfer rejected")
        try:
            inputs = self._check_proof(public_inputs, proof_bytes)
        except (ValidationError, ValueError) as e:
            return CallResult.failure(str(e))
        return CallResult.success(self._apply_spend(inputs))

    async def submit_withdraw(
        self, public_inputs: bytes, proof_bytes: bytes, receiver: str
    ) -> CallResult[str]:
        if self.fail_submissions:
            return CallResult.failure("Withdraw rejected")
        try:
            inputs = self._check_proof(public_inputs, proof_bytes)
            receiver = normalize_address(receiver)
        except (ValidationError, ValueError) as e:
            return CallResult.failure(str(e))
        if inputs.receiver != receiver or inputs.token is None:
            return CallResult.failure("Receiver mismatch")
        if self.pool_balances.get(inputs.token, 0) < inputs.withdraw_amount:
            return CallResult.failure("Pool balance too low")

        tx_hash = self._apply_spend(inputs)
        self.pool_balances[inputs.token] -= inputs.withdraw_amount
        self.withdrawals[receiver] = self.withdrawals.get(receiver, 0) + inputs.withdraw_amount
        return CallResult.success(tx_hash)

    async def wait_for_confirmation(self, tx_hash: str) -> CallResult[TxReceipt]:
        if self.fail_confirmations:
            return CallResult.failure("Confirmation timed out")
        receipt = self.receipts.get(tx_hash)
        if receipt is None:
            return CallResult.failure(f"Unknown transaction {tx_hash}")
        return CallResult.success(receipt)

    async def get_new_commitment_events(self, from_block: int) -> CallResult[List[CommitmentEvent]]:
        """Events in [from_block, from_block + max_block_range)."""
        if self.fail_event_queries:
            return CallResult.failure("Event query failed")
        to_block = from_block + self.max_block_range
        return CallResult.success([e for e in self.events if from_block <= e.block_number < to_block])

    async def is_nullifier_used(self, nullifier: Union[bytes, str]) -> CallResult[bool]:
        if self.fail_nullifier_queries:
            return CallResult.failure("Nullifier query failed")
        return CallResult.success(ensure_bytes(nullifier, 32) in self.nullifiers)


class MockProver:
    """Builds public inputs for the local chain with a placeholder proof."""

    def __init__(self):
        self.fail = False
        self.requests: List[Union[TransferProofRequest, WithdrawProofRequest]] = []

    def _respond(self, inputs: ProofPublicInputs) -> ProofResponse:
        public_inputs = inputs.model_dump_json().encode("utf-8")
        return ProofResponse(
            public_inputs=public_inputs,
            proof_bytes=mock_proof_bytes(public_inputs),
            success=True,
        )

    @staticmethod
    def _base_inputs(request) -> dict:
        return {
            "root": bytes_to_hex(request.current_root),
            "nullifiers": [bytes_to_hex(n.nullifier) for n in request.input_notes],
            "new_commitments": [bytes_to_hex(o.commitment) for o in request.output_notes],
            "memos": [bytes_to_hex(o.memo) for o in request.output_notes],
        }

    async def request_transfer_proof(self, request: TransferProofRequest) -> ProofResponse:
        self.requests.append(request)
        if self.fail:
            return ProofResponse(public_inputs=b"", proof_bytes=b"", success=False, error="Mock prover failure")
        return self._respond(ProofPublicInputs(**self._base_inputs(request)))

    async def request_withdraw_proof(self, request: WithdrawProofRequest) -> ProofResponse:
        self.requests.append(request)
        if self.fail:
            return ProofResponse(public_inputs=b"", proof_bytes=b"", success=False, error="Mock prover failure")
        return self._respond(ProofPublicInputs(
            **self._base_inputs(request),
            withdraw_amount=request.withdraw_amount,
            receiver=request.receiver,
            token=request.token,
        ))


class LocalSigner:
    """
    Deterministic P-256 signer standing in for a connected wallet.

    Signatures are ECDSA with RFC 6979 nonces, so signing the same message
    twice yields the same bytes.
    """

    def __init__(self, secret: Union[bytes, str], address: Optional[str] = None):
        scalar = hash_to_int("gelap.devnet.signer", secret) % ORDER or 1
        self._key = ECC.construct(curve=CURVE_NAME, d=scalar)
        self.address = address if address is not None else bytes_to_hex(
            keccak256(encode_point(self._key.pointQ))[-20:]
        )
        self.signed_messages: List[str] = []

    async def get_address(self) -> Optional[str]:
        return self.address

    async def sign_message(self, message: str) -> bytes:
        self.signed_messages.append(message)
        signer = DSS.new(self._key, "deterministic-rfc6979")
        return signer.sign(SHA256.new(message.encode("utf-8")))
