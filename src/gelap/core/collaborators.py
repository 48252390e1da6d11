"""Contracts for the external collaborators the wallet core depends on.

The core never talks to a blockchain, a prover or a disk directly. It talks to
objects satisfying the protocols below:

    Signer        - the connected wallet (address + message signing)
    ChainClient   - contract calls, confirmations, event queries
    Prover        - zero-knowledge proof generation
    KeyValueStore - opaque string persistence

Every chain call yields an explicit ``CallResult`` so ledger mutations are
contingent on an observed value. ``settle`` turns an exception raised by a
collaborator implementation into a failed result at this boundary.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Generic, List, Optional, Protocol, TypeVar, runtime_checkable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """Outcome of a collaborator call."""

    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "CallResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "CallResult[T]":
        return cls(ok=False, error=error or "unknown error")


async def settle(awaitable: Awaitable[Any]) -> CallResult:
    """
    Await a collaborator call and always return a ``CallResult``.

    Plain return values are wrapped as successes; results that already are a
    ``CallResult`` pass through; raised exceptions become failures.
    """
    try:
        result = await awaitable
    except Exception as e:
        logger.warning(f"Collaborator call raised {type(e).__name__}: {e}")
        return CallResult.failure(f"{type(e).__name__}: {e}")

    if isinstance(result, CallResult):
        return result
    return CallResult.success(result)


# ---------------------------------------------------------------------------
# Chain types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TxReceipt:
    """Confirmation status of a submitted transaction."""

    success: bool
    block_number: int


@dataclass(frozen=True)
class CommitmentEvent:
    """A commitment appended to the on-chain tree."""

    commitment: bytes  # 32-byte leaf
    block_number: int
    memo: bytes = b""
    transaction_hash: str = ""


# ---------------------------------------------------------------------------
# Prover types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InputNoteWitness:
    """Opening and membership path of a note being spent."""

    commitment: bytes
    amount: int
    blinding: int
    leaf_index: int
    nullifier: bytes
    path_elements: List[bytes]
    path_indices: List[int]


@dataclass(frozen=True)
class OutputNoteSpec:
    """A note to be created by a transaction."""

    amount: int
    recipient_public_key: bytes  # stealth ephemeral public key
    commitment: bytes
    blinding: int
    memo: bytes = b""


@dataclass(frozen=True)
class TransferProofRequest:
    input_notes: List[InputNoteWitness]
    output_notes: List[OutputNoteSpec]
    current_root: bytes


@dataclass(frozen=True)
class WithdrawProofRequest:
    input_notes: List[InputNoteWitness]
    output_notes: List[OutputNoteSpec]  # change returned to the wallet, possibly empty
    withdraw_amount: int
    receiver: str
    token: str
    current_root: bytes


@dataclass(frozen=True)
class ProofResponse:
    public_inputs: bytes
    proof_bytes: bytes
    success: bool
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

@runtime_checkable
class Signer(Protocol):
    async def get_address(self) -> Optional[str]: ...

    async def sign_message(self, message: str) -> bytes: ...


@runtime_checkable
class ChainClient(Protocol):
    async def submit_deposit(
        self, token: str, amount: int, commitment: bytes, memo: bytes = b""
    ) -> CallResult[str]: ...

    async def submit_transfer(self, public_inputs: bytes, proof_bytes: bytes) -> CallResult[str]: ...

    async def submit_withdraw(
        self, public_inputs: bytes, proof_bytes: bytes, receiver: str
    ) -> CallResult[str]: ...

    async def wait_for_confirmation(self, tx_hash: str) -> CallResult[TxReceipt]: ...

    async def get_new_commitment_events(self, from_block: int) -> CallResult[List[CommitmentEvent]]: ...

    async def is_nullifier_used(self, nullifier: bytes) -> CallResult[bool]: ...


@runtime_checkable
class Prover(Protocol):
    async def request_transfer_proof(self, request: TransferProofRequest) -> ProofResponse: ...

    async def request_withdraw_proof(self, request: WithdrawProofRequest) -> ProofResponse: ...


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...
