"""Custom exceptions for the Gelap wallet core."""


class GelapError(Exception):
    """Base exception for all wallet core errors."""
    pass


# Wallet lifecycle
class InitializationError(GelapError):
    """Raised when the wallet cannot be initialized or is used before it."""
    pass


# Cryptography Errors
class CryptoError(GelapError):
    """Base exception for cryptographic errors."""
    pass


class KeyDerivationError(CryptoError):
    """Raised when a signature reduces to the zero scalar. Re-sign and retry."""
    pass


class InvalidPointError(CryptoError):
    """Raised when bytes do not encode a point on the curve."""
    pass


class InvalidCommitmentError(CryptoError):
    """Raised when a commitment or its opening is malformed."""
    pass


class MemoError(CryptoError):
    """Raised when a note memo cannot be built or parsed."""
    pass


# Merkle Tree Errors
class MerkleTreeError(GelapError):
    """Base exception for Merkle tree errors."""
    pass


class TreeHeightExceededError(MerkleTreeError):
    """Raised when the tree has no free leaf left."""
    pass


class InvalidLeafIndexError(MerkleTreeError):
    """Raised when leaf index is invalid."""
    pass


# Ledger Errors
class InsufficientBalanceError(GelapError):
    """Raised when unspent notes of a token cannot cover a requested amount."""

    def __init__(self, token: str, requested: int, available: int):
        super().__init__(
            f"Insufficient balance for {token}: requested {requested}, available {available}"
        )
        self.token = token
        self.requested = requested
        self.available = available


# Collaborator Errors
class CollaboratorFailure(GelapError):
    """Base exception for failed or rejected chain/prover calls."""
    pass


class ChainError(CollaboratorFailure):
    """Raised when a chain call fails or a transaction does not succeed."""
    pass


class DepositPendingError(ChainError):
    """
    Raised when a deposit is confirmed but the wallet could not catch up.

    The note is recorded by the next successful sync, which finds it
    through its memo at the on-chain index.
    """

    def __init__(self, tx_hash: str, block_number: int, commitment: bytes, reason: str):
        super().__init__(
            f"Deposit {tx_hash} confirmed in block {block_number} but not yet recorded: {reason}"
        )
        self.tx_hash = tx_hash
        self.block_number = block_number
        self.commitment = commitment


class ProverError(CollaboratorFailure):
    """Raised when the prover cannot produce a proof."""
    pass


class SyncFailure(GelapError):
    """Raised inside a sync attempt; always caught and reported, never surfaced."""
    pass


# Storage Errors
class StorageError(GelapError):
    """Base exception for storage errors."""
    pass


class SerializationError(StorageError):
    """Raised when serialization fails."""
    pass


class DeserializationError(StorageError):
    """Raised when deserialization fails."""
    pass
