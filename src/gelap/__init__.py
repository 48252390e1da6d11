"""
Gelap - client-side core of a shielded-balance wallet.

Pedersen commitments hide amounts, one-time stealth addresses hide
recipients, and a keccak Merkle tree mirrors the on-chain commitment set.
"""

__version__ = "0.1.0"

from gelap.config import GelapSettings, get_settings
from gelap.core.commitment import Commitment, CommitmentEngine
from gelap.core.keys import KeyDerivation, NoncePolicy, PublicKeys, WalletKeys
from gelap.core.merkle_tree import MerkleProof, MerkleTree, verify_merkle_path
from gelap.core.notes import Note, NoteLedger, NoteSelection
from gelap.core.stealth import StealthAddress, StealthAddressEngine
from gelap.core.sync import SyncCoordinator, SyncReport
from gelap.core.wallet import PrivacyWallet, TransferOutput, WalletState
from gelap.crypto.nullifier import compute_nullifier

__all__ = [
    "GelapSettings",
    "get_settings",
    "Commitment",
    "CommitmentEngine",
    "KeyDerivation",
    "NoncePolicy",
    "PublicKeys",
    "WalletKeys",
    "MerkleProof",
    "MerkleTree",
    "verify_merkle_path",
    "Note",
    "NoteLedger",
    "NoteSelection",
    "StealthAddress",
    "StealthAddressEngine",
    "SyncCoordinator",
    "SyncReport",
    "PrivacyWallet",
    "TransferOutput",
    "WalletState",
    "compute_nullifier",
]
