"""Persisted and exchanged data records."""

from gelap.models.schemas import (
    WalletKeysRecord,
    NoteRecord,
    NoteListRecord,
    MerkleTreeRecord,
    ProofPublicInputs,
)

__all__ = ["WalletKeysRecord", "NoteRecord", "NoteListRecord", "MerkleTreeRecord", "ProofPublicInputs"]
