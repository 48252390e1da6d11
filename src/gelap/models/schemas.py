"""Pydantic records for everything the wallet persists."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from gelap.utils.encoding import ensure_bytes, bytes_to_hex


def _hex_of_length(value: str, length: int) -> str:
    """Validate a hex field and return its canonical lowercase form."""
    return bytes_to_hex(ensure_bytes(value, length))


class WalletKeysRecord(BaseModel):
    """Serialized ``WalletKeys``."""
    address: str = Field(..., description="Wallet account address")
    view_private_key: str = Field(..., description="View scalar (hex, 32 bytes)")
    view_public_key: str = Field(..., description="View point (hex, 64 bytes)")
    spend_private_key: str = Field(..., description="Spend scalar (hex, 32 bytes)")
    spend_public_key: str = Field(..., description="Spend point (hex, 64 bytes)")

    @field_validator("view_private_key", "spend_private_key")
    @classmethod
    def _scalar(cls, value: str) -> str:
        return _hex_of_length(value, 32)

    @field_validator("view_public_key", "spend_public_key")
    @classmethod
    def _point(cls, value: str) -> str:
        return _hex_of_length(value, 64)


class NoteRecord(BaseModel):
    """Serialized ``Note``."""
    commitment: str = Field(..., description="On-chain leaf (hex, 32 bytes)")
    amount: int = Field(..., ge=0)
    blinding: str = Field(..., description="Blinding scalar (hex, 32 bytes)")
    token: str = Field(..., description="Token address")
    leaf_index: int = Field(..., ge=0)
    nullifier: str = Field(..., description="Nullifier (hex, 32 bytes)")
    spent: bool = False
    block_number: int = Field(0, ge=0)

    @field_validator("commitment", "blinding", "nullifier")
    @classmethod
    def _bytes32(cls, value: str) -> str:
        return _hex_of_length(value, 32)

    @field_validator("token")
    @classmethod
    def _address(cls, value: str) -> str:
        return _hex_of_length(value, 20)


class NoteListRecord(BaseModel):
    notes: List[NoteRecord] = Field(default_factory=list)


class MerkleTreeRecord(BaseModel):
    """Serialized ``MerkleTree``: only the leaves, everything else is recomputed."""
    depth: int = Field(..., ge=1, le=64)
    leaves: List[str] = Field(default_factory=list)

    @field_validator("leaves")
    @classmethod
    def _leaves(cls, values: List[str]) -> List[str]:
        return [_hex_of_length(v, 32) for v in values]


class ProofPublicInputs(BaseModel):
    """Public inputs of a transfer or withdraw proof, as exchanged with the local chain."""
    root: str
    nullifiers: List[str] = Field(default_factory=list)
    new_commitments: List[str] = Field(default_factory=list)
    memos: List[str] = Field(default_factory=list)
    withdraw_amount: int = Field(0, ge=0)
    receiver: Optional[str] = None
    token: Optional[str] = None

    @field_validator("root")
    @classmethod
    def _root(cls, value: str) -> str:
        return _hex_of_length(value, 32)

    @field_validator("nullifiers", "new_commitments")
    @classmethod
    def _bytes32_list(cls, values: List[str]) -> List[str]:
        return [_hex_of_length(v, 32) for v in values]

    @field_validator("receiver", "token")
    @classmethod
    def _optional_address(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _hex_of_length(value, 20)
