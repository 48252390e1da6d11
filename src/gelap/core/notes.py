"""Notes (UTXOs) owned by the wallet, balances and coin selection."""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from gelap.crypto.nullifier import NULLIFIER_SIZE
from gelap.exceptions import DeserializationError
from gelap.models.schemas import NoteRecord, NoteListRecord
from gelap.utils.encoding import bytes_to_hex, bytes_to_int, ensure_bytes, int_to_bytes32, normalize_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Note:
    """
    A spendable balance fragment tied to one Merkle leaf.

    The only state change a note ever sees is spent: False -> True.
    """

    commitment: bytes  # 32-byte on-chain leaf
    amount: int
    blinding: int
    token: str
    leaf_index: int
    nullifier: bytes
    spent: bool = False
    block_number: int = 0

    def to_record(self) -> NoteRecord:
        return NoteRecord(
            commitment=bytes_to_hex(self.commitment),
            amount=self.amount,
            blinding=bytes_to_hex(int_to_bytes32(self.blinding)),
            token=self.token,
            leaf_index=self.leaf_index,
            nullifier=bytes_to_hex(self.nullifier),
            spent=self.spent,
            block_number=self.block_number,
        )

    @classmethod
    def from_record(cls, record: NoteRecord) -> "Note":
        return cls(
            commitment=ensure_bytes(record.commitment, 32),
            amount=record.amount,
            blinding=bytes_to_int(ensure_bytes(record.blinding, 32)),
            token=record.token,
            leaf_index=record.leaf_index,
            nullifier=ensure_bytes(record.nullifier, NULLIFIER_SIZE),
            spent=record.spent,
            block_number=record.block_number,
        )


@dataclass(frozen=True)
class NoteSelection:
    notes: List[Note]
    total: int


class NoteLedger:
    """
    Ordered note set (discovery order) with balance queries.

    Queries are plain filters over ``notes``. Tokens are compared in their
    canonical lowercase form and nullifiers as 32-byte binary.
    """

    def __init__(self, notes: Optional[Iterable[Note]] = None):
        self.notes: List[Note] = list(notes or [])

    def add(self, note: Note) -> None:
        self.notes.append(replace(note, token=normalize_address(note.token)))

    def copy(self) -> "NoteLedger":
        return NoteLedger(self.notes)

    def unspent_notes(self) -> List[Note]:
        return [note for note in self.notes if not note.spent]

    def notes_for_token(self, token: str) -> List[Note]:
        """Unspent notes of one token."""
        token = normalize_address(token)
        return [note for note in self.notes if not note.spent and note.token == token]

    def shielded_balance(self) -> int:
        """Unspent total over all tokens."""
        return sum(note.amount for note in self.unspent_notes())

    def balance_by_token(self) -> Dict[str, int]:
        balances: Dict[str, int] = {}
        for note in self.unspent_notes():
            balances[note.token] = balances.get(note.token, 0) + note.amount
        return balances

    def unspent_total(self, token: str) -> int:
        return sum(note.amount for note in self.notes_for_token(token))

    def find_by_commitment(self, commitment: Union[bytes, str]) -> Optional[Note]:
        try:
            leaf = ensure_bytes(commitment, 32)
        except (ValueError, TypeError):
            return None
        for note in self.notes:
            if note.commitment == leaf:
                return note
        return None

    def select_notes_for_amount(self, token: str, target: int) -> NoteSelection:
        """
        Greedy selection: largest notes first until the target is covered.

        Not optimal. The selection may overshoot and does not minimize the
        number of notes. If the token balance is below target, every unspent
        note of the token is returned.
        """
        selected = []
        total = 0
        for note in sorted(self.notes_for_token(token), key=lambda n: n.amount, reverse=True):
            if total >= target:
                break
            selected.append(note)
            total += note.amount
        return NoteSelection(notes=selected, total=total)

    def mark_spent(self, nullifiers: Iterable[Union[bytes, str]]) -> int:
        """
        Flip notes whose nullifier is in nullifiers to spent.

        Nullifiers may be bytes or hex in any case. Already spent notes are
        left untouched, so reapplying is a no-op.

        Returns:
            int: Number of notes newly marked spent
        """
        wanted = set()
        for nullifier in nullifiers:
            try:
                wanted.add(ensure_bytes(nullifier, NULLIFIER_SIZE))
            except (ValueError, TypeError):
                logger.warning(f"Ignoring malformed nullifier {nullifier!r}")

        flipped = 0
        for position, note in enumerate(self.notes):
            if not note.spent and note.nullifier in wanted:
                self.notes[position] = replace(note, spent=True)
                flipped += 1
        return flipped

    def serialize(self) -> str:
        return NoteListRecord(notes=[note.to_record() for note in self.notes]).model_dump_json()

    @classmethod
    def deserialize(cls, serialized: str) -> "NoteLedger":
        """
        Raises:
            DeserializationError: If the data is malformed
        """
        try:
            record = NoteListRecord.model_validate_json(serialized)
        except ValidationError as e:
            raise DeserializationError(f"Invalid serialized notes: {e}")
        return cls(Note.from_record(r) for r in record.notes)

    def __len__(self) -> int:
        return len(self.notes)
