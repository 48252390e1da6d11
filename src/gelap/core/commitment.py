"""Pedersen commitments hiding note amounts."""

from dataclasses import dataclass
from typing import List, Sequence, Union

from cryptography.hazmat.primitives import constant_time

from gelap.crypto.curve import (
    ORDER,
    G,
    H,
    random_scalar,
    scalar_mult,
    sum_points,
    encode_point,
    decode_point,
)
from gelap.exceptions import InvalidCommitmentError, InvalidPointError
from gelap.utils.hash import keccak256
from gelap.utils.encoding import ensure_bytes


@dataclass(frozen=True)
class Commitment:
    """An opened commitment: the point together with its amount and blinding."""

    commitment: bytes  # 64-byte point encoding
    amount: int
    blinding: int

    @property
    def leaf(self) -> bytes:
        """The 32-byte value published on-chain and inserted in the Merkle tree."""
        return keccak256(self.commitment)


@dataclass(frozen=True)
class BalancedCommitments:
    inputs: List[Commitment]
    outputs: List[Commitment]


class CommitmentEngine:
    """
    Pedersen commitment C = H*amount + G*blinding.

    Properties:
    - Hiding: a fresh uniformly random blinding makes C independent of amount
    - Binding: opening C to another amount requires log_G(H)
    - Homomorphic: C(a1, r1) + C(a2, r2) = C(a1 + a2, r1 + r2)
    """

    @staticmethod
    def _check_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidCommitmentError("Amount must be an integer")
        if amount < 0 or amount >= ORDER:
            raise InvalidCommitmentError("Amount out of range")

    @staticmethod
    def commitment_point(amount: int, blinding: int):
        CommitmentEngine._check_amount(amount)
        if blinding % ORDER == 0:
            raise InvalidCommitmentError("Blinding must be a non-zero scalar")
        return scalar_mult(H, amount) + scalar_mult(G, blinding)

    @staticmethod
    def compute_commitment(amount: int, blinding: int) -> bytes:
        """
        Compute the encoded commitment for a given opening.

        Raises:
            InvalidCommitmentError: If amount or blinding is out of range
        """
        return encode_point(CommitmentEngine.commitment_point(amount, blinding))

    @staticmethod
    def leaf_for(amount: int, blinding: int) -> bytes:
        """On-chain leaf of the commitment to (amount, blinding)."""
        return keccak256(CommitmentEngine.compute_commitment(amount, blinding))

    @staticmethod
    def create_commitment(amount: int) -> Commitment:
        """Commit to amount under a fresh blinding factor."""
        blinding = random_scalar()
        return Commitment(
            commitment=CommitmentEngine.compute_commitment(amount, blinding),
            amount=amount,
            blinding=blinding,
        )

    @staticmethod
    def verify_commitment(commitment: Union[bytes, str], amount: int, blinding: int) -> bool:
        """
        Check that commitment opens to (amount, blinding).

        The final byte comparison runs in constant time.
        """
        try:
            expected = ensure_bytes(commitment, 64)
            computed = CommitmentEngine.compute_commitment(amount, blinding)
        except (InvalidCommitmentError, ValueError, TypeError):
            return False
        return constant_time.bytes_eq(computed, expected)

    @staticmethod
    def create_balanced_outputs(input_blindings: Sequence[int], amounts: Sequence[int]) -> List[Commitment]:
        """
        Build output commitments whose blindings sum to the input blindings.

        All output blindings are random except the last one, which absorbs the
        difference. The point sums of inputs and outputs then match exactly
        when the amounts match.
        """
        if not amounts:
            raise InvalidCommitmentError("At least one output amount is required")

        blinding_total = sum(input_blindings) % ORDER
        blindings = [random_scalar() for _ in amounts[:-1]]
        last = (blinding_total - sum(blindings)) % ORDER
        if last == 0:
            # Negligible probability; the last blinding must stay non-zero
            return CommitmentEngine.create_balanced_outputs(input_blindings, amounts)
        blindings.append(last)

        return [
            Commitment(
                commitment=CommitmentEngine.compute_commitment(amount, blinding),
                amount=amount,
                blinding=blinding,
            )
            for amount, blinding in zip(amounts, blindings)
        ]

    @staticmethod
    def create_balanced_commitments(total_in: int, outs: Sequence[int]) -> BalancedCommitments:
        """
        One input commitment for total_in and one output per entry in outs.

        Mismatched totals are not rejected here: balance is a property of the
        resulting points, checked with ``verify_balance``.
        """
        input_commitment = CommitmentEngine.create_commitment(total_in)
        outputs = CommitmentEngine.create_balanced_outputs([input_commitment.blinding], outs)
        return BalancedCommitments(inputs=[input_commitment], outputs=outputs)

    @staticmethod
    def verify_balance(
        input_commitments: Sequence[Union[bytes, str]],
        output_commitments: Sequence[Union[bytes, str]],
    ) -> bool:
        """True iff the point sum of the inputs equals the point sum of the outputs."""
        if not input_commitments or not output_commitments:
            return False
        try:
            inputs = [decode_point(ensure_bytes(c, 64)) for c in input_commitments]
            outputs = [decode_point(ensure_bytes(c, 64)) for c in output_commitments]
        except (InvalidPointError, ValueError, TypeError):
            return False
        return sum_points(inputs) == sum_points(outputs)
