"""Encrypted note memos attached to on-chain commitments.

The memo lets a recipient recover the opening (amount, blinding, token) of a
note sent to one of its stealth addresses. Layout::

    ephemeral_pub (64) | view_tag (1) | address (20) | nonce (12) | tag (16) | ciphertext

The plaintext is amount (32) | blinding (32) | token (20), sealed with
AES-256-GCM under keccak256("gelap.memo" || shared_secret).
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes

from gelap.core.stealth import StealthAddress, StealthAddressEngine
from gelap.exceptions import MemoError, InvalidPointError
from gelap.utils.hash import hash_concatenate
from gelap.utils.encoding import bytes_to_hex, bytes_to_int, ensure_bytes, int_to_bytes32

logger = logging.getLogger(__name__)

MEMO_KEY_DOMAIN = b"gelap.memo"
NONCE_SIZE = 12
TAG_SIZE = 16
HEADER_SIZE = 64 + 1 + 20
PLAINTEXT_SIZE = 32 + 32 + 20
MEMO_SIZE = HEADER_SIZE + NONCE_SIZE + TAG_SIZE + PLAINTEXT_SIZE


@dataclass(frozen=True)
class MemoPlaintext:
    """Decrypted memo together with the stealth address it was sent to."""

    amount: int
    blinding: int
    token: str
    stealth: StealthAddress


def _memo_key(shared_secret: bytes) -> bytes:
    return hash_concatenate(MEMO_KEY_DOMAIN, shared_secret)


class NoteMemo:
    """Seal and open note memos."""

    @staticmethod
    def seal(
        shared_secret: bytes,
        stealth: StealthAddress,
        amount: int,
        blinding: int,
        token: str,
    ) -> bytes:
        """
        Encrypt a note opening for the owner of stealth.

        Raises:
            MemoError: If a field does not fit its fixed width
        """
        try:
            header = (
                ensure_bytes(stealth.ephemeral_public_key, 64)
                + bytes([stealth.view_tag])
                + ensure_bytes(stealth.address, 20)
            )
            plaintext = int_to_bytes32(amount) + int_to_bytes32(blinding) + ensure_bytes(token, 20)
        except (ValueError, TypeError, OverflowError) as e:
            raise MemoError(f"Cannot build memo: {e}")

        nonce = get_random_bytes(NONCE_SIZE)
        cipher = AES.new(_memo_key(shared_secret), AES.MODE_GCM, nonce=nonce)
        cipher.update(header)
        ciphertext, tag = cipher.encrypt_and_digest(plaintext)
        return header + nonce + tag + ciphertext

    @staticmethod
    def parse_stealth(memo: bytes) -> StealthAddress:
        """
        Read the stealth address from a memo header.

        Raises:
            MemoError: If the memo is too short
        """
        if not isinstance(memo, (bytes, bytearray)) or len(memo) != MEMO_SIZE:
            raise MemoError(f"Memo must be {MEMO_SIZE} bytes")
        return StealthAddress(
            address=bytes_to_hex(bytes(memo[65:HEADER_SIZE])),
            ephemeral_public_key=bytes(memo[:64]),
            view_tag=memo[64],
        )

    @staticmethod
    def open(
        memo: bytes,
        view_private_key: Union[bytes, int],
        spend_public_key: bytes,
    ) -> Optional[MemoPlaintext]:
        """
        Decrypt a memo if it is addressed to this wallet.

        Returns None for empty or malformed memos, memos for someone else,
        and memos that fail authentication.
        """
        if not memo:
            return None
        try:
            stealth = NoteMemo.parse_stealth(memo)
        except MemoError:
            return None

        if not StealthAddressEngine.check_ownership(stealth, view_private_key, spend_public_key):
            return None

        try:
            shared = StealthAddressEngine.shared_secret(view_private_key, stealth.ephemeral_public_key)
        except InvalidPointError:
            return None

        nonce = memo[HEADER_SIZE:HEADER_SIZE + NONCE_SIZE]
        tag = memo[HEADER_SIZE + NONCE_SIZE:HEADER_SIZE + NONCE_SIZE + TAG_SIZE]
        ciphertext = memo[HEADER_SIZE + NONCE_SIZE + TAG_SIZE:]

        cipher = AES.new(_memo_key(shared), AES.MODE_GCM, nonce=nonce)
        cipher.update(memo[:HEADER_SIZE])
        try:
            plaintext = cipher.decrypt_and_verify(ciphertext, tag)
        except ValueError:
            logger.warning("Memo addressed to this wallet failed authentication")
            return None

        return MemoPlaintext(
            amount=bytes_to_int(plaintext[:32]),
            blinding=bytes_to_int(plaintext[32:64]),
            token=bytes_to_hex(plaintext[64:]),
            stealth=stealth,
        )
