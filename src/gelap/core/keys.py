"""Privacy key derivation from wallet signatures."""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Union

from gelap.core.collaborators import Signer
from gelap.crypto.curve import ORDER, base_mult, encode_point, encode_scalar, POINT_SIZE, SCALAR_SIZE
from gelap.exceptions import InitializationError, KeyDerivationError, DeserializationError
from gelap.models.schemas import WalletKeysRecord
from gelap.utils.hash import keccak256, hash_concatenate
from gelap.utils.encoding import bytes_to_hex, ensure_bytes, bytes_to_int

logger = logging.getLogger(__name__)


SIGNING_MESSAGES = {
    "view": (
        "Sign this message to generate your VIEW KEY for Private Payments.\n\n"
        "This allows you to scan for incoming payments.\n\n"
        "IMPORTANT: This key does not allow spending.\n\n"
        "Nonce: "
    ),
    "spend": (
        "Sign this message to generate your SPEND KEY for Private Payments.\n\n"
        "This allows you to spend your private funds.\n\n"
        "WARNING: Keep this signature secure!\n\n"
        "Nonce: "
    ),
}

FIXED_NONCE = "0"


class NoncePolicy(str, Enum):
    """
    Nonce mixed into the signing messages.

    TIMESTAMP: fresh millisecond timestamp per derivation. Keys cannot be
        re-derived later, so the persisted key material is the only copy.
    FIXED: constant nonce. The same signer always yields the same keys.
    """
    TIMESTAMP = "timestamp"
    FIXED = "fixed"


@dataclass(frozen=True)
class WalletKeys:
    """View and spend key pairs of one wallet."""

    address: str
    view_private_key: bytes
    view_public_key: bytes
    spend_private_key: bytes
    spend_public_key: bytes

    @property
    def view_scalar(self) -> int:
        return bytes_to_int(self.view_private_key)

    @property
    def spend_scalar(self) -> int:
        return bytes_to_int(self.spend_private_key)

    def __repr__(self) -> str:
        return f"WalletKeys(address={self.address}, view_public_key={self.view_public_key.hex()[:16]}...)"


@dataclass(frozen=True)
class PublicKeys:
    """Shareable half of ``WalletKeys``. Carries no private material."""

    address: str
    view_public_key: bytes
    spend_public_key: bytes


@dataclass(frozen=True)
class KeyPair:
    private_key: bytes
    public_key: bytes


class KeyDerivation:
    """
    Derive a view/spend keypair from two wallet signatures.

    Each private scalar is keccak256(keccak256(signature || purpose)) mod n.
    The double hash strips any structure from the raw signature.
    """

    @staticmethod
    def signing_message(purpose: str, nonce: str) -> str:
        """Human-readable, domain-separated message for a key purpose."""
        return SIGNING_MESSAGES[purpose] + nonce

    @staticmethod
    def make_nonce(policy: Union[NoncePolicy, str] = NoncePolicy.TIMESTAMP) -> str:
        if NoncePolicy(policy) is NoncePolicy.FIXED:
            return FIXED_NONCE
        return str(int(time.time() * 1000))

    @staticmethod
    async def derive_keys(
        signer: Signer, nonce_policy: Union[NoncePolicy, str] = NoncePolicy.TIMESTAMP
    ) -> WalletKeys:
        """
        Request the view and spend signatures and derive both key pairs.

        Raises:
            InitializationError: If the signer exposes no address
            KeyDerivationError: If a signature reduces to the zero scalar
        """
        address = await signer.get_address()
        if not address:
            raise InitializationError("No address found")

        nonce = KeyDerivation.make_nonce(nonce_policy)

        logger.info("Requesting VIEW key signature")
        view_signature = await signer.sign_message(KeyDerivation.signing_message("view", nonce))
        view = KeyDerivation.derive_key_pair(view_signature, "view")

        logger.info("Requesting SPEND key signature")
        spend_signature = await signer.sign_message(KeyDerivation.signing_message("spend", nonce))
        spend = KeyDerivation.derive_key_pair(spend_signature, "spend")

        return WalletKeys(
            address=address.lower(),
            view_private_key=view.private_key,
            view_public_key=view.public_key,
            spend_private_key=spend.private_key,
            spend_public_key=spend.public_key,
        )

    @staticmethod
    def derive_key_pair(signature: bytes, purpose: str) -> KeyPair:
        """
        Turn one signature into a key pair.

        Raises:
            KeyDerivationError: If the reduced scalar is zero
        """
        seed = keccak256(hash_concatenate(bytes(signature), purpose))
        scalar = bytes_to_int(seed) % ORDER
        if scalar == 0:
            raise KeyDerivationError(f"Invalid {purpose} private key derived (zero)")

        return KeyPair(
            private_key=encode_scalar(scalar),
            public_key=encode_point(base_mult(scalar)),
        )

    @staticmethod
    def serialize_keys(keys: WalletKeys) -> str:
        return WalletKeysRecord(
            address=keys.address,
            view_private_key=bytes_to_hex(keys.view_private_key),
            view_public_key=bytes_to_hex(keys.view_public_key),
            spend_private_key=bytes_to_hex(keys.spend_private_key),
            spend_public_key=bytes_to_hex(keys.spend_public_key),
        ).model_dump_json()

    @staticmethod
    def deserialize_keys(serialized: str) -> WalletKeys:
        """
        Inverse of ``serialize_keys``.

        Raises:
            DeserializationError: On malformed JSON, missing fields or wrong lengths
        """
        try:
            record = WalletKeysRecord.model_validate_json(serialized)
        except ValueError as e:
            raise DeserializationError(f"Invalid serialized keys: {e}")
        return WalletKeys(
            address=record.address,
            view_private_key=ensure_bytes(record.view_private_key, SCALAR_SIZE),
            view_public_key=ensure_bytes(record.view_public_key, POINT_SIZE),
            spend_private_key=ensure_bytes(record.spend_private_key, SCALAR_SIZE),
            spend_public_key=ensure_bytes(record.spend_public_key, POINT_SIZE),
        )

    @staticmethod
    def export_public_keys(keys: WalletKeys) -> PublicKeys:
        return PublicKeys(
            address=keys.address,
            view_public_key=keys.view_public_key,
            spend_public_key=keys.spend_public_key,
        )
