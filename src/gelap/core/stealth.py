"""One-time stealth addresses.

A sender who knows a recipient's view and spend public keys derives a fresh
address per payment:

    shared     = encode(r * V)            r: ephemeral scalar, V: view public key
    tweak      = keccak256(shared) mod n
    P          = S + tweak * G            S: spend public key
    address    = keccak256(encode(P))[12:]
    view_tag   = keccak256(shared)[0]

The recipient recomputes ``shared = encode(v * R)`` from the published
ephemeral key R. The view tag rejects about 255 of 256 foreign payments
before the full address comparison.
"""

import logging
from dataclasses import dataclass
from typing import Tuple, Union

from Crypto.PublicKey import ECC

from gelap.crypto.curve import (
    ORDER,
    random_scalar,
    base_mult,
    scalar_mult,
    encode_point,
    decode_point,
)
from gelap.exceptions import InvalidPointError
from gelap.utils.hash import keccak256
from gelap.utils.encoding import bytes_to_hex, bytes_to_int, ensure_bytes

logger = logging.getLogger(__name__)

ADDRESS_SIZE = 20


@dataclass(frozen=True)
class StealthAddress:
    address: str  # 0x-prefixed lowercase hex, 20 bytes
    ephemeral_public_key: bytes  # 64 bytes
    view_tag: int  # 0..255


def _as_scalar(value: Union[bytes, int]) -> int:
    if isinstance(value, int):
        return value % ORDER
    return bytes_to_int(ensure_bytes(value, 32)) % ORDER


class StealthAddressEngine:
    """Stateless stealth address operations over curve points."""

    @staticmethod
    def _tweak(shared_secret: bytes) -> Tuple[int, int]:
        digest = keccak256(shared_secret)
        return bytes_to_int(digest) % ORDER, digest[0]

    @staticmethod
    def address_of(public_point: ECC.EccPoint) -> str:
        """Account-style address of a public point."""
        return bytes_to_hex(keccak256(encode_point(public_point))[-ADDRESS_SIZE:])

    @staticmethod
    def shared_secret(private_key: Union[bytes, int], public_key: bytes) -> bytes:
        """
        ECDH shared secret, encoded as a point.

        Raises:
            InvalidPointError: If public_key is not a curve point
        """
        point = scalar_mult(decode_point(ensure_bytes(public_key, 64)), _as_scalar(private_key))
        return encode_point(point)

    @staticmethod
    def generate_with_secret(view_public_key: bytes, spend_public_key: bytes) -> Tuple[StealthAddress, bytes]:
        """
        Generate a stealth address and return the ECDH secret alongside it.

        The secret is what keys the encrypted note memo.
        """
        ephemeral_private = random_scalar()
        ephemeral_public = encode_point(base_mult(ephemeral_private))

        shared = StealthAddressEngine.shared_secret(ephemeral_private, view_public_key)
        tweak, view_tag = StealthAddressEngine._tweak(shared)

        spend_point = decode_point(ensure_bytes(spend_public_key, 64))
        stealth_point = spend_point + base_mult(tweak)

        stealth = StealthAddress(
            address=StealthAddressEngine.address_of(stealth_point),
            ephemeral_public_key=ephemeral_public,
            view_tag=view_tag,
        )
        return stealth, shared

    @staticmethod
    def generate(view_public_key: bytes, spend_public_key: bytes) -> StealthAddress:
        """Fresh one-time address for the owner of (view, spend) public keys."""
        stealth, _ = StealthAddressEngine.generate_with_secret(view_public_key, spend_public_key)
        return stealth

    @staticmethod
    def check_ownership(
        stealth: StealthAddress,
        view_private_key: Union[bytes, int],
        spend_public_key: bytes,
    ) -> bool:
        """True iff the stealth address was generated for this view/spend pair."""
        try:
            shared = StealthAddressEngine.shared_secret(view_private_key, stealth.ephemeral_public_key)
        except (InvalidPointError, ValueError, TypeError):
            return False

        tweak, view_tag = StealthAddressEngine._tweak(shared)
        if view_tag != stealth.view_tag:
            return False

        try:
            stealth_point = decode_point(ensure_bytes(spend_public_key, 64)) + base_mult(tweak)
        except (InvalidPointError, ValueError, TypeError):
            return False
        return StealthAddressEngine.address_of(stealth_point) == stealth.address.lower()

    @staticmethod
    def compute_stealth_private_key(
        ephemeral_public_key: bytes,
        view_private_key: Union[bytes, int],
        spend_private_key: Union[bytes, int],
    ) -> int:
        """Private scalar controlling the stealth address: spend + tweak mod n."""
        shared = StealthAddressEngine.shared_secret(view_private_key, ephemeral_public_key)
        tweak, _ = StealthAddressEngine._tweak(shared)
        return (_as_scalar(spend_private_key) + tweak) % ORDER

    @staticmethod
    def stealth_public_key(
        ephemeral_public_key: bytes,
        view_private_key: Union[bytes, int],
        spend_public_key: bytes,
    ) -> bytes:
        """Encoded public point underlying the stealth address."""
        shared = StealthAddressEngine.shared_secret(view_private_key, ephemeral_public_key)
        tweak, _ = StealthAddressEngine._tweak(shared)
        return encode_point(decode_point(ensure_bytes(spend_public_key, 64)) + base_mult(tweak))
