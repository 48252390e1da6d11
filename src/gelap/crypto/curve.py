"""
Elliptic-curve group helpers on NIST P-256.

All point arithmetic is delegated to pycryptodome's ``ECC.EccPoint``; this
module only fixes the generators and the wire encodings the rest of the
package relies on.

The curve is P-256, not secp256k1, so keys, commitments and stealth
addresses are not interchangeable with secp256k1-based deployments.

Encodings:
    - Point: 64 bytes, x (32, big-endian) || y (32, big-endian)
    - Scalar: 32 bytes, big-endian, reduced modulo the group order

Generators:
    - G: the standard P-256 base point
    - H: nothing-up-my-sleeve point obtained by hashing a fixed tag to an
      x-coordinate (try-and-increment), so log_G(H) is unknown
"""

import secrets
from typing import Iterable, Optional

from Crypto.PublicKey import ECC

from gelap.exceptions import InvalidPointError, CryptoError
from gelap.utils.hash import hash_concatenate
from gelap.utils.encoding import int_to_bytes32, bytes_to_int

CURVE_NAME = "P-256"

# Curve parameters (FIPS 186-4, D.1.2.3)
FIELD_PRIME = 0xffffffff00000001000000000000000000000000ffffffffffffffffffffffff
CURVE_B = 0x5ac635d8aa3a93e7b3ebbd55769886bc651d06b0cc53b0f63bce3c3e27d2604b
ORDER = 0xffffffff00000000ffffffffffffffffbce6faada7179e84f3b9cac2fc632551

POINT_SIZE = 64
SCALAR_SIZE = 32

H_GENERATOR_TAG = b"gelap.pedersen.generator.H"
_MAX_HASH_TO_CURVE_ATTEMPTS = 256


def _base_point() -> ECC.EccPoint:
    # d = 1 makes the public point equal to the base point itself
    return ECC.construct(curve=CURVE_NAME, d=1).pointQ


def _hash_to_point(tag: bytes) -> ECC.EccPoint:
    """Map a tag to a curve point with unknown discrete logarithm."""
    for counter in range(_MAX_HASH_TO_CURVE_ATTEMPTS):
        x = bytes_to_int(hash_concatenate(tag, counter.to_bytes(4, byteorder='big')))
        if x >= FIELD_PRIME:
            continue
        rhs = (pow(x, 3, FIELD_PRIME) - 3 * x + CURVE_B) % FIELD_PRIME
        # FIELD_PRIME = 3 mod 4, so a square root is rhs^((p+1)/4)
        y = pow(rhs, (FIELD_PRIME + 1) // 4, FIELD_PRIME)
        if (y * y) % FIELD_PRIME != rhs:
            continue
        if y % 2 == 1:
            y = FIELD_PRIME - y
        return ECC.EccPoint(x, y, curve=CURVE_NAME)
    raise CryptoError("Could not derive generator from tag")


G = _base_point()
H = _hash_to_point(H_GENERATOR_TAG)


def random_scalar() -> int:
    """Uniform scalar in [1, ORDER)."""
    return secrets.randbelow(ORDER - 1) + 1


def reduce_scalar(value: int) -> int:
    """Reduce an integer modulo the group order."""
    return value % ORDER


def scalar_mult(point: ECC.EccPoint, scalar: int) -> ECC.EccPoint:
    """Return scalar * point, with the scalar reduced modulo the order."""
    k = reduce_scalar(scalar)
    if k == 0:
        return point.point_at_infinity()
    return point * k


def base_mult(scalar: int) -> ECC.EccPoint:
    """Return scalar * G."""
    return scalar_mult(G, scalar)


def sum_points(points: Iterable[ECC.EccPoint]) -> Optional[ECC.EccPoint]:
    """Add points together. Returns None for an empty iterable."""
    total = None
    for point in points:
        total = point.copy() if total is None else total + point
    return total


def encode_point(point: ECC.EccPoint) -> bytes:
    """Serialize a point as 64 bytes (x || y)."""
    if point.is_point_at_infinity():
        raise InvalidPointError("Cannot encode the point at infinity")
    return int_to_bytes32(int(point.x)) + int_to_bytes32(int(point.y))


def decode_point(data: bytes) -> ECC.EccPoint:
    """
    Parse a 64-byte point encoding.

    Raises:
        InvalidPointError: If the length is wrong or the point is not on the curve
    """
    if not isinstance(data, (bytes, bytearray)) or len(data) != POINT_SIZE:
        raise InvalidPointError(f"Point encoding must be {POINT_SIZE} bytes")
    x = bytes_to_int(data[:32])
    y = bytes_to_int(data[32:])
    if x == 0 and y == 0:
        raise InvalidPointError("Point at infinity is not a valid encoding")
    try:
        return ECC.EccPoint(x, y, curve=CURVE_NAME)
    except ValueError as e:
        raise InvalidPointError(f"Invalid curve point: {e}")


def encode_scalar(scalar: int) -> bytes:
    """Serialize a scalar as 32 big-endian bytes."""
    return int_to_bytes32(reduce_scalar(scalar))


def decode_scalar(data: bytes) -> int:
    """Parse a 32-byte scalar."""
    if not isinstance(data, (bytes, bytearray)) or len(data) != SCALAR_SIZE:
        raise CryptoError(f"Scalar encoding must be {SCALAR_SIZE} bytes")
    return bytes_to_int(data)
