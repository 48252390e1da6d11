"""Cryptographic primitives module"""

from gelap.crypto.curve import (
    CURVE_NAME,
    ORDER,
    G,
    H,
    random_scalar,
    scalar_mult,
    base_mult,
    sum_points,
    encode_point,
    decode_point,
    encode_scalar,
    decode_scalar,
)

from gelap.crypto.nullifier import compute_nullifier

__all__ = [
    'CURVE_NAME',
    'ORDER',
    'G',
    'H',
    'random_scalar',
    'scalar_mult',
    'base_mult',
    'sum_points',
    'encode_point',
    'decode_point',
    'encode_scalar',
    'decode_scalar',
    'compute_nullifier',
]
