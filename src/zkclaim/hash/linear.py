"""
Linear placeholder combiners.

These match the formulas used by the current on-chain deployment. They are
NOT collision resistant; swap in `PoseidonHash` wherever the verifier
expects a real hash.
"""

from ..constant import BN254_SCALAR_FIELD


def linear_combine(left: int, right: int, p: int = BN254_SCALAR_FIELD) -> int:
    """Two-to-one node combiner: (3 * left + 7 * right + 11) mod p"""
    return (left * 3 + right * 7 + 11) % p


def linear_commit(secret: int, salt: int = 0, p: int = BN254_SCALAR_FIELD) -> int:
    """Pedersen-like commitment placeholder: (7 * secret + 11 * salt) mod p"""
    return (secret * 7 + salt * 11) % p
