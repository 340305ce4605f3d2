"""
Scalar field helpers for BN254

`hash_to_field` is a deterministic but NOT collision resistant reduction.
It seeds the simulated prover and reduces document digests; anything that
needs binding must go through the circuit.
"""

import secrets
from typing import Union

from .constant import BN254_SCALAR_FIELD
from .errors import InvalidFormat, OutOfRange

FieldLike = Union[int, str]


def hash_to_field(data: str, p: int = BN254_SCALAR_FIELD) -> int:
    """
    Map `data` into [0, p).

    `0x`-prefixed input is read as a hex integer, anything else is folded
    UTF-16 code unit by code unit with `h = h * 31 + unit`, so characters
    outside the BMP contribute their two surrogate halves.
    """
    if data.startswith("0x"):
        try:
            return int(data, 16) % p
        except ValueError:
            # not actually hex, fall back to folding the text
            pass

    units = data.encode("utf-16-be", errors="surrogatepass")
    h = 0
    for i in range(0, len(units), 2):
        h = (h * 31 + int.from_bytes(units[i : i + 2], "big")) % p
    return h


def hex_to_field(digest: str, p: int = BN254_SCALAR_FIELD) -> int:
    """Interpret a hex digest (with or without 0x) as an integer mod p"""
    try:
        return int(digest, 16) % p
    except (TypeError, ValueError) as exc:
        raise InvalidFormat(f"Not a hex digest: {digest!r}") from exc


def _to_int(value: FieldLike) -> int:
    if isinstance(value, bool):
        raise InvalidFormat("Boolean is not a field element")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        try:
            if value.lower().startswith("0x"):
                return int(value, 16)
            return int(value, 10)
        except ValueError as exc:
            raise InvalidFormat(f"Not a field element: {value!r}") from exc
    raise InvalidFormat(f"Unsupported field element type: {type(value)}")


def to_field(
    value: FieldLike, p: int = BN254_SCALAR_FIELD, canonical: bool = False
) -> int:
    """
    Reduce an int, decimal string or 0x-hex string into the field.

    With `canonical` set, values outside [0, p) raise `OutOfRange` instead
    of being reduced.
    """
    n = _to_int(value)
    if canonical and not 0 <= n < p:
        raise OutOfRange(f"{value!r} is not a canonical field element")
    return n % p


def field_to_hex(value: int) -> str:
    """Render a field element as 0x-prefixed, zero padded 32-byte hex"""
    return "0x" + format(value, "064x")


def generate_random_document_hash() -> str:
    return "0x" + secrets.token_bytes(32).hex()
