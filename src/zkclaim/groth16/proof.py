"""Groth16 proof layouts for snarkjs and the Solidity verifier"""

from typing import List, Sequence

from ..errors import InvalidFormat


def _ints(values: Sequence) -> List[int]:
    try:
        return [int(v) for v in values]
    except (TypeError, ValueError) as exc:
        raise InvalidFormat(f"Invalid proof coordinates: {values!r}") from exc


class Proof:
    """
    Groth16 proof in the layout expected by the on-chain verifier

    `b` holds the two G2 coordinates with each (c0, c1) pair stored as
    (c1, c0). snarkjs emits (c0, c1), the Solidity pairing precompile wants
    the reverse order, so the swap is applied once when a snarkjs proof is
    imported and undone when exporting back.
    """

    def __init__(self, a, b, c):
        self.a = _ints(a)
        self.b = [_ints(b[0]), _ints(b[1])]
        self.c = _ints(c)

        if len(self.a) != 2 or len(self.c) != 2 or any(len(r) != 2 for r in self.b):
            raise InvalidFormat("Proof must have a: [F, F], b: [[F, F], [F, F]], c: [F, F]")

    def __str__(self):
        return f"a = {self.a}\nb = {self.b}\nc = {self.c}"

    def __repr__(self):
        return self.__str__()

    def __eq__(self, other):
        if not isinstance(other, Proof):
            return NotImplemented
        return self.a == other.a and self.b == other.b and self.c == other.c

    @classmethod
    def from_snarkjs(cls, raw: dict) -> "Proof":
        """Import `{"pi_a", "pi_b", "pi_c"}` as emitted by snarkjs"""
        try:
            pi_a, pi_b, pi_c = raw["pi_a"], raw["pi_b"], raw["pi_c"]
            return cls(
                [pi_a[0], pi_a[1]],
                [[pi_b[0][1], pi_b[0][0]], [pi_b[1][1], pi_b[1][0]]],
                [pi_c[0], pi_c[1]],
            )
        except (KeyError, IndexError, TypeError) as exc:
            raise InvalidFormat("Malformed snarkjs proof") from exc

    def to_snarkjs(self) -> dict:
        """Projective snarkjs form with the b rows swapped back"""
        return {
            "pi_a": [str(self.a[0]), str(self.a[1]), "1"],
            "pi_b": [
                [str(self.b[0][1]), str(self.b[0][0])],
                [str(self.b[1][1]), str(self.b[1][0])],
                ["1", "0"],
            ],
            "pi_c": [str(self.c[0]), str(self.c[1]), "1"],
            "protocol": "groth16",
            "curve": "bn128",
        }

    @classmethod
    def from_contract(cls, data: dict) -> "Proof":
        try:
            return cls(data["a"], data["b"], data["c"])
        except (KeyError, IndexError, TypeError) as exc:
            raise InvalidFormat("Malformed contract proof") from exc

    def to_contract(self) -> dict:
        return {
            "a": list(self.a),
            "b": [list(self.b[0]), list(self.b[1])],
            "c": list(self.c),
        }


def format_proof_for_contract(raw: dict) -> dict:
    """Convert a snarkjs proof dict to `{a, b, c}` for the verifier contract"""
    return Proof.from_snarkjs(raw).to_contract()
