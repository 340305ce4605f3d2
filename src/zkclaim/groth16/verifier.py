"""Verification module of Groth16 protocol"""

from joblib import Parallel, delayed

from ..ecc import CurveType, EllipticCurve
from ..errors import InvalidFormat
from ..utils import get_n_jobs
from .proof import Proof


def _pairing(crv: str, a, b):
    return CurveType[crv].value.pairing(a, b)


def g1_from_snarkjs(E: EllipticCurve, p):
    """G1 point from snarkjs projective `[x, y, z]`"""
    return E(int(p[0]), int(p[1]), int(p[2]))


def g2_from_snarkjs(E: EllipticCurve, p):
    """G2 point from snarkjs projective `[[x0, x1], [y0, y1], [z0, z1]]`"""
    return E(
        (int(p[0][0]), int(p[0][1])),
        (int(p[1][0]), int(p[1][1])),
        (int(p[2][0]), int(p[2][1])),
    )


class VerifyingKey:
    def __init__(self, alpha_G1, beta_G2, gamma_G2, delta_G2, IC):
        self.alpha_1 = alpha_G1
        self.beta_2 = beta_G2
        self.gamma_2 = gamma_G2
        self.delta_2 = delta_G2
        self.ic = IC

    @property
    def n_public(self):
        return len(self.ic) - 1

    @classmethod
    def from_snarkjs(cls, vkey: dict, crv="BN254"):
        """Construct VerifyingKey from a snarkjs `verification_key.json`"""
        E = EllipticCurve(crv)

        if vkey.get("protocol", "groth16") != "groth16":
            raise InvalidFormat(f"Unsupported protocol {vkey['protocol']}")

        try:
            return VerifyingKey(
                g1_from_snarkjs(E, vkey["vk_alpha_1"]),
                g2_from_snarkjs(E, vkey["vk_beta_2"]),
                g2_from_snarkjs(E, vkey["vk_gamma_2"]),
                g2_from_snarkjs(E, vkey["vk_delta_2"]),
                [g1_from_snarkjs(E, p) for p in vkey["IC"]],
            )
        except (AssertionError, KeyError, IndexError, TypeError, ValueError) as exc:
            raise InvalidFormat("Malformed verification key") from exc


class Verifier:
    """
    Verifier object

    Args:
        key: `VerifyingKey` from trusted setup
        curve: `BN254`
    """

    def __init__(self, key: VerifyingKey, curve: str = "BN254"):
        self.key = key
        self.E = EllipticCurve(curve)

    def verify(self, proof, public_signals: list) -> bool:
        """
        Verify a snarkjs-shaped proof (`pi_a`, `pi_b`, `pi_c`) or a `Proof`
        against its public signals
        """
        if isinstance(proof, Proof):
            proof = proof.to_snarkjs()

        public_witness = [1] + [int(x) % self.E.order for x in public_signals]
        assert len(self.key.ic) == len(
            public_witness
        ), "Length of IC and public_witness must be equal"

        A = g1_from_snarkjs(self.E, proof["pi_a"])
        B = g2_from_snarkjs(self.E, proof["pi_b"])
        C = g1_from_snarkjs(self.E, proof["pi_c"])

        sum_gamma_witness = self.key.ic[0]
        for point, scalar in zip(self.key.ic[1:], public_witness[1:]):
            sum_gamma_witness += point * scalar

        pairings = [
            (B, A),
            (self.key.beta_2, self.key.alpha_1),
            (self.key.gamma_2, sum_gamma_witness),
            (self.key.delta_2, C),
        ]

        result = Parallel(n_jobs=get_n_jobs())(
            delayed(_pairing)(self.E.name, a.point, b.point) for a, b in pairings
        )

        # e(B, A) == e(beta, alpha) * e(gamma, sum_gamma_witness) * e(delta, C)
        return result[0] == result[1] * result[2] * result[3]
