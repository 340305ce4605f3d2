from ..hash.linear import linear_commit
from .base import ScalarCommitmentScheme


class LinearCommitment(ScalarCommitmentScheme):
    """
    Placeholder commitment `(7 * secret + 11 * salt) mod p`

    Kept for parity with the deployed contracts, replace with a
    `PoseidonCommitment` for anything that must be hiding.
    """

    def commit(self, secret, salt=0):
        return linear_commit(secret, salt, self.order)
