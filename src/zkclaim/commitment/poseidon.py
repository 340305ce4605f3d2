from ..constant import BN254_SCALAR_FIELD
from ..hash.poseidon import PoseidonHash
from .base import ScalarCommitmentScheme


class PoseidonCommitment(ScalarCommitmentScheme):
    """Commitment `Poseidon(secret, salt)`"""

    def __init__(self, order=BN254_SCALAR_FIELD):
        super().__init__(order)
        self.hasher = PoseidonHash(2, order)

    def commit(self, secret, salt=0):
        return self.hasher(secret % self.order, salt % self.order)
