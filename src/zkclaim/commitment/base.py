from ..constant import BN254_SCALAR_FIELD


class VectorCommitmentScheme:

    def __init__(self, order=BN254_SCALAR_FIELD):
        self.order = order

    def commit(self, vector):
        raise NotImplementedError()

    def open(self, vector, index):
        raise NotImplementedError()

    def verify(self, commitment, proof, index, element):
        raise NotImplementedError()


class ScalarCommitmentScheme:
    """Commitment to a single secret scalar with an optional salt"""

    def __init__(self, order=BN254_SCALAR_FIELD):
        self.order = order

    def commit(self, secret, salt=0):
        raise NotImplementedError()

    def __call__(self, secret, salt=0):
        return self.commit(secret, salt)
