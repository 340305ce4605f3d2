"""Exceptions raised by zkclaim"""


class ZKClaimError(Exception):
    """Base class of every error raised by this package"""


class DiseaseNotCovered(ZKClaimError):
    """The selected disease is not part of the product's covered set"""

    def __init__(self, disease_id, covered=None):
        self.disease_id = disease_id
        self.covered = list(covered) if covered is not None else []
        if self.covered:
            msg = f"Disease {disease_id} is not covered by this product"
        else:
            msg = "Covered disease list is empty, cannot prove coverage"
        super().__init__(msg)


class RootMismatch(ZKClaimError):
    """Rebuilt coverage root differs from the product's published root"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Covered root mismatch: product publishes {hex(expected)}, "
            f"disease list rebuilds to {hex(actual)}"
        )


class PublicInputMismatch(ZKClaimError):
    """Prover output disagrees with the claim's public values"""

    def __init__(self, name: str, expected: int, actual: int):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Public signal {name} mismatch: expected {expected}, got {actual}"
        )


class InvalidFormat(ZKClaimError, ValueError):
    """Malformed backup string, digest or serialized value"""


class OutOfRange(ZKClaimError, ValueError):
    """Value is outside the valid field range"""


class IndexOutOfRange(ZKClaimError, IndexError):
    """Leaf index outside the tree's leaf level"""


class ProverError(ZKClaimError):
    """The proving backend failed to produce a proof"""
