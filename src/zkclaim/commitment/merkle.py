"""
Fixed-arity binary Merkle tree over field elements

Node combiner is injectable. The default `linear_combine` reproduces the
roots published by the current deployment; pass `PoseidonHash(2)` (or any
`combine(left, right) -> int`) when the verifier expects a real hash.
Leaf order is significant and must match the order used to publish the
on-chain root.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from joblib import Parallel, delayed

from ..constant import BN254_SCALAR_FIELD, ZERO_VALUE
from ..errors import IndexOutOfRange, InvalidFormat, OutOfRange
from ..field import hash_to_field
from ..hash.linear import linear_combine
from ..utils import get_n_jobs, next_power_of_two
from .base import VectorCommitmentScheme

logger = logging.getLogger(__name__)

Combine = Callable[[int, int], int]

# levels at least this wide are hashed with joblib workers
PARALLEL_THRESHOLD = 8192


@dataclass
class MerkleTree:
    root: int
    levels: List[List[int]]

    @property
    def depth(self) -> int:
        return len(self.levels) - 1

    @property
    def leaves(self) -> List[int]:
        return self.levels[0]


@dataclass
class MerkleProof:
    leaf: int
    path_elements: List[int] = field(default_factory=list)
    path_indices: List[int] = field(default_factory=list)
    root: int = ZERO_VALUE


@dataclass
class MedicalRecord:
    patient_id: str
    diagnosis_code: str
    treatment_date: str
    provider: str


class Merkle(VectorCommitmentScheme):
    """
    Merkle tree commitment

    Args:
        combine: two-to-one node hash, `linear_combine` by default
        depth: fixed tree height, `None` for the smallest power of two
        order: scalar field modulus
    """

    def __init__(
        self,
        combine: Optional[Combine] = None,
        depth: Optional[int] = None,
        order: int = BN254_SCALAR_FIELD,
    ):
        super().__init__(order)
        self.combine = combine or linear_combine
        self.depth = depth

    def _combine(self, left: int, right: int) -> int:
        return self.combine(left, right) % self.order

    def zeros(self, depth: int) -> List[int]:
        """Roots of all-zero subtrees of height 0..depth"""
        zeros = [ZERO_VALUE]
        for _ in range(depth):
            zeros.append(self._combine(zeros[-1], zeros[-1]))
        return zeros

    def empty_root(self, depth: int) -> int:
        return self.zeros(depth)[-1]

    def _hash_level(self, nodes: List[int], filled: int, zero: int) -> List[int]:
        n_parents = len(nodes) // 2
        n_filled = (filled + 1) // 2

        if n_filled >= PARALLEL_THRESHOLD:
            parents = Parallel(n_jobs=get_n_jobs())(
                delayed(self._combine)(nodes[2 * i], nodes[2 * i + 1])
                for i in range(n_filled)
            )
        else:
            parents = [
                self._combine(nodes[2 * i], nodes[2 * i + 1]) for i in range(n_filled)
            ]

        # everything past the filled prefix is an all-zero subtree
        return parents + [zero] * (n_parents - n_filled)

    def build_tree(self, leaves: Sequence[int]) -> MerkleTree:
        leaves = [leaf % self.order for leaf in leaves]

        if self.depth is None:
            if not leaves:
                return MerkleTree(ZERO_VALUE, [[ZERO_VALUE]])
            width = next_power_of_two(len(leaves))
            depth = width.bit_length() - 1
        else:
            depth = self.depth
            width = 1 << depth
            if len(leaves) > width:
                raise OutOfRange(
                    f"{len(leaves)} leaves exceed tree capacity {width} at depth {depth}"
                )

        zeros = self.zeros(depth)
        nodes = leaves + [ZERO_VALUE] * (width - len(leaves))
        levels = [nodes]
        filled = len(leaves)

        for lvl in range(depth):
            nodes = self._hash_level(nodes, filled, zeros[lvl + 1])
            filled = (filled + 1) // 2
            levels.append(nodes)

        logger.debug("Built Merkle tree: %d leaves, depth %d", len(leaves), depth)

        return MerkleTree(levels[-1][0], levels)

    def get_proof(self, levels: List[List[int]], index: int) -> MerkleProof:
        if index < 0 or index >= len(levels[0]):
            raise IndexOutOfRange(
                f"Leaf index {index} out of range 0..{len(levels[0]) - 1}"
            )

        leaf = levels[0][index]
        path_elements = []
        path_indices = []

        for level in levels[:-1]:
            is_right = index % 2 == 1
            sibling_index = index - 1 if is_right else index + 1
            if sibling_index < len(level):
                path_elements.append(level[sibling_index])
            else:
                path_elements.append(ZERO_VALUE)
            path_indices.append(1 if is_right else 0)
            index //= 2

        return MerkleProof(leaf, path_elements, path_indices, levels[-1][0])

    def verify_proof(self, proof: MerkleProof) -> bool:
        if len(proof.path_elements) != len(proof.path_indices):
            return False

        current = proof.leaf % self.order
        for sibling, side in zip(proof.path_elements, proof.path_indices):
            if side == 1:
                current = self._combine(sibling, current)
            elif side == 0:
                current = self._combine(current, sibling)
            else:
                return False

        return current == proof.root

    def commit(self, vector):
        return self.build_tree(vector).root

    def open(self, vector, index):
        tree = self.build_tree(vector)
        return self.get_proof(tree.levels, index)

    def verify(self, commitment, proof, index, element):
        path_indices = [(index >> i) & 1 for i in range(len(proof.path_elements))]
        return self.verify_proof(
            MerkleProof(element, proof.path_elements, path_indices, commitment)
        )


_default = Merkle()


def build_tree(
    leaves: Sequence[int],
    combine: Optional[Combine] = None,
    depth: Optional[int] = None,
) -> MerkleTree:
    if combine is None and depth is None:
        return _default.build_tree(leaves)
    return Merkle(combine, depth).build_tree(leaves)


def get_proof(levels: List[List[int]], leaf_index: int) -> MerkleProof:
    return _default.get_proof(levels, leaf_index)


def verify_proof(proof: MerkleProof, combine: Optional[Combine] = None) -> bool:
    if combine is None:
        return _default.verify_proof(proof)
    return Merkle(combine).verify_proof(proof)


def empty_root_at_depth(depth: int, combine: Optional[Combine] = None) -> int:
    return Merkle(combine).empty_root(depth)


def create_leaf(record: MedicalRecord) -> int:
    """Reduce a medical record to a leaf for auxiliary membership sets"""
    data = "|".join(
        [
            str(record.patient_id),
            str(record.diagnosis_code),
            str(record.treatment_date),
            str(record.provider),
        ]
    )
    return hash_to_field(data)


def find_leaf_index(leaves: Sequence[int], value: int) -> int:
    """Position of `value` in `leaves`, -1 when absent"""
    try:
        return list(leaves).index(value)
    except ValueError:
        return -1


def dump_tree(tree: MerkleTree) -> dict:
    """JSON friendly form of a tree, nodes as decimal strings"""
    return {
        "depth": tree.depth,
        "root": str(tree.root),
        "levels": [[str(node) for node in level] for level in tree.levels],
    }


def load_tree(dump: dict) -> MerkleTree:
    levels = [[int(node) for node in level] for level in dump["levels"]]
    root = int(dump["root"])
    if not levels or len(levels) != dump["depth"] + 1 or levels[-1] != [root]:
        raise InvalidFormat("Inconsistent tree dump")
    return MerkleTree(root, levels)
