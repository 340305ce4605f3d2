from .base import VectorCommitmentScheme, ScalarCommitmentScheme
from .linear import LinearCommitment
from .poseidon import PoseidonCommitment
from .merkle import (
    Merkle,
    MerkleTree,
    MerkleProof,
    MedicalRecord,
    build_tree,
    get_proof,
    verify_proof,
    empty_root_at_depth,
    create_leaf,
    find_leaf_index,
    dump_tree,
    load_tree,
)
