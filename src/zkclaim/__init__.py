"""
zkclaim: zero-knowledge proofs of covered medical claims
"""

import logging

from .constant import BN254_MODULUS, BN254_SCALAR_FIELD, SNARK_FIELD
from .errors import (
    ZKClaimError,
    DiseaseNotCovered,
    RootMismatch,
    PublicInputMismatch,
    InvalidFormat,
    OutOfRange,
    IndexOutOfRange,
    ProverError,
)
from .field import (
    hash_to_field,
    hex_to_field,
    to_field,
    field_to_hex,
    generate_random_document_hash,
)
from .commitment.merkle import (
    Merkle,
    MerkleTree,
    MerkleProof,
    build_tree,
    get_proof,
    verify_proof,
    create_leaf,
    empty_root_at_depth,
)
from .secret import SecretManager, MemorySecretStore, FileSecretStore
from .prover import (
    ProofStatus,
    ClaimProofInput,
    ProofResult,
    ClaimRequest,
    ClaimProver,
    derive_nullifier,
    generate_claim_proof,
)
from .groth16 import Proof, format_proof_for_contract
from .verify import verify_proof_locally

logging.getLogger(__name__).addHandler(logging.NullHandler())
