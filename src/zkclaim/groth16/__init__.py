"""
Groth16 proof layouts and verification
"""

from .proof import Proof, format_proof_for_contract
from .verifier import Verifier, VerifyingKey
