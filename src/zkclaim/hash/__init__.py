"""
Field hashes used for tree nodes, commitments and nullifiers
"""

from .linear import linear_combine, linear_commit
from .poseidon import PoseidonHash, poseidon
