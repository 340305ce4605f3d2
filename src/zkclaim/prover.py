"""
Claim proof generation

A claim proves that a private disease id is a leaf of the product's
covered-disease tree and binds the claimant's secret to a nullifier, while
exposing five public signals in this fixed order:

    [policyId, claimAmount, dataHash, coveredRoot, nullifier]

When the circuit artifacts cannot be found a simulated prover is used. Its
proofs have the right shape and a real nullifier but will never pass
on-chain verification.
"""

import logging
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Union

import httpx

from .assets import CircuitAssets
from .backend import ProvingBackend, SnarkjsBackend
from .commitment.merkle import Combine, Merkle, MerkleProof, find_leaf_index
from .config import Settings
from .constant import BN254_SCALAR_FIELD
from .errors import (
    DiseaseNotCovered,
    OutOfRange,
    PublicInputMismatch,
    RootMismatch,
)
from .field import field_to_hex, hash_to_field, hex_to_field, to_field
from .groth16.proof import Proof
from .hash.poseidon import PoseidonHash
from .secret import SecretManager

logger = logging.getLogger(__name__)

N_PUBLIC_INPUTS = 5


class ProofStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    GENERATING = "generating"
    SUCCESS = "success"
    ERROR = "error"


ProgressCallback = Callable[[ProofStatus, str], None]


@dataclass
class ClaimProofInput:
    policy_id: int
    claim_amount: int
    document_hash: str
    covered_root: Union[int, str]
    # private
    disease_id: int
    user_secret: int
    disease_ids: List[int] = field(default_factory=list)


@dataclass
class ProofResult:
    proof: Proof
    public_inputs: List[int]
    nullifier: str
    data_hash: str
    simulated: bool = False

    def to_contract_args(self) -> dict:
        """Arguments for the claim submission contract call"""
        return {
            "proof": self.proof.to_contract(),
            "publicInputs": list(self.public_inputs),
            "nullifier": self.nullifier,
            "dataHash": self.data_hash,
        }


@dataclass
class ClaimContext:
    """Validated claim with every derived value the provers need"""

    input: ClaimProofInput
    data_hash_field: int
    covered_root: int
    nullifier: int
    leaf_index: int
    membership: MerkleProof

    @property
    def public_inputs(self) -> List[int]:
        return [
            self.input.policy_id,
            self.input.claim_amount,
            self.data_hash_field,
            self.covered_root,
            self.nullifier,
        ]

    def witness(self) -> dict:
        """Named circuit inputs, every value as a decimal string"""
        return {
            "policyId": str(self.input.policy_id),
            "claimAmount": str(self.input.claim_amount),
            "dataHash": str(self.data_hash_field),
            "coveredRoot": str(self.covered_root),
            "nullifier": str(self.nullifier),
            "diseaseId": str(self.input.disease_id),
            "secret": str(self.input.user_secret),
            "pathElements": [str(x) for x in self.membership.path_elements],
            "pathIndices": [str(x) for x in self.membership.path_indices],
        }


class Progress:
    """Forwards status updates to an optional observer that must not break proving"""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def __call__(self, status: ProofStatus, message: str):
        logger.debug("[%s] %s", status.value, message)
        if self.callback is None:
            return
        try:
            self.callback(status, message)
        except Exception:
            logger.exception("Progress callback raised, ignoring")


_nullifier_hash = PoseidonHash(4)


def derive_nullifier(
    secret: int,
    policy_id: int,
    claim_amount: int,
    data_hash_field: int,
    hasher: Optional[Callable[..., int]] = None,
) -> int:
    """Nullifier = Poseidon(secret, policyId, claimAmount, dataHash)"""
    hasher = hasher or _nullifier_hash
    return hasher(secret, policy_id, claim_amount, data_hash_field) % BN254_SCALAR_FIELD


def _check_field(name: str, value: int, allow_zero: bool = True):
    low = 0 if allow_zero else 1
    if not isinstance(value, int) or not low <= value < BN254_SCALAR_FIELD:
        raise OutOfRange(f"{name} must be an integer in [{low}, field modulus)")


def prepare_claim(
    claim: ClaimProofInput,
    hasher: Optional[Callable[..., int]] = None,
    combine: Optional[Combine] = None,
    depth: Optional[int] = None,
) -> ClaimContext:
    """
    Reduce the document hash, derive the nullifier and check membership of
    the disease in the covered tree.

    Raises:
        DiseaseNotCovered: disease id absent from `disease_ids`
        RootMismatch: rebuilt root differs from `covered_root`
        OutOfRange: `covered_root` is not below the field modulus
    """
    _check_field("policy_id", claim.policy_id)
    _check_field("claim_amount", claim.claim_amount)
    _check_field("user_secret", claim.user_secret, allow_zero=False)

    data_hash_field = hex_to_field(claim.document_hash)
    covered_root = to_field(claim.covered_root, canonical=True)

    nullifier = derive_nullifier(
        claim.user_secret,
        claim.policy_id,
        claim.claim_amount,
        data_hash_field,
        hasher,
    )

    if not claim.disease_ids:
        raise DiseaseNotCovered(claim.disease_id, [])

    leaf_index = find_leaf_index(claim.disease_ids, claim.disease_id)
    if leaf_index < 0:
        raise DiseaseNotCovered(claim.disease_id, claim.disease_ids)

    merkle = Merkle(combine, depth)
    tree = merkle.build_tree(claim.disease_ids)
    if tree.root != covered_root:
        raise RootMismatch(covered_root, tree.root)

    membership = merkle.get_proof(tree.levels, leaf_index)

    return ClaimContext(
        claim, data_hash_field, covered_root, nullifier, leaf_index, membership
    )


class SimulatedProver:
    """Deterministic proof-shaped output for development without circuit artifacts"""

    simulated = True

    async def prove(self, ctx: ClaimContext, progress: Progress) -> ProofResult:
        progress(ProofStatus.GENERATING, "Computing simulated proof...")

        claim = ctx.input
        seed = hash_to_field(
            claim.document_hash + str(claim.policy_id) + str(claim.disease_id)
        )
        k = [(seed * i) % BN254_SCALAR_FIELD for i in range(1, 9)]
        proof = Proof(k[0:2], [k[2:4], k[4:6]], k[6:8])

        return ProofResult(
            proof,
            ctx.public_inputs,
            field_to_hex(ctx.nullifier),
            claim.document_hash,
            simulated=True,
        )


class RealProver:
    """
    Args:
        assets: circuit artifacts
        backend: proving backend, snarkjs CLI by default
        client: HTTP client used to download remote artifacts
    """

    simulated = False

    def __init__(
        self,
        assets: CircuitAssets,
        backend: Optional[ProvingBackend] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.assets = assets
        self.backend = backend or SnarkjsBackend()
        self.client = client

    async def prove(self, ctx: ClaimContext, progress: Progress) -> ProofResult:
        progress(ProofStatus.GENERATING, "Computing witness...")
        witness = ctx.witness()

        with tempfile.TemporaryDirectory(prefix="zkclaim-assets-") as tmp:
            wasm_path, zkey_path = await self.assets.materialize(tmp, self.client)
            raw_proof, public_signals = await self.backend.full_prove(
                witness, wasm_path, zkey_path
            )

        progress(ProofStatus.GENERATING, "Formatting proof...")

        proof = Proof.from_snarkjs(raw_proof)
        public_inputs = [to_field(s) for s in public_signals]

        return ProofResult(
            proof,
            public_inputs,
            field_to_hex(ctx.nullifier),
            ctx.input.document_hash,
        )


async def select_prover(
    assets: CircuitAssets,
    backend: Optional[ProvingBackend] = None,
    client: Optional[httpx.AsyncClient] = None,
):
    if await assets.probe(client):
        return RealProver(assets, backend, client)

    logger.warning(
        "Circuit assets not found at %s, falling back to SIMULATED proofs "
        "that cannot pass on-chain verification",
        assets.base,
    )
    return SimulatedProver()


def check_public_inputs(result: ProofResult, claim: ClaimProofInput):
    signals = result.public_inputs
    if len(signals) != N_PUBLIC_INPUTS:
        raise PublicInputMismatch("length", N_PUBLIC_INPUTS, len(signals))
    if signals[0] != claim.policy_id:
        raise PublicInputMismatch("policyId", claim.policy_id, signals[0])
    if signals[1] != claim.claim_amount:
        raise PublicInputMismatch("claimAmount", claim.claim_amount, signals[1])


async def generate_claim_proof(
    claim: ClaimProofInput,
    on_progress: Optional[ProgressCallback] = None,
    *,
    assets: Optional[CircuitAssets] = None,
    backend: Optional[ProvingBackend] = None,
    hasher: Optional[Callable[..., int]] = None,
    combine: Optional[Combine] = None,
    depth: Optional[int] = None,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> ProofResult:
    """
    Generate a claim proof, real when circuit artifacts are reachable and
    simulated otherwise.

    Progress is reported as loading -> generating -> success | error. Any
    failure is reported as `error` and re-raised unchanged.
    """
    progress = Progress(on_progress)

    try:
        progress(ProofStatus.LOADING, "Loading proof system...")

        # the environment is only read for collaborators not injected
        if settings is None and (assets is None or backend is None):
            settings = Settings.from_env()
        if assets is None:
            assets = CircuitAssets.from_settings(settings)
        if backend is None:
            backend = SnarkjsBackend(settings.snarkjs)
        if depth is None and settings is not None:
            depth = settings.tree_depth

        progress(ProofStatus.LOADING, "Checking circuit assets...")
        prover = await select_prover(assets, backend, client)

        if prover.simulated:
            progress(
                ProofStatus.GENERATING,
                "WARNING: circuit assets unavailable, generating a SIMULATED "
                "proof that will not pass on-chain verification",
            )
        else:
            progress(ProofStatus.GENERATING, "Generating zero-knowledge proof...")

        ctx = prepare_claim(claim, hasher, combine, depth)
        result = await prover.prove(ctx, progress)
        check_public_inputs(result, claim)

    except Exception as exc:
        progress(ProofStatus.ERROR, str(exc) or "Proof generation failed")
        raise

    progress(ProofStatus.SUCCESS, "Proof generated successfully!")
    return result


@dataclass
class ClaimRequest:
    """Claim facts collected from the user, before the secret is attached"""

    policy_id: int
    claim_amount: int
    disease_id: int
    document_hash: str
    # as published on-chain for the product
    covered_root: Union[int, str]
    disease_ids: List[int] = field(default_factory=list)


class ClaimProver:
    """
    Stateful front end for one claimant: tracks status, the last proof and
    the last error, and looks the claimant's secret up by address.

    Concurrent calls are not deduplicated; callers must not start a new
    generation while `is_generating` is true.
    """

    def __init__(
        self,
        secrets: SecretManager,
        *,
        assets: Optional[CircuitAssets] = None,
        backend: Optional[ProvingBackend] = None,
        hasher: Optional[Callable[..., int]] = None,
        combine: Optional[Combine] = None,
        depth: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
        on_success: Optional[Callable[[ProofResult], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.secrets = secrets
        self.assets = assets
        self.backend = backend
        self.hasher = hasher
        self.combine = combine
        self.depth = depth
        self.client = client
        self.settings = settings
        self.on_success = on_success
        self.on_error = on_error
        self.reset()

    @property
    def is_generating(self) -> bool:
        return self.status in (ProofStatus.LOADING, ProofStatus.GENERATING)

    def _on_progress(self, status: ProofStatus, message: str):
        self.status = status
        self.status_message = message

    def reset(self):
        self.proof: Optional[ProofResult] = None
        self.status = ProofStatus.IDLE
        self.status_message = ""
        self.error: Optional[Exception] = None

    async def generate_proof(self, address: str, request: ClaimRequest) -> ProofResult:
        self.error = None
        self.proof = None
        self._on_progress(ProofStatus.LOADING, "Initializing proof generation...")

        try:
            if not address:
                raise ValueError("Connect a wallet before generating a proof")
            if not request.disease_ids:
                raise DiseaseNotCovered(request.disease_id, [])
            if request.disease_id not in request.disease_ids:
                raise DiseaseNotCovered(request.disease_id, request.disease_ids)

            secret = self.secrets.get_secret_for_address(address)
            claim = ClaimProofInput(
                policy_id=request.policy_id,
                claim_amount=request.claim_amount,
                document_hash=request.document_hash,
                covered_root=request.covered_root,
                disease_id=request.disease_id,
                user_secret=secret,
                disease_ids=list(request.disease_ids),
            )

            result = await generate_claim_proof(
                claim,
                self._on_progress,
                assets=self.assets,
                backend=self.backend,
                hasher=self.hasher,
                combine=self.combine,
                depth=self.depth,
                client=self.client,
                settings=self.settings,
            )
        except Exception as exc:
            self.error = exc
            self._on_progress(ProofStatus.ERROR, str(exc))
            if self.on_error is not None:
                self.on_error(exc)
            raise

        self.proof = result
        self._on_progress(ProofStatus.SUCCESS, "Proof generated successfully!")
        if self.on_success is not None:
            self.on_success(result)
        return result
