import asyncio

import httpx
import pytest

from zkclaim.assets import CircuitAssets
from zkclaim.backend import ProvingBackend, SnarkjsBackend
from zkclaim.commitment import Merkle, build_tree
from zkclaim.config import Settings
from zkclaim.constant import BN254_SCALAR_FIELD
from zkclaim.errors import (
    DiseaseNotCovered,
    OutOfRange,
    ProverError,
    PublicInputMismatch,
    RootMismatch,
)
from zkclaim.field import field_to_hex, hash_to_field, hex_to_field
from zkclaim.hash import PoseidonHash
from zkclaim.prover import (
    ClaimProofInput,
    ClaimProver,
    ClaimRequest,
    ProofStatus,
    derive_nullifier,
    generate_claim_proof,
    prepare_claim,
)
from zkclaim.secret import MemorySecretStore, SecretManager

COVERED = [101, 102, 107, 201]
COVERED_ROOT = 15268
DOC_HASH = "0x" + "ab" * 32
SECRET = 123456789

RAW_PROOF = {
    "pi_a": ["1", "2", "1"],
    "pi_b": [["3", "4"], ["5", "6"], ["1", "0"]],
    "pi_c": ["7", "8", "1"],
    "protocol": "groth16",
    "curve": "bn128",
}


class FakeBackend(ProvingBackend):
    def __init__(self, signals=None, error=None):
        self.signals = signals
        self.error = error
        self.calls = []

    async def full_prove(self, witness, wasm_path, zkey_path):
        with open(wasm_path, "rb") as f:
            wasm = f.read()
        self.calls.append((witness, wasm_path, zkey_path, wasm))

        if self.error is not None:
            raise self.error

        signals = self.signals
        if signals is None:
            signals = [
                witness["policyId"],
                witness["claimAmount"],
                witness["dataHash"],
                witness["coveredRoot"],
                witness["nullifier"],
            ]
        return RAW_PROOF, signals


@pytest.fixture
def claim():
    return ClaimProofInput(
        policy_id=1,
        claim_amount=5000,
        document_hash=DOC_HASH,
        covered_root=COVERED_ROOT,
        disease_id=107,
        user_secret=SECRET,
        disease_ids=list(COVERED),
    )


@pytest.fixture
def missing_assets(tmp_path):
    return CircuitAssets(base=str(tmp_path / "nowhere"))


@pytest.fixture
def local_assets(tmp_path):
    (tmp_path / "medical_claim.wasm").write_bytes(b"wasm")
    (tmp_path / "medical_claim_final.zkey").write_bytes(b"zkey")
    return CircuitAssets(base=str(tmp_path))


def run(coro):
    return asyncio.run(coro)


def test_derive_nullifier():
    data_hash = hex_to_field(DOC_HASH)
    nullifier = derive_nullifier(SECRET, 1, 5000, data_hash)

    assert nullifier == PoseidonHash(4)(SECRET, 1, 5000, data_hash)
    assert nullifier == derive_nullifier(SECRET, 1, 5000, data_hash)
    assert nullifier != derive_nullifier(SECRET + 1, 1, 5000, data_hash)
    assert nullifier != derive_nullifier(SECRET, 2, 5000, data_hash)

    assert derive_nullifier(1, 2, 3, 4, hasher=lambda *xs: sum(xs)) == 10


def test_prepare_claim(claim):
    ctx = prepare_claim(claim)

    assert ctx.data_hash_field == hex_to_field(DOC_HASH)
    assert ctx.covered_root == COVERED_ROOT
    assert ctx.leaf_index == 2
    assert ctx.membership.root == COVERED_ROOT
    assert ctx.public_inputs == [
        1,
        5000,
        ctx.data_hash_field,
        COVERED_ROOT,
        derive_nullifier(SECRET, 1, 5000, ctx.data_hash_field),
    ]

    witness = ctx.witness()
    assert witness["diseaseId"] == "107"
    assert witness["secret"] == str(SECRET)
    assert witness["pathElements"] == ["201", "1028"]
    assert witness["pathIndices"] == ["0", "1"]
    assert all(isinstance(v, str) for k, v in witness.items() if k not in ("pathElements", "pathIndices"))


def test_prepare_claim_hex_root(claim):
    claim.covered_root = field_to_hex(COVERED_ROOT)
    assert prepare_claim(claim).covered_root == COVERED_ROOT


def test_prepare_claim_rejects(claim):
    claim.disease_id = 999
    with pytest.raises(DiseaseNotCovered) as exc:
        prepare_claim(claim)
    assert exc.value.disease_id == 999
    assert "not covered" in str(exc.value)

    claim.disease_id = 107
    claim.disease_ids = []
    with pytest.raises(DiseaseNotCovered) as exc:
        prepare_claim(claim)
    assert "empty" in str(exc.value)

    claim.disease_ids = list(COVERED)
    claim.covered_root = 1
    with pytest.raises(RootMismatch) as exc:
        prepare_claim(claim)
    assert exc.value.expected == 1
    assert exc.value.actual == COVERED_ROOT


@pytest.mark.parametrize(
    "field, value",
    [
        ("user_secret", 0),
        ("user_secret", BN254_SCALAR_FIELD),
        ("policy_id", -1),
        ("claim_amount", BN254_SCALAR_FIELD),
    ],
)
def test_prepare_claim_out_of_range(claim, field, value):
    setattr(claim, field, value)
    with pytest.raises(OutOfRange):
        prepare_claim(claim)


def test_simulated_proof(claim, missing_assets):
    updates = []
    result = run(
        generate_claim_proof(
            claim,
            lambda status, msg: updates.append((status, msg)),
            assets=missing_assets,
            settings=Settings(),
        )
    )

    data_hash = hex_to_field(DOC_HASH)
    nullifier = derive_nullifier(SECRET, 1, 5000, data_hash)
    seed = hash_to_field(DOC_HASH + "1" + "107")
    k = [(seed * i) % BN254_SCALAR_FIELD for i in range(1, 9)]

    assert result.simulated
    assert result.public_inputs == [1, 5000, data_hash, COVERED_ROOT, nullifier]
    assert result.nullifier == field_to_hex(nullifier)
    assert result.data_hash == DOC_HASH
    assert result.proof.a == k[0:2]
    assert result.proof.b == [k[2:4], k[4:6]]
    assert result.proof.c == k[6:8]

    statuses = [s for s, _ in updates]
    assert statuses == [
        ProofStatus.LOADING,
        ProofStatus.LOADING,
        ProofStatus.GENERATING,
        ProofStatus.GENERATING,
        ProofStatus.SUCCESS,
    ]
    assert updates[0][1] == "Loading proof system..."
    assert "SIMULATED" in updates[2][1]
    assert updates[-1][1] == "Proof generated successfully!"


def test_simulated_proof_is_deterministic(claim, missing_assets):
    first = run(generate_claim_proof(claim, assets=missing_assets, settings=Settings()))
    second = run(generate_claim_proof(claim, assets=missing_assets, settings=Settings()))

    assert first.proof == second.proof
    assert first.public_inputs == second.public_inputs


def test_contract_args(claim, missing_assets):
    result = run(generate_claim_proof(claim, assets=missing_assets, settings=Settings()))
    args = result.to_contract_args()

    assert args["proof"] == result.proof.to_contract()
    assert args["publicInputs"] == result.public_inputs
    assert args["nullifier"] == result.nullifier
    assert args["dataHash"] == DOC_HASH


def test_error_is_reported(claim, missing_assets):
    claim.disease_id = 999
    updates = []

    with pytest.raises(DiseaseNotCovered):
        run(
            generate_claim_proof(
                claim,
                lambda status, msg: updates.append((status, msg)),
                assets=missing_assets,
                settings=Settings(),
            )
        )

    assert updates[-1][0] == ProofStatus.ERROR
    assert "999" in updates[-1][1]
    assert ProofStatus.SUCCESS not in [s for s, _ in updates]


def test_broken_callback_is_ignored(claim, missing_assets):
    def callback(status, msg):
        raise RuntimeError("observer failure")

    result = run(
        generate_claim_proof(claim, callback, assets=missing_assets, settings=Settings())
    )
    assert result.simulated


def test_custom_combiner(claim, missing_assets):
    hasher = PoseidonHash(2)
    with pytest.raises(RootMismatch):
        run(
            generate_claim_proof(
                claim, assets=missing_assets, combine=hasher, settings=Settings()
            )
        )

    claim.covered_root = build_tree(COVERED, combine=hasher).root
    result = run(
        generate_claim_proof(claim, assets=missing_assets, combine=hasher, settings=Settings())
    )
    assert result.public_inputs[3] == claim.covered_root


def test_real_proof(claim, local_assets):
    backend = FakeBackend()
    updates = []

    result = run(
        generate_claim_proof(
            claim,
            lambda status, msg: updates.append((status, msg)),
            assets=local_assets,
            backend=backend,
            settings=Settings(),
        )
    )

    assert not result.simulated
    assert result.public_inputs[:2] == [1, 5000]
    assert result.public_inputs[3] == COVERED_ROOT

    # b rows are swapped for the contract
    assert result.proof.to_contract() == {
        "a": [1, 2],
        "b": [[4, 3], [6, 5]],
        "c": [7, 8],
    }

    witness, wasm_path, zkey_path, wasm = backend.calls[0]
    assert wasm == b"wasm"
    assert wasm_path.endswith("medical_claim.wasm")
    assert zkey_path.endswith("medical_claim_final.zkey")
    assert witness["secret"] == str(SECRET)
    assert witness["pathElements"] == ["201", "1028"]

    assert "Generating zero-knowledge proof..." in [m for _, m in updates]
    assert updates[-1][0] == ProofStatus.SUCCESS


def test_real_proof_remote_assets(claim):
    def handler(request):
        if request.method == "HEAD":
            return httpx.Response(200)
        return httpx.Response(200, content=request.url.path.encode())

    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await generate_claim_proof(
                claim,
                assets=CircuitAssets(base="https://assets.example/zk"),
                backend=backend,
                client=client,
                settings=Settings(),
            )

    backend = FakeBackend()
    result = run(main())

    assert not result.simulated
    assert backend.calls[0][3] == b"/zk/medical_claim.wasm"


@pytest.mark.parametrize("status", [404, None])
def test_remote_assets_unavailable(claim, status):
    def handler(request):
        if status is None:
            raise httpx.ConnectError("unreachable", request=request)
        return httpx.Response(status)

    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await generate_claim_proof(
                claim,
                assets=CircuitAssets(base="https://assets.example/zk"),
                backend=FakeBackend(),
                client=client,
                settings=Settings(),
            )

    assert run(main()).simulated


@pytest.mark.parametrize(
    "signals, name",
    [
        (["2", "5000", "0", "0", "0"], "policyId"),
        (["1", "4000", "0", "0", "0"], "claimAmount"),
        (["1", "5000"], "length"),
    ],
)
def test_public_input_mismatch(claim, local_assets, signals, name):
    with pytest.raises(PublicInputMismatch) as exc:
        run(
            generate_claim_proof(
                claim, assets=local_assets, backend=FakeBackend(signals=signals),
                settings=Settings(),
            )
        )
    assert exc.value.name == name


def test_backend_failure(claim, local_assets):
    updates = []
    backend = FakeBackend(error=ProverError("witness generation failed"))

    with pytest.raises(ProverError):
        run(
            generate_claim_proof(
                claim,
                lambda status, msg: updates.append((status, msg)),
                assets=local_assets,
                backend=backend,
                settings=Settings(),
            )
        )

    assert updates[-1] == (ProofStatus.ERROR, "witness generation failed")


def test_snarkjs_missing_binary(claim, local_assets):
    backend = SnarkjsBackend("zkclaim-no-such-snarkjs-binary")

    with pytest.raises(ProverError):
        run(
            generate_claim_proof(
                claim, assets=local_assets, backend=backend, settings=Settings()
            )
        )


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("ZKCLAIM_CIRCUIT_BASE", "https://cdn.example/zk")
    monkeypatch.setenv("ZKCLAIM_CIRCUIT_NAME", "claim_v2")
    monkeypatch.setenv("ZKCLAIM_TREE_DEPTH", "4")
    monkeypatch.setenv("ZKCLAIM_HTTP_TIMEOUT", "2.5")
    monkeypatch.setenv("ZKCLAIM_SECRET_STORE", str(tmp_path / "s.json"))

    settings = Settings.from_env()
    assets = CircuitAssets.from_settings(settings)

    assert settings.tree_depth == 4
    assert settings.secret_store == tmp_path / "s.json"
    assert assets.is_remote
    assert assets.timeout == 2.5
    assert assets.location(assets.wasm_name) == "https://cdn.example/zk/claim_v2.wasm"
    assert assets.zkey_name == "claim_v2_final.zkey"


def test_fixed_depth_from_settings(claim, missing_assets):
    claim.covered_root = Merkle(depth=4).build_tree(COVERED).root
    result = run(
        generate_claim_proof(claim, assets=missing_assets, settings=Settings(tree_depth=4))
    )
    assert result.public_inputs[3] == claim.covered_root


@pytest.fixture
def claim_request():
    return ClaimRequest(
        policy_id=1,
        claim_amount=5000,
        disease_id=107,
        document_hash=DOC_HASH,
        covered_root=COVERED_ROOT,
        disease_ids=list(COVERED),
    )


def test_claim_prover(claim_request, missing_assets):
    secrets = SecretManager(MemorySecretStore())
    succeeded = []
    prover = ClaimProver(
        secrets,
        assets=missing_assets,
        settings=Settings(),
        on_success=succeeded.append,
    )

    assert prover.status == ProofStatus.IDLE
    result = run(prover.generate_proof("0xAbC", claim_request))

    secret = secrets.get_secret_for_address("0xabc")
    assert result.public_inputs[4] == derive_nullifier(
        secret, 1, 5000, hex_to_field(DOC_HASH)
    )
    assert prover.status == ProofStatus.SUCCESS
    assert prover.proof is result
    assert prover.error is None
    assert not prover.is_generating
    assert succeeded == [result]

    # same claimant, same claim, same nullifier
    again = run(prover.generate_proof("0xabc", claim_request))
    assert again.nullifier == result.nullifier

    prover.reset()
    assert prover.status == ProofStatus.IDLE
    assert prover.proof is None


@pytest.mark.parametrize(
    "address, disease_id, disease_ids, error",
    [
        ("", 107, COVERED, ValueError),
        ("0xabc", 999, COVERED, DiseaseNotCovered),
        ("0xabc", 107, [], DiseaseNotCovered),
    ],
)
def test_claim_prover_errors(
    claim_request, missing_assets, address, disease_id, disease_ids, error
):
    failures = []
    secrets = SecretManager(MemorySecretStore())
    prover = ClaimProver(
        secrets, assets=missing_assets, settings=Settings(), on_error=failures.append
    )

    claim_request.disease_id = disease_id
    claim_request.disease_ids = list(disease_ids)

    with pytest.raises(error):
        run(prover.generate_proof(address, claim_request))

    assert prover.status == ProofStatus.ERROR
    assert isinstance(prover.error, error)
    assert failures == [prover.error]
    assert prover.proof is None
    assert not secrets.has_stored_secret("0xabc")


@pytest.fixture
def large_claim():
    return ClaimProofInput(
        policy_id=42,
        claim_amount=1000000,
        document_hash=DOC_HASH,
        covered_root=COVERED_ROOT,
        disease_id=107,
        user_secret=SECRET,
        disease_ids=list(COVERED),
    )


def test_covered_claim_end_to_end(large_claim, missing_assets):
    result = run(
        generate_claim_proof(large_claim, assets=missing_assets, settings=Settings())
    )

    assert result.public_inputs[0] == 42
    assert result.public_inputs[1] == 1000000
    assert result.public_inputs[2] == hex_to_field(DOC_HASH)
    assert result.public_inputs[3] == large_claim.covered_root
    assert result.public_inputs[4] == derive_nullifier(
        SECRET, 42, 1000000, hex_to_field(DOC_HASH)
    )


def test_uncovered_disease_end_to_end(large_claim, missing_assets):
    large_claim.disease_id = 999

    with pytest.raises(DiseaseNotCovered):
        run(
            generate_claim_proof(
                large_claim, assets=missing_assets, settings=Settings()
            )
        )


def test_wrong_root_end_to_end(large_claim, missing_assets):
    large_claim.covered_root = COVERED_ROOT + 1

    with pytest.raises(RootMismatch):
        run(
            generate_claim_proof(
                large_claim, assets=missing_assets, settings=Settings()
            )
        )


@pytest.mark.parametrize(
    "root",
    [
        COVERED_ROOT + BN254_SCALAR_FIELD,
        hex(COVERED_ROOT + BN254_SCALAR_FIELD),
        -1,
    ],
)
def test_non_canonical_root_is_rejected(claim, root):
    claim.covered_root = root

    with pytest.raises(OutOfRange):
        prepare_claim(claim)


def test_injected_collaborators_ignore_environment(monkeypatch, claim, local_assets):
    monkeypatch.setenv("ZKCLAIM_TREE_DEPTH", "4")
    monkeypatch.setenv("ZKCLAIM_CIRCUIT_BASE", "https://cdn.example/zk")

    result = run(
        generate_claim_proof(claim, assets=local_assets, backend=FakeBackend())
    )

    assert not result.simulated
    assert result.public_inputs[3] == COVERED_ROOT


def test_claim_prover_fixed_depth(claim_request, missing_assets):
    claim_request.covered_root = Merkle(depth=4).build_tree(COVERED).root
    prover = ClaimProver(
        SecretManager(MemorySecretStore()),
        assets=missing_assets,
        depth=4,
        settings=Settings(),
    )

    result = run(prover.generate_proof("0xabc", claim_request))
    assert result.public_inputs[3] == claim_request.covered_root

    with pytest.raises(RootMismatch):
        run(
            ClaimProver(
                SecretManager(MemorySecretStore()),
                assets=missing_assets,
                settings=Settings(),
            ).generate_proof("0xabc", claim_request)
        )
