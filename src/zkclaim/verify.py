"""
Local, advisory verification of a claim proof before submission

On-chain verification is authoritative. When the verification key cannot
be fetched or verification cannot run, the proof is reported as valid and a
warning is logged.
"""

import asyncio
import logging
from typing import List, Optional, Union

import httpx

from .assets import CircuitAssets
from .config import Settings
from .groth16.proof import Proof
from .groth16.verifier import Verifier, VerifyingKey

logger = logging.getLogger(__name__)


async def verify_proof_locally(
    proof: Union[Proof, dict],
    public_inputs: List[int],
    *,
    assets: Optional[CircuitAssets] = None,
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> bool:
    """
    Args:
        proof: `Proof` or its contract form `{a, b, c}`
        public_inputs: the five public signals
    """
    assets = assets or CircuitAssets.from_settings(settings)

    try:
        vkey = await assets.fetch_json(assets.vkey_name, client)
        if vkey is None:
            logger.warning("Verification key not found, skipping local verification")
            return True

        if not isinstance(proof, Proof):
            proof = Proof.from_contract(proof)

        snark_proof = proof.to_snarkjs()
        signals = [str(x) for x in public_inputs]

        verifier = Verifier(VerifyingKey.from_snarkjs(vkey))
        valid = await asyncio.to_thread(verifier.verify, snark_proof, signals)
    except Exception as exc:
        logger.warning("Local verification could not run (%s), assuming valid", exc)
        return True

    if not valid:
        logger.warning("Proof failed local verification")
    return valid
