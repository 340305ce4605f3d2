"""
Proving backends

The circuit is compiled with circom and proven with snarkjs; the default
backend drives the `snarkjs groth16 fullprove` CLI in a subprocess.
"""

import asyncio
import json
import logging
import os
import tempfile
from typing import List, Tuple

from .errors import ProverError

logger = logging.getLogger(__name__)


class ProvingBackend:

    async def full_prove(
        self, witness: dict, wasm_path: str, zkey_path: str
    ) -> Tuple[dict, List[str]]:
        """Compute the witness and a Groth16 proof, return (proof, public signals)"""
        raise NotImplementedError()


class SnarkjsBackend(ProvingBackend):
    """
    Args:
        binary: snarkjs executable
    """

    def __init__(self, binary: str = "snarkjs"):
        self.binary = binary

    async def full_prove(self, witness, wasm_path, zkey_path):
        with tempfile.TemporaryDirectory(prefix="zkclaim-") as tmp:
            input_path = os.path.join(tmp, "input.json")
            proof_path = os.path.join(tmp, "proof.json")
            public_path = os.path.join(tmp, "public.json")

            with open(input_path, "w", encoding="utf-8") as f:
                json.dump(witness, f)

            cmd = [
                self.binary, "groth16", "fullprove",
                input_path, wasm_path, zkey_path,
                proof_path, public_path,
            ]
            logger.debug("Running %s", " ".join(cmd))

            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                raise ProverError(f"Cannot run {self.binary}: {exc}") from exc

            stdout, stderr = await proc.communicate()
            if proc.returncode != 0:
                detail = (stderr or stdout).decode(errors="replace").strip()
                raise ProverError(
                    f"snarkjs fullprove exited with {proc.returncode}: {detail}"
                )

            try:
                with open(proof_path, "r", encoding="utf-8") as f:
                    proof = json.load(f)
                with open(public_path, "r", encoding="utf-8") as f:
                    public_signals = json.load(f)
            except (OSError, json.JSONDecodeError) as exc:
                raise ProverError("snarkjs produced no readable proof") from exc

        return proof, public_signals
