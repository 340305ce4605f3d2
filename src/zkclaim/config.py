"""Runtime settings read from ZKCLAIM_* environment variables"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass
class Settings:
    circuit_base: str = "zk"
    circuit_name: str = "medical_claim"
    vkey_name: str = "verification_key.json"
    snarkjs: str = "snarkjs"
    http_timeout: float = 10.0
    tree_depth: Optional[int] = None
    secret_store: Path = field(
        default_factory=lambda: Path.home() / ".zkclaim" / "secrets.json"
    )

    @property
    def wasm_name(self) -> str:
        return f"{self.circuit_name}.wasm"

    @property
    def zkey_name(self) -> str:
        return f"{self.circuit_name}_final.zkey"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls()
        settings.circuit_base = os.environ.get(
            "ZKCLAIM_CIRCUIT_BASE", settings.circuit_base
        )
        settings.circuit_name = os.environ.get(
            "ZKCLAIM_CIRCUIT_NAME", settings.circuit_name
        )
        settings.vkey_name = os.environ.get("ZKCLAIM_VKEY_NAME", settings.vkey_name)
        settings.snarkjs = os.environ.get("ZKCLAIM_SNARKJS", settings.snarkjs)
        settings.http_timeout = float(
            os.environ.get("ZKCLAIM_HTTP_TIMEOUT", settings.http_timeout)
        )
        settings.tree_depth = _env_int("ZKCLAIM_TREE_DEPTH")

        store = os.environ.get("ZKCLAIM_SECRET_STORE")
        if store:
            settings.secret_store = Path(store).expanduser()

        return settings
