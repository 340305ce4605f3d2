"""
Circuit artifacts: witness generator (.wasm), proving key (.zkey) and
verification key (.json)

Artifacts live either behind an HTTP(S) base URL or in a local directory.
"""

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Tuple

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


class CircuitAssets:
    """
    Args:
        base: URL prefix or directory holding the artifacts
        wasm_name: witness generator file name
        zkey_name: proving key file name
        vkey_name: verification key file name
        timeout: HTTP timeout in seconds
    """

    def __init__(
        self,
        base: str = "zk",
        wasm_name: str = "medical_claim.wasm",
        zkey_name: str = "medical_claim_final.zkey",
        vkey_name: str = "verification_key.json",
        timeout: float = 10.0,
    ):
        self.base = str(base)
        self.wasm_name = wasm_name
        self.zkey_name = zkey_name
        self.vkey_name = vkey_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "CircuitAssets":
        settings = settings or Settings.from_env()
        return cls(
            settings.circuit_base,
            settings.wasm_name,
            settings.zkey_name,
            settings.vkey_name,
            settings.http_timeout,
        )

    @property
    def is_remote(self) -> bool:
        return self.base.startswith(("http://", "https://"))

    def location(self, name: str) -> str:
        if self.is_remote:
            return f"{self.base.rstrip('/')}/{name}"
        return str(Path(self.base) / name)

    @asynccontextmanager
    async def _client(self, client: Optional[httpx.AsyncClient]):
        if client is not None:
            yield client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as owned:
                yield owned

    async def exists(self, name: str, client: Optional[httpx.AsyncClient] = None) -> bool:
        if not self.is_remote:
            return Path(self.location(name)).is_file()

        async with self._client(client) as c:
            response = await c.head(self.location(name))
            return response.is_success

    async def probe(self, client: Optional[httpx.AsyncClient] = None) -> bool:
        """True when both the witness generator and proving key are reachable"""
        try:
            async with self._client(client) as c:
                wasm = await self.exists(self.wasm_name, c)
                zkey = await self.exists(self.zkey_name, c)
        except httpx.HTTPError as exc:
            logger.warning("Circuit asset probe failed: %s", exc)
            return False

        logger.debug("Circuit assets at %s: wasm=%s zkey=%s", self.base, wasm, zkey)
        return wasm and zkey

    async def fetch_json(
        self, name: str, client: Optional[httpx.AsyncClient] = None
    ) -> Optional[dict]:
        """Load a JSON artifact, `None` when it does not exist"""
        if not self.is_remote:
            path = Path(self.location(name))
            if not path.is_file():
                return None
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)

        async with self._client(client) as c:
            response = await c.get(self.location(name))
            if not response.is_success:
                return None
            return response.json()

    async def _download(self, c: httpx.AsyncClient, name: str, dest: Path):
        async with c.stream("GET", self.location(name)) as response:
            response.raise_for_status()
            with open(dest, "wb") as f:
                async for chunk in response.aiter_bytes():
                    f.write(chunk)

    async def materialize(
        self, workdir, client: Optional[httpx.AsyncClient] = None
    ) -> Tuple[str, str]:
        """Local paths of the wasm and zkey, downloading them into `workdir` if remote"""
        if not self.is_remote:
            return self.location(self.wasm_name), self.location(self.zkey_name)

        workdir = Path(workdir)
        wasm_path = workdir / self.wasm_name
        zkey_path = workdir / self.zkey_name

        async with self._client(client) as c:
            await self._download(c, self.wasm_name, wasm_path)
            await self._download(c, self.zkey_name, zkey_path)

        return str(wasm_path), str(zkey_path)
