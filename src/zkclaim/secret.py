"""
User secret management

Each wallet address owns one secret field element, plus one global slot
for address-less use. Secrets are created lazily, persisted in a
`SecretStore` and never leave it except through `backup_secret`.

Known limitation: the stores have no locking. Two processes creating the
first secret for the same address concurrently both write, and the last
writer wins.
"""

import base64
import binascii
import json
import logging
import os
import secrets
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from .commitment.base import ScalarCommitmentScheme
from .commitment.linear import LinearCommitment
from .config import Settings
from .constant import BN254_SCALAR_FIELD
from .errors import InvalidFormat, OutOfRange

logger = logging.getLogger(__name__)

SECRET_STORAGE_KEY = "zk_medical_user_secret"
SECRET_BACKUP_PREFIX = "ZK-SECRET-V1:"


class SecretStore:
    """Key/value storage of decimal-encoded secrets"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError()

    def set(self, key: str, value: str):
        raise NotImplementedError()

    def delete(self, key: str):
        raise NotImplementedError()

    def keys(self) -> List[str]:
        raise NotImplementedError()


class MemorySecretStore(SecretStore):

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data = dict(data or {})

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    def keys(self):
        return list(self.data)


class FileSecretStore(SecretStore):
    """
    JSON file store. The whole file is re-read on every access so several
    processes sharing one file see each other's writes.
    """

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning("Secret store %s is corrupted, treating as empty", self.path)
            return {}

        if not isinstance(data, dict):
            logger.warning("Secret store %s is corrupted, treating as empty", self.path)
            return {}
        return data

    def _dump(self, data: Dict[str, str]):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".secrets-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise

    def get(self, key):
        value = self._load().get(key)
        return None if value is None else str(value)

    def set(self, key, value):
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key):
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)

    def keys(self):
        return list(self._load())


def storage_key(address: Optional[str] = None) -> str:
    if address:
        return f"{SECRET_STORAGE_KEY}_{address.lower()}"
    return SECRET_STORAGE_KEY


def generate_secret(p: int = BN254_SCALAR_FIELD) -> int:
    """Draw 32 secure random bytes and reduce them into the field"""
    secret = int.from_bytes(secrets.token_bytes(32), "big") % p
    while secret == 0:
        secret = int.from_bytes(secrets.token_bytes(32), "big") % p
    return secret


class SecretManager:
    """
    Secret lifecycle over a `SecretStore`

    Args:
        store: persistence backend
        commitment: scheme used by `derive_commitment`, `LinearCommitment`
            by default
    """

    def __init__(
        self,
        store: Optional[SecretStore] = None,
        commitment: Optional[ScalarCommitmentScheme] = None,
        order: int = BN254_SCALAR_FIELD,
    ):
        self.store = store if store is not None else MemorySecretStore()
        self.commitment = commitment or LinearCommitment(order)
        self.order = order

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SecretManager":
        """Manager over the file store configured by `ZKCLAIM_SECRET_STORE`"""
        settings = settings or Settings.from_env()
        return cls(FileSecretStore(settings.secret_store))

    def generate_secret(self) -> int:
        return generate_secret(self.order)

    def _load(self, key: str) -> Optional[int]:
        stored = self.store.get(key)
        if stored is None:
            return None

        try:
            secret = int(stored)
        except (TypeError, ValueError):
            logger.warning("Stored secret under %s is unparsable, regenerating", key)
            return None

        if not 0 < secret < self.order:
            logger.warning("Stored secret under %s is out of range, regenerating", key)
            return None

        return secret

    def _get_or_create(self, key: str) -> int:
        secret = self._load(key)
        if secret is not None:
            return secret

        secret = self.generate_secret()
        self.store.set(key, str(secret))
        logger.info("Generated new secret under %s", key)
        return secret

    def get_secret_for_address(self, address: str) -> int:
        """Secret bound to `address`, created and persisted on first use"""
        if not address:
            raise ValueError("Address is required")
        return self._get_or_create(storage_key(address))

    def get_or_create_secret(self) -> int:
        """Secret of the global, address-less slot"""
        return self._get_or_create(storage_key())

    def has_stored_secret(self, address: Optional[str] = None) -> bool:
        return self.store.get(storage_key(address)) is not None

    def backup_secret(self, address: Optional[str] = None) -> str:
        """Export the secret as `ZK-SECRET-V1:<base64 of decimal>`"""
        secret = self._get_or_create(storage_key(address))
        encoded = base64.b64encode(str(secret).encode()).decode()
        return f"{SECRET_BACKUP_PREFIX}{encoded}"

    def restore_secret(self, backup: str, address: Optional[str] = None) -> bool:
        """
        Overwrite the stored secret with the one in `backup`.

        Nullifiers derived from a different, replaced secret can no longer be
        reproduced. Restoring the same secret again is harmless.
        """
        if not backup.startswith(SECRET_BACKUP_PREFIX):
            raise InvalidFormat("Invalid backup format")

        encoded = backup[len(SECRET_BACKUP_PREFIX) :]
        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
            secret = int(decoded)
        except (binascii.Error, UnicodeDecodeError, ValueError) as exc:
            raise InvalidFormat("Backup payload is not a base64 encoded integer") from exc

        if not 0 < secret < self.order:
            raise OutOfRange("Secret out of valid range")

        key = storage_key(address)
        self.store.set(key, str(secret))
        logger.info("Restored secret under %s", key)
        return True

    def clear_secret(self, address: Optional[str] = None):
        """
        Delete the stored secret. Claims whose nullifier depends on it can
        no longer be proven identically.
        """
        key = storage_key(address)
        self.store.delete(key)
        logger.warning("Secret cleared: %s", key)

    def list_stored_secrets(self) -> List[str]:
        """Addresses (lower-cased) that own a stored secret"""
        prefix = f"{SECRET_STORAGE_KEY}_"
        return [k[len(prefix) :] for k in self.store.keys() if k.startswith(prefix)]

    def derive_commitment(self, secret: int, salt: int = 0) -> int:
        return self.commitment(secret, salt)
