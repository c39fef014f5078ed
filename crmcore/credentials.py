"""
Credential store for API user secret keys.

Users with authMethod "Hmac" sign requests with a secret key. The secret is
kept outside the records table so that reading a User never exposes it;
the User repository stores and removes it as the record changes.
"""

import hashlib
import hmac
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import yaml


class CredentialStore(ABC):
    """Where API secret keys live, keyed by user id."""

    @abstractmethod
    def store_secret(self, record_id: str, secret: str) -> None:
        pass

    @abstractmethod
    def remove_secret(self, record_id: str) -> None:
        """Remove a stored secret. Removing a missing secret is a no-op."""
        pass

    @abstractmethod
    def get_secret(self, record_id: str) -> Optional[str]:
        pass


class InMemoryCredentialStore(CredentialStore):
    """Dict-backed credential store for tests."""

    def __init__(self):
        self._secrets: dict[str, str] = {}

    def store_secret(self, record_id: str, secret: str) -> None:
        self._secrets[record_id] = secret

    def remove_secret(self, record_id: str) -> None:
        self._secrets.pop(record_id, None)

    def get_secret(self, record_id: str) -> Optional[str]:
        return self._secrets.get(record_id)


class FileCredentialStore(CredentialStore):
    """
    YAML file of {user_id: secret}, readable by the owner only.

    The whole file is rewritten on each change (atomic replace).
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._guard = threading.Lock()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path) as f:
            data = yaml.safe_load(f)
        return data or {}

    def _write(self, secrets: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump(secrets, f, sort_keys=True)
        os.replace(tmp_path, self.path)

    def store_secret(self, record_id: str, secret: str) -> None:
        with self._guard:
            secrets = self._read()
            secrets[record_id] = secret
            self._write(secrets)

    def remove_secret(self, record_id: str) -> None:
        with self._guard:
            secrets = self._read()
            if record_id not in secrets:
                return
            del secrets[record_id]
            self._write(secrets)

    def get_secret(self, record_id: str) -> Optional[str]:
        return self._read().get(record_id)


class ApiKey:
    """HMAC helpers for API users."""

    @staticmethod
    def hash(secret_key: str, string: str) -> str:
        """HMAC-SHA256 hex digest of string under secret_key."""
        return hmac.new(
            secret_key.encode(), string.encode(), hashlib.sha256
        ).hexdigest()

    @staticmethod
    def verify(secret_key: str, string: str, signature: str) -> bool:
        return hmac.compare_digest(ApiKey.hash(secret_key, string), signature)
