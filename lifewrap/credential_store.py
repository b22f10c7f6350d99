"""
Credential storage for remote providers.

The store is an external collaborator: the remote engine reads a key for
each request and drops it afterwards. Two implementations ship here, an
in-memory one for tests and a JSON file with owner-only permissions.
"""

import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from lifewrap.ai.providers import RemoteProvider
from lifewrap.config import CREDENTIALS_FILE
from lifewrap.logging_config import debug_log


class CredentialStore(ABC):
    """get/set/delete of one credential per remote provider."""

    @abstractmethod
    def get(self, provider: RemoteProvider) -> str | None:
        """The stored credential, or None."""

    @abstractmethod
    def set(self, provider: RemoteProvider, value: str) -> None:
        """Store or replace the credential."""

    @abstractmethod
    def delete(self, provider: RemoteProvider) -> None:
        """Remove the credential if present."""

    def has(self, provider: RemoteProvider) -> bool:
        value = self.get(provider)
        return bool(value and value.strip())


class InMemoryCredentialStore(CredentialStore):

    def __init__(self, initial: dict | None = None):
        self._values = {RemoteProvider(k): v for k, v in (initial or {}).items()}
        self._lock = threading.Lock()

    def get(self, provider):
        with self._lock:
            return self._values.get(RemoteProvider(provider))

    def set(self, provider, value):
        if not value or not value.strip():
            raise ValueError("Credential must not be empty")
        with self._lock:
            self._values[RemoteProvider(provider)] = value.strip()

    def delete(self, provider):
        with self._lock:
            self._values.pop(RemoteProvider(provider), None)


class JsonFileCredentialStore(CredentialStore):
    """
    Credentials in a JSON file readable only by the owner.

    The file is re-read on every ``get`` so a key set from the CLI is seen
    by a running process without a restart.
    """

    def __init__(self, path: Path = CREDENTIALS_FILE):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            debug_log(f"[CREDENTIALS] Ignoring unreadable credentials file: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        os.chmod(self.path, 0o600)

    def get(self, provider):
        with self._lock:
            return self._read().get(RemoteProvider(provider).value)

    def set(self, provider, value):
        if not value or not value.strip():
            raise ValueError("Credential must not be empty")
        with self._lock:
            data = self._read()
            data[RemoteProvider(provider).value] = value.strip()
            self._write(data)

    def delete(self, provider):
        with self._lock:
            data = self._read()
            if data.pop(RemoteProvider(provider).value, None) is not None:
                self._write(data)
