"""Secret records and the sources they are fetched from.

A secret is identified by ``namespace/name`` and carries a byte-valued data
mapping. The well-known fields are ``tls.crt``, ``tls.key``, ``ca.crt`` and
``auth``; a missing field and a zero-length field are distinct.
"""
from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from certsync.errors import SecretNotFoundError

TLS_CERT_KEY = "tls.crt"
TLS_PRIVATE_KEY_KEY = "tls.key"
CA_CERT_KEY = "ca.crt"
AUTH_KEY = "auth"


@dataclass
class Secret:
    """A secret record as delivered by the secret source.

    Parameters
    ----------
    namespace:
        Owning namespace.
    name:
        Secret name, unique within the namespace.
    data:
        Field name to raw bytes.
    """

    namespace: str
    name: str
    data: dict[str, bytes] = field(default_factory=dict)

    @property
    def key(self) -> str:
        """The ``namespace/name`` identity of this secret."""
        return f"{self.namespace}/{self.name}"


def split_key(key: str) -> tuple[str, str]:
    """Split ``namespace/name`` into its parts; a bare name has no namespace."""
    namespace, _, name = key.rpartition("/")
    return namespace, name


class SecretSource(ABC):
    """Abstract base class for secret lookups."""

    @abstractmethod
    def fetch_by_key(self, key: str) -> Secret:
        """Return the secret stored under ``namespace/name`` *key*.

        Raises
        ------
        SecretNotFoundError
            If no secret exists for *key*.
        """

    @abstractmethod
    def list_keys(self) -> list[str]:
        """Return a sorted list of every known secret key."""


class InMemorySecretSource(SecretSource):
    """Thread-safe in-memory secret source.

    Suitable for tests and for embedding the synchronizer behind another
    watch mechanism that pushes secrets in.
    """

    def __init__(self, secrets: list[Secret] | None = None) -> None:
        self._secrets: dict[str, Secret] = {}
        self._lock = threading.Lock()
        for secret in secrets or []:
            self.put(secret)

    def put(self, secret: Secret) -> None:
        """Add or replace a secret."""
        with self._lock:
            self._secrets[secret.key] = secret

    def delete(self, key: str) -> None:
        """Remove a secret.

        Raises
        ------
        SecretNotFoundError
            If no secret exists for *key*.
        """
        with self._lock:
            if key not in self._secrets:
                raise SecretNotFoundError(key)
            del self._secrets[key]

    def fetch_by_key(self, key: str) -> Secret:
        with self._lock:
            try:
                secret = self._secrets[key]
            except KeyError:
                raise SecretNotFoundError(key) from None
            return Secret(secret.namespace, secret.name, dict(secret.data))

    def list_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._secrets)


class FilesystemSecretSource(SecretSource):
    """Reads secrets laid out as ``<root>/<namespace>/<name>/<field>`` files.

    This is the layout of a mounted secret volume: one directory per secret
    and one file per data field. Hidden entries (such as the ``..data``
    links a volume mount creates) are ignored.

    Parameters
    ----------
    root:
        Base directory containing one subdirectory per namespace.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def fetch_by_key(self, key: str) -> Secret:
        namespace, name = split_key(key)
        secret_dir = self._root / namespace / name
        if not name or not secret_dir.is_dir():
            raise SecretNotFoundError(key)

        data = {
            entry.name: entry.read_bytes()
            for entry in sorted(secret_dir.iterdir())
            if entry.is_file() and not entry.name.startswith(".")
        }
        return Secret(namespace=namespace, name=name, data=data)

    def list_keys(self) -> list[str]:
        if not self._root.is_dir():
            return []
        return sorted(
            f"{namespace_dir.name}/{secret_dir.name}"
            for namespace_dir in self._root.iterdir()
            if namespace_dir.is_dir() and not namespace_dir.name.startswith(".")
            for secret_dir in namespace_dir.iterdir()
            if secret_dir.is_dir() and not secret_dir.name.startswith(".")
        )
