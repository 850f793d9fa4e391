"""Exception taxonomy for certificate synchronization.

Every failure raised while turning a secret into a certificate record derives
from :class:`CertSyncError` so callers can tell expected build failures apart
from programming errors. :class:`SecretIsAuthOnlyError` is an expected shape
rather than a fault and is never reported as a warning.
"""
from __future__ import annotations


class CertSyncError(Exception):
    """Base class for all certificate build, persist and sync failures."""


class MalformedSecretError(CertSyncError):
    """Raised when a secret holds neither a keypair, a CA, nor auth data."""

    def __init__(self, key: str, detail: str = "") -> None:
        message = detail or f"secret {key!r} contains no keypair or CA certificate"
        super().__init__(message)
        self.key = key


class InvalidPEMError(CertSyncError):
    """Raised when no PEM block can be decoded from the supplied bytes."""

    def __init__(self) -> None:
        super().__init__("no valid PEM formatted block found")


class WrongPEMTypeError(CertSyncError):
    """Raised when the first PEM block carries an unexpected type label."""

    def __init__(self, found: str, expected: str = "CERTIFICATE") -> None:
        super().__init__(
            f"PEM block of type {found!r} found where {expected!r} was expected, "
            f"make sure the content starts with 'BEGIN {expected}'"
        )
        self.found = found
        self.expected = expected


class CertificateParseError(CertSyncError):
    """Raised when the DER payload of a certificate block is malformed."""


class CertKeyMismatchError(CertSyncError):
    """Raised when the private key does not belong to the certificate."""


class MalformedSANError(CertSyncError):
    """Raised when the subjectAltName extension cannot be walked."""


class ChainVerificationError(CertSyncError):
    """Raised when a serving certificate does not chain up to a trust root."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__(
            "failed to verify certificate chain: " + "; ".join(errors or ["unknown error"])
        )
        self.errors = list(errors)


class ChainFetchError(CertSyncError):
    """Raised when missing intermediates cannot be fetched or decoded."""


class SecretIsAuthOnlyError(CertSyncError):
    """Raised when a secret only carries basic-auth data."""

    def __init__(self, key: str) -> None:
        super().__init__(f"secret {key!r} is used for authentication")
        self.key = key


class CertificateIOError(CertSyncError):
    """Raised when a certificate file cannot be created, read or renamed."""


class SecretNotFoundError(CertSyncError, KeyError):
    """Raised when the secret source has no record for a key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"secret {key!r} not found")
        self.key = key

    def __str__(self) -> str:
        return str(self.args[0])


class CertificateNotFoundError(KeyError):
    """Raised when the local certificate cache has no entry for a key."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"No certificate stored for secret {key!r}. "
            "It is added once the secret has been synchronized."
        )
        self.key = key


class ListenerStartupError(RuntimeError):
    """Raised when a listener keypair cannot be loaded at startup.

    The owning process must not start serving when this is raised.
    """


__all__ = [
    "CertKeyMismatchError",
    "CertSyncError",
    "CertificateIOError",
    "CertificateNotFoundError",
    "CertificateParseError",
    "ChainFetchError",
    "ChainVerificationError",
    "InvalidPEMError",
    "ListenerStartupError",
    "MalformedSANError",
    "MalformedSecretError",
    "SecretIsAuthOnlyError",
    "SecretNotFoundError",
    "WrongPEMTypeError",
]
