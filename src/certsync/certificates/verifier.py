"""Certificate chain verification: path building, signature and expiry checks.

The ChainVerifier builds a path from a certificate to one of a set of trusted
roots, optionally through supplied intermediates, and checks every link's
signature and validity window.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from cryptography import x509
from cryptography.exceptions import InvalidSignature

MAX_CHAIN_DEPTH = 10


@dataclass
class VerificationResult:
    """Outcome of a chain verification.

    Parameters
    ----------
    valid:
        Overall pass/fail result.
    chain_valid:
        Whether a signed path to a trusted root was found.
    not_expired:
        Whether every certificate on the path is within its validity window.
    path:
        The verified path, leaf first, trusted root last.
    errors:
        List of human-readable error strings describing failures.
    """

    valid: bool
    chain_valid: bool
    not_expired: bool
    path: list[x509.Certificate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class ChainVerifier:
    """Verifies certificates against a set of trusted roots.

    Parameters
    ----------
    roots:
        Trusted root (or anchor) certificates.
    max_depth:
        Maximum number of intermediates on a path.
    """

    def __init__(
        self,
        roots: Iterable[x509.Certificate],
        max_depth: int = MAX_CHAIN_DEPTH,
    ) -> None:
        self._roots = list(roots)
        self._max_depth = max_depth

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def verify(
        self,
        cert: x509.Certificate,
        intermediates: Sequence[x509.Certificate] = (),
        at: datetime.datetime | None = None,
    ) -> VerificationResult:
        """Verify *cert*, using *intermediates* to bridge to a root.

        Parameters
        ----------
        cert:
            The certificate to verify.
        intermediates:
            Untrusted certificates that may appear on the path.
        at:
            Verification time; defaults to now.

        Returns
        -------
        VerificationResult
            Detailed result with per-check flags and error messages.
        """
        errors: list[str] = []
        if not self._roots:
            errors.append("no trusted root certificates available")
            return VerificationResult(
                valid=False, chain_valid=False, not_expired=False, errors=errors
            )

        path = self._build_path(cert, list(intermediates), depth=0)
        if path is None:
            errors.append(
                "certificate signed by unknown authority "
                f"(issuer: {cert.issuer.rfc4514_string()!r})"
            )
            return VerificationResult(
                valid=False, chain_valid=False, not_expired=False, errors=errors
            )

        not_expired = all(
            self._verify_expiry(link, at or _utcnow(), errors) for link in path
        )
        return VerificationResult(
            valid=not_expired,
            chain_valid=True,
            not_expired=not_expired,
            path=path,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Internal checks
    # ------------------------------------------------------------------

    def _build_path(
        self,
        cert: x509.Certificate,
        pool: list[x509.Certificate],
        depth: int,
    ) -> list[x509.Certificate] | None:
        if cert in self._roots:
            return [cert]

        for root in self._roots:
            if issued_by(cert, root):
                return [cert, root]

        if depth >= self._max_depth:
            return None

        for candidate in pool:
            if candidate == cert or not _is_ca(candidate):
                continue
            if not issued_by(cert, candidate):
                continue
            remaining = [c for c in pool if c != candidate]
            tail = self._build_path(candidate, remaining, depth + 1)
            if tail is not None:
                return [cert] + tail
        return None

    def _verify_expiry(
        self,
        cert: x509.Certificate,
        now: datetime.datetime,
        errors: list[str],
    ) -> bool:
        """Check that the certificate is within its validity window."""
        not_before = cert.not_valid_before_utc
        not_after = cert.not_valid_after_utc
        subject = cert.subject.rfc4514_string()

        if now < not_before:
            errors.append(
                f"Certificate {subject!r} is not yet valid "
                f"(valid from {not_before.isoformat()})"
            )
            return False

        if now > not_after:
            errors.append(f"Certificate {subject!r} expired at {not_after.isoformat()}")
            return False

        return True


def issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    """Return True if *issuer*'s key signed *cert* and the names line up."""
    if cert.issuer != issuer.subject:
        return False
    try:
        cert.verify_directly_issued_by(issuer)
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


def is_self_signed(cert: x509.Certificate) -> bool:
    """Return True for a certificate that verifies under its own key."""
    return issued_by(cert, cert)


def _is_ca(cert: x509.Certificate) -> bool:
    try:
        constraints = cert.extensions.get_extension_for_class(x509.BasicConstraints)
    except x509.ExtensionNotFound:
        return False
    return bool(constraints.value.ca)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)
