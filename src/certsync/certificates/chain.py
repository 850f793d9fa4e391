"""Intermediate chain completion via Authority Information Access.

A serving certificate uploaded without its intermediates cannot be validated
by clients that lack them. ChainResolver detects that case and follows the
``caIssuers`` URLs of each certificate upward, one hop per missing issuer,
until a self-signed root or a certificate without AIA data is reached.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import certifi
import httpx
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs7
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtensionOID

from certsync.certificates.pem import decode_first_pem_block, encode_pem_block
from certsync.certificates.verifier import ChainVerifier, is_self_signed
from certsync.errors import ChainFetchError

logger = logging.getLogger(__name__)

_ACCEPT = "application/pkix-cert,application/x-x509-ca-cert,application/pkcs7-mime,*/*"


def load_certifi_roots() -> list[x509.Certificate]:
    """Load the Mozilla root bundle shipped with ``certifi``."""
    return x509.load_pem_x509_certificates(Path(certifi.where()).read_bytes())


class ChainResolver:
    """Best-effort completion of missing intermediate certificates.

    Parameters
    ----------
    roots:
        Trusted roots used to decide whether a chain is already complete.
        Defaults to the ``certifi`` bundle, loaded on first use.
    client:
        HTTP client used to fetch issuer certificates. A private client with
        *timeout* is created when omitted.
    timeout:
        Per-request timeout in seconds for the private client.
    max_hops:
        Upper bound on the number of issuers fetched for one certificate.
    """

    def __init__(
        self,
        roots: Sequence[x509.Certificate] | None = None,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
        max_hops: int = 10,
    ) -> None:
        self._roots = list(roots) if roots is not None else None
        self._client = client
        self._timeout = timeout
        self._max_hops = max_hops

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def complete_chain(self, cert_bytes: bytes) -> bytes | None:
        """Return PEM bytes of leaf plus intermediates, or None if complete.

        Parameters
        ----------
        cert_bytes:
            PEM-encoded certificate; only the first block is considered.

        Returns
        -------
        bytes | None
            Replacement PEM bytes, or None when the certificate already
            verifies against the trusted roots.

        Raises
        ------
        ChainFetchError
            If the certificate cannot be decoded or an issuer cannot be
            fetched or parsed.
        """
        leaf = _decode_leaf(cert_bytes)

        result = ChainVerifier(self._trusted_roots()).verify(leaf, intermediates=[leaf])
        if result.chain_valid:
            logger.debug(
                "Certificate %s already chains to a trusted root",
                leaf.subject.rfc4514_string(),
            )
            return None

        chain = self.fetch_chain(leaf)
        return b"".join(
            encode_pem_block("CERTIFICATE", cert.public_bytes(serialization.Encoding.DER))
            for cert in chain
        )

    def fetch_chain(self, leaf: x509.Certificate) -> list[x509.Certificate]:
        """Follow caIssuers URLs upward from *leaf*.

        The returned list starts with *leaf* and excludes the self-signed
        root, which peers are expected to already trust.
        """
        chain = [leaf]
        seen = {leaf.fingerprint(hashes.SHA256())}
        current = leaf

        for _ in range(self._max_hops):
            if is_self_signed(current):
                break
            urls = ca_issuer_urls(current)
            if not urls:
                break

            issuer = self._fetch_issuer(urls[0])
            fingerprint = issuer.fingerprint(hashes.SHA256())
            if fingerprint in seen:
                logger.warning(
                    "Circular issuer reference for %s", current.subject.rfc4514_string()
                )
                break
            seen.add(fingerprint)

            if is_self_signed(issuer):
                break
            chain.append(issuer)
            current = issuer

        logger.info(
            "Completed certificate chain for %s with %d intermediate(s)",
            leaf.subject.rfc4514_string(),
            len(chain) - 1,
        )
        return chain

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _trusted_roots(self) -> list[x509.Certificate]:
        if self._roots is None:
            self._roots = load_certifi_roots()
        return self._roots

    def _fetch_issuer(self, url: str) -> x509.Certificate:
        logger.debug("Fetching issuer certificate from %s", url)
        client = self._client or httpx.Client(timeout=self._timeout, follow_redirects=True)
        try:
            response = client.get(url, headers={"Accept": _ACCEPT})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ChainFetchError(f"could not fetch issuer certificate from {url}: {exc}") from exc
        finally:
            if self._client is None:
                client.close()
        return parse_issuer_response(response.content, url)


def ca_issuer_urls(cert: x509.Certificate) -> list[str]:
    """Return the caIssuers URIs listed in *cert*'s AIA extension."""
    try:
        aia = cert.extensions.get_extension_for_oid(
            ExtensionOID.AUTHORITY_INFORMATION_ACCESS
        ).value
    except x509.ExtensionNotFound:
        return []
    return [
        description.access_location.value
        for description in aia
        if description.access_method == AuthorityInformationAccessOID.CA_ISSUERS
        and isinstance(description.access_location, x509.UniformResourceIdentifier)
    ]


def parse_issuer_response(content: bytes, url: str = "") -> x509.Certificate:
    """Decode an issuer certificate served as DER, PEM or PKCS#7."""
    try:
        return x509.load_der_x509_certificate(content)
    except ValueError:
        pass
    try:
        return x509.load_pem_x509_certificate(content)
    except ValueError:
        pass
    for loader in (pkcs7.load_der_pkcs7_certificates, pkcs7.load_pem_pkcs7_certificates):
        try:
            certs = loader(content)
        except ValueError:
            continue
        if certs:
            return certs[0]
    raise ChainFetchError(f"could not parse issuer certificate fetched from {url}")


def _decode_leaf(cert_bytes: bytes) -> x509.Certificate:
    block = decode_first_pem_block(cert_bytes)
    if block is None or block.label != "CERTIFICATE":
        raise ChainFetchError("no certificate PEM block to complete")
    try:
        return x509.load_der_x509_certificate(block.data)
    except ValueError as exc:
        raise ChainFetchError(f"could not decode certificate: {exc}") from exc
