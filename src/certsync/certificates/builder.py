"""Certificate record construction from raw secret bytes.

CertificateBuilder validates a PEM certificate and private key (or a CA-only
bundle) and produces a :class:`CertificateRecord`. The subjectAltName
extension is walked element by element rather than decoded as a whole so
that certificates a strict decoder would reject still yield their host
names.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from asn1crypto import core as asn1_core
from asn1crypto import parser as asn1_parser
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.x509.oid import NameOID

from certsync.certificates.chain import ChainResolver
from certsync.certificates.pem import decode_first_pem_block
from certsync.certificates.record import CertificateRecord
from certsync.errors import (
    CertificateParseError,
    CertKeyMismatchError,
    ChainFetchError,
    InvalidPEMError,
    MalformedSANError,
    WrongPEMTypeError,
)

logger = logging.getLogger(__name__)

SUBJECT_ALT_NAME_OID = "2.5.29.17"

# GeneralName CHOICE tags, RFC 5280 section 4.2.1.6
_TAG_RFC822_NAME = 1
_TAG_DNS_NAME = 2
_TAG_IP_ADDRESS = 7


@dataclass
class SubjectAltNames:
    """Names recovered from a subjectAltName extension."""

    dns_names: list[str] = field(default_factory=list)
    email_addresses: list[str] = field(default_factory=list)
    ip_addresses: list[bytes] = field(default_factory=list)


class CertificateBuilder:
    """Builds validated certificate records.

    Parameters
    ----------
    chain_resolver:
        Optional resolver used to complete missing intermediates. Chain
        completion is disabled when None.
    """

    def __init__(self, chain_resolver: ChainResolver | None = None) -> None:
        self._chain_resolver = chain_resolver

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def build_keypair_certificate(
        self, cert_bytes: bytes, key_bytes: bytes
    ) -> CertificateRecord:
        """Validate a certificate and key and return a serving record.

        Parameters
        ----------
        cert_bytes:
            PEM certificate, optionally followed by intermediates.
        key_bytes:
            PEM private key matching the first certificate.

        Returns
        -------
        CertificateRecord
            Record with sorted common names and the PEM bundle
            ``cert + b"\\n" + key``.

        Raises
        ------
        InvalidPEMError, WrongPEMTypeError, CertificateParseError,
        CertKeyMismatchError, MalformedSANError
        """
        chain_bytes = self._complete_chain(cert_bytes)
        pem_bundle = chain_bytes + b"\n" + key_bytes

        certificate = parse_first_certificate(pem_bundle)
        check_key_matches(certificate, load_private_key(key_bytes))

        common_names = extract_common_names(certificate)
        logger.debug("Built certificate record for %s", common_names)

        return CertificateRecord(
            certificate=certificate,
            common_names=common_names,
            expire_time=certificate.not_valid_after_utc,
            pem_bundle=pem_bundle,
        )

    def build_ca_only_certificate(self, ca_bytes: bytes) -> CertificateRecord:
        """Validate a CA bundle and return a trust-anchor-only record.

        Raises
        ------
        InvalidPEMError, WrongPEMTypeError, CertificateParseError
        """
        certificate = parse_first_certificate(ca_bytes)
        return CertificateRecord(
            certificate=certificate,
            expire_time=certificate.not_valid_after_utc,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _complete_chain(self, cert_bytes: bytes) -> bytes:
        if self._chain_resolver is None:
            return cert_bytes
        try:
            completed = self._chain_resolver.complete_chain(cert_bytes)
        except ChainFetchError as exc:
            logger.error("Error generating certificate chain for Secret: %s", exc)
            return cert_bytes
        return completed if completed is not None else cert_bytes


# ----------------------------------------------------------------------
# Parsing helpers
# ----------------------------------------------------------------------


def parse_first_certificate(data: bytes) -> x509.Certificate:
    """Decode the first PEM block of *data* as an X.509 certificate."""
    block = decode_first_pem_block(data)
    if block is None:
        raise InvalidPEMError()
    if block.label != "CERTIFICATE":
        raise WrongPEMTypeError(block.label)
    try:
        return x509.load_der_x509_certificate(block.data)
    except ValueError as exc:
        raise CertificateParseError(f"could not parse certificate: {exc}") from exc


def load_private_key(key_bytes: bytes) -> PrivateKeyTypes:
    """Load an unencrypted PEM private key."""
    try:
        return serialization.load_pem_private_key(key_bytes, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CertKeyMismatchError(
            f"certificate and private key do not have a matching public key: {exc}"
        ) from exc


def check_key_matches(certificate: x509.Certificate, private_key: PrivateKeyTypes) -> None:
    """Raise CertKeyMismatchError unless *private_key* belongs to *certificate*."""
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    der = serialization.Encoding.DER
    try:
        cert_public = certificate.public_key().public_bytes(der, spki)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CertificateParseError(f"could not read certificate public key: {exc}") from exc
    try:
        key_public = private_key.public_key().public_bytes(der, spki)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CertKeyMismatchError(
            f"certificate and private key do not have a matching public key: {exc}"
        ) from exc
    if cert_public != key_public:
        raise CertKeyMismatchError(
            "certificate and private key do not have a matching public key"
        )


def load_keypair(
    cert_bytes: bytes, key_bytes: bytes
) -> tuple[x509.Certificate, PrivateKeyTypes]:
    """Parse and cross-check a PEM certificate and key."""
    certificate = parse_first_certificate(cert_bytes)
    private_key = load_private_key(key_bytes)
    check_key_matches(certificate, private_key)
    return certificate, private_key


def extract_common_names(certificate: x509.Certificate) -> list[str]:
    """Return the subject CommonName and SAN names, sorted and deduplicated."""
    names: set[str] = set()
    cn_attrs = certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    names.add(str(cn_attrs[0].value) if cn_attrs else "")

    for value in raw_extension_values(certificate, SUBJECT_ALT_NAME_OID):
        san = parse_san_extension(value)
        names.update(san.dns_names)
        names.update(san.email_addresses)

    return sorted(names)


def raw_extension_values(certificate: x509.Certificate, oid: str) -> list[bytes]:
    """Return the undecoded extnValue payloads of every extension with *oid*."""
    der = certificate.public_bytes(serialization.Encoding.DER)
    try:
        extensions = asn1_x509.Certificate.load(der)["tbs_certificate"]["extensions"]
        if isinstance(extensions, asn1_core.Void):
            return []
        return [
            extension["extn_value"].contents
            for extension in extensions
            if extension["extn_id"].dotted == oid
        ]
    except (ValueError, TypeError, KeyError) as exc:
        raise CertificateParseError(f"could not read certificate extensions: {exc}") from exc


def parse_san_extension(value: bytes) -> SubjectAltNames:
    """Walk a DER ``GeneralNames`` sequence one element at a time.

    ``dNSName`` and ``rfc822Name`` values are collected, ``iPAddress`` values
    must be 4 or 16 bytes long, and every other choice is ignored.

    Raises
    ------
    MalformedSANError
        If the outer sequence or an element cannot be decoded, or an IP
        address has an invalid length.
    """
    try:
        class_, method, tag, _, contents, _ = asn1_parser.parse(value, strict=True)
    except ValueError as exc:
        raise MalformedSANError(f"could not decode subjectAltName: {exc}") from exc
    if class_ != 0 or method != 1 or tag != 16:
        raise MalformedSANError("bad SAN sequence")

    names = SubjectAltNames()
    rest = contents
    while rest:
        try:
            _, _, tag, header, body, trailer = asn1_parser.parse(rest)
        except ValueError as exc:
            raise MalformedSANError(f"could not decode subjectAltName entry: {exc}") from exc
        rest = rest[len(header) + len(body) + len(trailer) :]

        if tag == _TAG_RFC822_NAME:
            names.email_addresses.append(body.decode("utf-8", "replace"))
        elif tag == _TAG_DNS_NAME:
            names.dns_names.append(body.decode("utf-8", "replace"))
        elif tag == _TAG_IP_ADDRESS:
            if len(body) not in (4, 16):
                raise MalformedSANError(
                    f"certificate contained IP address of length {len(body)}"
                )
            names.ip_addresses.append(body)
    return names
