"""Self-signed placeholder certificate.

The proxy needs some certificate to answer TLS handshakes for hosts without
a configured secret. The placeholder is generated at startup, never trusted
by clients, and stored like any other serving certificate.
"""
from __future__ import annotations

import datetime

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from certsync.certificates.builder import CertificateBuilder
from certsync.certificates.persister import DiskPersister
from certsync.certificates.record import CertificateRecord

FAKE_CERTIFICATE_NAME = "default-fake-certificate"
FAKE_COMMON_NAME = "Kubernetes Ingress Controller Fake Certificate"
FAKE_ORGANIZATION = "Acme Co"


def generate_fake_certificate(
    host: str = "ingress.local",
    validity_days: int = 365,
) -> tuple[bytes, bytes]:
    """Generate a self-signed serving certificate for *host*.

    Parameters
    ----------
    host:
        DNS name placed in the subjectAltName extension.
    validity_days:
        How many days the certificate should be valid.

    Returns
    -------
    tuple[bytes, bytes]
        PEM certificate and PEM (PKCS#1) RSA private key.
    """
    key: RSAPrivateKey = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )

    now = datetime.datetime.now(datetime.timezone.utc)
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, FAKE_ORGANIZATION),
            x509.NameAttribute(NameOID.COMMON_NAME, FAKE_COMMON_NAME),
        ]
    )

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=validity_days))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(host)]), critical=False)
        .add_extension(
            x509.BasicConstraints(ca=False, path_length=None),
            critical=True,
        )
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                key_encipherment=True,
                content_commitment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )

    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return cert_pem, key_pem


def default_fake_certificate(
    builder: CertificateBuilder,
    persister: DiskPersister,
    host: str = "ingress.local",
) -> CertificateRecord:
    """Build the placeholder certificate and store it on disk."""
    cert_pem, key_pem = generate_fake_certificate(host)
    record = builder.build_keypair_certificate(cert_pem, key_pem)
    persister.store_on_disk(FAKE_CERTIFICATE_NAME, record)
    record.name = FAKE_CERTIFICATE_NAME
    return record
