"""Certificate building, verification and persistence.

Turns raw PEM material from secrets into validated certificate records,
completes missing intermediate chains, configures client-authentication
trust bundles and writes everything to the certificate directory.
"""
from __future__ import annotations

from certsync.certificates.builder import CertificateBuilder, load_keypair
from certsync.certificates.chain import ChainResolver
from certsync.certificates.fake import default_fake_certificate, generate_fake_certificate
from certsync.certificates.persister import DiskPersister, file_checksum
from certsync.certificates.record import CertificateRecord, is_valid_hostname
from certsync.certificates.trust import TrustBundleConfigurer
from certsync.certificates.verifier import ChainVerifier, VerificationResult

__all__ = [
    "CertificateBuilder",
    "CertificateRecord",
    "ChainResolver",
    "ChainVerifier",
    "DiskPersister",
    "TrustBundleConfigurer",
    "VerificationResult",
    "default_fake_certificate",
    "file_checksum",
    "generate_fake_certificate",
    "is_valid_hostname",
    "load_keypair",
]
