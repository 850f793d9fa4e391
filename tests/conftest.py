"""Shared certificate factories for the certsync test suite."""
from __future__ import annotations

import datetime
import ipaddress
from dataclasses import dataclass
from typing import Sequence

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtensionOID, NameOID

from certsync.certificates.pem import encode_pem_block


@dataclass
class Issued:
    """A certificate together with its private key and PEM encodings."""

    cert: x509.Certificate
    key: ec.EllipticCurvePrivateKey

    @property
    def cert_pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)

    @property
    def cert_der(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.DER)

    @property
    def key_pem(self) -> bytes:
        return self.key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


class CertFactory:
    """Issues throwaway CA, intermediate and leaf certificates."""

    def _name(self, common_name: str | None) -> x509.Name:
        attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, "certsync tests")]
        if common_name is not None:
            attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
        return x509.Name(attributes)

    def _builder(
        self,
        subject: x509.Name,
        issuer: x509.Name,
        public_key: ec.EllipticCurvePublicKey,
        not_before_days: int,
        not_after_days: int,
    ) -> x509.CertificateBuilder:
        now = datetime.datetime.now(datetime.timezone.utc)
        return (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(now + datetime.timedelta(days=not_before_days))
            .not_valid_after(now + datetime.timedelta(days=not_after_days))
        )

    def root_ca(self, common_name: str = "Test Root CA") -> Issued:
        key = ec.generate_private_key(ec.SECP256R1())
        name = self._name(common_name)
        cert = (
            self._builder(name, name, key.public_key(), -1, 3650)
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .sign(key, hashes.SHA256())
        )
        return Issued(cert, key)

    def intermediate(
        self,
        issuer: Issued,
        common_name: str = "Test Intermediate CA",
        aia_url: str | None = None,
    ) -> Issued:
        key = ec.generate_private_key(ec.SECP256R1())
        builder = self._builder(
            self._name(common_name), issuer.cert.subject, key.public_key(), -1, 1825
        ).add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        if aia_url is not None:
            builder = builder.add_extension(_aia(aia_url), critical=False)
        return Issued(builder.sign(issuer.key, hashes.SHA256()), key)

    def leaf(
        self,
        issuer: Issued | None = None,
        common_name: str | None = "www.example.com",
        dns_names: Sequence[str] = (),
        emails: Sequence[str] = (),
        ip_addresses: Sequence[str] = (),
        not_before_days: int = -1,
        not_after_days: int = 90,
        aia_url: str | None = None,
    ) -> Issued:
        """Issue a leaf certificate; self-signed when *issuer* is None."""
        key = ec.generate_private_key(ec.SECP256R1())
        subject = self._name(common_name)
        issuer_name = issuer.cert.subject if issuer is not None else subject
        builder = self._builder(
            subject, issuer_name, key.public_key(), not_before_days, not_after_days
        ).add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)

        general_names: list[x509.GeneralName] = [x509.DNSName(name) for name in dns_names]
        general_names += [x509.RFC822Name(email) for email in emails]
        general_names += [x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses]
        if general_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName(general_names), critical=False
            )
        if aia_url is not None:
            builder = builder.add_extension(_aia(aia_url), critical=False)

        signing_key = issuer.key if issuer is not None else key
        return Issued(builder.sign(signing_key, hashes.SHA256()), key)

    def raw_san_leaf(self, san_value: bytes, common_name: str = "raw.example.com") -> Issued:
        """Issue a self-signed leaf whose subjectAltName holds *san_value* verbatim."""
        key = ec.generate_private_key(ec.SECP256R1())
        name = self._name(common_name)
        cert = (
            self._builder(name, name, key.public_key(), -1, 90)
            .add_extension(
                x509.UnrecognizedExtension(ExtensionOID.SUBJECT_ALTERNATIVE_NAME, san_value),
                critical=False,
            )
            .sign(key, hashes.SHA256())
        )
        return Issued(cert, key)


def _aia(url: str) -> x509.AuthorityInformationAccess:
    return x509.AuthorityInformationAccess(
        [
            x509.AccessDescription(
                AuthorityInformationAccessOID.CA_ISSUERS,
                x509.UniformResourceIdentifier(url),
            )
        ]
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def certs() -> CertFactory:
    return CertFactory()


@pytest.fixture(scope="session")
def root_ca(certs: CertFactory) -> Issued:
    return certs.root_ca()


@pytest.fixture(scope="session")
def intermediate_ca(certs: CertFactory, root_ca: Issued) -> Issued:
    return certs.intermediate(root_ca, aia_url="http://pki.example.com/root.crt")


@pytest.fixture(scope="session")
def serving_cert(certs: CertFactory, root_ca: Issued) -> Issued:
    """Leaf issued directly by the root, with two DNS SANs."""
    return certs.leaf(
        root_ca,
        common_name="www.example.com",
        dns_names=["example.com", "www.example.com"],
    )


@pytest.fixture(scope="session")
def other_key_pem(certs: CertFactory) -> bytes:
    """A private key that belongs to no fixture certificate."""
    return certs.leaf().key_pem


@pytest.fixture()
def cert_dir(tmp_path):
    path = tmp_path / "ssl"
    path.mkdir()
    return path


# id-ecPublicKey (1.2.840.10045.2.1) and an unassigned sibling arc
_EC_PUBLIC_KEY_OID_DER = bytes.fromhex("06072a8648ce3d0201")
_UNKNOWN_KEY_OID_DER = bytes.fromhex("06072a8648ce3d0209")


@pytest.fixture(scope="session")
def unknown_key_cert_pem(serving_cert: Issued) -> bytes:
    """The serving certificate with its key algorithm OID swapped for one nobody supports."""
    der = serving_cert.cert_der
    assert der.count(_EC_PUBLIC_KEY_OID_DER) == 1
    return encode_pem_block(
        "CERTIFICATE", der.replace(_EC_PUBLIC_KEY_OID_DER, _UNKNOWN_KEY_OID_DER)
    )
