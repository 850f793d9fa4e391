"""Tests for certsync.certificates.chain: AIA chain completion."""
from __future__ import annotations

import httpx
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs7

from certsync.certificates.chain import (
    ChainResolver,
    ca_issuer_urls,
    parse_issuer_response,
)
from certsync.errors import ChainFetchError

INTERMEDIATE_URL = "http://pki.example.com/intermediate.crt"
ROOT_URL = "http://pki.example.com/root.crt"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def chained_leaf(certs, intermediate_ca):
    return certs.leaf(intermediate_ca, common_name="chained.example.com", aia_url=INTERMEDIATE_URL)


@pytest.fixture()
def requests_seen() -> list[str]:
    return []


@pytest.fixture()
def pki_client(intermediate_ca, root_ca, requests_seen) -> httpx.Client:
    responses = {
        INTERMEDIATE_URL: intermediate_ca.cert_der,
        ROOT_URL: root_ca.cert_der,
    }

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        requests_seen.append(url)
        if url in responses:
            return httpx.Response(200, content=responses[url])
        return httpx.Response(404)

    return httpx.Client(transport=httpx.MockTransport(handler))


def _pem_certificates(data: bytes) -> list[x509.Certificate]:
    return x509.load_pem_x509_certificates(data)


# ---------------------------------------------------------------------------
# complete_chain
# ---------------------------------------------------------------------------


class TestCompleteChain:
    def test_already_trusted_returns_none(self, serving_cert, root_ca, pki_client, requests_seen) -> None:
        resolver = ChainResolver(roots=[root_ca.cert], client=pki_client)
        assert resolver.complete_chain(serving_cert.cert_pem) is None
        assert requests_seen == []

    def test_missing_intermediate_is_fetched(
        self, chained_leaf, intermediate_ca, root_ca, pki_client
    ) -> None:
        resolver = ChainResolver(roots=[root_ca.cert], client=pki_client)
        completed = resolver.complete_chain(chained_leaf.cert_pem)
        assert completed is not None
        assert _pem_certificates(completed) == [chained_leaf.cert, intermediate_ca.cert]

    def test_self_signed_root_not_included(
        self, chained_leaf, root_ca, pki_client, requests_seen
    ) -> None:
        resolver = ChainResolver(roots=[root_ca.cert], client=pki_client)
        completed = resolver.complete_chain(chained_leaf.cert_pem)
        assert root_ca.cert not in _pem_certificates(completed)
        assert requests_seen == [INTERMEDIATE_URL, ROOT_URL]

    def test_only_first_block_is_considered(
        self, chained_leaf, intermediate_ca, root_ca, pki_client
    ) -> None:
        resolver = ChainResolver(roots=[root_ca.cert], client=pki_client)
        completed = resolver.complete_chain(chained_leaf.cert_pem + intermediate_ca.cert_pem)
        assert _pem_certificates(completed)[0] == chained_leaf.cert

    def test_http_error_raises(self, certs, root_ca, pki_client) -> None:
        leaf = certs.leaf(root_ca, aia_url="http://pki.example.com/missing.crt")
        other_root = certs.root_ca("Unrelated Root")
        resolver = ChainResolver(roots=[other_root.cert], client=pki_client)
        with pytest.raises(ChainFetchError):
            resolver.complete_chain(leaf.cert_pem)

    def test_transport_error_raises(self, chained_leaf, certs) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        resolver = ChainResolver(roots=[certs.root_ca("Other").cert], client=client)
        with pytest.raises(ChainFetchError):
            resolver.complete_chain(chained_leaf.cert_pem)

    def test_unparsable_response_raises(self, chained_leaf, certs) -> None:
        client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"junk"))
        )
        resolver = ChainResolver(roots=[certs.root_ca("Other").cert], client=client)
        with pytest.raises(ChainFetchError):
            resolver.complete_chain(chained_leaf.cert_pem)

    def test_undecodable_certificate_raises(self, root_ca) -> None:
        resolver = ChainResolver(roots=[root_ca.cert])
        with pytest.raises(ChainFetchError):
            resolver.complete_chain(b"no certificate here")

    def test_no_aia_returns_leaf_only(self, certs, root_ca, requests_seen, pki_client) -> None:
        leaf = certs.leaf(certs.root_ca("Private Root"))
        resolver = ChainResolver(roots=[root_ca.cert], client=pki_client)
        completed = resolver.complete_chain(leaf.cert_pem)
        assert _pem_certificates(completed) == [leaf.cert]
        assert requests_seen == []


class TestFetchChain:
    def test_max_hops_bounds_requests(
        self, chained_leaf, root_ca, pki_client, requests_seen
    ) -> None:
        resolver = ChainResolver(roots=[root_ca.cert], client=pki_client, max_hops=1)
        chain = resolver.fetch_chain(chained_leaf.cert)
        assert len(chain) == 2
        assert requests_seen == [INTERMEDIATE_URL]

    def test_circular_reference_stops(self, certs, root_ca) -> None:
        looping = certs.intermediate(root_ca, common_name="Loop CA", aia_url="http://loop/ca.crt")
        leaf = certs.leaf(looping, aia_url="http://loop/ca.crt")
        calls: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(200, content=looping.cert_der)

        resolver = ChainResolver(
            roots=[root_ca.cert], client=httpx.Client(transport=httpx.MockTransport(handler))
        )
        chain = resolver.fetch_chain(leaf.cert)
        assert chain == [leaf.cert, looping.cert]
        assert len(calls) == 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestCaIssuerUrls:
    def test_reads_ca_issuers(self, chained_leaf) -> None:
        assert ca_issuer_urls(chained_leaf.cert) == [INTERMEDIATE_URL]

    def test_missing_extension(self, serving_cert) -> None:
        assert ca_issuer_urls(serving_cert.cert) == []


class TestParseIssuerResponse:
    def test_der(self, root_ca) -> None:
        assert parse_issuer_response(root_ca.cert_der) == root_ca.cert

    def test_pem(self, root_ca) -> None:
        assert parse_issuer_response(root_ca.cert_pem) == root_ca.cert

    def test_pkcs7_der(self, root_ca) -> None:
        bundle = pkcs7.serialize_certificates([root_ca.cert], serialization.Encoding.DER)
        assert parse_issuer_response(bundle) == root_ca.cert

    def test_garbage(self) -> None:
        with pytest.raises(ChainFetchError, match="http://x"):
            parse_issuer_response(b"\x00\x01", "http://x")
