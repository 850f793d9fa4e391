"""Tests for certsync.server.routes: configuration endpoint handlers."""
from __future__ import annotations

import json
import logging

import pytest

from certsync.server import routes
from certsync.server.store import CertificateDataStore


@pytest.fixture(autouse=True)
def reset_server_state() -> None:
    """Reset module-level state before each test."""
    routes.reset_state()


def _post_servers(entries: object) -> tuple[int, str]:
    return routes.dispatch("POST", routes.SERVERS_PATH, {}, json.dumps(entries).encode())


def _get_cert(hostname: str) -> tuple[int, str]:
    return routes.dispatch("GET", routes.CERTS_PATH, {"hostname": [hostname]}, b"")


# ---------------------------------------------------------------------------
# /configuration/servers and /configuration/certs
# ---------------------------------------------------------------------------


class TestServers:
    def test_post_stores_certificates(self) -> None:
        status, _ = _post_servers(
            [
                {"hostname": "a.example.com", "pemCertKey": "PEM-A"},
                {"hostname": "b.example.com", "pemCertKey": "PEM-B"},
            ]
        )
        assert status == 201
        assert _get_cert("a.example.com") == (200, "PEM-A")
        assert _get_cert("b.example.com") == (200, "PEM-B")

    def test_post_overwrites_existing(self) -> None:
        _post_servers([{"hostname": "a.example.com", "pemCertKey": "old"}])
        _post_servers([{"hostname": "a.example.com", "pemCertKey": "new"}])
        assert _get_cert("a.example.com") == (200, "new")

    def test_incomplete_entries_skipped(self, caplog) -> None:
        with caplog.at_level(logging.WARNING):
            status, _ = _post_servers(
                [
                    {"hostname": "a.example.com"},
                    {"pemCertKey": "orphan"},
                    {"hostname": "", "pemCertKey": "empty host"},
                    {"hostname": "ok.example.com", "pemCertKey": "PEM"},
                ]
            )
        assert status == 201
        assert _get_cert("a.example.com")[0] == 404
        assert _get_cert("ok.example.com") == (200, "PEM")
        assert caplog.text.count("hostname or pemCertKey are not present") == 3

    def test_invalid_json(self) -> None:
        status, _ = routes.dispatch("POST", routes.SERVERS_PATH, {}, b"{not json")
        assert status == 400

    def test_wrong_json_shape(self) -> None:
        status, _ = routes.dispatch("POST", routes.SERVERS_PATH, {}, b'{"hostname": "x"}')
        assert status == 400

    def test_empty_body(self) -> None:
        status, _ = routes.dispatch("POST", routes.SERVERS_PATH, {}, b"")
        assert status == 400

    def test_get_not_allowed(self) -> None:
        status, _ = routes.dispatch("GET", routes.SERVERS_PATH, {}, b"")
        assert status == 400

    def test_eviction_is_logged(self, caplog) -> None:
        routes.reset_state(capacity=1)
        _post_servers([{"hostname": "first.example.com", "pemCertKey": "1"}])
        with caplog.at_level(logging.WARNING):
            _post_servers([{"hostname": "second.example.com", "pemCertKey": "2"}])
        assert "first.example.com" in caplog.text
        assert _get_cert("first.example.com")[0] == 404
        assert _get_cert("second.example.com") == (200, "2")


class TestCerts:
    def test_unknown_hostname(self) -> None:
        assert _get_cert("nobody.example.com") == (404, "No key associated with this hostname.")

    def test_missing_hostname(self) -> None:
        status, _ = routes.dispatch("GET", routes.CERTS_PATH, {}, b"")
        assert status == 400

    def test_post_not_allowed(self) -> None:
        status, _ = routes.dispatch("POST", routes.CERTS_PATH, {"hostname": ["a"]}, b"x")
        assert status == 400


# ---------------------------------------------------------------------------
# Opaque configuration blobs
# ---------------------------------------------------------------------------


class TestBlobs:
    @pytest.mark.parametrize("path", [routes.GENERAL_PATH, routes.BACKENDS_PATH])
    def test_post_then_get(self, path: str) -> None:
        assert routes.dispatch("POST", path, {}, b'{"k": 1}') == (201, "")
        assert routes.dispatch("GET", path, {}, b"") == (200, '{"k": 1}')

    def test_get_before_post_is_empty(self) -> None:
        assert routes.dispatch("GET", routes.GENERAL_PATH, {}, b"") == (200, "")

    def test_blobs_are_independent(self) -> None:
        routes.dispatch("POST", routes.GENERAL_PATH, {}, b"general")
        assert routes.dispatch("GET", routes.BACKENDS_PATH, {}, b"") == (200, "")

    def test_empty_post_rejected(self) -> None:
        assert routes.dispatch("POST", routes.BACKENDS_PATH, {}, b"")[0] == 400


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    @pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH"])
    def test_other_methods_rejected(self, method: str) -> None:
        assert routes.dispatch(method, routes.SERVERS_PATH, {}, b"") == (
            400,
            "Only POST and GET requests are allowed!",
        )

    def test_unknown_path(self) -> None:
        assert routes.dispatch("GET", "/configuration/unknown", {}, b"") == (404, "Not found!")


class TestCertificateDataStore:
    def test_lru_order_refreshed_on_get(self) -> None:
        store = CertificateDataStore(capacity=2)
        store.set("a", "1")
        store.set("b", "2")
        store.get("a")
        assert store.set("c", "3") == "b"
        assert store.get("a") == "1"
        assert len(store) == 2

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            CertificateDataStore(capacity=0)
