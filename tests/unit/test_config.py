"""Tests for certsync.config: CertSyncConfig and component wiring."""
from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from certsync.certificates.persister import DEFAULT_CERTIFICATE_DIR
from certsync.config import CertSyncConfig, build_synchronizer
from certsync.store.notifier import ChangeNotifier
from certsync.store.secrets import InMemorySecretSource, Secret


class TestCertSyncConfigDefaults:
    def test_defaults(self) -> None:
        config = CertSyncConfig()
        assert config.certificate_dir == DEFAULT_CERTIFICATE_DIR
        assert config.enable_dynamic_certificates is True
        assert config.enable_chain_completion is False
        assert config.chain_fetch_timeout == 10.0
        assert config.chain_max_hops == 10

    def test_is_frozen(self) -> None:
        config = CertSyncConfig()
        with pytest.raises(AttributeError):
            config.chain_max_hops = 3  # type: ignore[misc]

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ValueError, match="chain_fetch_timeout"):
            CertSyncConfig(chain_fetch_timeout=0)

    def test_rejects_zero_hops(self) -> None:
        with pytest.raises(ValueError, match="chain_max_hops"):
            CertSyncConfig(chain_max_hops=0)


class TestFromEnv:
    def test_empty_environment_gives_defaults(self) -> None:
        assert CertSyncConfig.from_env({}) == CertSyncConfig()

    def test_reads_all_variables(self) -> None:
        config = CertSyncConfig.from_env(
            {
                "CERTSYNC_CERTIFICATE_DIR": "/var/run/ssl",
                "CERTSYNC_DYNAMIC_CERTIFICATES": "false",
                "CERTSYNC_CHAIN_COMPLETION": "yes",
                "CERTSYNC_CHAIN_FETCH_TIMEOUT": "2.5",
                "CERTSYNC_CHAIN_MAX_HOPS": "4",
            }
        )
        assert config == CertSyncConfig(
            certificate_dir=Path("/var/run/ssl"),
            enable_dynamic_certificates=False,
            enable_chain_completion=True,
            chain_fetch_timeout=2.5,
            chain_max_hops=4,
        )

    def test_blank_value_keeps_default(self) -> None:
        config = CertSyncConfig.from_env({"CERTSYNC_CHAIN_MAX_HOPS": "  "})
        assert config.chain_max_hops == 10

    def test_invalid_boolean(self) -> None:
        with pytest.raises(ValueError, match="CERTSYNC_CHAIN_COMPLETION"):
            CertSyncConfig.from_env({"CERTSYNC_CHAIN_COMPLETION": "maybe"})

    def test_invalid_number(self) -> None:
        with pytest.raises(ValueError):
            CertSyncConfig.from_env({"CERTSYNC_CHAIN_MAX_HOPS": "many"})


class TestBuildSynchronizer:
    def test_wires_working_synchronizer(self, cert_dir, serving_cert) -> None:
        source = InMemorySecretSource(
            [Secret("default", "site", {"tls.crt": serving_cert.cert_pem, "tls.key": serving_cert.key_pem})]
        )
        notifier = ChangeNotifier()
        config = CertSyncConfig(certificate_dir=cert_dir, enable_dynamic_certificates=False)

        synchronizer = build_synchronizer(config, source, notifier=notifier)
        synchronizer.sync("default/site")

        assert synchronizer.notifier is notifier
        assert (cert_dir / "default-site.pem").exists()

    def test_chain_completion_wires_resolver(self, cert_dir) -> None:
        config = CertSyncConfig(
            certificate_dir=cert_dir,
            enable_chain_completion=True,
            chain_fetch_timeout=3.0,
            chain_max_hops=2,
        )
        with patch("certsync.config.ChainResolver") as resolver_cls:
            build_synchronizer(config, InMemorySecretSource())
        resolver_cls.assert_called_once_with(timeout=3.0, max_hops=2)

    def test_no_resolver_by_default(self, cert_dir) -> None:
        with patch("certsync.config.ChainResolver") as resolver_cls:
            build_synchronizer(CertSyncConfig(certificate_dir=cert_dir), InMemorySecretSource())
        resolver_cls.assert_not_called()
