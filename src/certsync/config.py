"""Runtime configuration and component wiring."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from certsync.certificates.builder import CertificateBuilder
from certsync.certificates.chain import ChainResolver
from certsync.certificates.persister import DEFAULT_CERTIFICATE_DIR, DiskPersister
from certsync.certificates.trust import TrustBundleConfigurer
from certsync.store.notifier import ChangeNotifier
from certsync.store.secrets import SecretSource
from certsync.store.synchronizer import CertificateSynchronizer

_ENV_PREFIX = "CERTSYNC_"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class CertSyncConfig:
    """Configuration for certificate synchronization.

    Parameters
    ----------
    certificate_dir:
        Directory every PEM file is written to.
    enable_dynamic_certificates:
        Keep keypair-only secrets in memory instead of writing them to disk.
    enable_chain_completion:
        Fetch missing intermediates through Authority Information Access.
    chain_fetch_timeout:
        HTTP timeout in seconds for each issuer fetch.
    chain_max_hops:
        Maximum number of issuers fetched for one certificate.
    """

    certificate_dir: Path = DEFAULT_CERTIFICATE_DIR
    enable_dynamic_certificates: bool = True
    enable_chain_completion: bool = False
    chain_fetch_timeout: float = 10.0
    chain_max_hops: int = 10

    def __post_init__(self) -> None:
        if self.chain_fetch_timeout <= 0:
            raise ValueError(
                f"chain_fetch_timeout must be positive, got {self.chain_fetch_timeout}"
            )
        if self.chain_max_hops < 1:
            raise ValueError(f"chain_max_hops must be at least 1, got {self.chain_max_hops}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "CertSyncConfig":
        """Build a configuration from ``CERTSYNC_*`` environment variables.

        Recognized variables: ``CERTSYNC_CERTIFICATE_DIR``,
        ``CERTSYNC_DYNAMIC_CERTIFICATES``, ``CERTSYNC_CHAIN_COMPLETION``,
        ``CERTSYNC_CHAIN_FETCH_TIMEOUT`` and ``CERTSYNC_CHAIN_MAX_HOPS``.
        Unset variables keep their defaults.

        Raises
        ------
        ValueError
            If a variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def _get(name: str) -> str | None:
            value = env.get(_ENV_PREFIX + name)
            return value.strip() if value is not None and value.strip() else None

        certificate_dir = _get("CERTIFICATE_DIR")
        timeout = _get("CHAIN_FETCH_TIMEOUT")
        max_hops = _get("CHAIN_MAX_HOPS")

        return cls(
            certificate_dir=Path(certificate_dir) if certificate_dir else defaults.certificate_dir,
            enable_dynamic_certificates=_parse_bool(
                "DYNAMIC_CERTIFICATES",
                _get("DYNAMIC_CERTIFICATES"),
                defaults.enable_dynamic_certificates,
            ),
            enable_chain_completion=_parse_bool(
                "CHAIN_COMPLETION",
                _get("CHAIN_COMPLETION"),
                defaults.enable_chain_completion,
            ),
            chain_fetch_timeout=float(timeout) if timeout else defaults.chain_fetch_timeout,
            chain_max_hops=int(max_hops) if max_hops else defaults.chain_max_hops,
        )


def _parse_bool(name: str, value: str | None, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{_ENV_PREFIX}{name} must be a boolean, got {value!r}")


def build_synchronizer(
    config: CertSyncConfig,
    source: SecretSource,
    notifier: ChangeNotifier | None = None,
) -> CertificateSynchronizer:
    """Wire a CertificateSynchronizer from *config*."""
    resolver = None
    if config.enable_chain_completion:
        resolver = ChainResolver(
            timeout=config.chain_fetch_timeout,
            max_hops=config.chain_max_hops,
        )
    persister = DiskPersister(config.certificate_dir)
    return CertificateSynchronizer(
        source=source,
        builder=CertificateBuilder(chain_resolver=resolver),
        persister=persister,
        trust=TrustBundleConfigurer(persister),
        notifier=notifier,
        enable_dynamic_certificates=config.enable_dynamic_certificates,
    )
