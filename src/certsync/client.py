"""HTTP client for the dynamic configuration server."""
from __future__ import annotations

import logging
from typing import Iterable

import httpx

from certsync.certificates.record import CertificateRecord
from certsync.server.models import ServerCertificate, ServerCertificateList

logger = logging.getLogger(__name__)


def build_server_entries(records: Iterable[CertificateRecord]) -> list[ServerCertificate]:
    """Flatten *records* into one server entry per host name.

    CA-only records and records without a bundle are skipped, as are empty
    host names.
    """
    entries: list[ServerCertificate] = []
    for record in records:
        if not record.pem_bundle:
            continue
        pem_cert_key = record.pem_bundle.decode("utf-8")
        for hostname in record.common_names:
            if hostname:
                entries.append(ServerCertificate(hostname=hostname, pem_cert_key=pem_cert_key))
    return entries


class ConfigurationClient:
    """Push certificates to, and read them back from, a configuration server.

    Parameters
    ----------
    base_url:
        Root URL of the server, e.g. ``"http://127.0.0.1:10246"``.
    client:
        Optional preconfigured ``httpx.Client``. One bound to *base_url* is
        created (and owned) when omitted.
    """

    def __init__(self, base_url: str, client: httpx.Client | None = None) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=10.0)
        self._base_url = base_url.rstrip("/")

    def post_servers(self, entries: Iterable[ServerCertificate]) -> None:
        """POST *entries* to ``/configuration/servers``.

        Raises
        ------
        httpx.HTTPStatusError
            If the server does not answer 201.
        """
        payload = ServerCertificateList.dump_python(list(entries), by_alias=True)
        response = self._client.post(self._url("/configuration/servers"), json=payload)
        response.raise_for_status()
        logger.debug("Posted %d server certificate entries", len(payload))

    def get_certificate(self, hostname: str) -> str | None:
        """Return the PEM bundle stored for *hostname*, or None on 404."""
        response = self._client.get(
            self._url("/configuration/certs"), params={"hostname": hostname}
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.text

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ConfigurationClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"
