#!/usr/bin/env python3
"""Example: Hot-reloading listener certificate

Writes a certificate pair to disk, builds an SSL context whose SNI callback
always serves the provider's current keypair, then replaces the files and
reloads.

Usage:
    python examples/02_hot_reload_listener.py

Requirements:
    pip install certsync
"""
from __future__ import annotations

import tempfile
from pathlib import Path

from certsync import HotReloadableCertificateProvider, generate_fake_certificate


def _write_pair(directory: Path, host: str) -> tuple[Path, Path]:
    cert_pem, key_pem = generate_fake_certificate(host)
    cert_path = directory / "tls.crt"
    key_path = directory / "tls.key"
    cert_path.write_bytes(cert_pem)
    key_path.write_bytes(key_pem)
    return cert_path, key_path


def main() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        cert_path, key_path = _write_pair(Path(tmp), "first.example.com")

        # watch=False: reload explicitly instead of via the file watcher
        provider = HotReloadableCertificateProvider(cert_path, key_path, watch=False)
        context = provider.tls_context()
        print(f"Context ready: {context.protocol!r}")

        keypair, _ = provider.get_certificate()
        print(f"Serving serial: {keypair.certificate.serial_number:x}")

        _write_pair(Path(tmp), "second.example.com")
        error = provider.reload()
        keypair, _ = provider.get_certificate()
        print(f"Reload error: {error}")
        print(f"Serving serial: {keypair.certificate.serial_number:x}")


if __name__ == "__main__":
    main()
