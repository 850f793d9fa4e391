#!/usr/bin/env python3
"""Example: Quickstart

Synchronizes a self-signed serving certificate from an in-memory secret
source, writes it to a temporary certificate directory and looks the
resulting record up again.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install certsync
"""
from __future__ import annotations

import tempfile
from pathlib import Path

import certsync
from certsync import (
    CertSyncConfig,
    InMemorySecretSource,
    Secret,
    build_synchronizer,
    generate_fake_certificate,
)


def main() -> None:
    print(f"certsync version: {certsync.__version__}")

    # Step 1: Put a TLS secret into a source
    cert_pem, key_pem = generate_fake_certificate("quickstart.example.com")
    source = InMemorySecretSource()
    source.put(Secret("default", "quickstart", {"tls.crt": cert_pem, "tls.key": key_pem}))

    with tempfile.TemporaryDirectory() as tmp:
        # Step 2: Wire a synchronizer that writes PEM files to disk
        config = CertSyncConfig(certificate_dir=Path(tmp), enable_dynamic_certificates=False)
        synchronizer = build_synchronizer(config, source)

        # Step 3: Synchronize and inspect the record
        outcome = synchronizer.sync("default/quickstart")
        record = synchronizer.lookup("default/quickstart")
        print(f"Outcome: {outcome.value}")
        print(f"Common names: {', '.join(record.common_names)}")
        print(f"Stored at: {record.stored_file_path}")
        print(f"Checksum: {record.checksum}")
        print(f"Days remaining: {record.days_remaining()}")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
