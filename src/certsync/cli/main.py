"""CLI entry point for certsync.

Invoked as::

    certsync [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m certsync.cli.main

Commands
--------
version       Show version information
inspect       Validate a certificate and private key pair
inspect-ca    Validate a CA bundle
fake-cert     Write the default self-signed placeholder certificate
dhparam       Install a PEM-encoded DH parameters file
sync          Synchronize secrets from a mounted secrets directory
serve-config  Run the dynamic configuration server
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from certsync.certificates.persister import DEFAULT_CERTIFICATE_DIR
from certsync.certificates.record import CertificateRecord
from certsync.errors import CertSyncError

console = Console()

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


# ------------------------------------------------------------------
# Root group
# ------------------------------------------------------------------


@click.group()
@click.version_option(package_name="certsync")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging level.",
)
def cli(log_level: str) -> None:
    """TLS certificate synchronization, chain completion and trust bundles"""
    logging.basicConfig(level=getattr(logging, log_level.upper()))


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    from certsync import __version__

    console.print(f"[bold]certsync[/bold] v{__version__}")


# ------------------------------------------------------------------
# inspect / inspect-ca
# ------------------------------------------------------------------


@cli.command(name="inspect")
@click.argument("cert_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("key_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--chain-completion/--no-chain-completion",
    default=False,
    help="Fetch missing intermediates through Authority Information Access.",
)
def inspect_command(cert_file: str, key_file: str, chain_completion: bool) -> None:
    """Validate CERT_FILE against KEY_FILE and show the resulting record."""
    from certsync.certificates.builder import CertificateBuilder
    from certsync.certificates.chain import ChainResolver

    builder = CertificateBuilder(ChainResolver() if chain_completion else None)
    try:
        record = builder.build_keypair_certificate(
            Path(cert_file).read_bytes(), Path(key_file).read_bytes()
        )
    except CertSyncError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    _print_record(record, title="Serving Certificate")


@cli.command(name="inspect-ca")
@click.argument("ca_file", type=click.Path(exists=True, dir_okay=False))
def inspect_ca_command(ca_file: str) -> None:
    """Validate the CA bundle in CA_FILE."""
    from certsync.certificates.builder import CertificateBuilder
    from certsync.certificates.trust import load_ca_bundle

    data = Path(ca_file).read_bytes()
    try:
        record = CertificateBuilder().build_ca_only_certificate(data)
    except CertSyncError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    _print_record(record, title="CA Certificate")
    console.print(f"  Bundle size:  {len(load_ca_bundle(data))} certificate(s)")


# ------------------------------------------------------------------
# fake-cert / dhparam
# ------------------------------------------------------------------


@cli.command(name="fake-cert")
@click.option("--host", default="ingress.local", show_default=True, help="SAN DNS name.")
@click.option(
    "--certificate-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_CERTIFICATE_DIR,
    show_default=True,
    help="Directory the PEM file is written to.",
)
def fake_cert_command(host: str, certificate_dir: Path) -> None:
    """Write the default self-signed placeholder certificate."""
    from certsync.certificates.builder import CertificateBuilder
    from certsync.certificates.fake import default_fake_certificate
    from certsync.certificates.persister import DiskPersister

    try:
        record = default_fake_certificate(
            CertificateBuilder(), DiskPersister(certificate_dir), host=host
        )
    except (CertSyncError, OSError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    console.print(f"[green]Wrote[/green] {record.stored_file_path}")
    console.print(f"  Checksum:     {record.checksum}")


@cli.command(name="dhparam")
@click.argument("name")
@click.argument("param_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--certificate-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_CERTIFICATE_DIR,
    show_default=True,
    help="Directory the PEM file is written to.",
)
def dhparam_command(name: str, param_file: str, certificate_dir: Path) -> None:
    """Install PARAM_FILE as the DH parameters file NAME.pem."""
    from certsync.certificates.persister import DiskPersister

    try:
        path = DiskPersister(certificate_dir).add_or_update_auxiliary_parameter(
            name, Path(param_file).read_bytes()
        )
    except (CertSyncError, OSError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    console.print(f"[green]Installed[/green] {path}")


# ------------------------------------------------------------------
# sync
# ------------------------------------------------------------------


@cli.command(name="sync")
@click.argument("secrets_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.argument("keys", nargs=-1)
@click.option(
    "--certificate-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory PEM files are written to (overrides CERTSYNC_CERTIFICATE_DIR).",
)
@click.option(
    "--dynamic/--no-dynamic",
    default=None,
    help="Keep keypair-only secrets in memory (overrides CERTSYNC_DYNAMIC_CERTIFICATES).",
)
@click.option(
    "--push",
    "push_url",
    default=None,
    help="Base URL of a configuration server to push serving certificates to.",
)
def sync_command(
    secrets_dir: Path,
    keys: tuple[str, ...],
    certificate_dir: Path | None,
    dynamic: bool | None,
    push_url: str | None,
) -> None:
    """Synchronize secrets found under SECRETS_DIR.

    SECRETS_DIR is laid out as ``<namespace>/<name>/<field>``. When no KEYS
    (``namespace/name``) are given, every secret found is synchronized.
    """
    import dataclasses

    from certsync.config import CertSyncConfig, build_synchronizer
    from certsync.store.secrets import FilesystemSecretSource

    try:
        config = CertSyncConfig.from_env()
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    overrides: dict[str, object] = {}
    if certificate_dir is not None:
        overrides["certificate_dir"] = certificate_dir
    if dynamic is not None:
        overrides["enable_dynamic_certificates"] = dynamic
    config = dataclasses.replace(config, **overrides)

    source = FilesystemSecretSource(secrets_dir)
    try:
        synchronizer = build_synchronizer(config, source)
    except (CertSyncError, OSError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    if keys:
        results = {key: synchronizer.handle_secret_change(key) for key in keys}
    else:
        results = synchronizer.sync_all()

    table = Table(title="Synchronized Secrets", show_header=True)
    table.add_column("Secret", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Common Names")
    table.add_column("File")

    for key, ok in results.items():
        if not ok:
            table.add_row(key, "[red]Skipped[/red]", "", "")
            continue
        record = synchronizer.lookup(key)
        table.add_row(
            key,
            "[green]OK[/green]",
            ", ".join(name for name in record.common_names if name) or "(CA only)",
            str(record.stored_file_path or "(in memory)"),
        )

    console.print(table)
    console.print(f"\nChanges signalled: {synchronizer.notifier.pending()}")

    if push_url:
        _push_records(push_url, [record for _, record in synchronizer.cache.items()])

    if not all(results.values()):
        sys.exit(1)


# ------------------------------------------------------------------
# serve-config
# ------------------------------------------------------------------


@cli.command(name="serve-config")
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=int, default=10246, show_default=True, help="TCP port.")
def serve_config_command(host: str, port: int) -> None:
    """Run the dynamic configuration server (blocking)."""
    from certsync.server.app import run_server

    run_server(host=host, port=port)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _print_record(record: CertificateRecord, title: str) -> None:
    certificate = record.certificate
    table = Table(title=title, show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    table.add_row("Subject", certificate.subject.rfc4514_string())
    table.add_row("Issuer", certificate.issuer.rfc4514_string())
    table.add_row("Serial", format(certificate.serial_number, "x"))
    table.add_row("Not before", certificate.not_valid_before_utc.isoformat())
    table.add_row("Not after", certificate.not_valid_after_utc.isoformat())
    table.add_row("Common names", ", ".join(name for name in record.common_names if name) or "(none)")

    console.print(table)
    days = record.days_remaining()
    if record.is_expired():
        console.print(f"  Status:       [red]expired {-days} day(s) ago[/red]")
    else:
        console.print(f"  Status:       [green]valid for {days} more day(s)[/green]")


def _push_records(push_url: str, records: list[CertificateRecord]) -> None:
    import httpx

    from certsync.client import ConfigurationClient, build_server_entries

    entries = build_server_entries(records)
    try:
        with ConfigurationClient(push_url) as client:
            client.post_servers(entries)
    except httpx.HTTPError as exc:
        console.print(f"[red]Error pushing certificates:[/red] {exc}")
        sys.exit(1)
    console.print(f"[green]Pushed[/green] {len(entries)} server certificate(s) to {push_url}")


if __name__ == "__main__":
    cli()
