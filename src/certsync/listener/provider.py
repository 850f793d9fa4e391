"""Hot-reloadable certificate provider for a TLS listener.

The provider loads a certificate and key from two fixed paths, watches both
for changes and swaps its keypair in memory whenever either one changes.
Files are read and parsed outside the lock; only the final swap is guarded,
so a reload never blocks a handshake that is looking up the certificate.

A failed reload clears the keypair instead of keeping the previous one:
handshakes fail closed until a later change loads a valid pair again.
"""
from __future__ import annotations

import logging
import os
import ssl
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path

import watchfiles
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from certsync.certificates.builder import load_keypair
from certsync.errors import CertSyncError, ListenerStartupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListenerKeypair:
    """The keypair currently served by a listener.

    Parameters
    ----------
    certificate:
        Parsed leaf certificate.
    private_key:
        Parsed private key matching *certificate*.
    cert_pem:
        Certificate file content as read (may include intermediates).
    key_pem:
        Key file content as read.
    context:
        Server-side SSL context loaded with this pair.
    """

    certificate: x509.Certificate
    private_key: PrivateKeyTypes = field(repr=False)
    cert_pem: bytes = field(repr=False)
    key_pem: bytes = field(repr=False)
    context: ssl.SSLContext = field(repr=False, compare=False)


class HotReloadableCertificateProvider:
    """Thread-safe supplier of the active listener keypair.

    Parameters
    ----------
    certificate_path:
        PEM certificate file.
    key_path:
        PEM private key file.
    watch:
        Start the background file watcher immediately.

    Raises
    ------
    ListenerStartupError
        If the first load fails. The owning process must not start serving.
    """

    def __init__(
        self,
        certificate_path: Path | str,
        key_path: Path | str,
        watch: bool = True,
    ) -> None:
        self._certificate_path = Path(certificate_path).absolute()
        self._key_path = Path(key_path).absolute()
        self._lock = threading.Lock()
        self._keypair: ListenerKeypair | None = None
        self._error: Exception | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        keypair, error = self._load()
        if error is not None:
            raise ListenerStartupError(
                f"failed to load listener certificate {self._certificate_path} "
                f"with key {self._key_path}: {error}"
            ) from error
        self._keypair = keypair

        if watch:
            self.start()

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def get_certificate(self) -> tuple[ListenerKeypair | None, Exception | None]:
        """Return the current keypair and the error of the last reload."""
        with self._lock:
            return self._keypair, self._error

    def reload(self) -> Exception | None:
        """Re-read both files and swap in the result.

        Returns
        -------
        Exception | None
            The load error, or None when the new pair is active.
        """
        keypair, error = self._load()
        with self._lock:
            self._keypair, self._error = keypair, error

        if error is not None:
            logger.warning(
                "Could not reload TLS certificate %s: %s", self._certificate_path, error
            )
        else:
            logger.info("Reloaded TLS certificate from %s", self._certificate_path)
        return error

    def tls_context(self) -> ssl.SSLContext:
        """Return a server SSL context that always serves the current keypair.

        The context's SNI callback swaps in the keypair loaded at handshake
        time, or aborts the handshake when none is loaded.
        """
        keypair, _ = self.get_certificate()
        if keypair is not None:
            context = build_server_context(keypair.cert_pem, keypair.key_pem)
        else:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.sni_callback = self.sni_callback
        return context

    def sni_callback(
        self,
        ssl_object: ssl.SSLObject | ssl.SSLSocket,
        server_name: str | None,
        context: ssl.SSLContext,
    ) -> int | None:
        """Select the current keypair for a handshake."""
        keypair, error = self.get_certificate()
        if keypair is None:
            logger.debug("Rejecting TLS handshake for %r: %s", server_name, error)
            return ssl.ALERT_DESCRIPTION_INTERNAL_ERROR
        ssl_object.context = keypair.context
        return None

    # ------------------------------------------------------------------
    # Watching
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the background watcher thread if it is not running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch, name="tls-certificate-watcher", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the background watcher thread."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def watching(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _watch(self) -> None:
        targets = {self._certificate_path, self._key_path}
        directories = sorted({path.parent for path in targets})
        logger.info(
            "Watching TLS certificate %s and key %s", self._certificate_path, self._key_path
        )

        def _relevant(change: watchfiles.Change, path: str) -> bool:
            return Path(path) in targets

        for changes in watchfiles.watch(
            *directories,
            watch_filter=_relevant,
            stop_event=self._stop_event,
            recursive=False,
            raise_interrupt=False,
        ):
            logger.debug("Detected changes %s", sorted(path for _, path in changes))
            self.reload()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load(self) -> tuple[ListenerKeypair | None, Exception | None]:
        logger.info(
            "Loading TLS certificate from certificate path %s and key path %s",
            self._certificate_path,
            self._key_path,
        )
        try:
            cert_pem = self._certificate_path.read_bytes()
            key_pem = self._key_path.read_bytes()
            certificate, private_key = load_keypair(cert_pem, key_pem)
            context = build_server_context(cert_pem, key_pem)
        except (OSError, CertSyncError) as exc:
            return None, exc
        return (
            ListenerKeypair(
                certificate=certificate,
                private_key=private_key,
                cert_pem=cert_pem,
                key_pem=key_pem,
                context=context,
            ),
            None,
        )


def build_server_context(cert_pem: bytes, key_pem: bytes) -> ssl.SSLContext:
    """Return a server SSL context loaded with an in-memory PEM pair.

    ``ssl`` only loads key material from files, so the pair is written to a
    private temporary file that is removed right after loading.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    fd, temp_name = tempfile.mkstemp(suffix=".pem")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(cert_pem + b"\n" + key_pem)
        context.load_cert_chain(temp_name)
    finally:
        os.unlink(temp_name)
    return context
