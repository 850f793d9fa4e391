"""Certificate persistence: deterministic, checksum-tracked PEM files.

DiskPersister writes certificate bundles and auxiliary parameters as PEM
files under one fixed directory. File names derive from the secret identity
with path separators replaced by dashes, so the same secret always maps to
the same file.
"""
from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path

from certsync.certificates.pem import decode_first_pem_block
from certsync.certificates.record import CertificateRecord
from certsync.errors import CertificateIOError, InvalidPEMError, WrongPEMTypeError

logger = logging.getLogger(__name__)

DEFAULT_CERTIFICATE_DIR = Path("/etc/ingress-controller/ssl")
DH_PARAMETERS = "DH PARAMETERS"
PEM_EXTENSION = ".pem"


class DiskPersister:
    """Filesystem-backed certificate storage.

    Parameters
    ----------
    certificate_dir:
        Directory holding every written PEM file. Created if missing.
    """

    def __init__(self, certificate_dir: Path = DEFAULT_CERTIFICATE_DIR) -> None:
        self._certificate_dir = Path(certificate_dir)
        self._certificate_dir.mkdir(parents=True, exist_ok=True)

    @property
    def certificate_dir(self) -> Path:
        return self._certificate_dir

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def pem_file_path(self, name: str) -> Path:
        """Return the bundle path for secret identity *name*."""
        return self._certificate_dir / f"{sanitize_name(name)}{PEM_EXTENSION}"

    def ca_file_path(self, name: str) -> Path:
        """Return the dedicated CA bundle path for secret identity *name*."""
        return self._certificate_dir / f"ca-{sanitize_name(name)}{PEM_EXTENSION}"

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store_on_disk(self, name: str, record: CertificateRecord) -> None:
        """Write *record*'s PEM bundle and update its path and checksum.

        Raises
        ------
        CertificateIOError
            If the file cannot be created or written.
        """
        path = self.pem_file_path(name)
        self.write_file(path, record.pem_bundle)
        record.stored_file_path = path
        record.checksum = file_checksum(path)
        logger.debug("Stored certificate %r at %s", name, path)

    def write_file(self, path: Path, data: bytes) -> None:
        """Create or truncate *path* and write *data* to it."""
        try:
            path.write_bytes(data)
        except OSError as exc:
            raise CertificateIOError(f"could not write PEM file {path}: {exc}") from exc

    def read_file(self, path: Path) -> bytes:
        """Return the content of *path*."""
        try:
            return path.read_bytes()
        except OSError as exc:
            raise CertificateIOError(f"could not read PEM file {path}: {exc}") from exc

    def add_or_update_auxiliary_parameter(
        self,
        name: str,
        raw: bytes,
        expected_type: str = DH_PARAMETERS,
    ) -> Path:
        """Atomically install an auxiliary PEM parameter file.

        The content is written to a temporary file in the certificate
        directory, validated, and only then renamed onto the final path. On
        any failure the final path is left untouched.

        Parameters
        ----------
        name:
            Identity used to derive the file name.
        raw:
            PEM bytes to install.
        expected_type:
            Required label of the first PEM block.

        Returns
        -------
        Path
            The final path of the installed file.

        Raises
        ------
        InvalidPEMError
            If no PEM block can be decoded.
        WrongPEMTypeError
            If the first block's label differs from *expected_type*.
        CertificateIOError
            If the temporary file cannot be written or renamed.
        """
        final_path = self.pem_file_path(name)
        try:
            fd, temp_name = tempfile.mkstemp(
                dir=self._certificate_dir, prefix=final_path.name
            )
        except OSError as exc:
            raise CertificateIOError(f"could not create temp pem file for {final_path}: {exc}") from exc

        temp_path = Path(temp_name)
        logger.debug("Creating temp file %s for %s", temp_path, final_path.name)
        try:
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(raw)
            except OSError as exc:
                raise CertificateIOError(f"could not write to pem file {temp_path}: {exc}") from exc

            block = decode_first_pem_block(self.read_file(temp_path))
            if block is None:
                raise InvalidPEMError()
            if block.label != expected_type:
                raise WrongPEMTypeError(block.label, expected=expected_type)

            try:
                os.replace(temp_path, final_path)
            except OSError as exc:
                raise CertificateIOError(
                    f"could not move temp pem file {temp_path} to destination {final_path}: {exc}"
                ) from exc
        finally:
            temp_path.unlink(missing_ok=True)

        return final_path


def sanitize_name(name: str) -> str:
    """Replace path separators in *name* with dashes."""
    return name.replace("/", "-").replace("\\", "-")


def file_checksum(path: Path) -> str:
    """Return the SHA-1 hex digest of the file at *path*."""
    digest = hashlib.sha1()
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(65536), b""):
                digest.update(chunk)
    except OSError as exc:
        raise CertificateIOError(f"could not checksum {path}: {exc}") from exc
    return digest.hexdigest()
