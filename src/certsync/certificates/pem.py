"""Minimal PEM block decoding.

The certificate loaders in ``cryptography`` refuse input whose first block is
not the type they expect and hide the label they found. Building a record
needs the label of the *first* block to report precise errors, so blocks are
decoded here and only their DER payload is handed to ``cryptography``.
"""
from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Iterator

_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([^\r\n]*?)-----\r?\n(.*?)-----END \1-----",
    re.DOTALL,
)


@dataclass(frozen=True)
class PemBlock:
    """A decoded PEM block.

    Parameters
    ----------
    label:
        The type label between ``BEGIN`` and the trailing dashes.
    data:
        The base64-decoded payload.
    """

    label: str
    data: bytes


def iter_pem_blocks(data: bytes) -> Iterator[PemBlock]:
    """Yield every decodable PEM block in *data*, in order.

    Leading text, trailing text and blocks whose payload is not valid base64
    are skipped.
    """
    for match in _PEM_BLOCK.finditer(data):
        lines = [
            line.strip()
            for line in match.group(2).splitlines()
            if line.strip() and b":" not in line
        ]
        try:
            payload = base64.b64decode(b"".join(lines), validate=True)
        except (binascii.Error, ValueError):
            continue
        yield PemBlock(label=match.group(1).decode("ascii", "replace"), data=payload)


def decode_first_pem_block(data: bytes) -> PemBlock | None:
    """Return the first decodable PEM block in *data*, or None."""
    return next(iter_pem_blocks(data), None)


def encode_pem_block(label: str, der: bytes) -> bytes:
    """Encode *der* as a PEM block with 64-column base64 lines."""
    encoded = base64.b64encode(der)
    lines = [encoded[i : i + 64] for i in range(0, len(encoded), 64)]
    header = f"-----BEGIN {label}-----\n".encode("ascii")
    footer = f"-----END {label}-----\n".encode("ascii")
    return header + b"\n".join(lines) + b"\n" + footer
