"""TLS listener certificate supply with filesystem-triggered hot reload."""
from __future__ import annotations

from certsync.listener.provider import (
    HotReloadableCertificateProvider,
    ListenerKeypair,
    build_server_context,
)

__all__ = [
    "HotReloadableCertificateProvider",
    "ListenerKeypair",
    "build_server_context",
]
