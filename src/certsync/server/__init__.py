"""Dynamic configuration server.

A stdlib-based HTTP endpoint that receives certificates pushed by the
synchronizer and serves them back per hostname during TLS handshakes.
"""
from __future__ import annotations

from certsync.server.app import ConfigurationHandler, create_server, run_server

__all__ = ["ConfigurationHandler", "create_server", "run_server"]
