"""Route handler functions for the dynamic configuration server.

Each function accepts the request method and raw data and returns a tuple
of (status_code, response_text). The HTTP handler in app.py calls
:func:`dispatch` and writes the result as plain text.
"""
from __future__ import annotations

import json
import logging
import threading

from pydantic import ValidationError

from certsync.server.models import ServerCertificateList
from certsync.server.store import CertificateDataStore

logger = logging.getLogger(__name__)

SERVERS_PATH = "/configuration/servers"
GENERAL_PATH = "/configuration/general"
BACKENDS_PATH = "/configuration/backends"
CERTS_PATH = "/configuration/certs"


# Module-level shared state
_certificates: CertificateDataStore = CertificateDataStore()
_configuration: dict[str, str] = {}
_configuration_lock = threading.Lock()


def reset_state(capacity: int | None = None) -> None:
    """Reset all shared state. Used in tests and for clean restarts."""
    global _certificates
    _certificates = (
        CertificateDataStore(capacity) if capacity is not None else CertificateDataStore()
    )
    with _configuration_lock:
        _configuration.clear()


def get_pem_cert_key(hostname: str) -> str | None:
    """Return the PEM bundle stored for *hostname*, or None."""
    return _certificates.get(hostname)


def dispatch(
    method: str,
    path: str,
    query: dict[str, list[str]],
    body: bytes,
) -> tuple[int, str]:
    """Route one request.

    Parameters
    ----------
    method:
        HTTP method, upper case.
    path:
        URL path without the query string.
    query:
        Parsed query parameters.
    body:
        Raw request body.

    Returns
    -------
    tuple[int, str]
        HTTP status code and response text.
    """
    if method not in ("GET", "POST"):
        return 400, "Only POST and GET requests are allowed!"

    if path == SERVERS_PATH:
        return handle_servers(method, body)
    if path == GENERAL_PATH:
        return handle_blob("general", method, body)
    if path == CERTS_PATH:
        return handle_certs(method, query)
    if path == BACKENDS_PATH:
        return handle_blob("backends", method, body)
    return 404, "Not found!"


def handle_servers(method: str, body: bytes) -> tuple[int, str]:
    """Handle POST /configuration/servers.

    The body is a JSON list of ``{"hostname": ..., "pemCertKey": ...}``
    objects. Entries lacking either field are skipped.
    """
    if method != "POST":
        return 400, "Only POST requests are allowed!"

    try:
        servers = ServerCertificateList.validate_python(json.loads(body or b"null"))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
        logger.error("could not parse servers: %s", exc)
        return 400, ""

    for server in servers:
        if not server.hostname or not server.pem_cert_key:
            logger.warning("hostname or pemCertKey are not present")
            continue
        evicted = _certificates.set(server.hostname, server.pem_cert_key)
        if evicted is not None:
            logger.warning(
                "certificate data is full, LRU entry %r has been removed to store %s",
                evicted,
                server.hostname,
            )

    return 201, ""


def handle_certs(method: str, query: dict[str, list[str]]) -> tuple[int, str]:
    """Handle GET /configuration/certs?hostname=..."""
    if method != "GET":
        return 400, "Only GET requests are allowed!"

    hostnames = query.get("hostname")
    if not hostnames or not hostnames[0]:
        return 400, "Hostname must be specified."

    pem_cert_key = get_pem_cert_key(hostnames[0])
    if pem_cert_key is None:
        return 404, "No key associated with this hostname."
    return 200, pem_cert_key


def handle_blob(name: str, method: str, body: bytes) -> tuple[int, str]:
    """Handle GET and POST of an opaque configuration blob (general, backends)."""
    if method == "GET":
        with _configuration_lock:
            return 200, _configuration.get(name, "")

    if not body:
        logger.error("dynamic-configuration: unable to read valid request body for %s", name)
        return 400, ""

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.error("dynamic-configuration: error updating %s: %s", name, exc)
        return 400, ""

    with _configuration_lock:
        _configuration[name] = text
    return 201, ""
