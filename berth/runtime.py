# SPDX-License-Identifier: BUSL-1.1
"""Docker engine connection, failure classification, and the retry policy."""

import logging

import docker
import docker.errors
import docker.tls
import requests.exceptions
from docker.constants import DEFAULT_DOCKER_API_VERSION

from berth.config.resources import TransportSpec, is_remote_host

logger = logging.getLogger(__name__)

# ── Failure kinds ────────────────────────────────────────────────────────

NOT_FOUND = "not-found"
CONFLICT = "conflict"
SERVER_ERROR = "server-error"
UNEXPECTED_RESPONSE = "unexpected-response"
TIMEOUT = "timeout"
IO_ERROR = "io-error"

RETRYABLE_KINDS = frozenset({SERVER_ERROR, UNEXPECTED_RESPONSE, TIMEOUT, IO_ERROR})


def failure_kind(exc: BaseException) -> str:
    """Classify an SDK or transport exception. Returns "" when unknown.

    Order matters: docker's APIError and requests' Timeout are both
    RequestExceptions. Local OSErrors (missing cert files, permissions)
    are not engine failures and stay unknown.
    """
    if isinstance(exc, docker.errors.NotFound):
        return NOT_FOUND
    if isinstance(exc, docker.errors.APIError):
        status = exc.status_code
        if status == 404:
            return NOT_FOUND
        if status == 409:
            return CONFLICT
        if status is not None and 500 <= status < 600:
            return SERVER_ERROR
        return UNEXPECTED_RESPONSE
    if isinstance(exc, requests.exceptions.Timeout):
        return TIMEOUT
    if isinstance(exc, requests.exceptions.RequestException):
        return IO_ERROR
    return ""


def is_retryable(exc: BaseException) -> bool:
    return failure_kind(exc) in RETRYABLE_KINDS


def is_not_found(exc: BaseException) -> bool:
    return failure_kind(exc) == NOT_FOUND


def is_conflict(exc: BaseException) -> bool:
    return failure_kind(exc) == CONFLICT


# ── Retry policy ─────────────────────────────────────────────────────────

def with_retries(operation, max_attempts: int):
    """Run operation(), retrying transient engine failures.

    Not-found, conflict and unknown failures propagate on the first
    occurrence. When the attempts run out the last failure is re-raised.
    """
    tries = max(int(max_attempts or 0), 1)
    while True:
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            tries -= 1
            if tries <= 0:
                raise
            logger.debug("retrying after %s (%d attempts left): %s",
                         failure_kind(e), tries, e)


# ── Connection ───────────────────────────────────────────────────────────

def tls_config(transport: TransportSpec):
    """Build the SDK TLS setting from an explicit transport spec."""
    client_cert = None
    if transport.client_cert and transport.client_key:
        client_cert = (transport.client_cert, transport.client_key)
    if not (transport.tls_verify or client_cert or transport.ca_cert):
        return False
    return docker.tls.TLSConfig(
        client_cert=client_cert,
        ca_cert=transport.ca_cert or None,
        verify=transport.tls_verify,
    )


def connect(base_url: str, transport: TransportSpec = None,
            read_timeout: int = 3600, write_timeout: int = 3600,
            retries: int = 1):
    """Open a low-level API client for the engine at base_url.

    docker-py has one socket timeout for both directions; the larger of the
    two configured timeouts is used.

    With api_version "auto" the SDK would query the engine inside its
    constructor and wrap any failure in a bare DockerException. Instead the
    client is built with a pinned version, the server version is fetched
    under the retry policy, and the client is rebuilt with that version.
    """
    transport = transport or TransportSpec()
    tls = tls_config(transport) if is_remote_host(base_url) else False
    timeout = max(int(read_timeout), int(write_timeout))
    version = transport.api_version or "auto"
    logger.debug("connecting to %s (timeout=%ss, tls=%s)", base_url, timeout, bool(tls))

    if version.lower() != "auto":
        return docker.APIClient(base_url=base_url, version=version,
                                timeout=timeout, tls=tls)

    client = docker.APIClient(base_url=base_url, version=DEFAULT_DOCKER_API_VERSION,
                              timeout=timeout, tls=tls)
    server = with_retries(lambda: client.version(api_version=False), retries)
    client.close()
    logger.debug("engine at %s speaks API %s", base_url, server["ApiVersion"])
    return docker.APIClient(base_url=base_url, version=server["ApiVersion"],
                            timeout=timeout, tls=tls)
