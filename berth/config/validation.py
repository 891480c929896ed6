# SPDX-License-Identifier: BUSL-1.1
"""Validation of resolved driver configuration.

Errors make the configuration unusable; warnings point at settings the
engine will accept but that are probably not what the user meant.
"""

from urllib.parse import urlsplit

from berth.config.resources import is_remote_host

KNOWN_SCHEMES = ("unix", "tcp", "npipe", "ssh", "http", "https")
NETWORK_MODES = ("bridge", "host", "none")


class ValidationError(Exception):
    """Raised when configuration validation fails."""
    def __init__(self, errors: list, warnings: list = None):
        self.errors = errors
        self.warnings = warnings or []
        msg = "; ".join(errors)
        super().__init__(msg)


class ValidationResult:
    """Collects errors and warnings from validation."""
    def __init__(self):
        self.errors = []
        self.warnings = []

    def error(self, msg: str):
        self.errors.append(msg)

    def warn(self, msg: str):
        self.warnings.append(msg)

    def extend(self, other: "ValidationResult"):
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    @property
    def valid(self) -> bool:
        return len(self.errors) == 0

    def raise_if_invalid(self):
        if not self.valid:
            raise ValidationError(self.errors, self.warnings)


def _is_int(value) -> bool:
    # bool is an int subclass; "apiRetries: yes" is not a count.
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return _is_int(value) or isinstance(value, float)


def _is_port(value: str) -> bool:
    return value.isdigit() and 0 < int(value) < 65536


def validate_forward_rules(rules) -> ValidationResult:
    """Each rule is "guest" or "host:guest" with numeric ports."""
    result = ValidationResult()
    for rule in rules or []:
        parts = str(rule).split(":")
        if len(parts) > 2 or not all(_is_port(p) for p in parts):
            result.error(
                f"forward rule '{rule}' must be 'guest' or 'host:guest' "
                "with ports between 1 and 65535"
            )
    return result


def validate_endpoint(config) -> ValidationResult:
    result = ValidationResult()
    url = config.docker_host_url
    scheme = urlsplit(url).scheme
    if scheme not in KNOWN_SCHEMES:
        result.error(
            f"dockerHostUrl '{url}' must use one of: {', '.join(KNOWN_SCHEMES)}"
        )
        return result

    t = config.transport
    if bool(t.client_cert) != bool(t.client_key):
        result.error("transport.clientCert and transport.clientKey must be set together")
    if not is_remote_host(url) and (t.tls_verify or t.client_cert or t.ca_cert):
        result.warn(
            f"transport TLS settings are ignored for non-tcp endpoint '{url}'"
        )
    return result


def validate_driver_config(config) -> ValidationResult:
    """Full validation of a DriverConfig."""
    result = ValidationResult()

    if not str(config.instance_name or "").strip():
        result.error("instanceName is required")
    elif "/" in config.instance_name or ":" in config.instance_name:
        result.error(
            f"instanceName '{config.instance_name}' may not contain '/' or ':' "
            "(it names containers and images)"
        )
    if not str(config.image or "").strip():
        result.error("image (platform image) is required")

    if not _is_int(config.api_retries):
        result.error(f"apiRetries must be an integer, got {config.api_retries!r}")
    elif config.api_retries < 1:
        result.error("apiRetries must be at least 1")
    if not _is_int(config.poll_attempts):
        result.error(f"pollAttempts must be an integer, got {config.poll_attempts!r}")
    elif config.poll_attempts < 1:
        result.error("pollAttempts must be at least 1")
    if not _is_number(config.poll_interval):
        result.error(f"pollInterval must be a number, got {config.poll_interval!r}")
    elif config.poll_interval < 0:
        result.error("pollInterval must not be negative")
    for name in ("read_timeout", "write_timeout"):
        value = getattr(config, name)
        if not _is_int(value):
            result.error(f"{name} must be an integer, got {value!r}")
        elif value <= 0:
            result.error(f"{name} must be positive")

    if not str(config.pid_one_command or "").strip():
        result.error("pidOneCommand must not be empty")

    if config.network_mode not in NETWORK_MODES and not str(config.network_mode).startswith("container:"):
        result.warn(
            f"networkMode '{config.network_mode}' is passed through as a user-defined network"
        )

    if config.volumes is not None and not isinstance(config.volumes, (str, list, tuple, dict)):
        result.error("volumes must be a string, a list, or a mapping")

    result.extend(validate_forward_rules(config.forward))
    result.extend(validate_endpoint(config))
    return result
