# SPDX-License-Identifier: BUSL-1.1
"""Configuration dataclasses for the berth driver.

A DriverConfig is resolved once per test instance and is read-only to the
lifecycle engine.
"""

import os
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Optional


DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"
DEFAULT_PID_ONE_COMMAND = 'sh -c "trap exit 0 SIGTERM; while :; do sleep 1; done"'


def default_docker_host() -> str:
    """Return the engine endpoint from DOCKER_HOST, else the local socket."""
    return os.environ.get("DOCKER_HOST", "").strip() or DEFAULT_DOCKER_HOST


def is_remote_host(url: str) -> bool:
    """True when the engine is reached over TCP rather than a local socket."""
    return str(url or "").startswith("tcp:")


# ── Transport ────────────────────────────────────────────────────────────

@dataclass
class TransportSpec:
    tls_verify: bool = False
    ca_cert: str = ""
    client_cert: str = ""
    client_key: str = ""
    api_version: str = "auto"


# ── Driver ───────────────────────────────────────────────────────────────

@dataclass
class DriverConfig:
    """Everything the engine needs to provision one test instance."""
    instance_name: str = ""
    platform_name: str = ""
    image: str = ""                         # platform (base) image
    api_retries: int = 20
    binds: list = field(default_factory=list)
    cap_add: list = field(default_factory=list)
    cap_drop: list = field(default_factory=list)
    toolchain_image: str = "chef/chef"
    toolchain_version: str = "latest"       # "stable" is an alias of latest
    data_image: str = "dokken/kitchen-cache:latest"
    data_base_image: str = "almalinux:9"
    dns: Optional[list] = None
    dns_search: Optional[list] = None
    docker_host_url: str = field(default_factory=default_docker_host)
    env: list = field(default_factory=list)
    forward: list = field(default_factory=list)
    hostname: Optional[str] = None
    image_prefix: Optional[str] = None
    intermediate_instructions: list = field(default_factory=list)
    links: list = field(default_factory=list)
    network_mode: str = "bridge"
    pid_one_command: str = DEFAULT_PID_ONE_COMMAND
    privileged: bool = False
    read_timeout: int = 3600
    write_timeout: int = 3600
    security_opt: list = field(default_factory=list)
    volumes: Optional[object] = None        # None | mapping | str | list
    poll_attempts: int = 20
    poll_interval: float = 0.1
    transport: TransportSpec = field(default_factory=TransportSpec)

    def __post_init__(self):
        # YAML gives scalars for single-item lists and null for empty ones.
        for name in ("binds", "cap_add", "cap_drop", "env", "forward",
                     "intermediate_instructions", "links", "security_opt"):
            setattr(self, name, _as_list(getattr(self, name)))
        for name in ("dns", "dns_search"):
            value = getattr(self, name)
            if value is not None:
                setattr(self, name, _as_list(value))
        if isinstance(self.transport, dict):
            self.transport = _dict_to_dataclass(TransportSpec, self.transport)
        if not self.docker_host_url:
            self.docker_host_url = default_docker_host()


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


# ── Serialization helpers ────────────────────────────────────────────────

def config_to_dict(config) -> dict:
    """Recursively convert a config dataclass to a plain dict."""
    if not is_dataclass(config):
        return config
    result = {}
    for f in fields(config):
        val = getattr(config, f.name)
        if is_dataclass(val):
            val = config_to_dict(val)
        elif isinstance(val, list):
            val = [config_to_dict(v) if is_dataclass(v) else v for v in val]
        elif isinstance(val, dict):
            val = dict(val)
        result[f.name] = val
    return result


def config_from_dict(data: dict) -> DriverConfig:
    """Build a DriverConfig from a dict with snake_case or camelCase keys.

    Unknown keys are ignored; the loader reports them as warnings.
    """
    return _dict_to_dataclass(DriverConfig, data or {})


def field_aliases(cls) -> dict:
    """Return a camelCase/snake_case key -> field name lookup for cls."""
    alias_map = {}
    for f in fields(cls):
        parts = f.name.split("_")
        camel = parts[0] + "".join(p.capitalize() for p in parts[1:])
        alias_map[camel] = f.name
        alias_map[f.name] = f.name
    return alias_map


def _dict_to_dataclass(cls, data: dict):
    """Recursively construct a dataclass from a dict."""
    if not isinstance(data, dict):
        return data

    kwargs = {}
    field_map = {f.name: f for f in fields(cls)}
    alias_map = field_aliases(cls)

    for key, val in data.items():
        field_name = alias_map.get(key, key)
        if field_name not in field_map:
            continue
        field_type = field_map[field_name].type
        if is_dataclass(field_type) and isinstance(val, dict):
            kwargs[field_name] = _dict_to_dataclass(field_type, val)
        else:
            kwargs[field_name] = val

    return cls(**kwargs)
