# SPDX-License-Identifier: BUSL-1.1
"""YAML configuration loading and per-instance state files."""

from pathlib import Path
from typing import Optional

import yaml

from berth.config.resources import (
    DriverConfig,
    TransportSpec,
    config_from_dict,
    field_aliases,
)
from berth.config.validation import validate_driver_config


CONFIG_FILE = Path("berth.yaml")
STATE_DIR = Path(".berth") / "state"


class ConfigStore:
    """Reads driver defaults and per-instance overrides from one YAML file.

    Layout:
        driver:                  # defaults shared by every instance
          apiRetries: 20
          transport:
            tlsVerify: false
        instances:
          default-ubuntu:        # instance name
            image: ubuntu:22.04
            forward: ["8080:80"]
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else CONFIG_FILE
        self._cache = None
        self.last_warnings = []

    def load(self) -> dict:
        if self._cache is not None:
            return self._cache
        if self.path.exists():
            with open(self.path) as f:
                self._cache = yaml.safe_load(f) or {}
        else:
            self._cache = {}
        return self._cache

    def driver_defaults(self) -> dict:
        return dict(self.load().get("driver") or {})

    def list_instances(self) -> list:
        return sorted((self.load().get("instances") or {}).keys())

    def instance_overrides(self, name: str) -> Optional[dict]:
        instances = self.load().get("instances") or {}
        if name not in instances:
            return None
        return dict(instances[name] or {})

    def raw_instance(self, name: str) -> Optional[dict]:
        """Driver defaults with the instance overrides applied on top."""
        overrides = self.instance_overrides(name)
        if overrides is None:
            return None
        merged = _merge(self.driver_defaults(), overrides)
        merged.pop("instanceName", None)
        merged["instance_name"] = name
        return merged

    def resolve(self, name: str) -> Optional[DriverConfig]:
        """Return the validated DriverConfig for an instance, or None."""
        raw = self.raw_instance(name)
        if raw is None:
            return None
        config = config_from_dict(raw)
        result = validate_driver_config(config)
        for key in unknown_keys(raw):
            result.warn(f"unknown configuration key '{key}' ignored")
        result.raise_if_invalid()
        self.last_warnings = result.warnings
        return config


def _merge(base: dict, overrides: dict) -> dict:
    """Shallow merge, except transport which merges key-wise."""
    merged = dict(base)
    for key, val in overrides.items():
        if key == "transport" and isinstance(val, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **val}
        else:
            merged[key] = val
    return merged


def unknown_keys(raw: dict) -> list:
    """Keys of raw (and raw["transport"]) that match no config field."""
    aliases = field_aliases(DriverConfig)
    unknown = [k for k in raw if k not in aliases]
    transport = raw.get("transport")
    if isinstance(transport, dict):
        t_aliases = field_aliases(TransportSpec)
        unknown.extend(f"transport.{k}" for k in transport if k not in t_aliases)
    return unknown


class StateStore:
    """Persists the state bag written by create, one YAML file per instance."""

    def __init__(self, state_dir: Optional[Path] = None):
        self.state_dir = Path(state_dir) if state_dir else STATE_DIR

    def _path(self, name: str) -> Path:
        return self.state_dir / f"{name}.yml"

    def exists(self, name: str) -> bool:
        return self._path(name).exists()

    def load(self, name: str) -> dict:
        path = self._path(name)
        if not path.exists():
            return {}
        with open(path) as f:
            return yaml.safe_load(f) or {}

    def save(self, name: str, state: dict):
        self.state_dir.mkdir(parents=True, exist_ok=True)
        with open(self._path(name), "w") as f:
            yaml.safe_dump(dict(state), f, default_flow_style=False, sort_keys=False)

    def delete(self, name: str) -> bool:
        path = self._path(name)
        if path.exists():
            path.unlink()
            return True
        return False

