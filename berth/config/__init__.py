# SPDX-License-Identifier: BUSL-1.1
"""Configuration system - typed driver config, YAML loading, and validation."""

from berth.config.resources import DriverConfig, TransportSpec, config_from_dict, config_to_dict
from berth.config.loader import ConfigStore, StateStore
from berth.config.validation import validate_driver_config, ValidationError

__all__ = [
    "DriverConfig", "TransportSpec", "config_from_dict", "config_to_dict",
    "ConfigStore", "StateStore", "validate_driver_config", "ValidationError",
]
