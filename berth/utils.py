# SPDX-License-Identifier: BUSL-1.1
"""Shared utilities for the berth CLI."""

import logging
import sys
from pathlib import Path

from berth.config import ConfigStore, StateStore, ValidationError


def die(msg: str, code: int = 1):
    """Print error message and exit."""
    print(f"Error: {msg}")
    sys.exit(code)


def setup_logging(verbose: bool = False, quiet: bool = False):
    """Configure logging based on verbosity flags."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)
    elif quiet:
        logging.basicConfig(level=logging.ERROR, stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)


def config_store(args) -> ConfigStore:
    path = getattr(args, "config", None)
    return ConfigStore(Path(path) if path else None)


def state_store(args) -> StateStore:
    state_dir = getattr(args, "state_dir", None)
    return StateStore(Path(state_dir) if state_dir else None)


def resolve_instance(args):
    """Return (ConfigStore, DriverConfig) for args.name or exit with an error."""
    store = config_store(args)
    name = str(getattr(args, "name", "") or "").strip()
    if not name:
        die("Provide an instance name.")
    try:
        config = store.resolve(name)
    except ValidationError as e:
        die(f"Invalid configuration for '{name}': {e}")
    if config is None:
        die(f"Instance '{name}' not found in {store.path}.")
    for w in store.last_warnings:
        print(f"Warning: {w}")
    return store, config
