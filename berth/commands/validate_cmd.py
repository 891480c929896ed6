# SPDX-License-Identifier: BUSL-1.1
"""berth validate - check an instance's configuration."""

import sys

from berth.config.loader import unknown_keys
from berth.config.resources import config_from_dict
from berth.config.validation import validate_driver_config
from berth.utils import config_store, die


def cmd_validate(args):
    store = config_store(args)
    name = args.name

    raw = store.raw_instance(name)
    if raw is None:
        die(f"Instance '{name}' not found in {store.path}.")

    config = config_from_dict(raw)
    result = validate_driver_config(config)
    for key in unknown_keys(raw):
        result.warn(f"unknown configuration key '{key}' ignored")

    print(f"Instance: {name}")
    print(f"  Image:     {config.image}")
    print(f"  Endpoint:  {config.docker_host_url}")
    print()

    if result.warnings:
        print("  Warnings:")
        for w in result.warnings:
            print(f"    ! {w}")
        print()

    if result.errors:
        print("  Errors:")
        for e in result.errors:
            print(f"    x {e}")
        print()
        print("  Result: INVALID")
        sys.exit(1)
    else:
        print("  Result: VALID")
