# SPDX-License-Identifier: BUSL-1.1
"""berth describe - show resolved configuration and state for an instance."""

import yaml

from berth.config.resources import config_to_dict
from berth.utils import resolve_instance, state_store


def cmd_describe(args):
    _store, config = resolve_instance(args)
    name = config.instance_name

    print(f"=== Instance: {name} ===\n")
    print(yaml.safe_dump(config_to_dict(config), default_flow_style=False, sort_keys=False))

    state = state_store(args).load(name)
    if state:
        print(f"=== State: {name} ===\n")
        print(yaml.safe_dump(state, default_flow_style=False, sort_keys=False))
