# SPDX-License-Identifier: BUSL-1.1
"""berth list - list configured instances and whether they are created."""

from berth.utils import config_store, state_store


def cmd_list(args):
    store = config_store(args)
    states = state_store(args)

    names = store.list_instances()
    if not names:
        print(f"No instances configured in {store.path}.")
        return

    print(f"{'INSTANCE':<30} {'IMAGE':<30} STATE")
    for name in names:
        overrides = store.instance_overrides(name) or {}
        image = overrides.get("image") or store.driver_defaults().get("image", "")
        status = "created" if states.exists(name) else "-"
        print(f"{name:<30} {str(image):<30} {status}")
