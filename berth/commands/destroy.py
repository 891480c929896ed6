# SPDX-License-Identifier: BUSL-1.1
"""berth destroy - tear down the containers and images of an instance."""

from berth.driver import Orchestrator
from berth.errors import BerthError
from berth.utils import die, resolve_instance, state_store


def cmd_destroy(args):
    _store, config = resolve_instance(args)
    states = state_store(args)
    name = config.instance_name

    orchestrator = Orchestrator(config)
    try:
        orchestrator.destroy(states.load(name))
    except BerthError as e:
        die(str(e))

    states.delete(name)
    print(f"Destroyed '{name}'.")
