# SPDX-License-Identifier: BUSL-1.1
"""berth create - provision the containers for an instance."""

from berth.driver import Orchestrator
from berth.errors import BerthError
from berth.utils import die, resolve_instance, state_store


def cmd_create(args):
    _store, config = resolve_instance(args)
    states = state_store(args)
    name = config.instance_name

    state = states.load(name)
    orchestrator = Orchestrator(config)
    try:
        orchestrator.create(state)
    except BerthError as e:
        die(str(e))
    finally:
        # Partial state is kept so a later destroy or create can pick it up.
        if state:
            states.save(name, state)

    runner = state.get("runner_container") or {}
    print(f"Created '{name}' (runner {str(runner.get('Id', ''))[:12] or name}).")
