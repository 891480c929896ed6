# SPDX-License-Identifier: BUSL-1.1
"""Idempotent container operations against the engine API.

Containers are addressed by name so that a container created by an earlier
process is still found (and can still be deleted) after a restart.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import docker.errors

from berth.runtime import is_conflict, is_not_found, with_retries

logger = logging.getLogger(__name__)

FOUND = "found"
ABSENT = "absent"
CREATED = "created"
CONFLICT = "conflict"

# FinishedAt of a container that has never exited.
ZERO_TIME = "0001-01-01T00:00:00Z"


@dataclass
class Lookup:
    """Result of looking up or creating a container by name."""
    status: str                         # found | absent | created | conflict
    descriptor: Optional[dict] = None

    @property
    def exists(self) -> bool:
        return self.status != ABSENT


def reached_state(descriptor: dict, want_running: bool) -> bool:
    """True once a container is in the wanted state or has exited."""
    state = (descriptor or {}).get("State") or {}
    if bool(state.get("Running")) == want_running:
        return True
    return (state.get("FinishedAt") or ZERO_TIME) != ZERO_TIME


class ContainerManager:
    def __init__(self, api, retries: int = 20, poll_attempts: int = 20,
                 poll_interval: float = 0.1, sleep=time.sleep):
        self.api = api
        self.retries = retries
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.sleep = sleep

    def _retry(self, operation):
        return with_retries(operation, self.retries)

    def _inspect(self, name: str) -> dict:
        return self._retry(lambda: self.api.inspect_container(name))

    def lookup(self, name: str) -> Lookup:
        try:
            descriptor = self._inspect(name)
        except docker.errors.APIError as e:
            if is_not_found(e):
                return Lookup(ABSENT)
            raise
        return Lookup(FOUND, descriptor)

    def create(self, name: str, config: dict) -> Lookup:
        """Create the container unless one with this name already exists."""
        existing = self.lookup(name)
        if existing.exists:
            logger.debug("container %s already exists", name)
            return existing

        logger.debug("creating container %s from %s", name, config.get("Image"))
        try:
            self._retry(lambda: self.api.create_container_from_config(dict(config), name=name))
        except docker.errors.APIError as e:
            if not is_conflict(e):
                raise
            logger.debug("container %s was created concurrently: %s", name, e)
            return Lookup(CONFLICT, self._inspect(name))
        return Lookup(CREATED, self._inspect(name))

    def start(self, name: str, config: dict) -> dict:
        """Create (if needed) and start a container; return its descriptor."""
        self.create(name, config)
        logger.debug("starting container %s", name)
        self._retry(lambda: self.api.start(name))
        self.wait_for_running(name, True)
        return self._inspect(name)

    def wait_for_running(self, name: str, want_running: bool = True) -> bool:
        """Poll until the container's Running flag equals want_running.

        A container that has already exited (or vanished) ends the wait too.
        Running out of attempts returns False; it is not an error.
        """
        attempts = max(int(self.poll_attempts), 1)
        for i in range(attempts):
            try:
                descriptor = self._inspect(name)
            except docker.errors.APIError as e:
                if not is_not_found(e):
                    raise
                logger.debug("container %s disappeared while waiting", name)
                return True
            if reached_state(descriptor, want_running):
                return True
            if i + 1 < attempts:
                self.sleep(self.poll_interval)
        logger.debug("container %s did not reach running=%s after %d checks",
                     name, want_running, attempts)
        return False

    def stop(self, name: str) -> bool:
        """Gracefully stop a container. False if there was nothing to stop."""
        if not self.lookup(name).exists:
            logger.debug("Container %s not found. Nothing to stop.", name)
            return False
        try:
            self._retry(lambda: self.api.stop(name))
        except docker.errors.APIError as e:
            if not is_not_found(e):
                raise
            logger.debug("Container %s vanished before stop.", name)
            return False
        self.wait_for_running(name, False)
        return True

    def delete(self, name: str) -> bool:
        """Force-remove a container and its volumes. False if absent."""
        if not self.lookup(name).exists:
            logger.debug("Container %s not found. Nothing to delete.", name)
            return False
        try:
            self._retry(lambda: self.api.remove_container(name, v=True, force=True))
        except docker.errors.APIError as e:
            if not is_not_found(e):
                raise
            logger.debug("Container %s vanished before delete.", name)
            return False
        return True
