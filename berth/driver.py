# SPDX-License-Identifier: BUSL-1.1
"""Create and destroy the container topology for one test instance.

    platform image ─┐
                    ├─ work image ── runner container
    toolchain image ── toolchain container ──(VolumesFrom)──┘
    data image ── data container ──(VolumesFrom, tcp engines only)──┘
"""

import logging
import shlex
import time

from berth.config.resources import DriverConfig, is_remote_host
from berth.config.validation import validate_driver_config
from berth.containers import CREATED, ContainerManager
from berth.errors import BerthError, ProvisionError
from berth.images import (
    ImageManager,
    data_image_dockerfile,
    image_ref,
    repo,
    tag,
    work_image_dockerfile,
)
from berth.mounts import coerce_volumes, exposed_ports, port_bindings
from berth.runtime import connect, is_not_found
from berth.sandbox import Sandbox

logger = logging.getLogger(__name__)

TOOLCHAIN_CONTAINER_PREFIX = "chef"


class Orchestrator:
    """Provision and tear down one instance against one engine endpoint."""

    def __init__(self, config: DriverConfig, sandbox: Sandbox = None, api=None,
                 sleep=time.sleep):
        validate_driver_config(config).raise_if_invalid()
        self.config = config
        self.sandbox = sandbox if sandbox is not None else Sandbox(config.instance_name)
        self.sleep = sleep
        self._api = api
        self._images = None
        self._containers = None

    # ── Connection and managers ──────────────────────────────────────

    @property
    def api(self):
        if self._api is None:
            c = self.config
            self._api = connect(c.docker_host_url, c.transport,
                                c.read_timeout, c.write_timeout,
                                retries=c.api_retries)
        return self._api

    @property
    def images(self) -> ImageManager:
        if self._images is None:
            self._images = ImageManager(self.api, self.config.api_retries)
        return self._images

    @property
    def containers(self) -> ContainerManager:
        if self._containers is None:
            self._containers = ContainerManager(
                self.api,
                retries=self.config.api_retries,
                poll_attempts=self.config.poll_attempts,
                poll_interval=self.config.poll_interval,
                sleep=self.sleep,
            )
        return self._containers

    # ── Names ────────────────────────────────────────────────────────

    @property
    def remote(self) -> bool:
        return is_remote_host(self.config.docker_host_url)

    @property
    def instance_name(self) -> str:
        return self.config.instance_name

    @property
    def toolchain_version(self) -> str:
        version = str(self.config.toolchain_version or "latest")
        return "latest" if version == "stable" else version

    @property
    def toolchain_image(self) -> str:
        return f"{self.config.toolchain_image}:{self.toolchain_version}"

    @property
    def toolchain_container_name(self) -> str:
        return f"{TOOLCHAIN_CONTAINER_PREFIX}-{self.toolchain_version}"

    @property
    def data_container_name(self) -> str:
        return f"{self.instance_name}-data"

    @property
    def runner_container_name(self) -> str:
        return str(self.instance_name)

    @property
    def platform_image(self) -> str:
        return self.config.image

    @property
    def work_image(self) -> str:
        if self.config.image_prefix:
            return f"{self.config.image_prefix}/{self.instance_name}"
        return self.instance_name

    # ── create ───────────────────────────────────────────────────────

    def create(self, state: dict) -> dict:
        """Bring up every resource of the instance, recording them in state."""
        self._stage("pull platform image", self.pull_platform_image)

        self._stage("pull toolchain image", self.pull_toolchain_image)
        self._stage("create toolchain container", lambda: self.create_toolchain_container(state))

        self._stage("create sandbox", self.sandbox.create)

        if self.remote:
            self._stage("build data image", self.make_data_image)
            self._stage("start data container", lambda: self.start_data_container(state))

        self._stage("build work image", lambda: self.build_work_image(state))
        self._stage("start runner container", lambda: self.start_runner_container(state))

        self.save_misc_state(state)
        return state

    def _stage(self, stage: str, step):
        try:
            return step()
        except BerthError:
            raise
        except Exception as e:
            raise ProvisionError(stage, e) from e

    def pull_platform_image(self):
        logger.debug("driver - pulling platform image repo=%s tag=%s",
                     repo(self.platform_image), tag(self.platform_image))
        self.images.pull_if_missing(self.platform_image)

    def pull_toolchain_image(self):
        logger.debug("driver - pulling toolchain image repo=%s tag=%s",
                     repo(self.toolchain_image), tag(self.toolchain_image))
        self.images.pull_if_missing(self.toolchain_image)

    def create_toolchain_container(self, state: dict):
        result = self.containers.create(self.toolchain_container_name, {
            "Cmd": ["true"],
            "Image": image_ref(self.toolchain_image),
        })
        if result.status == CREATED:
            state["toolchain_container"] = result.descriptor
        else:
            logger.debug("driver - %s already exists", self.toolchain_container_name)

    def make_data_image(self):
        logger.debug("driver - building data image %s", self.config.data_image)
        self.images.build_if_missing(
            self.config.data_image,
            data_image_dockerfile(self.config.data_base_image),
        )

    def data_container_config(self) -> dict:
        return {
            "Image": image_ref(self.config.data_image),
            "HostConfig": {
                "PortBindings": port_bindings("22"),
                "PublishAllPorts": True,
            },
        }

    def start_data_container(self, state: dict):
        logger.debug("driver - starting %s", self.data_container_name)
        state["data_container"] = self.containers.start(
            self.data_container_name, self.data_container_config()
        )

    def build_work_image(self, state: dict):
        logger.info("Building work image..")
        dockerfile = work_image_dockerfile(
            self.platform_image, self.config.intermediate_instructions
        )
        if self.images.build_if_missing(self.work_image, dockerfile):
            state["work_image"] = self.work_image

    def volumes_from(self) -> list:
        names = [self.toolchain_container_name]
        if self.remote:
            names.append(self.data_container_name)
        return names

    def runner_container_config(self) -> dict:
        c = self.config
        mounts, extracted_binds = coerce_volumes(c.volumes, c.binds)
        binds = self.sandbox.binds() + list(c.binds) + extracted_binds
        return {
            "Cmd": shlex.split(c.pid_one_command),
            "Image": image_ref(self.work_image),
            "Hostname": c.hostname,
            "Env": list(c.env),
            "ExposedPorts": exposed_ports(c.forward),
            "Volumes": mounts,
            "HostConfig": {
                "Privileged": c.privileged,
                "VolumesFrom": self.volumes_from(),
                "Binds": binds,
                "Dns": c.dns,
                "DnsSearch": c.dns_search,
                "Links": list(c.links),
                "CapAdd": list(c.cap_add),
                "CapDrop": list(c.cap_drop),
                "SecurityOpt": list(c.security_opt),
                "NetworkMode": c.network_mode,
                "PortBindings": port_bindings(c.forward),
            },
        }

    def start_runner_container(self, state: dict):
        logger.debug("driver - starting %s", self.runner_container_name)
        state["runner_container"] = self.containers.start(
            self.runner_container_name, self.runner_container_config()
        )

    def save_misc_state(self, state: dict):
        state["platform_image"] = self.platform_image
        state["instance_name"] = self.instance_name
        state["instance_platform_name"] = self.config.platform_name
        state["image_prefix"] = self.config.image_prefix

    # ── destroy ──────────────────────────────────────────────────────

    def destroy(self, state: dict = None):
        """Tear the instance down. state is accepted but never read.

        Every step runs even if an earlier one failed. A resource that is
        already gone is skipped; the first failure of any other kind,
        including transient engine failures that outlasted their retries,
        is raised at the end.
        """
        steps = []
        if self.remote:
            steps.append(("stop data container",
                          lambda: self.containers.stop(self.data_container_name)))
            steps.append(("delete data container",
                          lambda: self.containers.delete(self.data_container_name)))
        steps.extend([
            ("stop runner container", lambda: self.containers.stop(self.runner_container_name)),
            ("delete runner container", lambda: self.containers.delete(self.runner_container_name)),
            ("delete work image", lambda: self.images.delete(self.work_image)),
            ("delete sandbox", self.sandbox.delete),
        ])

        failures = []
        for stage, step in steps:
            logger.debug("driver - %s", stage)
            try:
                step()
            except Exception as e:
                if is_not_found(e):
                    logger.warning("%s: already gone (%s)", stage, e)
                    continue
                logger.error("%s failed: %s", stage, e)
                failures.append((stage, e))

        if failures:
            stage, cause = failures[0]
            raise ProvisionError(f"destroy:{stage}", cause) from cause
