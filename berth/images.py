# SPDX-License-Identifier: BUSL-1.1
"""Image references, Dockerfile synthesis, and idempotent image operations."""

import io
import logging

import docker.errors
import requests.exceptions

from berth.errors import BuildFailed
from berth.runtime import is_conflict, is_not_found, with_retries

logger = logging.getLogger(__name__)

BUILD_MARKER = 'RUN /bin/sh -c "echo Built with Test Kitchen"'


# ── Image references ─────────────────────────────────────────────────────

def parse_image_name(image: str) -> tuple:
    """Split "repository[:tag]" into (repository, tag).

    Repositories on a registry with a port keep their colon:
    "registry:5000/team/img:v2" -> ("registry:5000/team/img", "v2").
    """
    parts = str(image).split(":")
    if len(parts) > 2:
        tag = parts.pop()
        return ":".join(parts), tag
    tag = parts[1] if len(parts) > 1 else "latest"
    return parts[0], tag


def repo(image: str) -> str:
    return parse_image_name(image)[0]


def tag(image: str) -> str:
    return parse_image_name(image)[1]


def image_ref(image: str) -> str:
    """Return the fully tagged "repo:tag" form of an image reference."""
    r, t = parse_image_name(image)
    return f"{r}:{t}"


# ── Dockerfile synthesis ─────────────────────────────────────────────────

def work_image_dockerfile(platform_image: str, instructions: list = None) -> str:
    """Dockerfile for the per-instance work image."""
    lines = [f"FROM {platform_image}", BUILD_MARKER]
    for instruction in instructions or []:
        if str(instruction).strip():
            lines.append(str(instruction))
    return "\n".join(lines)


def data_image_dockerfile(base_image: str = "almalinux:9") -> str:
    """Dockerfile for the cache/data image used with remote engines.

    The container exposes the staging directories over sshd so the harness
    can sync into it; the runner mounts them with VolumesFrom.
    """
    return f"""FROM {base_image}
RUN dnf -y install openssh-server openssh-clients rsync tar \\
    && dnf clean all
RUN ssh-keygen -A \\
    && mkdir -p /var/run/sshd /root/.ssh /opt/kitchen /opt/verifier \\
    && chmod 0700 /root/.ssh
VOLUME /opt/kitchen
VOLUME /opt/verifier
EXPOSE 22
CMD ["/usr/sbin/sshd", "-D", "-p", "22", "-o", "UseDNS=no", "-o", "PermitRootLogin=prohibit-password"]
"""


# ── Image lifecycle ──────────────────────────────────────────────────────

class ImageManager:
    """Pull, build and delete images so that repeated calls are no-ops."""

    def __init__(self, api, retries: int = 20):
        self.api = api
        self.retries = retries

    def exists(self, ref: str) -> bool:
        try:
            with_retries(lambda: self.api.inspect_image(ref), self.retries)
        except docker.errors.APIError as e:
            if is_not_found(e):
                return False
            raise
        return True

    def pull_if_missing(self, image: str) -> bool:
        """Pull image unless "repo:tag" is already present. True if pulled."""
        r, t = parse_image_name(image)
        if self.exists(f"{r}:{t}"):
            logger.debug("image %s:%s already present", r, t)
            return False
        logger.info("Pulling %s:%s", r, t)
        with_retries(lambda: self._pull(r, t), self.retries)
        return True

    def _pull(self, repository: str, image_tag: str):
        for chunk in self.api.pull(repository, tag=image_tag, stream=True, decode=True):
            if chunk.get("error"):
                # Reported in-band, so there is no HTTP status: classified as
                # an unexpected response and retried.
                raise docker.errors.APIError(
                    f"pull {repository}:{image_tag}: {chunk['error']}"
                )
            status = chunk.get("status")
            if status:
                logger.debug("pull %s:%s: %s", repository, image_tag, status)

    def build_if_missing(self, image_tag: str, dockerfile: str) -> bool:
        """Build dockerfile as image_tag unless it exists. True if built.

        Build errors raise BuildFailed immediately; builds are not retried.
        """
        if self.exists(image_tag):
            logger.debug("image %s already present", image_tag)
            return False
        logger.info("Building %s", image_tag)
        try:
            stream = self.api.build(
                fileobj=io.BytesIO(dockerfile.encode("utf-8")),
                tag=image_tag,
                rm=True,
                decode=True,
            )
            for chunk in stream:
                if chunk.get("error"):
                    raise BuildFailed(image_tag, str(chunk["error"]).strip())
                line = str(chunk.get("stream", "")).rstrip()
                if line:
                    logger.debug("build %s: %s", image_tag, line)
        except (docker.errors.DockerException, requests.exceptions.RequestException) as e:
            raise BuildFailed(image_tag, str(e)) from e
        return True

    def delete(self, image_tag: str) -> bool:
        """Force-remove image_tag. Missing or in-use images are not errors.

        Removal is by tag: other tags sharing the same image ID (identical
        cached builds for another instance) are left alone.
        """
        if not self.exists(image_tag):
            logger.debug("image %s not found, nothing to delete", image_tag)
            return False
        ref = image_ref(image_tag)
        image = with_retries(lambda: self.api.inspect_image(ref), self.retries)
        image_id = image.get("Id", "")
        try:
            with_retries(lambda: self.api.remove_image(ref, force=True), self.retries)
        except docker.errors.APIError as e:
            if is_not_found(e):
                return False
            if not is_conflict(e):
                raise
            logger.debug("image %s cannot be removed: %s", image_tag, e)
            if self.exists(image_tag):
                logger.warning("image %s is still in use and was left in place", image_tag)
            return False
        logger.debug("removed image %s (%s)", image_tag, image_id)
        return True
