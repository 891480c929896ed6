# SPDX-License-Identifier: BUSL-1.1
"""Exceptions raised by the lifecycle engine."""


class BerthError(Exception):
    """Base class for failures surfaced to the harness."""


class BuildFailed(BerthError):
    """An image build failed. Builds are never retried."""
    def __init__(self, image: str, reason: str = ""):
        self.image = image
        self.reason = reason
        msg = f"{image} build failed"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class ProvisionError(BerthError):
    """A create or destroy stage failed with a non-recoverable error."""
    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {cause}")
