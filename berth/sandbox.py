# SPDX-License-Identifier: BUSL-1.1
"""Host-side staging directories bind-mounted into the runner container."""

import logging
import shutil
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SANDBOX_DIR = Path.home() / ".berth" / "sandbox"

KITCHEN_MOUNT = "/opt/kitchen"
VERIFIER_MOUNT = "/opt/verifier"


class Sandbox:
    """Kitchen and verifier staging directories for one instance.

    Layout:
        <base_dir>/<instance>/
        ├── kitchen/     # -> /opt/kitchen
        └── verifier/    # -> /opt/verifier
    """

    def __init__(self, instance_name: str, base_dir: Optional[Path] = None):
        self.instance_name = instance_name
        self.base_dir = Path(base_dir) if base_dir else SANDBOX_DIR
        self.root = self.base_dir / instance_name

    @property
    def kitchen_path(self) -> Path:
        return self.root / "kitchen"

    @property
    def verifier_path(self) -> Path:
        return self.root / "verifier"

    def create(self):
        self.kitchen_path.mkdir(parents=True, exist_ok=True)
        self.verifier_path.mkdir(parents=True, exist_ok=True)
        logger.debug("created sandbox %s", self.root)

    def delete(self):
        if self.root.exists():
            shutil.rmtree(self.root)
            logger.debug("removed sandbox %s", self.root)

    def binds(self) -> list:
        return [
            f"{self.kitchen_path}:{KITCHEN_MOUNT}",
            f"{self.verifier_path}:{VERIFIER_MOUNT}",
        ]
