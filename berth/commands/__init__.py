# SPDX-License-Identifier: BUSL-1.1
"""Command implementations for the berth CLI."""

from berth.commands.create import cmd_create
from berth.commands.destroy import cmd_destroy
from berth.commands.describe import cmd_describe
from berth.commands.list_cmd import cmd_list
from berth.commands.validate_cmd import cmd_validate

__all__ = [
    "cmd_create", "cmd_destroy", "cmd_describe", "cmd_list", "cmd_validate",
]
