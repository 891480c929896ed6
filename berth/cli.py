# SPDX-License-Identifier: BUSL-1.1
"""CLI argument parsing and command dispatch."""

import argparse
import sys

from berth import __version__


def _add_instance_args(parser, with_state: bool = True):
    parser.add_argument("name", help="Instance name")
    parser.add_argument("-c", "--config", help="Configuration file (default: ./berth.yaml)")
    if with_state:
        parser.add_argument("--state-dir", help="Directory for instance state files (default: ./.berth/state)")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="berth",
        description="berth - ephemeral Docker test environments",
    )
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only show errors")
    sub = parser.add_subparsers(dest="command")

    # create
    p_create = sub.add_parser("create", help="Provision the containers for an instance")
    _add_instance_args(p_create)

    # destroy
    p_destroy = sub.add_parser("destroy", help="Tear down the containers and images of an instance")
    _add_instance_args(p_destroy)

    # describe
    p_desc = sub.add_parser("describe", help="Show resolved configuration and state")
    _add_instance_args(p_desc)

    # validate
    p_val = sub.add_parser("validate", help="Validate an instance's configuration")
    _add_instance_args(p_val, with_state=False)

    # list
    p_list = sub.add_parser("list", help="List configured instances")
    p_list.add_argument("-c", "--config", help="Configuration file (default: ./berth.yaml)")
    p_list.add_argument("--state-dir", help="Directory for instance state files")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Lazy import commands to keep startup fast
    from berth.utils import setup_logging
    from berth.commands import (
        cmd_create, cmd_destroy, cmd_describe, cmd_list, cmd_validate,
    )

    setup_logging(verbose=args.verbose, quiet=args.quiet)

    commands = {
        "create": cmd_create,
        "destroy": cmd_destroy,
        "describe": cmd_describe,
        "validate": cmd_validate,
        "list": cmd_list,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
