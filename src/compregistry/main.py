"""Subcommand dispatcher for compregistry.

Usage:
    compregistry list      --manifest ...
    compregistry validate  --manifest ...
    compregistry dispatch  --manifest ... --id ... --mode ...
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="compregistry",
        description="Composition registry inspection and render dispatch.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own main() in cli.py.
    subparsers.add_parser("list", help="List compositions declared in a manifest")
    subparsers.add_parser("validate", help="Validate a manifest without mounting")
    subparsers.add_parser("dispatch", help="Select and mount one composition")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "list":
        from .cli import list_main
        list_main(remaining)
    elif parsed.command == "validate":
        from .cli import validate_main
        validate_main(remaining)
    elif parsed.command == "dispatch":
        from .cli import dispatch_main
        dispatch_main(remaining)


if __name__ == "__main__":
    main()
