"""
CLI tool for cloudfn

Discovers declared functions and prints their deployment manifest.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .config import load_global_options
from .errors import ConfigurationError
from .manifest import build_manifest_stack, discover_functions, stack_to_yaml
from .types import CALLABLE_LABEL


def describe_trigger(endpoint: dict) -> str:
    """One-line summary of an endpoint's trigger"""
    if "eventTrigger" in endpoint:
        topic = endpoint["eventTrigger"].get("eventFilters", {}).get("topic", "")
        return f"pubsub:{topic}"
    if endpoint.get("labels", {}).get(CALLABLE_LABEL) == "true":
        return "callable"
    return "https"


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloudfn",
        description="Inspect cloudfn functions and emit their deployment manifest",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    manifest_parser = subparsers.add_parser("manifest", help="Print the endpoint manifest as YAML")
    manifest_parser.add_argument("source_dir", help="Directory containing the functions module")
    manifest_parser.add_argument("--module", default="functions", help="Functions module or package name")
    manifest_parser.add_argument("--config", help="Path to cloudfn.yaml with global options")
    manifest_parser.add_argument("-o", "--output", help="Write the manifest to this file")

    list_parser = subparsers.add_parser("list", help="List declared functions")
    list_parser.add_argument("source_dir", help="Directory containing the functions module")
    list_parser.add_argument("--module", default="functions", help="Functions module or package name")
    list_parser.add_argument("--config", help="Path to cloudfn.yaml with global options")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    # Global options must be in place before the functions are imported
    if args.config:
        try:
            load_global_options(args.config)
        except (FileNotFoundError, ConfigurationError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

    try:
        functions = discover_functions(args.source_dir, args.module)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.command == "manifest":
        output = stack_to_yaml(build_manifest_stack(functions))
        if args.output:
            with open(args.output, "w") as f:
                f.write(output)
            print(f"Wrote manifest for {len(functions)} functions to {args.output}")
        else:
            print(output, end="")

    elif args.command == "list":
        if not functions:
            print("No functions found")
        for name in sorted(functions):
            print(f"{name} ({describe_trigger(functions[name].endpoint)})")

    return 0


if __name__ == "__main__":
    sys.exit(main())
