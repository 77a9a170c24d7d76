"""
SolutionClient CLI - Query a solution server from the command line.

Commands:
    solutionclient capabilities                       List server tools and resources
    solutionclient hint RULESET VIOLATION             Show the best hint for a violation
    solutionclient success-rate RULESET:VIOLATION...  Show aggregated solution outcomes

Connection settings come from the SOLUTION_SERVER_* environment variables;
``--url`` overrides SOLUTION_SERVER_URL.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from .client import SolutionServerClient
from .exceptions import SolutionClientError


def _parse_violation(value: str) -> dict[str, str]:
    ruleset, sep, violation = value.partition(":")
    if not sep or not ruleset or not violation:
        raise argparse.ArgumentTypeError(
            f"expected RULESET:VIOLATION, got {value!r}"
        )
    return {"ruleset_name": ruleset, "violation_name": violation}


async def _run(args: argparse.Namespace) -> Any:
    async with await SolutionServerClient.connect(args.url) as client:
        if args.command == "capabilities":
            return (await client.get_server_capabilities()).to_dict()
        if args.command == "hint":
            hint = await client.get_best_hint(args.ruleset, args.violation)
            return hint.model_dump()
        if args.command == "success-rate":
            rate = await client.get_success_rate(args.violations)
            return rate.model_dump()
    raise ValueError(f"Unknown command: {args.command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solutionclient",
        description="SolutionClient CLI - Query a solution server",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )
    parser.add_argument(
        "--url",
        "-u",
        default=None,
        help="Solution server URL (default: $SOLUTION_SERVER_URL)",
    )
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("capabilities", help="List server tools and resources")

    hint_parser = subparsers.add_parser("hint", help="Show the best hint for a violation")
    hint_parser.add_argument("ruleset", help="Ruleset name")
    hint_parser.add_argument("violation", help="Violation name")

    rate_parser = subparsers.add_parser(
        "success-rate", help="Show aggregated solution outcomes"
    )
    rate_parser.add_argument(
        "violations",
        nargs="+",
        type=_parse_violation,
        metavar="RULESET:VIOLATION",
        help="Violation identifiers",
    )

    return parser


def main(argv: Any = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = asyncio.run(_run(args))
    except SolutionClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nCancelled")
        sys.exit(130)

    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
