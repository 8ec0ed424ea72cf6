"""CLI entrypoint for inspecting grapnel preset files."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable
from typing import Any

import yaml

from grapnel.config import HookOptions, load_presets
from grapnel.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="grapnel hook engine utilities")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    sub = parser.add_subparsers(dest="command", required=True)

    presets = sub.add_parser("presets", help="Validate a presets YAML file and print the resolved options")
    presets.add_argument("file", help="Path to a YAML mapping of preset name -> options")
    presets.add_argument("--name", help="Only resolve this preset")
    return parser


def _callable_name(fn: Callable[..., Any] | None) -> str | None:
    if fn is None:
        return None
    module = getattr(fn, "__module__", None)
    name = getattr(fn, "__qualname__", None) or repr(fn)
    return f"{module}.{name}" if module else name


def describe_options(options: HookOptions) -> dict[str, Any]:
    return {
        "strict": options.strict,
        "qualifiers": options.qualifiers.model_dump(),
        "create_thenable": _callable_name(options.create_thenable),
        "scheduler": _callable_name(options.scheduler),
    }


def _run_presets(args: argparse.Namespace) -> int:
    try:
        registry = load_presets(args.file)
        names = [args.name] if args.name else registry.names()
        resolved = {name: describe_options(registry.resolve(name)) for name in names}
    except (ValueError, yaml.YAMLError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    logger.info("Resolved %s preset(s) from %s", len(resolved), args.file)
    print(json.dumps(resolved, indent=2, sort_keys=True))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "presets":
        return _run_presets(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
