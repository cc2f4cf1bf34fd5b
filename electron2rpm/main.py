#!/usr/bin/env python3
"""Entry point for electron2rpm."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Optional

from .builder import create_installer
from .utils import Electron2RpmError, FileReadError, format_dependency_list, setup_logging


def load_config(config_path: Path) -> dict[str, Any]:
    """Read a JSON file of installer options."""
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise FileReadError(f"Error reading config file {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise FileReadError(f"Config file {config_path} must contain a JSON object")
    return data


def run_cli(args: argparse.Namespace) -> int:
    """Create the package described by parsed arguments."""
    logger = setup_logging("electron2rpm.cli", logging.DEBUG if args.verbose else logging.INFO)

    try:
        options: dict[str, Any] = load_config(Path(args.config).expanduser()) if args.config else {}
        data: dict[str, Any] = {
            "src": Path(args.src).expanduser(),
            "dest": Path(args.dest).expanduser(),
            "options": options,
            "logger": logger,
        }
        if args.arch:
            data["arch"] = args.arch

        print("Creating package (this may take a while)")
        resolved = create_installer(data)
    except Electron2RpmError as exc:
        logger.error("Operation failed: %s", exc)
        print(f"Error: {exc}")
        return 1

    print(f"Package: {resolved.name} {resolved.version}-{resolved.revision} ({resolved.arch})")
    print(f"Requires: {format_dependency_list(resolved.requires)}")
    print(f"Successfully created package at {resolved.dest}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build command-line parser."""
    parser = argparse.ArgumentParser(
        prog="electron2rpm",
        description="Create an RPM package for an Electron app.",
    )
    parser.add_argument("--src", required=True, help="Directory containing the packaged Electron app")
    parser.add_argument("--dest", required=True, help="Directory that will contain the .rpm package")
    parser.add_argument("--arch", help="Target architecture, e.g. x86_64")
    parser.add_argument("--config", help="JSON file with installer options")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log command lines and generated files")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Program entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    return run_cli(args)


if __name__ == "__main__":
    raise SystemExit(main())
