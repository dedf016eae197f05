#!/usr/bin/env python3

from __future__ import annotations

import argparse
import sys

from upstream_sync.cli.commands import update


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Keep installed workflows in sync with their upstream repository.",
        prog="python -m main",
    )
    subparsers = parser.add_subparsers(dest="command")
    update.register_commands(subparsers)
    return parser


def main(argv: list[str] | None = None) -> int:
    raw_args = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    args = parser.parse_args(raw_args)

    if not getattr(args, "func", None):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
