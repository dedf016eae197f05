"""CLI command for updating installed workflows from their upstream source."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from upstream_sync.integrations.github.client import GitHubClient
from upstream_sync.integrations.github.content import GitContentFetcher, GitHubContentFetcher
from upstream_sync.integrations.github.metadata import GitHubMetadataClient, RemoteLookupCache
from upstream_sync.utils.config_manager import ConfigManager, UpdateConfig
from upstream_sync.utils.logging_config import setup_logging
from upstream_sync.workflow.batch import BatchResult, BatchUpdateError, update_workflows
from upstream_sync.workflow.compiler import CommandCompiler, NullCompiler, WorkflowCompiler
from upstream_sync.workflow.updater import UpdateOptions, WorkflowUpdater

__all__ = [
    "build_updater",
    "register_commands",
    "update_cli",
]


def register_commands(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add the update subcommand to the main CLI parser."""

    parser = subparsers.add_parser(
        "update",
        description="Update workflows installed from an upstream repository.",
        help="Pull upstream changes into workflows that carry a source field.",
    )
    parser.add_argument(
        "names",
        nargs="*",
        help="Workflow names to update (default: every workflow with a source field).",
    )
    parser.add_argument(
        "--dir",
        type=Path,
        dest="workflows_dir",
        help="Directory containing workflow files (default: .github/workflows).",
    )
    parser.add_argument(
        "--major",
        action="store_true",
        help="Allow updates across major versions.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Update even when the source ref has not moved.",
    )
    parser.add_argument(
        "--no-merge",
        action="store_true",
        help="Replace local changes with upstream content instead of merging.",
    )
    stop_group = parser.add_mutually_exclusive_group()
    stop_group.add_argument(
        "--stop-after",
        help="Set on.stop-after in updated workflows to this value.",
    )
    stop_group.add_argument(
        "--no-stop-after",
        action="store_true",
        help="Remove on.stop-after from updated workflows.",
    )
    parser.add_argument(
        "--append",
        help="Literal text appended to the end of each updated workflow.",
    )
    parser.add_argument(
        "--token",
        help="GitHub token. Defaults to $GH_TOKEN or $GITHUB_TOKEN.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to the YAML configuration file (default: .github/workflow-sync.yaml).",
    )
    parser.add_argument(
        "--no-compile",
        action="store_true",
        help="Skip compiling workflows after updating them.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="output_json",
        help="Print the result as JSON.",
    )
    parser.set_defaults(func=update_cli, command="update")


def build_updater(config: UpdateConfig, args: argparse.Namespace) -> WorkflowUpdater:
    """Wire the GitHub collaborators and compiler for one run."""
    token = config.resolve_token(args.token)
    client = GitHubClient(token=token, api_url=config.api_url, timeout=config.timeout_seconds)
    metadata = GitHubMetadataClient(client, cache=RemoteLookupCache())
    fetcher = GitHubContentFetcher(client, fallback=GitContentFetcher(token=token))

    compiler: WorkflowCompiler
    if args.no_compile:
        compiler = NullCompiler()
    else:
        compiler = CommandCompiler(config.compile_command or [], timeout=max(config.timeout_seconds, 300))

    options = UpdateOptions(
        allow_major=args.major,
        force=args.force,
        no_merge=args.no_merge,
        stop_after=args.stop_after,
        no_stop_after=args.no_stop_after,
        append=args.append,
        default_ref=config.default_ref,
    )
    return WorkflowUpdater(fetcher, metadata, compiler, options=options)


def _print_result(result: BatchResult, as_json: bool) -> None:
    if as_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(result.summary())


def update_cli(args: argparse.Namespace) -> int:
    """Run the update command; returns the process exit code."""
    try:
        config = ConfigManager.load_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, verbose=args.verbose)

    directory = args.workflows_dir or Path(config.workflows_dir)
    updater = build_updater(config, args)

    try:
        result = update_workflows(directory, updater, args.names)
    except BatchUpdateError as exc:
        if exc.result is not None:
            _print_result(exc.result, args.output_json)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    _print_result(result, args.output_json)
    return 0
