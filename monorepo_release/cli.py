"""CLI entry point for monorepo-release."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from monorepo_release.config import ReleaseConfig, load_config
from monorepo_release.models import ReleaseScope, TagFormat
from monorepo_release.pipeline import plan_release, run_release
from monorepo_release.shell import GitRunner, fatal
from monorepo_release.workspace import WorkspaceError

__version__ = pkg_version("monorepo-release")

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT
    )


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    """CLI flags that were actually given, as config field values."""
    return {
        "repository": args.repository,
        "tag_format": args.tag_format,
        "dry_run": True if args.dry_run else None,
        "force_all": True if args.force_all else None,
        "include_private": True if args.include_private else None,
        "conventional_commits": False if args.no_conventional_commits else None,
        "max_commits": args.max_commits,
        "release_type_filter": args.release_type,
    }


def _load(args: argparse.Namespace) -> ReleaseConfig:
    try:
        return load_config(args.root, env=os.environ, overrides=_overrides(args))
    except ValidationError as exc:
        fatal(f"Invalid configuration:\n{exc}")


def cmd_run(args: argparse.Namespace) -> None:
    """Run the release pipeline (usually called from CI)."""
    config = _load(args)
    output = os.environ.get("GITHUB_OUTPUT")
    try:
        results = asyncio.run(
            run_release(
                config,
                args.root,
                output_path=Path(output) if output else None,
            )
        )
    except (WorkspaceError, ValueError) as exc:
        fatal(str(exc))

    failed = [r for r in results if r.error is not None]
    if failed:
        fatal(
            "The following packages failed to release:\n"
            + "\n".join(f"  - {r.package} {r.version}: {r.error}" for r in failed)
        )
    print(f"\n{'=' * 60}\nDone!\n{'=' * 60}")


def cmd_analyze(args: argparse.Namespace) -> None:
    """Print the release decisions without tagging anything."""
    config = _load(args)
    try:
        versions = asyncio.run(plan_release(GitRunner(args.root), args.root, config))
    except (WorkspaceError, ValueError) as exc:
        fatal(str(exc))

    decisions = [
        {
            "name": pv.name,
            "path": pv.path,
            "current_version": pv.current_version,
            "new_version": pv.new_version,
            "release_type": pv.release_type,
            "commits": len(pv.commits),
        }
        for pv in versions
    ]
    print(json.dumps(decisions, indent=2))


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Workspace root directory. (default: current directory)",
    )
    parser.add_argument(
        "--repository",
        default=None,
        help="GitHub repository as owner/repo. (default: $GITHUB_REPOSITORY)",
    )
    parser.add_argument(
        "--tag-format",
        choices=[f.value for f in TagFormat],
        default=None,
        help="Tag naming scheme. (default: slash)",
    )
    parser.add_argument(
        "--force-all", action="store_true", help="Treat every package as changed."
    )
    parser.add_argument(
        "--include-private",
        action="store_true",
        help="Also release packages marked private.",
    )
    parser.add_argument(
        "--no-conventional-commits",
        action="store_true",
        help="Count every relevant commit as a patch release.",
    )
    parser.add_argument(
        "--release-type",
        choices=[s.value for s in ReleaseScope],
        default=None,
        help="Release only apps (under apps/), only packages, or all. (default: all)",
    )
    parser.add_argument(
        "--max-commits",
        type=int,
        default=None,
        help="Maximum commits to read since the last tag. (default: 1000)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monorepo-release",
        description="Per-package semantic releases for monorepos.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run subcommand
    run_parser = subparsers.add_parser(
        "run", help="Tag and release every changed package."
    )
    _add_common_options(run_parser)
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log tags and releases instead of creating them.",
    )
    run_parser.set_defaults(func=cmd_run)

    # analyze subcommand
    analyze_parser = subparsers.add_parser(
        "analyze", help="Print the next version of every changed package."
    )
    _add_common_options(analyze_parser)
    analyze_parser.set_defaults(func=cmd_analyze, dry_run=True)

    return parser


def cli(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    args.func(args)
