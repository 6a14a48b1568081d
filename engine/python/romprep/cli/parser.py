"""CLI parser wiring."""

from __future__ import annotations

import argparse

from romprep.cli import handlers
from romprep.domain.models import CONFLICT_STRATEGIES, PHASES


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="romprep",
        description="Clone source trees, layer upstream commits and rewrite naming tokens.",
    )
    parser.add_argument("--root", default=".", help="Workspace root all manifest paths are relative to")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log executed commands")

    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Run sync, patch, substitute and post-processing phases")
    run_p.add_argument("--manifest", required=True, help="Path to the JSON manifest")
    run_p.add_argument("--name", help="Naming token substituted for {name} (default: manifest name)")
    run_p.add_argument("--dry-run", action="store_true", help="Report every action without executing it")
    run_p.add_argument(
        "--skip",
        action="append",
        default=[],
        choices=list(PHASES),
        help="Skip a phase; repeatable",
    )
    run_p.set_defaults(handler=handlers.cmd_run)

    validate_p = sub.add_parser("validate", help="Validate a manifest without touching the workspace")
    validate_p.add_argument("--manifest", required=True)
    validate_p.add_argument("--name")
    validate_p.set_defaults(handler=handlers.cmd_validate)

    resolve_p = sub.add_parser("resolve", help="Strip conflict markers from files")
    resolve_p.add_argument("files", nargs="+")
    resolve_p.add_argument("--strategy", required=True, choices=sorted(CONFLICT_STRATEGIES))
    resolve_p.add_argument("--dry-run", action="store_true", help="Only report files with conflict markers")
    resolve_p.set_defaults(handler=handlers.cmd_resolve)

    return parser
