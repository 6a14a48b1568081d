"""CLI command handlers."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

from romprep.runtime.config import build_run_config, load_manifest
from romprep.runtime.conflicts import ResolutionError, has_conflict_markers, resolve_file
from romprep.runtime.reporting import render_summary
from romprep.runtime.workflow import run_workflow


def _root(args: argparse.Namespace) -> Path:
    root = Path(args.root)
    if not root.is_dir():
        raise FileNotFoundError(f"Workspace root not found: {root}")
    return root


def _manifest_path(args: argparse.Namespace, root: Path) -> Path:
    path = Path(args.manifest)
    if path.is_absolute() or path.exists():
        return path
    return root / path


def cmd_run(args: argparse.Namespace) -> dict[str, Any]:
    root = _root(args)
    manifest = load_manifest(_manifest_path(args, root))
    config = build_run_config(
        manifest,
        root=root,
        name=args.name,
        dry_run=args.dry_run,
        skip=set(args.skip),
    )
    result = run_workflow(config)
    sys.stderr.write(render_summary(result.report))
    return result.to_dict()


def cmd_validate(args: argparse.Namespace) -> dict[str, Any]:
    root = _root(args)
    manifest = load_manifest(_manifest_path(args, root))
    config = build_run_config(manifest, root=root, name=args.name)
    return {
        "status": "ok",
        "name": config.name,
        "sources": len(config.sources),
        "patches": len(config.patches),
        "roots": [path.as_posix() for path in config.roots],
        "rules": [rule.to_dict() for rule in config.rules],
        "steps": len(config.steps),
    }


def cmd_resolve(args: argparse.Namespace) -> dict[str, Any]:
    results: list[dict[str, Any]] = []
    failed = False
    for raw in args.files:
        path = Path(raw)
        if not path.is_file():
            results.append({"path": raw, "status": "missing"})
            failed = True
            continue
        if args.dry_run:
            results.append({"path": raw, "status": "conflicted" if has_conflict_markers(path) else "clean"})
            continue
        try:
            blocks = resolve_file(path, args.strategy)
        except (ResolutionError, OSError) as exc:
            results.append({"path": raw, "status": "unresolved", "error": str(exc)})
            failed = True
            continue
        results.append({"path": raw, "status": "resolved", "blocks": blocks})
    return {"status": "failed" if failed else "ok", "strategy": args.strategy, "files": results}
