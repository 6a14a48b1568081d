"""Filesystem IO helpers with atomic writes."""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Iterator


BINARY_SNIFF_BYTES = 8192


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def write_bytes(path: Path, content: bytes) -> None:
    ensure_dir(path.parent)
    fd, temp_name = tempfile.mkstemp(prefix=".tmp-", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        if path.exists():
            shutil.copymode(path, temp_name)
        os.replace(temp_name, path)
    finally:
        if os.path.exists(temp_name):
            os.unlink(temp_name)


def write_text(path: Path, content: str) -> None:
    write_bytes(path, content.encode("utf-8"))


def write_json(path: Path, data: dict[str, Any]) -> None:
    payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
    write_text(path, payload)


def clear_tree(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


def is_binary(data: bytes) -> bool:
    return b"\0" in data[:BINARY_SNIFF_BYTES]


def walk_files(root: Path, skip_dirs: frozenset[str] = frozenset({".git"})) -> Iterator[Path]:
    """Yield regular files below root in sorted order, pruning skip_dirs."""
    for current, dirs, files in os.walk(root):
        dirs[:] = sorted(name for name in dirs if name not in skip_dirs)
        current_path = Path(current)
        for name in sorted(files):
            candidate = current_path / name
            if candidate.is_symlink() or not candidate.is_file():
                continue
            yield candidate


def walk_entries_deepest_first(
    root: Path,
    skip_dirs: frozenset[str] = frozenset({".git"}),
) -> list[Path]:
    """Return files and directories below root, children before their parents."""
    entries: list[Path] = []
    for current, dirs, files in os.walk(root, topdown=True):
        dirs[:] = sorted(name for name in dirs if name not in skip_dirs)
        current_path = Path(current)
        entries.extend(current_path / name for name in dirs)
        entries.extend(current_path / name for name in sorted(files))
    entries.sort(key=lambda item: (-len(item.relative_to(root).parts), item.as_posix()))
    return entries
