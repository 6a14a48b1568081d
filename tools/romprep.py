#!/usr/bin/env python3
"""Thin launcher for the romprep CLI.

Use this when the package is not installed: it puts the local engine
python source on the module path before importing the CLI.
"""

from __future__ import annotations

import sys
from pathlib import Path


def _bootstrap_pythonpath() -> None:
    engine_python = Path(__file__).resolve().parent.parent / "engine" / "python"
    if str(engine_python) not in sys.path:
        sys.path.insert(0, str(engine_python))


_bootstrap_pythonpath()

from romprep.cli.main import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
