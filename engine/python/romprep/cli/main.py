"""romprep CLI entrypoint."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Callable

from romprep.cli.parser import build_parser


EXIT_FAILED = 10
EXIT_USAGE = 2
EXIT_INTERNAL = 20


def _print(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True))


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    handler: Callable[[argparse.Namespace], dict[str, Any]] = args.handler
    try:
        payload = handler(args)
    except Exception as exc:  # noqa: BLE001
        user_error = isinstance(exc, (ValueError, KeyError, FileNotFoundError))
        if not user_error:
            logging.getLogger(__name__).exception("unexpected failure")
        payload = {"status": "error", "error": str(exc)}
        errors = getattr(exc, "errors", None)
        if errors:
            payload["errors"] = errors
        _print(payload)
        return EXIT_USAGE if user_error else EXIT_INTERNAL

    _print(payload)
    return EXIT_FAILED if payload.get("status") == "failed" else 0


if __name__ == "__main__":
    raise SystemExit(main())
