"""JSON Schema validation for run manifests."""

from __future__ import annotations

from typing import Any

import jsonschema


class SchemaValidationError(ValueError):
    """Raised when manifest validation fails."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("Invalid manifest: " + "; ".join(errors))
        self.errors = errors


_RELPATH = {"type": "string", "minLength": 1}

_SOURCE = {
    "type": "object",
    "required": ["path", "url"],
    "additionalProperties": False,
    "properties": {
        "path": _RELPATH,
        "url": {"type": "string", "minLength": 1},
        "ref": {"type": ["string", "null"]},
        "depth": {"type": ["integer", "null"], "minimum": 1},
        "partial": {"type": "boolean"},
    },
}

_PATCH = {
    "type": "object",
    "required": ["path", "commit"],
    "additionalProperties": False,
    "properties": {
        "path": _RELPATH,
        "commit": {"type": "string", "pattern": "^[0-9a-fA-F]{4,64}$"},
        "remote": {"type": "string", "pattern": "^[A-Za-z0-9][A-Za-z0-9._-]*$"},
        "url": {"type": "string", "minLength": 1},
        "strategy": {"enum": ["ours", "theirs", "both", "manual"]},
    },
    "dependentRequired": {"remote": ["url"], "url": ["remote"]},
}

_RULE = {
    "type": "object",
    "required": ["source", "target"],
    "additionalProperties": False,
    "properties": {
        "source": {"type": "string", "minLength": 1},
        "target": {"type": "string"},
        "match": {"enum": ["literal", "word"]},
        "files": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "rename": {"type": "boolean"},
    },
    "if": {"properties": {"match": {"const": "word"}}, "required": ["match"]},
    "then": {"required": ["files"], "properties": {"files": {"minItems": 1}}},
}


def _step(kind: str, required: list[str], properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "object",
        "required": ["kind", *required],
        "additionalProperties": False,
        "properties": {"kind": {"const": kind}, **properties},
    }


_STRING_LIST = {"type": "array", "items": {"type": "string"}}

_STEP = {
    "oneOf": [
        _step("ensure_lines", ["path", "lines"], {"path": _RELPATH, "lines": _STRING_LIST}),
        _step(
            "replace_in_file",
            ["path", "old", "new"],
            {
                "path": _RELPATH,
                "old": {"type": "string", "minLength": 1},
                "new": {"type": "string"},
                "regex": {"type": "boolean"},
            },
        ),
        _step(
            "fetch_file",
            ["url", "dest"],
            {
                "url": {"type": "string", "pattern": "^https?://"},
                "dest": _RELPATH,
                "overwrite": {"type": "boolean"},
                "require_dir": {"type": "boolean"},
            },
        ),
        _step(
            "run_scripts",
            ["glob"],
            {"glob": {"type": "string", "minLength": 1}, "argv": {**_STRING_LIST, "minItems": 1}},
        ),
        _step(
            "run_command",
            ["argv", "cwd"],
            {"argv": {**_STRING_LIST, "minItems": 1}, "cwd": _RELPATH},
        ),
    ]
}

MANIFEST_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "romprep manifest",
    "type": "object",
    "required": ["schema_version", "sources"],
    "additionalProperties": False,
    "properties": {
        "schema_version": {"type": "string", "pattern": r"^1\.\d+$"},
        "name": {"type": "string", "pattern": "^[A-Za-z0-9][A-Za-z0-9_-]*$"},
        "description": {"type": "string"},
        "sources": {"type": "array", "items": _SOURCE},
        "patches": {"type": "array", "items": _PATCH},
        "substitution": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "roots": {"type": "array", "items": _RELPATH},
                "rules": {"type": "array", "items": _RULE},
            },
        },
        "steps": {"type": "array", "items": _STEP},
    },
}


def _format_error(error: jsonschema.ValidationError) -> str:
    location = "/".join(str(part) for part in error.absolute_path) or "<root>"
    return f"{location}: {error.message}"


def validate_manifest(data: Any) -> None:
    validator = jsonschema.Draft202012Validator(MANIFEST_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda err: [str(part) for part in err.absolute_path])
    if errors:
        raise SchemaValidationError([_format_error(error) for error in errors])
