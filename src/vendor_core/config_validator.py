from __future__ import annotations

import json
from functools import cache
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft7Validator, FormatChecker

from vendor_core.__version__ import __schema_version__
from vendor_core.exceptions import ConfigValidationError, YamlParseError

MAX_REPORTED_ERRORS = 10


@cache
def load_schema(schema_name: str) -> dict[str, Any]:
    schema_path = resources.files("vendor_core").joinpath("schemas").joinpath(f"{schema_name}.schema.json")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def validate_config(config: Any, schema_name: str, *, config_path: Path | None = None) -> None:
    schema = load_schema(schema_name)
    validator = Draft7Validator(schema, format_checker=FormatChecker())
    errors = sorted(validator.iter_errors(config), key=lambda exc: list(exc.path))
    if not errors:
        return
    location = str(config_path) if config_path else "<config>"
    lines = [f"Schema validation failed for {location} ({schema_name})."]
    error_details: list[dict[str, str]] = []
    for error in errors[:MAX_REPORTED_ERRORS]:
        path = ".".join(str(p) for p in error.path) if error.path else "<root>"
        lines.append(f"- {path}: {error.message}")
        error_details.append({"path": path, "message": error.message})
    if len(errors) > MAX_REPORTED_ERRORS:
        lines.append(f"... and {len(errors) - MAX_REPORTED_ERRORS} more errors.")
    raise ConfigValidationError(
        "\n".join(lines),
        context={
            "path": location,
            "schema": schema_name,
            "errors": error_details,
            "truncated": len(errors) > MAX_REPORTED_ERRORS,
        },
    )


def validate_schema_version(data: Any, *, config_path: Path | None = None) -> None:
    """Reject manifests written for another major schema version."""
    location = str(config_path) if config_path else "<config>"
    raw = str((data or {}).get("schema_version", "")) if isinstance(data, dict) else ""
    supported_major = __schema_version__.split(".", 1)[0]
    if raw.split(".", 1)[0] != supported_major:
        raise ConfigValidationError(
            f"{location}: unsupported schema_version {raw or '<missing>'!r} "
            f"(supported: {supported_major}.x)",
            code="unsupported_schema_version",
            context={"path": location, "schema_version": raw, "supported": __schema_version__},
        )


def read_yaml(path: Path, schema_name: str | None = None) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError(
            f"cannot read {path}: {exc}",
            code="config_unreadable",
            context={"path": str(path)},
        ) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise YamlParseError(
            f"YAML parse error in {path}: {exc}",
            context={"path": str(path), "error": str(exc)},
        ) from exc
    if data is None:
        data = {}
    if schema_name:
        validate_schema_version(data, config_path=path)
        validate_config(data, schema_name, config_path=path)
    return data
