from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(eq=False)
class VendorError(Exception):
    message: str
    code: str = "vendor_error"
    context: dict[str, Any] = field(default_factory=dict)

    def __init__(self, message: str, *, code: str | None = None, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.code
        self.context = dict(context or {})

    def __str__(self) -> str:
        return self.message

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "error_code": self.code,
            "error_message": self.message,
            "error_context": self.context,
        }


class ConfigValidationError(VendorError):
    code = "config_validation_error"


class YamlParseError(VendorError):
    code = "yaml_parse_error"


class DescriptorError(VendorError):
    """An artifact descriptor is malformed or collides with another one."""

    code = "invalid_descriptor"


class ResolutionError(VendorError):
    """A "latest of X" query could not be turned into a download URL."""

    code = "resolution_failed"


class ObjectStoreError(VendorError):
    """An object-store read, metadata, or listing call failed."""

    code = "object_store_error"


class TransportError(VendorError):
    """The bytes could not be fetched."""

    code = "download_failed"


class IntegrityError(VendorError):
    """The bytes were fetched but their digest is not the declared one."""

    code = "digest_mismatch"

    def __init__(self, message: str, *, expected: str, actual: str, context: Mapping[str, Any] | None = None) -> None:
        merged = {"expected": expected, "actual": actual}
        merged.update(context or {})
        super().__init__(message, context=merged)
        self.expected = expected
        self.actual = actual


class ExtractionError(VendorError):
    code = "extraction_failed"


class RenameError(VendorError):
    """Never fatal; raised internally and logged as a warning."""

    code = "rename_failed"


class CancelledError(VendorError):
    code = "cancelled"


class AcquisitionFailed(VendorError):
    """Raised from the join point with every fatal error the run collected."""

    code = "acquisition_failed"

    def __init__(self, errors: Sequence[tuple[str, VendorError]]) -> None:
        self.errors = list(errors)
        lines = [f"{len(self.errors)} artifact(s) failed:"]
        lines.extend(f"- {artifact_id}: [{err.code}] {err.message}" for artifact_id, err in self.errors)
        super().__init__(
            "\n".join(lines),
            context={"failed": [artifact_id for artifact_id, _ in self.errors]},
        )
