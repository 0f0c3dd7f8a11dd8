"""Shared utility functions for vendor-init."""

from vendor_core.utils.hash import DigestAlgorithm, b64_to_hex, file_digest
from vendor_core.utils.paths import (
    basename_from_url,
    ensure_dir,
    is_absolute_http_url,
    is_plain_filename,
    remove_path,
)
from vendor_core.utils.subprocess import CommandRunner, run_cmd

__all__ = [
    "DigestAlgorithm",
    "b64_to_hex",
    "file_digest",
    "basename_from_url",
    "ensure_dir",
    "is_absolute_http_url",
    "is_plain_filename",
    "remove_path",
    "CommandRunner",
    "run_cmd",
]
