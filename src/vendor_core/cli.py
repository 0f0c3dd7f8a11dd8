#!/usr/bin/env python3
"""Command-line entry point: ``vendor-init``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from vendor_core.__version__ import __version__
from vendor_core.config import load_manifest
from vendor_core.exceptions import AcquisitionFailed, VendorError
from vendor_core.logging_config import add_logging_args, configure_logging
from vendor_core.orchestrator import run_acquisition

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vendor-init",
        description="Download the third-party binaries needed by the integration tests.",
    )
    parser.add_argument(
        "--download-browsers",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also download browser builds (default: on, or the manifest's globals.download_browsers).",
    )
    parser.add_argument(
        "--artifacts",
        type=Path,
        default=None,
        help="Artifact manifest (default: the packaged artifact set).",
    )
    parser.add_argument(
        "--workdir",
        type=Path,
        default=None,
        help="Directory receiving the artifacts (default: current directory).",
    )
    parser.add_argument("--retry-max", type=int, default=None, help="Attempts per request (default: 3).")
    parser.add_argument(
        "--retry-backoff",
        type=float,
        default=None,
        help="Exponential backoff base in seconds (default: 2.0).",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    add_logging_args(parser)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, fmt=args.log_format)

    try:
        manifest = load_manifest(
            args.artifacts,
            retry_max=args.retry_max,
            retry_backoff=args.retry_backoff,
            download_browsers=args.download_browsers,
            workdir=args.workdir,
        )
    except VendorError as exc:
        logger.error("Invalid artifact manifest: %s", exc.message, extra=exc.as_log_fields())
        return EXIT_CONFIG

    try:
        summary = run_acquisition(manifest.descriptors, manifest.settings)
    except AcquisitionFailed as exc:
        for artifact_id, err in exc.errors:
            logger.error("Error handling %s: [%s] %s", artifact_id, err.code, err.message)
        return EXIT_FAILED

    for report in summary.reports:
        logger.info("%s: %s %s", report.id, report.status, report.path or "")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
