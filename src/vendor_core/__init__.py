"""Acquire the third-party binaries a WebDriver integration test run needs."""

from vendor_core.__version__ import __version__
from vendor_core.descriptors import (
    ArtifactDescriptor,
    DigestAlgorithm,
    ExpectedDigest,
    RenamePair,
)
from vendor_core.exceptions import AcquisitionFailed, VendorError
from vendor_core.orchestrator import RunSummary, run_acquisition

__all__ = [
    "__version__",
    "ArtifactDescriptor",
    "DigestAlgorithm",
    "ExpectedDigest",
    "RenamePair",
    "AcquisitionFailed",
    "VendorError",
    "RunSummary",
    "run_acquisition",
]
