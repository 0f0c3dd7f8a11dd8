from __future__ import annotations

from vendor_core.exceptions import (
    AcquisitionFailed,
    CancelledError,
    ExtractionError,
    IntegrityError,
    ResolutionError,
    TransportError,
    VendorError,
)


def test_codes_default_per_class() -> None:
    assert TransportError("x").code == "download_failed"
    assert IntegrityError("x", expected="a", actual="b").code == "digest_mismatch"
    assert ExtractionError("x").code == "extraction_failed"
    assert CancelledError("x").code == "cancelled"
    assert ResolutionError("x", code="no_release_found").code == "no_release_found"


def test_integrity_error_carries_both_digests() -> None:
    err = IntegrityError("mismatch", expected="aa", actual="bb", context={"target": "t.zip"})
    assert err.context == {"expected": "aa", "actual": "bb", "target": "t.zip"}
    assert isinstance(err, VendorError)
    assert str(err) == "mismatch"


def test_as_log_fields() -> None:
    err = TransportError("boom", context={"url": "https://x"})
    assert err.as_log_fields() == {
        "error_code": "download_failed",
        "error_message": "boom",
        "error_context": {"url": "https://x"},
    }


def test_acquisition_failed_lists_every_failure() -> None:
    errors = [
        ("chromedriver", IntegrityError("sha256 mismatch", expected="a", actual="b")),
        ("geckodriver", ResolutionError("no asset", code="no_matching_asset")),
    ]
    failed = AcquisitionFailed(errors)
    assert failed.errors == errors
    assert failed.context == {"failed": ["chromedriver", "geckodriver"]}
    lines = str(failed).splitlines()
    assert lines[0] == "2 artifact(s) failed:"
    assert lines[1] == "- chromedriver: [digest_mismatch] sha256 mismatch"
    assert lines[2] == "- geckodriver: [no_matching_asset] no asset"
