from __future__ import annotations

from pathlib import Path

import pytest
from conftest import FakeSession, StreamResponse, md5_hex, sha256_hex

from vendor_core.cancellation import CancellationToken
from vendor_core.descriptors import ExpectedDigest
from vendor_core.download import fetch
from vendor_core.exceptions import CancelledError, IntegrityError, TransportError
from vendor_core.network_utils import RetryConfig
from vendor_core.utils.hash import DigestAlgorithm

URL = "https://downloads.example.com/tool.zip"
PAYLOAD = b"archive bytes" * 100


def _sha(data: bytes) -> ExpectedDigest:
    return ExpectedDigest(DigestAlgorithm.SHA256, sha256_hex(data))


class TestFetch:
    def test_downloads_and_verifies(self, workdir: Path) -> None:
        session = FakeSession({URL: StreamResponse([PAYLOAD[:500], PAYLOAD[500:]])})

        outcome = fetch(URL, "tool.zip", _sha(PAYLOAD), session=session, workdir=workdir)

        assert outcome.skipped is False
        assert outcome.bytes == len(PAYLOAD)
        assert outcome.digest == sha256_hex(PAYLOAD)
        assert (workdir / "tool.zip").read_bytes() == PAYLOAD
        assert not (workdir / "tool.zip.part").exists()
        assert session.calls[0]["stream"] is True

    def test_existing_file_with_matching_digest_is_not_fetched(self, workdir: Path) -> None:
        (workdir / "tool.zip").write_bytes(PAYLOAD)
        session = FakeSession()

        outcome = fetch(URL, "tool.zip", _sha(PAYLOAD), session=session, workdir=workdir)

        assert outcome.skipped is True
        assert session.calls == []

    def test_repeat_run_is_idempotent(self, workdir: Path) -> None:
        session = FakeSession({URL: StreamResponse(PAYLOAD)})
        fetch(URL, "tool.zip", _sha(PAYLOAD), session=session, workdir=workdir)
        second = fetch(URL, "tool.zip", _sha(PAYLOAD), session=session, workdir=workdir)
        assert second.skipped is True
        assert len(session.calls) == 1

    def test_existing_file_without_declared_digest_is_kept(self, workdir: Path) -> None:
        (workdir / "tool.zip").write_bytes(b"anything")
        outcome = fetch(URL, "tool.zip", session=FakeSession(), workdir=workdir)
        assert outcome.skipped is True
        assert outcome.digest == sha256_hex(b"anything")

    def test_stale_file_is_downloaded_again(self, workdir: Path) -> None:
        (workdir / "tool.zip").write_bytes(b"old")
        session = FakeSession({URL: StreamResponse(PAYLOAD)})

        outcome = fetch(URL, "tool.zip", _sha(PAYLOAD), session=session, workdir=workdir)

        assert outcome.skipped is False
        assert (workdir / "tool.zip").read_bytes() == PAYLOAD

    def test_md5_digest(self, workdir: Path) -> None:
        session = FakeSession({URL: StreamResponse(PAYLOAD)})
        expected = ExpectedDigest(DigestAlgorithm.MD5, md5_hex(PAYLOAD).upper())

        outcome = fetch(URL, "tool.zip", expected, session=session, workdir=workdir)

        assert outcome.algorithm is DigestAlgorithm.MD5
        assert outcome.digest == md5_hex(PAYLOAD)

    def test_no_declared_digest_still_reports_sha256(self, workdir: Path) -> None:
        session = FakeSession({URL: StreamResponse(PAYLOAD)})
        outcome = fetch(URL, "tool.zip", session=session, workdir=workdir)
        assert outcome.algorithm is DigestAlgorithm.SHA256
        assert outcome.digest == sha256_hex(PAYLOAD)

    def test_digest_mismatch_discards_bytes(self, workdir: Path) -> None:
        session = FakeSession({URL: StreamResponse(b"tampered")})

        with pytest.raises(IntegrityError) as excinfo:
            fetch(URL, "tool.zip", _sha(PAYLOAD), session=session, workdir=workdir)

        err = excinfo.value
        assert err.code == "digest_mismatch"
        assert err.expected == sha256_hex(PAYLOAD)
        assert err.actual == sha256_hex(b"tampered")
        assert not (workdir / "tool.zip").exists()
        assert not (workdir / "tool.zip.part").exists()

    def test_http_error_is_transport_error(self, workdir: Path) -> None:
        session = FakeSession({URL: StreamResponse(status_code=404)})

        with pytest.raises(TransportError) as excinfo:
            fetch(URL, "tool.zip", _sha(PAYLOAD), session=session, workdir=workdir)

        assert excinfo.value.code == "download_failed"
        assert excinfo.value.context["status"] == 404
        assert excinfo.value.context["url"] == URL
        assert not (workdir / "tool.zip").exists()

    def test_interrupted_stream_leaves_partial_file(self, workdir: Path) -> None:
        session = FakeSession({URL: StreamResponse([b"first", b"second"], fail_after=1)})

        with pytest.raises(TransportError):
            fetch(
                URL,
                "tool.zip",
                _sha(PAYLOAD),
                session=session,
                workdir=workdir,
                retry=RetryConfig(max_attempts=1),
            )

        assert (workdir / "tool.zip.part").read_bytes() == b"first"
        assert not (workdir / "tool.zip").exists()

    def test_transient_failure_is_retried(self, workdir: Path) -> None:
        session = FakeSession(
            {URL: [StreamResponse(status_code=503), StreamResponse(PAYLOAD)]}
        )
        outcome = fetch(
            URL, "tool.zip", _sha(PAYLOAD), session=session, workdir=workdir, retry=RetryConfig(backoff_max=0)
        )
        assert outcome.bytes == len(PAYLOAD)
        assert len(session.calls) == 2

    def test_cancelled_before_request(self, workdir: Path) -> None:
        token = CancellationToken()
        token.cancel("sibling failed")
        session = FakeSession({URL: StreamResponse(PAYLOAD)})

        with pytest.raises(CancelledError):
            fetch(URL, "tool.zip", session=session, workdir=workdir, cancel=token)

        assert session.calls == []

    def test_cancel_mid_stream_removes_partial_file(self, workdir: Path) -> None:
        token = CancellationToken()

        def chunks():
            yield b"one"
            token.cancel("sibling failed")
            yield b"two"

        response = StreamResponse()
        response.iter_content = lambda chunk_size=0: chunks()  # type: ignore[method-assign]
        session = FakeSession({URL: response})

        with pytest.raises(CancelledError):
            fetch(URL, "tool.zip", session=session, workdir=workdir, cancel=token)

        assert not (workdir / "tool.zip.part").exists()
        assert not (workdir / "tool.zip").exists()

    def test_cancel_during_backoff_stops_retrying(self, workdir: Path) -> None:
        token = CancellationToken()

        def route(_url: str, **_kwargs) -> StreamResponse:
            token.cancel("sibling failed")
            return StreamResponse([b"first", b"second"], fail_after=1)

        session = FakeSession({URL: route})

        with pytest.raises(CancelledError):
            fetch(
                URL,
                "tool.zip",
                session=session,
                workdir=workdir,
                cancel=token,
                retry=RetryConfig(max_attempts=5, backoff_base=30.0),
            )

        assert len(session.calls) == 1
        assert not (workdir / "tool.zip.part").exists()
