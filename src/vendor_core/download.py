"""Download worker: fetch one artifact into the work directory.

The presence of a correctly hashed target file is the only "already acquired"
marker. Fresh bytes are streamed into ``<target>.part`` while the digest is
accumulated, then moved into place once verified.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import requests

from vendor_core.cancellation import CancellationToken
from vendor_core.descriptors import ExpectedDigest
from vendor_core.exceptions import CancelledError, IntegrityError, TransportError
from vendor_core.network_utils import RetryConfig, with_retries
from vendor_core.utils.hash import CHUNK_SIZE, DigestAlgorithm, file_digest
from vendor_core.utils.paths import ensure_dir

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = (15, 300)


@dataclasses.dataclass(frozen=True)
class DownloadOutcome:
    path: Path
    digest: str | None
    algorithm: DigestAlgorithm
    skipped: bool = False
    bytes: int = 0


def _algorithm(expected: ExpectedDigest | None) -> DigestAlgorithm:
    return expected.algorithm if expected else DigestAlgorithm.SHA256


def fetch(
    url: str,
    target: str,
    expected: ExpectedDigest | None = None,
    *,
    session: requests.Session,
    workdir: Path,
    cancel: CancellationToken | None = None,
    retry: RetryConfig | None = None,
    timeout: tuple[float, float] = DEFAULT_TIMEOUT,
) -> DownloadOutcome:
    """Fetch ``url`` into ``workdir/target`` and verify it against ``expected``.

    An existing target is left untouched, without any network request, when no
    digest is declared or its digest matches.

    Args:
        url: Absolute http(s) URL of the artifact.
        target: Plain file name inside ``workdir``.
        expected: Declared digest, or None to only report a sha256.
        session: HTTP session used for the request.
        workdir: Directory receiving the file.
        cancel: Token checked before the request and between chunks.
        retry: Retry policy for transient transport failures.
        timeout: ``(connect, read)`` timeout in seconds.

    Returns:
        A :class:`DownloadOutcome` describing the file on disk.

    Raises:
        TransportError: Non-success status or transport failure; the partial
            ``.part`` file is kept.
        IntegrityError: The fetched bytes do not match ``expected``; they are
            discarded.
        CancelledError: The run was cancelled mid-transfer.
    """
    cancel = cancel or CancellationToken()
    algorithm = _algorithm(expected)
    out_path = ensure_dir(workdir) / target

    if out_path.is_file():
        existing = file_digest(out_path, algorithm)
        if expected is None or existing == expected.value:
            logger.info("%s already present, skipping download", target)
            return DownloadOutcome(path=out_path, digest=existing, algorithm=algorithm, skipped=True)
        logger.info(
            "%s present with %s %s, expected %s; downloading again",
            target,
            algorithm.value,
            existing,
            expected.value,
        )

    cancel.raise_if_cancelled(f"downloading {target}")
    temp_path = out_path.with_name(f"{out_path.name}.part")

    def _stream() -> tuple[str, int]:
        hasher = algorithm.new()
        written = 0
        with session.get(url, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            with temp_path.open("wb") as f:
                for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                    cancel.raise_if_cancelled(f"downloading {target}")
                    if chunk:
                        f.write(chunk)
                        hasher.update(chunk)
                        written += len(chunk)
        return algorithm.hexdigest(hasher), written

    logger.info("Downloading %s from %s", target, url)
    try:
        actual, written = with_retries(
            _stream, retry or RetryConfig(), cancel=cancel, what=f"downloading {target}"
        )
    except CancelledError:
        temp_path.unlink(missing_ok=True)
        raise
    except requests.RequestException as exc:
        status = exc.response.status_code if getattr(exc, "response", None) is not None else None
        raise TransportError(
            f"download of {target} from {url} failed: {exc}",
            context={"url": url, "target": target, "status": status},
        ) from exc
    except OSError as exc:
        raise TransportError(
            f"cannot write {temp_path}: {exc}",
            context={"url": url, "target": target},
        ) from exc

    if expected is not None and actual != expected.value:
        temp_path.unlink(missing_ok=True)
        raise IntegrityError(
            f"{algorithm.value} mismatch for {target}: expected {expected.value}, got {actual}",
            expected=expected.value,
            actual=actual,
            context={"url": url, "target": target, "algorithm": algorithm.value},
        )

    temp_path.replace(out_path)
    logger.info("Downloaded %s (%d bytes, %s %s)", target, written, algorithm.value, actual)
    return DownloadOutcome(path=out_path, digest=actual, algorithm=algorithm, bytes=written)
