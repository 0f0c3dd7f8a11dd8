"""
Shared pytest fixtures for vendor-init tests.

Provides:
- Fake streaming HTTP responses and a routing session double
- An in-memory object store
- A recording command runner for extraction
"""

from __future__ import annotations

import hashlib
import json
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
import requests

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if SRC_ROOT.is_dir():
    sys.path.insert(0, str(SRC_ROOT))

from vendor_core.exceptions import ObjectStoreError  # noqa: E402
from vendor_core.storage.base import ObjectInfo  # noqa: E402


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def md5_hex(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


class StreamResponse:
    def __init__(
        self,
        content: bytes | list[bytes] = b"",
        status_code: int = 200,
        url: str = "",
        payload: Any = None,
        links: dict[str, dict[str, str]] | None = None,
        fail_after: int | None = None,
    ) -> None:
        self._chunks = content if isinstance(content, list) else [content]
        self.status_code = status_code
        self.url = url or "https://example.com/file.bin"
        self.headers: dict[str, str] = {}
        self.links = links or {}
        self._payload = payload
        self.fail_after = fail_after
        self.closed = False

    @property
    def content(self) -> bytes:
        return b"".join(self._chunks)

    def json(self) -> Any:
        if self._payload is None:
            return json.loads(self.content.decode("utf-8"))
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}", response=self)

    def iter_content(self, chunk_size: int = 1024 * 1024) -> Iterator[bytes]:
        for index, chunk in enumerate(self._chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise requests.exceptions.ConnectionError("connection reset")
            yield chunk

    def __enter__(self) -> StreamResponse:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.closed = True
        return False


Route = StreamResponse | list[StreamResponse] | Callable[..., StreamResponse]


class FakeSession:
    """Routes ``get`` calls by URL; unknown URLs answer 404."""

    def __init__(self, routes: dict[str, Route] | None = None) -> None:
        self.routes: dict[str, Route] = dict(routes or {})
        self.calls: list[dict[str, Any]] = []
        self.headers: dict[str, str] = {}

    def get(self, url: str, **kwargs: Any) -> StreamResponse:
        self.calls.append({"url": url, **kwargs})
        route = self.routes.get(url)
        if route is None:
            return StreamResponse(status_code=404, url=url)
        if isinstance(route, list):
            return route.pop(0)
        if callable(route):
            return route(url, **kwargs)
        return route

    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]


class MemoryStore:
    """Object store double keyed by (bucket, name)."""

    def __init__(self, objects: dict[str, bytes] | None = None, bucket: str = "bucket") -> None:
        self.bucket = bucket
        self.objects = dict(objects or {})
        self.reads: list[str] = []

    def _info(self, name: str) -> ObjectInfo:
        return ObjectInfo(
            bucket=self.bucket,
            name=name,
            media_url=f"https://storage.example.com/{self.bucket}/{name}",
            md5_hex=md5_hex(self.objects[name]),
            size=len(self.objects[name]),
        )

    def read_object(self, bucket: str, name: str) -> bytes:
        self.reads.append(name)
        if bucket != self.bucket or name not in self.objects:
            raise ObjectStoreError(f"no such object {bucket}/{name}", context={"bucket": bucket})
        return self.objects[name]

    def object_info(self, bucket: str, name: str) -> ObjectInfo:
        if bucket != self.bucket or name not in self.objects:
            raise ObjectStoreError(f"no such object {bucket}/{name}", context={"bucket": bucket})
        return self._info(name)

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[ObjectInfo]:
        if bucket != self.bucket:
            raise ObjectStoreError(f"no such bucket {bucket}", context={"bucket": bucket})
        for name in sorted(self.objects):
            if name.startswith(prefix):
                yield self._info(name)


class RecordingRunner:
    """Command runner that records invocations instead of spawning tools."""

    def __init__(self, effect: Callable[[list[str], Path | None], None] | None = None) -> None:
        self.calls: list[tuple[list[str], Path | None]] = []
        self.effect = effect

    def __call__(self, cmd: list[str], cwd: Path | None = None) -> str:
        self.calls.append((list(cmd), cwd))
        if self.effect is not None:
            self.effect(cmd, cwd)
        return ""


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("vendor_core.network_utils.time.sleep", lambda _seconds: None)


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()
