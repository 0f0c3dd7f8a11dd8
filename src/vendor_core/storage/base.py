from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ObjectInfo:
    """Metadata of one stored object."""

    bucket: str
    name: str
    media_url: str
    md5_hex: str | None = None
    size: int | None = None


class ObjectStoreClient(Protocol):
    def read_object(self, bucket: str, name: str) -> bytes:
        """Return the full content of ``bucket/name``."""
        ...

    def object_info(self, bucket: str, name: str) -> ObjectInfo:
        ...

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[ObjectInfo]:
        """Yield every object under ``prefix``, following pagination."""
        ...
