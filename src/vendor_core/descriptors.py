"""Artifact descriptors: static records of what to acquire and how to check it.

A descriptor carries no behavior. Locators say where the bytes come from,
``ExpectedDigest`` how to verify them, and ``RenamePair`` which produced path
should end up at a stable name after extraction.
"""

from __future__ import annotations

import dataclasses
from collections import Counter
from collections.abc import Iterable
from typing import Union

from vendor_core.exceptions import DescriptorError
from vendor_core.utils.hash import DigestAlgorithm
from vendor_core.utils.paths import basename_from_url, is_plain_filename

GCS = "gcs"
S3 = "s3"
PROVIDERS = (GCS, S3)


@dataclasses.dataclass(frozen=True)
class StaticLocator:
    url: str

    kind = "static"

    def label(self) -> str:
        return self.url


@dataclasses.dataclass(frozen=True)
class GitHubReleaseLocator:
    """Latest tagged release of ``owner/repo``; first asset URL containing ``filter``."""

    owner: str
    repo: str
    filter: str

    kind = "github_release"

    def label(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclasses.dataclass(frozen=True)
class ObjectPointerLocator:
    """``prefix/<content of pointer>/filename`` in ``bucket``."""

    bucket: str
    pointer: str
    prefix: str
    filename: str
    provider: str = GCS

    kind = "object_pointer"

    def label(self) -> str:
        return f"{self.provider}://{self.bucket}/{self.pointer}"


@dataclasses.dataclass(frozen=True)
class ObjectListingLocator:
    """Newest object whose name is ``...<file_prefix><version><suffix>``."""

    bucket: str
    file_prefix: str
    suffix: str
    provider: str = GCS
    list_prefix: str = ""

    kind = "object_listing"

    def label(self) -> str:
        return f"{self.provider}://{self.bucket}/{self.list_prefix}*{self.file_prefix}*{self.suffix}"


Locator = Union[StaticLocator, GitHubReleaseLocator, ObjectPointerLocator, ObjectListingLocator]


@dataclasses.dataclass(frozen=True)
class ExpectedDigest:
    algorithm: DigestAlgorithm
    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", self.value.strip().lower())


@dataclasses.dataclass(frozen=True)
class RenamePair:
    source: str
    destination: str

    @classmethod
    def from_value(cls, value: Iterable[str]) -> RenamePair:
        items = [str(item) for item in value]
        if len(items) != 2 or not all(items):
            raise DescriptorError(
                f"rename must have exactly two non-empty elements, got {items!r}",
                context={"rename": items},
            )
        return cls(items[0], items[1])


@dataclasses.dataclass(frozen=True)
class Resolution:
    """Concrete download location produced by a resolver; never persisted."""

    url: str
    digest: ExpectedDigest | None = None


@dataclasses.dataclass(frozen=True)
class ArtifactDescriptor:
    locator: Locator
    target: str | None = None
    digest: ExpectedDigest | None = None
    rename: RenamePair | None = None
    browser: bool = False
    id: str = ""

    def __post_init__(self) -> None:
        if self.target is None and isinstance(self.locator, (StaticLocator, ObjectPointerLocator)):
            object.__setattr__(self, "target", self._default_target())
        if self.target is not None and not is_plain_filename(self.target):
            raise DescriptorError(
                f"target {self.target!r} must be a plain file name",
                code="invalid_target",
                context={"target": self.target},
            )
        if not self.id:
            object.__setattr__(self, "id", self.target or self.locator.label())

    def _default_target(self) -> str | None:
        if isinstance(self.locator, StaticLocator):
            return basename_from_url(self.locator.url) or None
        return self.locator.filename

    @property
    def needs_resolution(self) -> bool:
        return not isinstance(self.locator, StaticLocator)

    def resolved(self, resolution: Resolution) -> ArtifactDescriptor:
        """Return a static copy pointing at ``resolution``.

        A digest declared on the descriptor wins over one reported by the store.
        """
        return dataclasses.replace(
            self,
            locator=StaticLocator(resolution.url),
            target=self.target or basename_from_url(resolution.url),
            digest=self.digest or resolution.digest,
        )


def check_unique_targets(descriptors: Iterable[ArtifactDescriptor]) -> None:
    """Reject a descriptor set in which two entries write the same file."""
    counts = Counter(d.target for d in descriptors if d.target)
    duplicates = sorted(name for name, count in counts.items() if count > 1)
    if duplicates:
        raise DescriptorError(
            f"duplicate target(s) in descriptor set: {', '.join(duplicates)}",
            code="duplicate_target",
            context={"targets": duplicates},
        )


def check_unique_ids(descriptors: Iterable[ArtifactDescriptor]) -> None:
    """Reject a descriptor set in which two entries share an id.

    Ids default to the target or the locator label, so two entries for the
    same release repository collide unless one of them sets ``id``.
    """
    counts = Counter(d.id for d in descriptors)
    duplicates = sorted(name for name, count in counts.items() if count > 1)
    if duplicates:
        raise DescriptorError(
            f"duplicate artifact id(s) in descriptor set: {', '.join(duplicates)}",
            code="duplicate_id",
            context={"ids": duplicates},
        )
