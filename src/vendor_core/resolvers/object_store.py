"""Resolution of artifacts published in cloud object stores.

Two conventions are supported:

* pointer: a small object (for example ``Linux_x64/LAST_CHANGE``) whose content
  names the directory holding the newest build;
* listing: every object in the bucket is scanned and the one whose name embeds
  the greatest version wins.

Both return the object's direct media URL together with the MD5 digest the
store publishes, so the download can be verified without a pinned hash.
"""

from __future__ import annotations

import logging
import posixpath

from vendor_core.descriptors import (
    ExpectedDigest,
    ObjectListingLocator,
    ObjectPointerLocator,
    Resolution,
)
from vendor_core.exceptions import ObjectStoreError, ResolutionError
from vendor_core.resolvers.context import ResolverContext
from vendor_core.resolvers.versions import select_latest
from vendor_core.storage.base import ObjectInfo
from vendor_core.utils.hash import DigestAlgorithm

logger = logging.getLogger(__name__)


def _digest(info: ObjectInfo) -> ExpectedDigest | None:
    if not info.md5_hex:
        return None
    return ExpectedDigest(DigestAlgorithm.MD5, info.md5_hex)


def resolve_object_pointer(locator: ObjectPointerLocator, ctx: ResolverContext) -> Resolution:
    store = ctx.store(locator.provider)
    context = {"bucket": locator.bucket, "pointer": locator.pointer}
    ctx.cancel.raise_if_cancelled(f"reading {locator.label()}")
    try:
        content = store.read_object(locator.bucket, locator.pointer)
    except ObjectStoreError as exc:
        raise ResolutionError(
            f"cannot read pointer object {locator.label()}: {exc.message}",
            code="pointer_unreadable",
            context=context,
        ) from exc
    segment = content.decode("utf-8", errors="replace").strip()
    if not segment:
        raise ResolutionError(
            f"pointer object {locator.label()} is empty",
            code="pointer_unreadable",
            context=context,
        )
    object_name = posixpath.join(locator.prefix, segment, locator.filename)
    logger.info("Pointer %s names build %s", locator.label(), segment)
    ctx.cancel.raise_if_cancelled(f"reading attributes of {object_name}")
    try:
        info = store.object_info(locator.bucket, object_name)
    except ObjectStoreError as exc:
        raise ResolutionError(
            f"cannot get attributes of {locator.provider}://{locator.bucket}/{object_name}: {exc.message}",
            code="object_metadata_unavailable",
            context={**context, "object": object_name},
        ) from exc
    return Resolution(url=info.media_url, digest=_digest(info))


def version_from_name(name: str, file_prefix: str, suffix: str) -> str | None:
    """Extract the version embedded in ``name``.

    ``3.8/selenium-server-standalone-3.8.1.jar`` with prefix
    ``selenium-server-standalone-`` and suffix ``.jar`` yields ``3.8.1``.
    """
    index = name.find(file_prefix)
    if index < 0 or not name.endswith(suffix):
        return None
    end = len(name) - len(suffix) if suffix else len(name)
    start = index + len(file_prefix)
    if end <= start:
        return None
    return name[start:end]


def resolve_object_listing(locator: ObjectListingLocator, ctx: ResolverContext) -> Resolution:
    store = ctx.store(locator.provider)
    ctx.cancel.raise_if_cancelled(f"listing {locator.label()}")
    try:
        candidates = [
            info
            for info in store.list_objects(locator.bucket, locator.list_prefix)
            if locator.file_prefix in info.name
        ]
    except ObjectStoreError as exc:
        raise ResolutionError(
            f"cannot list bucket {locator.bucket}: {exc.message}",
            code="object_listing_failed",
            context={"bucket": locator.bucket},
        ) from exc
    latest = select_latest(
        candidates,
        lambda info: version_from_name(info.name, locator.file_prefix, locator.suffix),
        describe=lambda info: f"object {info.name} in bucket {info.bucket}",
    )
    if latest is None:
        raise ResolutionError(
            f"no release found in bucket {locator.bucket} matching {locator.file_prefix!r}",
            code="no_release_found",
            context={"bucket": locator.bucket, "file_prefix": locator.file_prefix},
        )
    info, version = latest
    logger.info("Latest object in %s is %s (%s)", locator.bucket, info.name, version)
    return Resolution(url=info.media_url, digest=_digest(info))
