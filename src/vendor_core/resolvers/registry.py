"""Dispatch from locator kind to resolver function."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from vendor_core.descriptors import Locator, Resolution
from vendor_core.exceptions import ResolutionError
from vendor_core.resolvers.context import ResolverContext
from vendor_core.resolvers.github_release import resolve_github_release
from vendor_core.resolvers.object_store import resolve_object_listing, resolve_object_pointer
from vendor_core.resolvers.static import resolve_static
from vendor_core.utils.paths import is_absolute_http_url

Resolver = Callable[[Any, ResolverContext], Resolution]

RESOLVERS: dict[str, Resolver] = {
    "static": resolve_static,
    "github_release": resolve_github_release,
    "object_pointer": resolve_object_pointer,
    "object_listing": resolve_object_listing,
}


def resolve(locator: Locator, ctx: ResolverContext) -> Resolution:
    """Turn ``locator`` into an absolute download URL.

    Raises:
        ResolutionError: If the query cannot be answered or yields a
            non-absolute URL.
    """
    resolver = RESOLVERS.get(locator.kind)
    if resolver is None:
        raise ResolutionError(f"no resolver for locator kind {locator.kind!r}", code="unknown_locator")
    resolution = resolver(locator, ctx)
    if not is_absolute_http_url(resolution.url):
        raise ResolutionError(
            f"{locator.label()} resolved to non-absolute URL {resolution.url!r}",
            code="invalid_resolved_url",
            context={"url": resolution.url},
        )
    return resolution
