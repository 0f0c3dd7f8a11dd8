from __future__ import annotations

from vendor_core.descriptors import Resolution, StaticLocator
from vendor_core.resolvers.context import ResolverContext


def resolve_static(locator: StaticLocator, ctx: ResolverContext) -> Resolution:
    return Resolution(url=locator.url)
