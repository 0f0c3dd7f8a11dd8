"""Locator resolvers: turn "latest of X" queries into concrete download URLs."""

from vendor_core.resolvers.context import ResolverContext
from vendor_core.resolvers.registry import RESOLVERS, resolve
from vendor_core.resolvers.versions import parse_tolerant, select_latest

__all__ = ["ResolverContext", "RESOLVERS", "resolve", "parse_tolerant", "select_latest"]
