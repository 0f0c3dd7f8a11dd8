"""Object-store clients used by the pointer and listing resolvers."""

from vendor_core.storage.base import ObjectInfo, ObjectStoreClient
from vendor_core.storage.gcs import GcsClient

__all__ = ["ObjectInfo", "ObjectStoreClient", "GcsClient"]
