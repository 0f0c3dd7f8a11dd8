from __future__ import annotations

import dataclasses
import threading

import requests

from vendor_core.cancellation import CancellationToken
from vendor_core.descriptors import GCS, S3
from vendor_core.network_utils import RetryConfig
from vendor_core.storage.base import ObjectStoreClient
from vendor_core.storage.gcs import GcsClient

GITHUB_API_ROOT = "https://api.github.com"


@dataclasses.dataclass
class ResolverContext:
    """Shared collaborators for every resolver call in one run."""

    session: requests.Session
    retry: RetryConfig = dataclasses.field(default_factory=RetryConfig)
    timeout: tuple[float, float] = (15, 60)
    user_agent: str = "vendor-init"
    github_api: str = GITHUB_API_ROOT
    github_token: str | None = None
    cancel: CancellationToken = dataclasses.field(default_factory=CancellationToken)
    stores: dict[str, ObjectStoreClient] = dataclasses.field(default_factory=dict)
    _lock: threading.Lock = dataclasses.field(default_factory=threading.Lock, repr=False)

    def store(self, provider: str) -> ObjectStoreClient:
        """Return the client for ``provider``, creating it on first use."""
        with self._lock:
            client = self.stores.get(provider)
            if client is None:
                if provider == GCS:
                    client = GcsClient(
                        self.session, retry=self.retry, timeout=self.timeout, cancel=self.cancel
                    )
                elif provider == S3:
                    from vendor_core.storage.s3 import S3Client

                    client = S3Client()
                else:
                    raise ValueError(f"unknown object store provider {provider!r}")
                self.stores[provider] = client
            return client
