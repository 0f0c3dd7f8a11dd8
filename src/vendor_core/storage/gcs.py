"""Google Cloud Storage access through the public JSON API.

Buckets that host browser snapshots and server releases are world-readable,
so plain HTTPS requests are enough; no credentials are sent.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

import requests

from vendor_core.exceptions import ObjectStoreError
from vendor_core.cancellation import CancellationToken
from vendor_core.network_utils import RetryConfig, with_retries
from vendor_core.storage.base import ObjectInfo
from vendor_core.utils.hash import b64_to_hex

logger = logging.getLogger(__name__)

GCS_API_ROOT = "https://storage.googleapis.com/storage/v1"
LIST_FIELDS = "items(name,bucket,mediaLink,md5Hash,size),nextPageToken"


class GcsClient:
    def __init__(
        self,
        session: requests.Session,
        *,
        retry: RetryConfig | None = None,
        timeout: tuple[float, float] = (15, 60),
        api_root: str = GCS_API_ROOT,
        cancel: CancellationToken | None = None,
    ) -> None:
        self.session = session
        self.cancel = cancel
        self.retry = retry or RetryConfig()
        self.timeout = timeout
        self.api_root = api_root.rstrip("/")

    def _object_url(self, bucket: str, name: str) -> str:
        return f"{self.api_root}/b/{quote(bucket, safe='')}/o/{quote(name, safe='')}"

    def _get(self, url: str, params: dict[str, Any] | None, what: str) -> requests.Response:
        def _fetch() -> requests.Response:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp

        try:
            return with_retries(_fetch, self.retry, cancel=self.cancel, what=what)
        except requests.RequestException as exc:
            raise ObjectStoreError(
                f"{what}: {exc}",
                context={"url": url},
            ) from exc

    def read_object(self, bucket: str, name: str) -> bytes:
        resp = self._get(
            self._object_url(bucket, name),
            {"alt": "media"},
            f"cannot read gs://{bucket}/{name}",
        )
        return resp.content

    def object_info(self, bucket: str, name: str) -> ObjectInfo:
        resp = self._get(
            self._object_url(bucket, name),
            None,
            f"cannot get attributes of gs://{bucket}/{name}",
        )
        return self._to_info(bucket, self._json(resp, bucket))

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[ObjectInfo]:
        url = f"{self.api_root}/b/{quote(bucket, safe='')}/o"
        page_token: str | None = None
        while True:
            params: dict[str, Any] = {"fields": LIST_FIELDS, "maxResults": 1000}
            if prefix:
                params["prefix"] = prefix
            if page_token:
                params["pageToken"] = page_token
            payload = self._json(self._get(url, params, f"cannot list gs://{bucket}"), bucket)
            for item in payload.get("items", []) or []:
                yield self._to_info(bucket, item)
            page_token = payload.get("nextPageToken")
            if not page_token:
                break

    @staticmethod
    def _json(resp: requests.Response, bucket: str) -> dict[str, Any]:
        try:
            return resp.json()
        except ValueError as exc:
            raise ObjectStoreError(
                f"invalid JSON from storage API for bucket {bucket}: {exc}",
                context={"bucket": bucket},
            ) from exc

    @staticmethod
    def _to_info(bucket: str, item: dict[str, Any]) -> ObjectInfo:
        name = item.get("name") or ""
        media_url = item.get("mediaLink")
        if not media_url:
            raise ObjectStoreError(
                f"object gs://{bucket}/{name} has no media link",
                context={"bucket": bucket, "object": name},
            )
        md5_hex = None
        # Composite objects only publish crc32c
        if item.get("md5Hash"):
            try:
                md5_hex = b64_to_hex(item["md5Hash"])
            except ValueError as exc:
                raise ObjectStoreError(
                    f"object gs://{bucket}/{name} has a malformed md5Hash: {exc}",
                    context={"bucket": bucket, "object": name},
                ) from exc
        size = item.get("size")
        return ObjectInfo(
            bucket=item.get("bucket") or bucket,
            name=name,
            media_url=media_url,
            md5_hex=md5_hex,
            size=int(size) if size is not None else None,
        )
