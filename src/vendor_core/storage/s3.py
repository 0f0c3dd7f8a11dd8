"""Anonymous access to public S3 buckets through boto3."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

import boto3
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from vendor_core.exceptions import ObjectStoreError
from vendor_core.storage.base import ObjectInfo

logger = logging.getLogger(__name__)

_MD5_ETAG = re.compile(r"^[0-9a-f]{32}$")


def _md5_from_etag(etag: str | None) -> str | None:
    # Multipart uploads carry "<hash>-<parts>" ETags, which are not content MD5s
    value = (etag or "").strip('"').lower()
    return value if _MD5_ETAG.match(value) else None


class S3Client:
    def __init__(self, client: Any | None = None, *, region: str | None = None) -> None:
        self.client = client or boto3.client(
            "s3", region_name=region, config=Config(signature_version=UNSIGNED)
        )

    @staticmethod
    def media_url(bucket: str, key: str) -> str:
        return f"https://{bucket}.s3.amazonaws.com/{quote(key)}"

    def read_object(self, bucket: str, name: str) -> bytes:
        try:
            resp = self.client.get_object(Bucket=bucket, Key=name)
            return resp["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(
                f"cannot read s3://{bucket}/{name}: {exc}",
                context={"bucket": bucket, "object": name},
            ) from exc

    def object_info(self, bucket: str, name: str) -> ObjectInfo:
        try:
            resp = self.client.head_object(Bucket=bucket, Key=name)
        except (BotoCoreError, ClientError) as exc:
            raise ObjectStoreError(
                f"cannot get attributes of s3://{bucket}/{name}: {exc}",
                context={"bucket": bucket, "object": name},
            ) from exc
        return ObjectInfo(
            bucket=bucket,
            name=name,
            media_url=self.media_url(bucket, name),
            md5_hex=_md5_from_etag(resp.get("ETag")),
            size=resp.get("ContentLength"),
        )

    def list_objects(self, bucket: str, prefix: str = "") -> Iterator[ObjectInfo]:
        token = None
        while True:
            kwargs: dict[str, Any] = {"Bucket": bucket, "Prefix": prefix, "MaxKeys": 1000}
            if token:
                kwargs["ContinuationToken"] = token
            try:
                resp = self.client.list_objects_v2(**kwargs)
            except (BotoCoreError, ClientError) as exc:
                raise ObjectStoreError(
                    f"cannot list s3://{bucket}/{prefix}: {exc}",
                    context={"bucket": bucket, "prefix": prefix},
                ) from exc
            for obj in resp.get("Contents", []):
                key = obj.get("Key", "")
                yield ObjectInfo(
                    bucket=bucket,
                    name=key,
                    media_url=self.media_url(bucket, key),
                    md5_hex=_md5_from_etag(obj.get("ETag")),
                    size=obj.get("Size"),
                )
            if not resp.get("IsTruncated"):
                break
            token = resp.get("NextContinuationToken")
