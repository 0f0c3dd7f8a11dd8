from __future__ import annotations

import base64
import binascii
import enum
import hashlib
import logging
from pathlib import Path

logger = logging.getLogger("vendor_core.utils")

CHUNK_SIZE = 1024 * 1024


class DigestAlgorithm(str, enum.Enum):
    """Content digests a descriptor may declare."""

    SHA256 = "sha256"
    MD5 = "md5"

    def new(self) -> "hashlib._Hash":
        """Return a fresh accumulator for this algorithm."""
        if self is DigestAlgorithm.MD5:
            # Integrity check against the store's published hash, not a security boundary
            return hashlib.md5(usedforsecurity=False)
        return hashlib.sha256()

    @staticmethod
    def hexdigest(hasher: "hashlib._Hash") -> str:
        return hasher.hexdigest().lower()

    @classmethod
    def parse(cls, value: str | None) -> DigestAlgorithm:
        """Map a manifest string to a member; ``None`` means sha256."""
        if value is None:
            return cls.SHA256
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            supported = ", ".join(member.value for member in cls)
            raise ValueError(f"unsupported digest algorithm {value!r} (supported: {supported})") from None


def file_digest(path: Path, algorithm: DigestAlgorithm = DigestAlgorithm.SHA256) -> str | None:
    """Compute the digest of a file. Returns None on error."""
    try:
        h = algorithm.new()
        with path.open("rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                h.update(chunk)
        return algorithm.hexdigest(h)
    except OSError:
        logger.warning("Failed to compute %s digest for %s", algorithm.value, path, exc_info=True)
        return None


def b64_to_hex(value: str) -> str:
    """Convert a base64 digest, as object stores publish them, to lowercase hex."""
    try:
        return binascii.hexlify(base64.b64decode(value, validate=True)).decode("ascii")
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid base64 digest {value!r}") from exc
