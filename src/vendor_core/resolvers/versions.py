"""Tolerant semantic-version parsing and "latest" selection."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TypeVar

from packaging.version import InvalidVersion, Version

T = TypeVar("T")

logger = logging.getLogger(__name__)


def parse_tolerant(text: str | None) -> Version | None:
    """Parse a tag or file-name fragment as a version, or return None.

    Accepts a leading ``v``, missing minor/patch components (``2.26``) and
    pre-release suffixes (``1.3.0-rc1``).
    """
    if text is None:
        return None
    candidate = text.strip()
    if candidate[:1] in {"v", "V"}:
        candidate = candidate[1:]
    if not candidate or not candidate[0].isdigit():
        return None
    try:
        return Version(candidate)
    except InvalidVersion:
        return None


def select_latest(
    items: Iterable[T],
    version_text: Callable[[T], str | None],
    *,
    describe: Callable[[T], str] = str,
) -> tuple[T, Version] | None:
    """Return the item with the strictly greatest version, keeping the first on ties.

    Items whose version text does not parse are logged and skipped.
    """
    latest: tuple[T, Version] | None = None
    for item in items:
        version = parse_tolerant(version_text(item))
        if version is None:
            logger.debug("Skipping %s: not a parseable version", describe(item))
            continue
        if latest is None or version > latest[1]:
            latest = (item, version)
    return latest
