"""Latest-release resolution against the GitHub REST API.

All releases of a repository are listed (following ``Link`` pagination), each
``tag_name`` is parsed as a tolerant semantic version, and the strictly
greatest one wins. Tags that do not parse are skipped.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

import requests

from vendor_core.__version__ import __version__ as VERSION
from vendor_core.descriptors import GitHubReleaseLocator, Resolution
from vendor_core.exceptions import ResolutionError
from vendor_core.network_utils import with_retries
from vendor_core.resolvers.context import ResolverContext
from vendor_core.resolvers.versions import select_latest

logger = logging.getLogger(__name__)

PER_PAGE = 100


def _headers(ctx: ResolverContext) -> dict[str, str]:
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": f"{ctx.user_agent}/{VERSION}",
    }
    if ctx.github_token:
        headers["Authorization"] = f"Bearer {ctx.github_token}"
    return headers


def list_releases(locator: GitHubReleaseLocator, ctx: ResolverContext) -> Iterator[dict[str, Any]]:
    """Yield every release of ``owner/repo``, page by page."""
    url: str | None = f"{ctx.github_api.rstrip('/')}/repos/{locator.owner}/{locator.repo}/releases"
    params: dict[str, Any] | None = {"per_page": PER_PAGE}
    headers = _headers(ctx)
    what = f"listing releases of {locator.label()}"
    while url:
        page_url, page_params = url, params

        def _fetch() -> requests.Response:
            resp = ctx.session.get(page_url, params=page_params, headers=headers, timeout=ctx.timeout)
            resp.raise_for_status()
            return resp

        try:
            # GitHub answers 403 when the anonymous rate limit is exhausted
            resp = with_retries(_fetch, ctx.retry, cancel=ctx.cancel, what=what, rate_limit_403=True)
            releases = resp.json()
        except requests.RequestException as exc:
            raise ResolutionError(
                f"cannot list releases of {locator.label()}: {exc}",
                code="release_listing_failed",
                context={"owner": locator.owner, "repo": locator.repo},
            ) from exc
        except json.JSONDecodeError as exc:
            raise ResolutionError(
                f"invalid JSON from GitHub API for {locator.label()}: {exc}",
                code="release_listing_failed",
                context={"owner": locator.owner, "repo": locator.repo},
            ) from exc
        if not isinstance(releases, list):
            raise ResolutionError(
                f"unexpected release listing payload for {locator.label()}",
                code="release_listing_failed",
                context={"owner": locator.owner, "repo": locator.repo},
            )
        yield from releases
        # The next link already carries the query string
        url = (resp.links or {}).get("next", {}).get("url")
        params = None


def pick_asset_url(release: dict[str, Any], filter_text: str) -> str | None:
    """Return the first asset download URL containing ``filter_text``."""
    for asset in release.get("assets", []) or []:
        download_url = asset.get("browser_download_url")
        if not download_url:
            continue
        if filter_text in download_url:
            return download_url
    return None


def resolve_github_release(locator: GitHubReleaseLocator, ctx: ResolverContext) -> Resolution:
    latest = select_latest(
        list_releases(locator, ctx),
        lambda release: release.get("tag_name"),
        describe=lambda release: f"{locator.label()} tag {release.get('tag_name')!r}",
    )
    if latest is None:
        raise ResolutionError(
            f"no release with a parseable version tag found for {locator.label()}",
            code="no_release_found",
            context={"owner": locator.owner, "repo": locator.repo},
        )
    release, version = latest
    logger.info("Latest release of %s is %s", locator.label(), release.get("tag_name"))
    url = pick_asset_url(release, locator.filter)
    if url is None:
        raise ResolutionError(
            f"release {release.get('tag_name')} of {locator.label()} has no asset containing {locator.filter!r}",
            code="no_matching_asset",
            context={
                "owner": locator.owner,
                "repo": locator.repo,
                "tag": release.get("tag_name"),
                "filter": locator.filter,
            },
        )
    return Resolution(url=url)
