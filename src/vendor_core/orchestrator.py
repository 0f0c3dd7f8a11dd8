"""Run orchestration: build the descriptor set, fan out, join, report.

Pointer-style descriptors are resolved sequentially before any task starts, so
the set handed to the workers is immutable. Each remaining descriptor gets its
own task (resolve, fetch, post-process). The first fatal error cancels the
shared token; the join raises one :class:`AcquisitionFailed` carrying every
fatal error in descriptor order.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import requests

from vendor_core.__version__ import __version__ as VERSION
from vendor_core.cancellation import CancellationToken
from vendor_core.config import Settings
from vendor_core.descriptors import (
    ArtifactDescriptor,
    Locator,
    ObjectPointerLocator,
    Resolution,
    check_unique_ids,
    check_unique_targets,
)
from vendor_core.download import fetch
from vendor_core.exceptions import AcquisitionFailed, CancelledError, DescriptorError, VendorError
from vendor_core.logging_config import LogContext
from vendor_core.postprocess import process
from vendor_core.resolvers import ResolverContext, resolve
from vendor_core.storage.base import ObjectStoreClient
from vendor_core.utils.subprocess import CommandRunner, run_cmd

logger = logging.getLogger(__name__)

STATUS_DOWNLOADED = "downloaded"
STATUS_CACHED = "cached"
STATUS_SKIPPED = "skipped"


@dataclasses.dataclass(frozen=True)
class ArtifactReport:
    id: str
    status: str
    target: str | None = None
    path: Path | None = None
    url: str | None = None
    digest: str | None = None
    algorithm: str | None = None
    extracted: bool = False
    renamed: bool = False


@dataclasses.dataclass(frozen=True)
class RunSummary:
    reports: tuple[ArtifactReport, ...]
    duration_ms: float = 0.0

    @property
    def counts(self) -> dict[str, int]:
        return {"total": len(self.reports), **Counter(report.status for report in self.reports)}

    def by_id(self) -> dict[str, ArtifactReport]:
        return {report.id: report for report in self.reports}


class TargetRegistry:
    """Claims local file names so no two tasks write the same target."""

    def __init__(self) -> None:
        self._owners: dict[str, str] = {}
        self._lock = threading.Lock()

    def claim(self, target: str, artifact_id: str) -> None:
        with self._lock:
            owner = self._owners.setdefault(target, artifact_id)
        if owner != artifact_id:
            raise DescriptorError(
                f"target {target!r} of {artifact_id} is already claimed by {owner}",
                code="duplicate_target",
                context={"targets": [target], "owner": owner},
            )


def select_descriptors(
    descriptors: Iterable[ArtifactDescriptor], download_browsers: bool
) -> tuple[tuple[ArtifactDescriptor, ...], tuple[ArtifactDescriptor, ...]]:
    """Split ``descriptors`` into (kept, dropped-by-browser-toggle)."""
    kept: list[ArtifactDescriptor] = []
    dropped: list[ArtifactDescriptor] = []
    for descriptor in descriptors:
        if descriptor.browser and not download_browsers:
            logger.info("Skipping browser-only artifact %s", descriptor.id)
            dropped.append(descriptor)
        else:
            kept.append(descriptor)
    return tuple(kept), tuple(dropped)


def build_descriptor_set(
    descriptors: Iterable[ArtifactDescriptor],
    download_browsers: bool,
    resolver: Callable[[Locator], Resolution],
) -> tuple[ArtifactDescriptor, ...]:
    """Produce the immutable descriptor set handed to the concurrent phase.

    Browser-only descriptors are dropped when ``download_browsers`` is off.
    Object-pointer descriptors are resolved here, in order, into static
    descriptors carrying the resolved URL and the store's digest.

    Raises:
        ResolutionError: A pointer could not be resolved.
        DescriptorError: Two descriptors share an id or declare the same target.
    """
    descriptors = tuple(descriptors)
    check_unique_ids(descriptors)
    kept, _ = select_descriptors(descriptors, download_browsers)
    built: list[ArtifactDescriptor] = []
    for descriptor in kept:
        if isinstance(descriptor.locator, ObjectPointerLocator):
            with LogContext(artifact=descriptor.id):
                try:
                    resolution = resolver(descriptor.locator)
                except VendorError as exc:
                    exc.context.setdefault("artifact", descriptor.id)
                    raise
                descriptor = descriptor.resolved(resolution)
                logger.info("Resolved %s to %s", descriptor.id, resolution.url)
        built.append(descriptor)
    check_unique_targets(built)
    return tuple(built)


def _acquire_one(
    descriptor: ArtifactDescriptor,
    *,
    ctx: ResolverContext,
    registry: TargetRegistry,
    workdir: Path,
    runner: CommandRunner,
) -> ArtifactReport:
    cancel = ctx.cancel
    with LogContext(artifact=descriptor.id):
        try:
            cancel.raise_if_cancelled(f"starting {descriptor.id}")
            if descriptor.needs_resolution:
                resolution = resolve(descriptor.locator, ctx)
                descriptor = descriptor.resolved(resolution)
                logger.info("Resolved %s to %s", descriptor.id, resolution.url)
            if descriptor.target is None:
                raise DescriptorError(
                    f"no file name can be derived for {descriptor.id}; set a target",
                    code="invalid_target",
                    context={"url": getattr(descriptor.locator, "url", None)},
                )
            registry.claim(descriptor.target, descriptor.id)
            url = descriptor.locator.url  # type: ignore[union-attr]
            with LogContext(target=descriptor.target):
                outcome = fetch(
                    url,
                    descriptor.target,
                    descriptor.digest,
                    session=ctx.session,
                    workdir=workdir,
                    cancel=cancel,
                    retry=ctx.retry,
                    timeout=ctx.timeout,
                )
                post = process(
                    descriptor.target,
                    descriptor.rename,
                    workdir=workdir,
                    runner=runner,
                    cancel=cancel,
                )
        except CancelledError:
            logger.info("Abandoned %s after cancellation", descriptor.id)
            raise
        except VendorError as exc:
            cancel.cancel(f"{descriptor.id}: {exc.code}")
            logger.error("Acquisition of %s failed: %s", descriptor.id, exc.message, extra=exc.as_log_fields())
            raise
        except Exception:
            cancel.cancel(f"{descriptor.id}: unexpected error")
            logger.exception("Acquisition of %s failed unexpectedly", descriptor.id)
            raise
    return ArtifactReport(
        id=descriptor.id,
        status=STATUS_CACHED if outcome.skipped else STATUS_DOWNLOADED,
        target=descriptor.target,
        path=outcome.path,
        url=url,
        digest=outcome.digest,
        algorithm=outcome.algorithm.value,
        extracted=post.extracted,
        renamed=post.renamed,
    )


def run(
    descriptors: Sequence[ArtifactDescriptor],
    *,
    ctx: ResolverContext,
    workdir: Path,
    runner: CommandRunner = run_cmd,
) -> tuple[ArtifactReport, ...]:
    """Acquire every descriptor concurrently and wait for all of them.

    Tasks unwound by cancellation are reported only when no task failed on
    its own, which is the case when the token was cancelled by the caller.

    Raises:
        DescriptorError: Two descriptors share an id or declare the same target.
        AcquisitionFailed: At least one task hit a fatal error or was cancelled.
    """
    if not descriptors:
        return ()
    check_unique_ids(descriptors)
    registry = TargetRegistry()
    for descriptor in descriptors:
        if descriptor.target:
            registry.claim(descriptor.target, descriptor.id)

    errors: list[tuple[str, VendorError]] = []
    cancelled: list[tuple[str, VendorError]] = []
    reports: list[ArtifactReport] = []
    with ThreadPoolExecutor(max_workers=len(descriptors), thread_name_prefix="vendor") as ex:
        futures = [
            ex.submit(_acquire_one, d, ctx=ctx, registry=registry, workdir=workdir, runner=runner)
            for d in descriptors
        ]
        for descriptor, fut in zip(descriptors, futures):
            try:
                reports.append(fut.result())
            except CancelledError as exc:
                cancelled.append((descriptor.id, exc))
            except VendorError as exc:
                errors.append((descriptor.id, exc))
            except Exception as exc:
                errors.append((descriptor.id, VendorError(repr(exc), code="unexpected_error")))
    if errors:
        raise AcquisitionFailed(errors)
    if cancelled:
        logger.error("Run cancelled: %s", ctx.cancel.reason or "no reason given")
        raise AcquisitionFailed(cancelled)
    return tuple(reports)


def _new_session(settings: Settings) -> requests.Session:
    session = requests.Session()
    session.headers["User-Agent"] = f"{settings.user_agent}/{VERSION}"
    return session


def run_acquisition(
    descriptors: Iterable[ArtifactDescriptor],
    settings: Settings,
    *,
    session: requests.Session | None = None,
    runner: CommandRunner = run_cmd,
    stores: dict[str, ObjectStoreClient] | None = None,
    cancel: CancellationToken | None = None,
) -> RunSummary:
    """Acquire ``descriptors`` into ``settings.workdir``.

    Raises:
        AcquisitionFailed: Any resolution, transport, integrity or extraction
            failure, or a duplicate target.
    """
    start = time.monotonic()
    ctx = ResolverContext(
        session=session or _new_session(settings),
        retry=settings.retry,
        timeout=settings.timeout,
        user_agent=settings.user_agent,
        github_token=settings.github_token,
        cancel=cancel or CancellationToken(),
        stores=dict(stores or {}),
    )
    all_descriptors = tuple(descriptors)
    dropped = tuple(d for d in all_descriptors if d.browser and not settings.download_browsers)
    try:
        built = build_descriptor_set(
            all_descriptors,
            settings.download_browsers,
            lambda locator: resolve(locator, ctx),
        )
    except VendorError as exc:
        raise AcquisitionFailed([(exc.context.get("artifact", "descriptor-set"), exc)]) from exc

    logger.info(
        "Acquiring %d artifact(s) into %s (%d skipped)",
        len(built),
        settings.workdir,
        len(dropped),
    )
    reports = run(built, ctx=ctx, workdir=settings.workdir, runner=runner)
    skipped = tuple(ArtifactReport(id=d.id, status=STATUS_SKIPPED, target=d.target) for d in dropped)
    order = {d.id: index for index, d in enumerate(all_descriptors)}
    ordered = tuple(sorted(reports + skipped, key=lambda report: order.get(report.id, len(order))))
    duration_ms = (time.monotonic() - start) * 1000
    summary = RunSummary(reports=ordered, duration_ms=duration_ms)
    with LogContext(duration_ms=round(duration_ms), **_count_fields(summary)):
        logger.info("Acquisition finished.")
    return summary


def _count_fields(summary: RunSummary) -> dict[str, Any]:
    return {f"count_{key}": value for key, value in summary.counts.items()}

