"""Format-aware post-processing of downloaded artifacts.

Archives are unpacked in place with the system ``unzip``/``tar`` tools; the
optional rename then moves a produced path to a stable, versioned name. Both
steps are safe to repeat: extraction overwrites and the rename clears its
destination first.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import subprocess
from pathlib import Path
from typing import Protocol

from vendor_core.cancellation import CancellationToken
from vendor_core.descriptors import RenamePair
from vendor_core.exceptions import ExtractionError, RenameError
from vendor_core.utils.paths import remove_path
from vendor_core.utils.subprocess import CommandRunner, run_cmd

logger = logging.getLogger(__name__)


class ArchiveKind(enum.Enum):
    ZIP = "zip"
    TAR_GZ = "tar.gz"
    TAR_BZ2 = "tar.bz2"
    NONE = "none"


def archive_kind(filename: str) -> ArchiveKind:
    """Classify ``filename`` by its final extension.

    ``.gz`` covers ``.tar.gz`` and ``.tgz`` is treated the same way.
    """
    lowered = filename.lower()
    if lowered.endswith(".zip"):
        return ArchiveKind.ZIP
    if lowered.endswith((".gz", ".tgz")):
        return ArchiveKind.TAR_GZ
    if lowered.endswith(".bz2"):
        return ArchiveKind.TAR_BZ2
    return ArchiveKind.NONE


class Extractor(Protocol):
    def command(self, archive: str) -> list[str]:
        ...


@dataclasses.dataclass(frozen=True)
class ToolExtractor:
    """Extractor backed by an external tool invoked as ``argv + [archive]``."""

    argv: tuple[str, ...]

    def command(self, archive: str) -> list[str]:
        return [*self.argv, archive]


EXTRACTORS: dict[ArchiveKind, Extractor] = {
    ArchiveKind.ZIP: ToolExtractor(("unzip", "-o")),
    ArchiveKind.TAR_GZ: ToolExtractor(("tar", "-xzf")),
    ArchiveKind.TAR_BZ2: ToolExtractor(("tar", "-xjf")),
}


@dataclasses.dataclass(frozen=True)
class PostprocessOutcome:
    kind: ArchiveKind
    extracted: bool = False
    renamed: bool = False
    output: str = ""


def extract(target: str, *, workdir: Path, runner: CommandRunner = run_cmd) -> tuple[ArchiveKind, str]:
    """Unpack ``workdir/target`` if it is an archive.

    Returns:
        The detected kind and the tool output (empty for non-archives).

    Raises:
        ExtractionError: The tool is missing or exited with a non-zero status.
    """
    kind = archive_kind(target)
    extractor = EXTRACTORS.get(kind)
    if extractor is None:
        logger.debug("%s is not an archive, nothing to extract", target)
        return kind, ""
    cmd = extractor.command(target)
    logger.info("Extracting %s: %s", target, " ".join(cmd))
    try:
        return kind, runner(cmd, workdir)
    except subprocess.CalledProcessError as exc:
        output = exc.output.decode("utf-8", errors="ignore") if isinstance(exc.output, bytes) else (exc.output or "")
        raise ExtractionError(
            f"extraction of {target} failed with exit status {exc.returncode}",
            context={"target": target, "command": cmd, "output": output.strip()},
        ) from exc
    except OSError as exc:
        raise ExtractionError(
            f"cannot run {cmd[0]} to extract {target}: {exc}",
            context={"target": target, "command": cmd},
        ) from exc


def rename_path(rename: RenamePair, *, workdir: Path) -> None:
    source = workdir / rename.source
    destination = workdir / rename.destination
    try:
        remove_path(destination)
    except OSError:
        logger.debug("Could not clear %s before rename", destination, exc_info=True)
    try:
        source.rename(destination)
    except OSError as exc:
        raise RenameError(
            f"cannot rename {rename.source} to {rename.destination}: {exc}",
            context={"source": rename.source, "destination": rename.destination},
        ) from exc


def apply_rename(rename: RenamePair, *, workdir: Path) -> bool:
    """Move ``rename.source`` to ``rename.destination``; failures only warn."""
    try:
        rename_path(rename, workdir=workdir)
    except RenameError as exc:
        logger.warning("%s", exc.message, extra=exc.as_log_fields())
        return False
    logger.info("Renamed %s to %s", rename.source, rename.destination)
    return True


def process(
    target: str,
    rename: RenamePair | None = None,
    *,
    workdir: Path,
    runner: CommandRunner = run_cmd,
    cancel: CancellationToken | None = None,
) -> PostprocessOutcome:
    if cancel is not None:
        cancel.raise_if_cancelled(f"extracting {target}")
    kind, output = extract(target, workdir=workdir, runner=runner)
    renamed = apply_rename(rename, workdir=workdir) if rename is not None else False
    return PostprocessOutcome(
        kind=kind,
        extracted=kind is not ArchiveKind.NONE,
        renamed=renamed,
        output=output,
    )
