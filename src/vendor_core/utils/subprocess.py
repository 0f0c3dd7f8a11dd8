"""Subprocess execution utilities.

Extraction tools (``unzip``, ``tar``) are invoked through :func:`run_cmd` so
tests can substitute a fake runner.
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from pathlib import Path

CommandRunner = Callable[[list[str], Path | None], str]


def run_cmd(cmd: list[str], cwd: Path | None = None) -> str:
    """Run a command and return its combined stdout/stderr output.

    Args:
        cmd: Command and arguments as a list of strings.
        cwd: Optional working directory for the command.

    Returns:
        The output of the command decoded as UTF-8.

    Raises:
        subprocess.CalledProcessError: If the command exits with non-zero status.
        FileNotFoundError: If the executable is not installed.
    """
    p = subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )
    return p.stdout.decode("utf-8", errors="ignore")
