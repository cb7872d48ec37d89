"""Blocking execution of external tools (``protoc``, formatters)."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from clientgen.errors import ToolchainError

logger = logging.getLogger(__name__)


def run_external_command(command: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
    """Run ``command`` to completion, capturing its output.

    There is no retry; the first failure is reported.

    Args:
        command: Program and arguments.
        cwd: Working directory for the command.

    Returns:
        The completed process.

    Raises:
        ToolchainError: If the program cannot be started or exits with a
            non-zero status. The error carries the captured stderr verbatim.
    """
    logger.debug(f"Running {' '.join(command)}")
    try:
        result = subprocess.run(command, cwd=cwd, capture_output=True, text=True, check=False)  # noqa: S603
    except OSError as e:
        raise ToolchainError(command, 127, "", str(e)) from e
    if result.returncode != 0:
        raise ToolchainError(command, result.returncode, result.stdout, result.stderr)
    return result


def is_available(program: str) -> bool:
    """Return True when ``program`` is found on ``PATH``."""
    return shutil.which(program) is not None
