"""Runs the external static-sitemap generator as a subprocess.

The command comes from ``settings.sitemap_generate_command`` and is split
with ``shlex``; no shell is involved.  There is no timeout or cancellation:
a started run is awaited until the process exits.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass
from typing import Optional

from app.core.config import settings
from app.core.exceptions import RegenerationFailedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegenerationResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def failed(self) -> bool:
        """A run fails on a nonzero exit or any diagnostic output."""
        return self.returncode != 0 or bool(self.stderr)


async def run_generator(
    command: Optional[str] = None,
    cwd: Optional[str] = None,
) -> RegenerationResult:
    """Start the generator, wait for it and capture its output.

    Raises :class:`RegenerationFailedError` only when the process cannot be
    started at all; exit status is reported in the result.
    """
    command = command if command is not None else settings.sitemap_generate_command
    args = shlex.split(command)
    if not args:
        raise RegenerationFailedError("No sitemap generator command configured")

    logger.info("Starting sitemap generator: %s", command)
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd if cwd is not None else settings.sitemap_generate_cwd,
        )
    except OSError as exc:
        raise RegenerationFailedError(
            f"Could not start sitemap generator '{args[0]}': {exc}",
            stderr=str(exc),
        ) from exc

    stdout, stderr = await process.communicate()
    return RegenerationResult(
        returncode=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
