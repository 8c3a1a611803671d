"""Command execution for ``exec:`` and ``filter:`` sources."""

from __future__ import annotations

import logging
import shlex
import subprocess

from feedcore.ingestion.interfaces import ProcessExecutor

logger = logging.getLogger(__name__)


class SubprocessExecutor(ProcessExecutor):
    """Runs commands synchronously. There is no timeout."""

    def run(self, command: str) -> bytes:
        result = subprocess.run(command, shell=True, stdout=subprocess.PIPE, check=False)
        if result.returncode != 0:
            logger.warning("Command %r exited with status %d", command, result.returncode)
        return result.stdout

    def run_piped(self, command: str, data: bytes) -> bytes:
        result = subprocess.run(
            shlex.split(command), input=data, stdout=subprocess.PIPE, check=False
        )
        if result.returncode != 0:
            logger.warning("Filter %r exited with status %d", command, result.returncode)
        return result.stdout
