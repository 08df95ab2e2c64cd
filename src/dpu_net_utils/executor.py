"""External process execution."""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .exceptions import CommandError

LOG = logging.getLogger(__name__)


class ProcessHandle(ABC):
    """Reference to a long-running child process."""

    @property
    @abstractmethod
    def pid(self) -> Optional[int]:
        """Process id, if the platform exposes one."""

    @abstractmethod
    def is_alive(self) -> bool:
        """Return ``True`` while the process has not exited."""


class Executor(ABC):
    @abstractmethod
    def start(self, command: str, args: Sequence[str]) -> ProcessHandle:
        """Spawn ``command`` in the background and return its handle."""

    @abstractmethod
    def run(self, command: str, args: Sequence[str]) -> str:
        """Run ``command`` to completion and return its standard output.

        Raises :class:`~dpu_net_utils.exceptions.CommandError` when the
        command exits with a non-zero status.
        """


class PopenHandle(ProcessHandle):
    def __init__(self, process: subprocess.Popen) -> None:
        self._process = process

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    def is_alive(self) -> bool:
        return self._process.poll() is None


class SubprocessExecutor(Executor):
    """Executor backed by :mod:`subprocess`.

    Background processes inherit the agent's stdout/stderr so their logs end
    up next to the agent's own (dnsmasq runs with ``--log-facility=-``).
    """

    def start(self, command: str, args: Sequence[str]) -> ProcessHandle:
        cmd = [command, *args]
        LOG.debug("Spawning: %s", " ".join(cmd))
        process = subprocess.Popen(cmd)
        LOG.info("Started %s (pid %s)", command, process.pid)
        return PopenHandle(process)

    def run(self, command: str, args: Sequence[str]) -> str:
        cmd = [command, *args]
        LOG.debug("Executing: %s", " ".join(cmd))
        result = subprocess.run(cmd, check=False, text=True, capture_output=True)
        if result.returncode != 0:
            raise CommandError(command, args, result.returncode, result.stderr)
        return result.stdout
