"""Errors raised by the host-facing capability implementations."""

from __future__ import annotations

from typing import Sequence


class NetworkHelperError(Exception):
    """Base class for netlink/devlink lookup failures."""


class LinkNotFound(NetworkHelperError):
    def __init__(self, link: str) -> None:
        super().__init__(f"link '{link}' not found")
        self.link = link


class GatewayNotFound(NetworkHelperError):
    def __init__(self, destination: str) -> None:
        super().__init__(f"no gateway found for destination {destination}")
        self.destination = destination


class CommandError(Exception):
    """A short-lived external command exited with a non-zero status."""

    def __init__(
        self, command: str, args: Sequence[str], returncode: int, stderr: str
    ) -> None:
        cmdline = " ".join([command, *args])
        super().__init__(
            f"command '{cmdline}' failed with exit code {returncode}: {stderr.strip()}"
        )
        self.command = command
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
