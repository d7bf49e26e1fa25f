"""
External command execution.

Interrogative commands (``qm list``, ``qm config``) are always run and read
through :class:`~qmexmut.scanner.CommandScan`. Consequential commands
(``qm shutdown``, ``qm set``) go through :meth:`CommandRunner.maybe_run`,
which only reports them under dry run.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any, List

from common.exceptions import (
    CommandExitError, CommandOutputError, CommandSpawnError,
)

from .config import HookConfig
from .scanner import CommandScan

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs Proxmox CLI commands according to a :class:`HookConfig`."""

    def __init__(self, config: HookConfig):
        self.config = config

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    def qm(self, *args: str) -> List[str]:
        """Build a ``qm`` argv."""
        return [self.config.qm, *args]

    def pvesh(self, *args: str) -> List[str]:
        """Build a ``pvesh`` argv."""
        return [self.config.pvesh, *args]

    def scan(self, args: List[str]) -> CommandScan:
        """Create an unstarted scan over a command's output."""
        return CommandScan(args)

    def maybe_run(self, args: List[str]) -> None:
        """
        Run a state-changing command, unless dry run is configured.

        The command inherits stdout/stderr so its messages reach the hook log.

        Raises:
            CommandSpawnError: If the command cannot be started
            CommandExitError: If it exits non-zero
        """
        if self.config.dry_run:
            logger.info(f"would run {args!r}")
            return

        logger.info(f"run {args!r}")
        try:
            result = subprocess.run(args, check=False)
        except OSError as e:
            raise CommandSpawnError(args, e) from e

        if result.returncode != 0:
            raise CommandExitError(args, result.returncode)

    def decode_json(self, args: List[str]) -> Any:
        """
        Run a command and decode its stdout as a single JSON document.

        Raises:
            CommandSpawnError: If the command cannot be started
            CommandOutputError: If the output is not valid JSON
            CommandExitError: If it exits non-zero
        """
        try:
            result = subprocess.run(
                args,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                check=False,
            )
        except OSError as e:
            raise CommandSpawnError(args, e) from e

        try:
            value = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            if result.returncode != 0:
                raise CommandExitError(args, result.returncode) from e
            raise CommandOutputError(args, f"failed to decode json: {e}", cause=e) from e

        if result.returncode != 0:
            raise CommandExitError(args, result.returncode)

        return value
