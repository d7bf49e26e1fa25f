"""
Proxmox hookscript entry.

Proxmox runs the hookscript as ``<script> <vmid> <phase>`` at each lifecycle
phase. Each invocation stands alone; nothing is remembered between them.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from common.exceptions import UsageError
from common.logging_config import LogContext

from .commands import CommandRunner
from .mutuals import find_mutuals
from .shutdown import stop_mutuals

logger = logging.getLogger(__name__)

HOOK_COMMAND_NAME = "qmexmut.hook"


class HookPhase(str, Enum):
    """Lifecycle phases Proxmox calls a hookscript for."""
    PRE_START = "pre-start"
    POST_START = "post-start"
    PRE_STOP = "pre-stop"
    POST_STOP = "post-stop"


def run_hook(prog: str, args: Sequence[str], runner: CommandRunner) -> None:
    """
    Dispatch one hook invocation.

    Args:
        prog: Program name for the usage message
        args: Positional arguments, ``<vmid> <phase>``
        runner: Command runner

    Raises:
        UsageError: Fewer than two arguments, or an unknown phase
        QmexmutError: Anything the conflict/shutdown pipeline raises
    """
    if len(args) < 2:
        raise UsageError(f"usage: {prog} <vmid> <phase>")
    vmid, raw_phase = args[0], args[1]

    try:
        phase = HookPhase(raw_phase)
    except ValueError:
        raise UsageError(f"got unknown phase {raw_phase!r}") from None

    with LogContext(vmid=vmid, phase=phase.value):
        logger.debug(f"hook {phase.value} for VM {vmid}")

        if phase is HookPhase.PRE_START:
            stop_mutuals(runner, find_mutuals(runner, vmid))

        # TODO: on post-start, clear onboot of the mutual VMs so they don't
        # contend for the same devices at host boot
