"""
Mutual VM shutdown.

Every running mutual VM gets its own shutdown task; all of them are attempted
even when some fail, and only the first failure is reported.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from common.concurrency import TaskGroup
from common.exceptions import ShutdownError

from .commands import CommandRunner
from .mutuals import VMRecord

logger = logging.getLogger(__name__)


def shutdown_vm(runner: CommandRunner, record: VMRecord) -> None:
    """Request a shutdown of one VM, wrapping failures with its id."""
    try:
        runner.maybe_run(runner.qm("shutdown", record.vmid))
    except Exception as e:
        raise ShutdownError(record.vmid, e) from e


def stop_mutuals(runner: CommandRunner, mutuals: Iterable[VMRecord]) -> List[VMRecord]:
    """
    Shut down the running VMs among ``mutuals``.

    Stopped VMs are left alone; VMs in any other state are reported and left
    alone too.

    Args:
        runner: Command runner (honours dry run)
        mutuals: Output of :func:`~qmexmut.mutuals.find_mutuals`

    Returns:
        The VMs a shutdown was requested for

    Raises:
        ShutdownError: The first shutdown that failed, after all have finished
    """
    targets = []
    for mutual in mutuals:
        if mutual.is_running:
            targets.append(mutual)
        elif mutual.is_stopped:
            continue
        else:
            logger.warning(
                f"not stopping mutual {mutual.vmid!r} in unknown state {mutual.status!r}"
            )

    if not targets:
        return []

    group = TaskGroup(max_workers=runner.config.shutdown_workers, name="qm-shutdown")
    for target in targets:
        group.go(shutdown_vm, runner, target)

    error = group.wait()
    if error is not None:
        raise error

    return targets
