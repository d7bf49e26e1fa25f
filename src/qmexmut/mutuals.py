"""
Mutual VM detection.

Two VMs are mutual when their configurations claim at least one common
passthrough resource; only one of them can run at a time.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, List

from .commands import CommandRunner
from .resources import host_resources, shares_host_resources
from .scanner import match_lines

logger = logging.getLogger(__name__)

# `qm list` prints a whitespace-aligned table:
#       VMID NAME                 STATUS     MEM(MB)    BOOTDISK(GB) PID
#        101 winvm                running    8192              64.00 4242
LIST_PATTERN = re.compile(r"(\S+)\s+(.+?)\s+(.+?)(?:\s|$)")

STATUS_RUNNING = "running"
STATUS_STOPPED = "stopped"


@dataclass(frozen=True)
class VMRecord:
    """A VM as reported by ``qm list``."""
    vmid: str
    name: str
    status: str

    @property
    def is_running(self) -> bool:
        return self.status == STATUS_RUNNING

    @property
    def is_stopped(self) -> bool:
        return self.status == STATUS_STOPPED


def parse_vm_list(lines: Iterable[str]) -> Iterator[VMRecord]:
    """Parse ``qm list`` output, skipping the header line."""
    lines = iter(lines)
    next(lines, None)
    for match in match_lines(lines, LIST_PATTERN):
        yield VMRecord(match.group(1), match.group(2), match.group(3))


def list_vms(runner: CommandRunner) -> List[VMRecord]:
    """All VMs defined on this host, in listing order."""
    with runner.scan(runner.qm("list")) as scan:
        return list(parse_vm_list(scan))


def find_mutuals(runner: CommandRunner, vmid: str) -> List[VMRecord]:
    """
    Find the VMs that share a host resource with VM ``vmid``.

    Args:
        runner: Command runner
        vmid: The VM about to start

    Returns:
        Mutual VMs in listing order; never ``vmid`` itself

    Raises:
        CommandError: If any ``qm`` command fails
    """
    labels = host_resources(runner, vmid)
    if not labels:
        logger.info(f"VM {vmid} claims no host resources")
        return []

    workers = runner.config.scan_workers
    if workers > 1:
        mutuals = _find_mutuals_parallel(runner, vmid, labels, workers)
    else:
        mutuals = _find_mutuals_sequential(runner, vmid, labels)

    for mutual in mutuals:
        logger.info(f"VM {vmid} is mutual with {mutual.vmid} ({mutual.name}, {mutual.status})")
    return mutuals


def _find_mutuals_sequential(
    runner: CommandRunner,
    vmid: str,
    labels: FrozenSet[str],
) -> List[VMRecord]:
    mutuals = []
    with runner.scan(runner.qm("list")) as scan:
        for record in parse_vm_list(scan):
            if record.vmid == vmid:
                continue
            if shares_host_resources(runner, record.vmid, labels):
                mutuals.append(record)
    return mutuals


def _find_mutuals_parallel(
    runner: CommandRunner,
    vmid: str,
    labels: FrozenSet[str],
    workers: int,
) -> List[VMRecord]:
    others = [record for record in list_vms(runner) if record.vmid != vmid]
    if not others:
        return []

    def shares(record: VMRecord) -> bool:
        return shares_host_resources(runner, record.vmid, labels)

    with ThreadPoolExecutor(
        max_workers=min(workers, len(others)),
        thread_name_prefix="qm-config",
    ) as pool:
        results = list(pool.map(shares, others))

    return [record for record, shared in zip(others, results) if shared]
