"""
Hookscript installation.

Copies the running executable into a Proxmox storage that holds snippets and
sets it as the hookscript of every VM with passthrough hardware.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

from common.concurrency import TaskGroup
from common.exceptions import CommandOutputError, InstallError

from .commands import CommandRunner
from .hook import HOOK_COMMAND_NAME
from .mutuals import list_vms
from .resources import has_host_resources

logger = logging.getLogger(__name__)

SNIPPETS_CONTENT = "snippets"


@dataclass
class Storage:
    """One entry of ``pvesh get /storage``."""
    name: str
    content: str = ""
    path: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Storage":
        return cls(
            name=str(data.get("storage", "")),
            content=str(data.get("content", "")),
            path=str(data.get("path", "")),
        )

    @property
    def content_types(self) -> List[str]:
        return self.content.split(",")

    @property
    def holds_snippets(self) -> bool:
        return bool(self.path) and SNIPPETS_CONTENT in self.content_types


def find_snippets(runner: CommandRunner) -> Tuple[str, Path]:
    """
    Find the first storage that can hold snippets.

    Returns:
        (storage name, storage directory)

    Raises:
        InstallError: If no storage has a path and snippets content
    """
    args = runner.pvesh("get", "/storage", "--output-format", "json")
    entries = runner.decode_json(args)
    if not isinstance(entries, list):
        raise CommandOutputError(args, "expected a JSON array of storages")

    for entry in entries:
        storage = Storage.from_dict(entry)
        if storage.holds_snippets:
            logger.debug(f"using storage {storage.name!r} at {storage.path}")
            return storage.name, Path(storage.path)

    raise InstallError("no storage with snippets content found")


def self_executable() -> Path:
    """Path of the program currently running."""
    return Path(sys.argv[0]).resolve()


def copy_self_into(dest: BinaryIO, source: Optional[Path] = None) -> None:
    """Stream the executable's bytes into an open binary file."""
    source = source or self_executable()
    try:
        with open(source, "rb") as f:
            shutil.copyfileobj(f, dest)
    except OSError as e:
        raise InstallError(f"failed to copy self executable {source}", cause=e) from e


def copy_self_to(dest: Path, source: Optional[Path] = None) -> None:
    """Write the executable to ``dest`` and make it executable."""
    try:
        with open(dest, "wb") as f:
            copy_self_into(f, source)
        os.chmod(dest, 0o755)
    except OSError as e:
        raise InstallError(f"unable to create {dest}", cause=e) from e


def install_hook(runner: CommandRunner, source: Optional[Path] = None) -> List[str]:
    """
    Install the hookscript and attach it to VMs with passthrough hardware.

    Returns:
        IDs of the VMs the hookscript was set on

    Raises:
        InstallError: If no snippets storage exists or the copy fails
        CommandError: If any ``qm``/``pvesh`` command fails
    """
    store, store_dir = find_snippets(runner)

    hook_script = f"{store}:snippets/{HOOK_COMMAND_NAME}"
    hook_dest = store_dir / "snippets" / HOOK_COMMAND_NAME

    if runner.dry_run:
        logger.info(f"would copy self executable to {str(hook_dest)!r}")
    else:
        copy_self_to(hook_dest, source)
        logger.info(f"copied self executable to {str(hook_dest)!r}")

    hooked: List[str] = []

    def hook_vm(vmid: str) -> None:
        if not has_host_resources(runner, vmid):
            return
        runner.maybe_run(runner.qm("set", vmid, "--hookscript", hook_script))
        hooked.append(vmid)

    group = TaskGroup(name="qm-set")
    for record in list_vms(runner):
        group.go(hook_vm, record.vmid)

    error = group.wait()
    if error is not None:
        raise error

    return sorted(hooked)
