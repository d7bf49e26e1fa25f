"""
Pytest configuration and shared fixtures for qmexmut tests.

External Proxmox commands are replaced by small POSIX shell scripts written
into a temporary directory, so scanning, killing and reaping are exercised
against real processes.
"""

import json
import os
import stat
import pytest
from pathlib import Path
from typing import Iterable, List, Set
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


FAKE_QM = """#!/bin/sh
dir="$(dirname "$0")"
case "$1" in
  list)
    cat "$dir/list.txt"
    ;;
  config)
    echo "$2" >> "$dir/config.log"
    if [ -f "$dir/config/$2.sh" ]; then
      exec sh "$dir/config/$2.sh"
    fi
    if [ ! -f "$dir/config/$2" ]; then
      echo "Configuration file 'nodes/pve/qemu-server/$2.conf' does not exist" >&2
      exit 2
    fi
    cat "$dir/config/$2"
    ;;
  shutdown)
    echo "$2" >> "$dir/shutdown.log"
    if [ -f "$dir/fail/$2" ]; then
      echo "shutdown of $2 failed" >&2
      exit 1
    fi
    ;;
  set)
    echo "$*" >> "$dir/set.log"
    ;;
  *)
    exit 64
    ;;
esac
"""

FAKE_PVESH = """#!/bin/sh
dir="$(dirname "$0")"
cat "$dir/storage.json"
"""

LIST_HEADER = "      VMID NAME                 STATUS     MEM(MB)    BOOTDISK(GB) PID       "


def _write_script(path: Path, body: str) -> Path:
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class FakeProxmox:
    """A throwaway `qm`/`pvesh` pair backed by files in a directory."""

    def __init__(self, root: Path):
        self.root = root
        (root / "config").mkdir()
        (root / "fail").mkdir()
        self.qm = str(_write_script(root / "qm", FAKE_QM))
        self.pvesh = str(_write_script(root / "pvesh", FAKE_PVESH))
        self._rows: List[str] = [LIST_HEADER]
        self._write_list()
        self.set_storages([])

    def _write_list(self):
        (self.root / "list.txt").write_text("\n".join(self._rows) + "\n")

    def add_vm(self, vmid: str, name: str, status: str, config: Iterable[str] = ()):
        self._rows.append(
            f"{vmid:>10} {name:<20} {status:<10} {2048:>7} {32.0:>18.2f} {0:>9}"
        )
        self._write_list()
        (self.root / "config" / vmid).write_text("".join(f"{line}\n" for line in config))

    def set_config_script(self, vmid: str, script: str):
        (self.root / "config" / f"{vmid}.sh").write_text(script)

    def fail_shutdown(self, vmid: str):
        (self.root / "fail" / vmid).touch()

    def set_storages(self, storages):
        (self.root / "storage.json").write_text(json.dumps(storages))

    def _lines(self, name: str) -> List[str]:
        path = self.root / name
        if not path.exists():
            return []
        return path.read_text().split()

    @property
    def shutdowns(self) -> Set[str]:
        return set(self._lines("shutdown.log"))

    @property
    def config_queries(self) -> List[str]:
        return self._lines("config.log")

    @property
    def set_calls(self) -> List[str]:
        path = self.root / "set.log"
        return path.read_text().splitlines() if path.exists() else []


# ============ Proxmox Fixtures ============

@pytest.fixture
def fake_pve(tmp_path: Path) -> FakeProxmox:
    """Empty fake Proxmox host."""
    root = tmp_path / "pve"
    root.mkdir()
    return FakeProxmox(root)


@pytest.fixture
def sample_pve(fake_pve: FakeProxmox) -> FakeProxmox:
    """
    Three VMs: 101 and 102 share a GPU, 103 owns a different one.

    101 also has a USB host binding and unrelated disks/network.
    """
    fake_pve.add_vm("101", "winvm", "running", [
        "boot: order=scsi0;ide2",
        "cores: 8",
        "hostpci0: 0000:01:00.0,pcie=1,x-vga=1",
        "ide2: local:iso/win.iso,media=cdrom",
        "usb0: host=1-1.2",
        "usb1: spice",
        "net0: virtio=BC:24:11:00:00:01,bridge=vmbr0",
    ])
    fake_pve.add_vm("102", "linvm", "stopped", [
        "cores: 4",
        "hostpci0: 0000:01:00.0,pcie=1",
        "scsi0: local-lvm:vm-102-disk-0,size=32G",
    ])
    fake_pve.add_vm("103", "other", "running", [
        "hostpci0: 0000:02:00.0",
        "usb0: host=3-4",
    ])
    return fake_pve


@pytest.fixture
def make_runner(fake_pve: FakeProxmox):
    """Factory for a CommandRunner bound to the fake host."""
    from qmexmut.commands import CommandRunner
    from qmexmut.config import HookConfig

    def _make(**overrides):
        config = HookConfig(qm=fake_pve.qm, pvesh=fake_pve.pvesh, **overrides)
        return CommandRunner(config)

    return _make


@pytest.fixture
def runner(make_runner):
    """CommandRunner bound to the fake host, side effects enabled."""
    return make_runner()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove QMEXMUT_* variables from the environment."""
    for name in list(os.environ):
        if name.startswith("QMEXMUT_"):
            monkeypatch.delenv(name, raising=False)


# ============ Marker Configuration ============

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "unit: fast unit tests with no external deps"
    )
    config.addinivalue_line(
        "markers", "integration: tests that run fake qm/pvesh processes"
    )


def pytest_collection_modifyitems(config, items):
    """Skip process-based tests where there is no POSIX shell."""
    skip_posix = pytest.mark.skip(reason="Requires a POSIX shell")

    for item in items:
        if "integration" in item.keywords and os.name != "posix":
            item.add_marker(skip_posix)
