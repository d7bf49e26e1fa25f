"""
Host resource identity.

Turns a VM's ``qm config`` output into the set of passthrough resources it
claims. Only PCI passthrough (``hostpciN``) and USB host bindings
(``usbN: host=...``) are exclusive; disks, networks, CPU and every other key
are ignored.

Labels are namespaced by device class so the same address string can never
collide across classes::

    hostpci0: 0000:01:00.0,pcie=1,x-vga=1   ->  hostpci:0000:01:00.0
    usb1: host=1-1.2,usb3=1                  ->  hostusb:1-1.2
"""

from __future__ import annotations

import logging
import re
from typing import AbstractSet, FrozenSet, Iterator

from .commands import CommandRunner
from .scanner import CommandScan, Match, recognize_command

logger = logging.getLogger(__name__)

KEY_VALUE_PATTERN = re.compile(r"^(.+?):\s*(.+)")
USB_HOST_PATTERN = re.compile(r"\bhost=([^,]+)")

PCI_PREFIX = "hostpci"
USB_PREFIX = "usb"


def classify(key: str, value: str) -> str:
    """
    Label one ``key: value`` config entry.

    Returns:
        The resource label, or "" if the entry claims no exclusive resource
    """
    if key.startswith(PCI_PREFIX):
        return f"hostpci:{value.split(',', 1)[0]}"

    if key.startswith(USB_PREFIX):
        found = USB_HOST_PATTERN.search(value)
        if found:
            return f"hostusb:{found.group(1)}"

    return ""


def label_host_resource(match: Match) -> str:
    """Label a line matched by :data:`KEY_VALUE_PATTERN`."""
    return classify(match.group(1), match.group(2))


def config_labels(scan: CommandScan) -> Iterator[str]:
    """Resource labels in the order they appear in a config dump."""
    return recognize_command(scan, KEY_VALUE_PATTERN, label_host_resource)


def host_resources(runner: CommandRunner, vmid: str) -> FrozenSet[str]:
    """
    Collect every resource label VM ``vmid`` claims.

    Raises:
        CommandError: If ``qm config`` cannot be started, fails or can't be read
    """
    with runner.scan(runner.qm("config", vmid)) as scan:
        labels = frozenset(config_labels(scan))
    logger.debug(f"VM {vmid} claims {sorted(labels)}")
    return labels


def has_host_resources(runner: CommandRunner, vmid: str) -> bool:
    """Whether VM ``vmid`` claims any resource; stops reading at the first."""
    with runner.scan(runner.qm("config", vmid)) as scan:
        return next(config_labels(scan), None) is not None


def shares_host_resources(
    runner: CommandRunner,
    vmid: str,
    labels: AbstractSet[str],
) -> bool:
    """
    Whether VM ``vmid`` claims any of ``labels``.

    Reading stops at the first shared label; the unread remainder of the
    config dump is discarded with the process.
    """
    if not labels:
        return False

    with runner.scan(runner.qm("config", vmid)) as scan:
        for label in config_labels(scan):
            if label in labels:
                logger.debug(f"VM {vmid} shares {label}")
                return True
    return False
