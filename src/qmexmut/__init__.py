"""qmexmut - mutually exclusive passthrough hardware for Proxmox VE VMs.

Installed as a Proxmox hookscript, it shuts down every running VM that
shares a passed-through PCI or USB device with the VM about to start.
"""

from .config import HookConfig
from .commands import CommandRunner
from .scanner import CommandScan, Match, match_lines, recognize, recognize_command
from .resources import classify, host_resources, shares_host_resources
from .mutuals import VMRecord, find_mutuals, list_vms
from .shutdown import stop_mutuals
from .hook import HookPhase, run_hook, HOOK_COMMAND_NAME

__all__ = [
    # Configuration
    "HookConfig",
    "CommandRunner",
    # Scanning
    "CommandScan",
    "Match",
    "match_lines",
    "recognize",
    "recognize_command",
    # Conflict detection
    "classify",
    "host_resources",
    "shares_host_resources",
    "VMRecord",
    "find_mutuals",
    "list_vms",
    # Shutdown / hook
    "stop_mutuals",
    "HookPhase",
    "run_hook",
    "HOOK_COMMAND_NAME",
]

__version__ = "0.1.0"
