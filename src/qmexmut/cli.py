#!/usr/bin/env python3
"""
qmexmut - Command Line Interface

One executable, two roles chosen by the name it runs under:

  qmexmut.hook <vmid> <phase>   Proxmox hookscript mode
  qmexmut                       install self as hookscript on this host
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from common.exceptions import QmexmutError
from common.logging_config import setup_logging

from .commands import CommandRunner
from .config import HookConfig
from .hook import HOOK_COMMAND_NAME, run_hook
from .install import install_hook, self_executable
from .remote import run_remote

logger = logging.getLogger(__name__)


def build_parser(prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        allow_abbrev=False,
        description="Keep VMs sharing passed-through PCI/USB devices from running together",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  qmexmut                          # install hookscript on this host
  qmexmut --dry-run                # show what install would do
  qmexmut --ssh root@pve           # install on a remote host
  {HOOK_COMMAND_NAME} 101 pre-start     # what Proxmox runs before VM 101 starts
        """,
    )
    parser.add_argument("-n", "--dry-run", action="store_true",
                        help="affect no change, only report")
    parser.add_argument("--ssh", metavar="HOST", default="",
                        help="upload to and execute on remote host using ssh")
    parser.add_argument("--rm", action="store_true",
                        help="remove self executable once done")
    parser.add_argument("--cmd", default="",
                        help="override argv[0] command name")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="debug logging")
    parser.add_argument("--log-file", type=Path, default=None,
                        help="also log to this file")
    parser.add_argument("--log-json", action="store_true",
                        help="write the log file as JSON lines")
    parser.add_argument("args", nargs="*", help="hook arguments: <vmid> <phase>")
    return parser


def _remove_self() -> None:
    try:
        os.remove(self_executable())
    except OSError as e:
        logger.debug(f"could not remove self executable: {e}")


def main(argv: Optional[List[str]] = None, prog: Optional[str] = None) -> int:
    """Main entry point."""
    prog = prog or Path(sys.argv[0]).name
    parser = build_parser(prog)
    args = parser.parse_args(argv)

    try:
        config = HookConfig.from_env().with_overrides(
            dry_run=True if args.dry_run else None,
            log_file=args.log_file,
            log_json=True if args.log_json else None,
        )
    except QmexmutError as e:
        print(f"{prog}: {e}", file=sys.stderr)
        return 2

    try:
        setup_logging(
            level=logging.DEBUG if args.verbose else logging.INFO,
            log_file=config.log_file,
            json_logs=config.log_json,
        )
    except OSError as e:
        print(f"{prog}: cannot open log file {config.log_file}: {e}", file=sys.stderr)
        return 2

    cmd_name = args.cmd or prog
    runner = CommandRunner(config)

    try:
        if args.ssh:
            forwarded = list(argv if argv is not None else sys.argv[1:])
            run_remote(args.ssh, _strip_ssh(forwarded))
        elif cmd_name == HOOK_COMMAND_NAME:
            run_hook(cmd_name, args.args, runner)
        else:
            hooked = install_hook(runner)
            logger.info(f"hookscript set on {len(hooked)} VM(s): {', '.join(hooked) or '-'}")
    except QmexmutError as e:
        logger.error(str(e))
        return 1
    finally:
        if args.rm:
            _remove_self()

    return 0


def _strip_ssh(argv: List[str]) -> List[str]:
    """Drop the --ssh option so the remote run executes locally there."""
    out = []
    skip = False
    for arg in argv:
        if skip:
            skip = False
            continue
        if arg == "--ssh":
            skip = True
            continue
        if arg.startswith("--ssh="):
            continue
        out.append(arg)
    return out


if __name__ == "__main__":
    sys.exit(main())
