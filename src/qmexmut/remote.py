"""
Remote execution over ssh.

Streams the running executable to a Proxmox host, where a small shell
bootstrap saves it to a temporary file and executes it with ``--rm`` so it
removes itself once done.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from common.exceptions import CommandExitError, CommandSpawnError

from .install import copy_self_into

logger = logging.getLogger(__name__)

REMOTE_BOOTSTRAP = (
    'self=`mktemp` && cat >$self && chmod +x $self && exec $self --rm "$@"'
)


def remote_command(server: str, args: Sequence[str], ssh: str = "ssh") -> List[str]:
    """Build the ssh argv; remote arguments are quoted for the remote shell."""
    return [
        ssh, server, "sh", "-c", shlex.quote(REMOTE_BOOTSTRAP), "--",
        *(shlex.quote(arg) for arg in args),
    ]


def run_remote(
    server: str,
    args: Sequence[str],
    source: Optional[Path] = None,
    ssh: str = "ssh",
) -> None:
    """
    Run this program on ``server`` with ``args``.

    Raises:
        CommandSpawnError: If ssh cannot be started
        CommandExitError: If the remote run fails
        InstallError: If the executable cannot be streamed
    """
    logger.info(f"running on remote {server!r}")
    argv = remote_command(server, args, ssh)

    try:
        proc = subprocess.Popen(argv, stdin=subprocess.PIPE)
    except OSError as e:
        raise CommandSpawnError(argv, e) from e

    try:
        copy_self_into(proc.stdin, source)
    finally:
        try:
            proc.stdin.close()
        except BrokenPipeError:
            logger.debug("remote closed its input early")
        returncode = proc.wait()

    if returncode != 0:
        raise CommandExitError(argv, returncode)
