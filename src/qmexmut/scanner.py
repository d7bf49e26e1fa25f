"""
Command output scanning.

Reads an external command's output one line at a time without buffering it,
and layers pattern matching and label recognition on top as plain generators:

    with CommandScan(["qm", "config", "101"]) as scan:
        for label in recognize(match_lines(scan, KEY_VALUE), classify):
            ...

A scan is single-pass and bound to one process. The process is started on
the first read and is always reaped when the ``with`` block exits, whether
the consumer drained the output or stopped early.
"""

from __future__ import annotations

import logging
import re
import signal
import subprocess
from typing import Callable, Iterable, Iterator, List, Optional, Sequence

from common.exceptions import (
    CommandError, CommandExitError, CommandIOError, CommandSpawnError,
)

logger = logging.getLogger(__name__)


class CommandScan:
    """
    Line-by-line reader over one command's stdout.

    Iterating yields lines with the trailing newline removed. The first error
    (spawn failure, read failure, abnormal exit) is kept in :attr:`err` and
    ends iteration for good; later errors never replace it.
    """

    def __init__(self, args: Sequence[str]):
        self.args: List[str] = list(args)
        self.process: Optional[subprocess.Popen] = None
        self.err: Optional[CommandError] = None
        self._killed = False
        self._closed = False

    def _record(self, err: CommandError) -> None:
        if self.err is None:
            self.err = err

    def _start(self) -> bool:
        logger.debug(f"scanning {self.args!r}")
        try:
            self.process = subprocess.Popen(
                self.args,
                stdout=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except (OSError, ValueError) as e:
            self._record(CommandSpawnError(self.args, e))
            return False
        return True

    def __iter__(self) -> Iterator[str]:
        if self.err is not None or self._closed:
            return
        if self.process is None and not self._start():
            return

        try:
            for line in self.process.stdout:
                yield line.rstrip("\r\n")
        except OSError as e:
            self._record(CommandIOError(self.args, e))

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def close(self) -> None:
        """
        Stop the command and reap it. Safe to call more than once.

        A still-running process is killed; the resulting SIGKILL exit is
        expected and not recorded. Any other non-zero exit is recorded unless
        an earlier error is already pending.
        """
        if self._closed:
            return
        self._closed = True

        proc = self.process
        if proc is None:
            return

        if proc.poll() is None:
            logger.debug(f"killing unfinished {self.args!r}")
            proc.kill()
            self._killed = True

        try:
            if proc.stdout is not None:
                proc.stdout.close()
        finally:
            returncode = proc.wait()

        if returncode == 0:
            return
        if self._killed and returncode == -signal.SIGKILL:
            return
        self._record(CommandExitError(self.args, returncode))

    wait = close

    def check(self) -> None:
        """Raise the recorded error, if any."""
        if self.err is not None:
            raise self.err

    def __enter__(self) -> "CommandScan":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        if exc_type is None:
            self.check()


class Match:
    """
    One line accepted by :func:`match_lines`.

    ``group(0)`` is the matched text, ``group(n)`` the n-th capture. Groups
    that are out of range or did not participate read as ``""``.
    """

    __slots__ = ("line", "_match")

    def __init__(self, line: str, match: "re.Match[str]"):
        self.line = line
        self._match = match

    def group(self, index: int = 0) -> str:
        if index < 0 or index > self._match.re.groups:
            return ""
        return self._match.group(index) or ""

    def groups(self) -> tuple:
        return tuple(self.group(i) for i in range(1, self._match.re.groups + 1))

    def __repr__(self):
        return f"Match({self.line!r})"


def match_lines(lines: Iterable[str], pattern: "re.Pattern[str]") -> Iterator[Match]:
    """Yield a :class:`Match` for each line the pattern is found in."""
    for line in lines:
        found = pattern.search(line)
        if found is not None:
            yield Match(line, found)


def recognize(matches: Iterable[Match], label: Callable[[Match], str]) -> Iterator[str]:
    """Yield ``label(match)`` for each match it classifies to a non-empty label."""
    for match in matches:
        value = label(match)
        if value:
            yield value


def recognize_command(
    scan: CommandScan,
    pattern: "re.Pattern[str]",
    label: Callable[[Match], str],
) -> Iterator[str]:
    """Full pipeline over a scan: lines, then pattern matches, then labels."""
    return recognize(match_lines(scan, pattern), label)
