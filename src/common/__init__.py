"""
qmexmut Common Utilities

Shared error hierarchy, logging setup and task fan-out.
"""

from .exceptions import (
    QmexmutError, UsageError, CommandError, CommandSpawnError, CommandExitError,
    CommandIOError, CommandOutputError, ShutdownError, InstallError,
    ConfigError, InvalidConfigError,
)
from .logging_config import setup_logging, LogContext
from .concurrency import TaskGroup

__all__ = [
    # Exceptions
    "QmexmutError", "UsageError", "CommandError", "CommandSpawnError",
    "CommandExitError", "CommandIOError", "CommandOutputError", "ShutdownError",
    "InstallError", "ConfigError", "InvalidConfigError",
    # Logging
    "setup_logging", "LogContext",
    # Concurrency
    "TaskGroup",
]
