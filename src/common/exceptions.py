"""
qmexmut Exception Hierarchy

Provides clear, actionable error messages with structured information
for logging, hook diagnostics, and programmatic error handling.
"""

from typing import Optional, Dict, Any, Sequence


class QmexmutError(Exception):
    """
    Base exception for all qmexmut errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Invocation errors
# =============================================================================

class UsageError(QmexmutError):
    """Malformed invocation: missing arguments or unknown hook phase."""
    def __init__(self, message: str):
        super().__init__(message, code="USAGE", recoverable=False)


# =============================================================================
# External command errors
# =============================================================================

class CommandError(QmexmutError):
    """Base for failures of an external command, attributed to its argv."""

    def __init__(
        self,
        args: Sequence[str],
        reason: str,
        code: str = "COMMAND_FAILED",
        cause: Optional[BaseException] = None,
        **details: Any,
    ):
        self.argv = list(args)
        super().__init__(
            f"command {self.argv!r} failed: {reason}",
            code=code,
            details={"command": self.argv, **details},
            cause=cause,
        )


class CommandSpawnError(CommandError):
    """The command could not be started or its output not attached."""
    def __init__(self, args: Sequence[str], cause: BaseException):
        super().__init__(
            args, f"unable to start: {cause}",
            code="COMMAND_SPAWN_FAILED", cause=cause,
        )


class CommandExitError(CommandError):
    """The command terminated abnormally."""
    def __init__(self, args: Sequence[str], returncode: int):
        if returncode < 0:
            reason = f"killed by signal {-returncode}"
        else:
            reason = f"exit status {returncode}"
        self.returncode = returncode
        super().__init__(
            args, reason, code="COMMAND_EXIT", returncode=returncode,
        )


class CommandIOError(CommandError):
    """Reading the command's output failed."""
    def __init__(self, args: Sequence[str], cause: BaseException):
        super().__init__(
            args, f"io error: {cause}", code="COMMAND_IO", cause=cause,
        )


class CommandOutputError(CommandError):
    """The command's output could not be decoded."""
    def __init__(self, args: Sequence[str], reason: str, cause: Optional[BaseException] = None):
        super().__init__(args, reason, code="COMMAND_OUTPUT", cause=cause)


# =============================================================================
# VM errors
# =============================================================================

class ShutdownError(QmexmutError):
    """A requested shutdown of a mutual VM failed."""
    def __init__(self, vmid: str, cause: BaseException):
        super().__init__(
            f"failed to shut down mutual VM {vmid}",
            code="SHUTDOWN_FAILED",
            details={"vmid": vmid},
            cause=cause,
        )


# =============================================================================
# Installation errors
# =============================================================================

class InstallError(QmexmutError):
    """Installing the hookscript failed."""
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message, code="INSTALL_FAILED", cause=cause)


# =============================================================================
# Configuration errors
# =============================================================================

class ConfigError(QmexmutError):
    """Base for configuration errors."""
    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration."""
    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration: {field}={value}: {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value), "reason": reason},
        )
