"""Exceptions related to helm-reconcile."""

from pathlib import Path

__all__ = [
    "HelmReconcileException",
    "ConfigurationError",
    "ParseError",
    "QueryError",
    "CommandException",
    "ExecutionError",
    "ReleaseNotFoundError",
]


class HelmReconcileException(Exception):
    """Generic base exception used for this library."""


class ConfigurationError(HelmReconcileException):
    """Raised when a required value is absent after all defaults were consulted."""


class ParseError(HelmReconcileException):
    """Raised when a manifest or project file is not formatted as expected."""

    def __init__(self, path: Path | str, message: str) -> None:
        super().__init__(f"Failed to parse {path}: {message}")
        self.path = Path(path)


class QueryError(HelmReconcileException):
    """Raised when the state of a remote release could not be determined."""


class CommandException(HelmReconcileException):
    """Raised when there is a failure running a subcommand."""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stdout: str | None = None,
        stderr: str | None = None,
    ) -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ExecutionError(CommandException):
    """Raised when a helm operation exits with a non-zero status."""


class ReleaseNotFoundError(HelmReconcileException):
    """Raised when an operation requires a release that does not exist."""
