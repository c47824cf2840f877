"""Library for issuing commands using asyncio and returning the result.

Commands are awaited one at a time; there is no concurrency limit or
timeout at this layer. Any timeout belongs to the invoked program itself.
"""

import asyncio
from abc import ABC, abstractmethod
import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
import os

from .exceptions import CommandException

_LOGGER = logging.getLogger(__name__)

REDACTED = "***"


# No public API
__all__: list[str] = []


class Task(ABC):
    """An instance of a async task to execute."""

    @abstractmethod
    async def run(self, stdin: bytes | None = None) -> bytes:
        """Execute the task and return the result."""


def format_path(path: Path) -> str:
    """Format path for debugging."""
    if path.is_absolute():
        cwd = Path.cwd()
        if path.is_relative_to(cwd):
            rel_path = str(path.relative_to(cwd))
            return f"{rel_path} (abs)"
    return str(path)


@dataclass
class Command(Task):
    """An instance of a command to run."""

    cmd: list[str]
    """Array of command line arguments."""

    cwd: Path | None = None
    """Current working directory."""

    exc: type[CommandException] = CommandException
    """Exception to throw in case of an error."""

    env: dict[str, str] | None = None
    """Environment variables for the subprocess."""

    redact: list[str] = field(default_factory=list)
    """Secret values masked wherever the command or its output is rendered."""

    def _mask(self, text: str) -> str:
        for secret in self.redact:
            if secret:
                text = text.replace(secret, REDACTED)
        return text

    @property
    def string(self) -> str:
        """Render the command as a single string."""
        return " ".join([shlex.quote(self._mask(arg)) for arg in self.cmd])

    def __str__(self) -> str:
        """Render as a debug string."""
        cwd: str = ""
        if self.cwd:
            cwd = f"({format_path(self.cwd)}) "
        return f"{cwd}{self.string}"

    async def run(self, stdin: bytes | None = None) -> bytes:
        """Run the command, returning stdout."""
        _LOGGER.debug("Running command: %s", self)
        env = {
            **os.environ,
            **(self.env if self.env else {}),
        }
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                env=env,
            )
        except OSError as err:
            raise self.exc(
                f"Command '{self}' could not be started: {self._mask(str(err))}"
            ) from err
        out, err = await proc.communicate(stdin)
        if proc.returncode:
            stdout = self._mask(out.decode("utf-8")) if out else ""
            stderr = self._mask(err.decode("utf-8")) if err else ""
            errors = [f"Command '{self}' failed with return code {proc.returncode}"]
            if stdout:
                errors.append(stdout)
            if stderr:
                errors.append(stderr)
            _LOGGER.debug("\n".join(errors))
            raise self.exc(
                "\n".join(errors),
                returncode=proc.returncode,
                stdout=stdout,
                stderr=stderr,
            )
        return out


async def run(cmd: Task) -> str:
    """Run the specified command and return stdout."""
    out = await cmd.run()
    return out.decode("utf-8") if out else ""
