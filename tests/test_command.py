"""Tests for command library."""

from pathlib import Path

import pytest

from helm_reconcile.command import Command, run
from helm_reconcile.exceptions import CommandException, ExecutionError


async def test_command() -> None:
    """Test stdout parsing of a command."""
    result = await run(Command(["echo", "Hello"]))
    assert result == "Hello\n"


async def test_command_env() -> None:
    """Test environment variables are passed to the command."""
    result = await run(Command(["sh", "-c", "echo $GREETING"], env={"GREETING": "Hi"}))
    assert result == "Hi\n"


async def test_command_cwd(tmp_path: Path) -> None:
    """Test the command runs in the working directory."""
    result = await run(Command(["pwd"], cwd=tmp_path))
    assert Path(result.strip()).resolve() == tmp_path.resolve()


async def test_failed_command() -> None:
    """Test a failing command."""
    with pytest.raises(CommandException, match="return code 1"):
        await run(Command(["/bin/false"]))


async def test_failed_command_output() -> None:
    """Test the output of a failed command is kept on the exception."""
    cmd = Command(["sh", "-c", "echo out; echo err >&2; exit 3"], exc=ExecutionError)
    with pytest.raises(ExecutionError) as exc_info:
        await run(cmd)
    assert exc_info.value.returncode == 3
    assert exc_info.value.stdout == "out\n"
    assert exc_info.value.stderr == "err\n"


async def test_missing_executable() -> None:
    """Test a command that cannot be started."""
    with pytest.raises(ExecutionError, match="could not be started"):
        await run(Command(["/nonexistent/helm", "version"], exc=ExecutionError))


def test_command_string() -> None:
    """Test rendering a command for logging."""
    cmd = Command(["helm", "upgrade", "web", "--set", "a=b c"])
    assert str(cmd) == "helm upgrade web --set 'a=b c'"


def test_command_string_redacted() -> None:
    """Test secret values are masked when rendering a command."""
    cmd = Command(
        ["helm", "repo", "add", "--username", "ci", "--password", "s3cret"],
        redact=["s3cret"],
    )
    assert str(cmd) == "helm repo add --username ci --password '***'"
    assert cmd.cmd[-1] == "s3cret"


async def test_failed_command_redacted() -> None:
    """Test secret values are masked in the error of a failed command."""
    cmd = Command(
        ["sh", "-c", "echo token=$0 >&2; exit 1", "s3cret"],
        exc=ExecutionError,
        redact=["s3cret"],
    )
    with pytest.raises(ExecutionError) as exc_info:
        await run(cmd)
    assert "s3cret" not in str(exc_info.value)
    assert exc_info.value.stderr == "token=***\n"
