"""Decides how to bring a release to its desired state.

Installing or upgrading a release is done with one of two helm commands:

- `helm upgrade --install` installs the release when it does not exist and
  upgrades it in place otherwise.
- `helm install --replace` reinstalls the release, reusing its name.

The replace form is chosen when explicitly requested, or when the latest
revision of the release has failed, since helm refuses to upgrade a release
in that state. The remote state is queried fresh for every decision and a
failed query aborts the decision instead of falling back to either command.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
import logging

from .manifest import ReleaseState, ReleaseStatus
from .release import ResolvedRelease

__all__ = [
    "Operation",
    "PlannedOperation",
    "ReleaseActionPlanner",
    "select_operation",
    "plan_operation",
]

_LOGGER = logging.getLogger(__name__)


ReleaseQuery = Callable[[str, str | None], Awaitable[ReleaseState | None]]


class Operation(StrEnum):
    """The helm operation used to install or upgrade a release."""

    INSTALL_REPLACE = "install-replace"
    UPGRADE_INSTALL = "upgrade-install"

    @property
    def command(self) -> str:
        """The helm subcommand for the operation."""
        if self is Operation.INSTALL_REPLACE:
            return "install"
        return "upgrade"


@dataclass(frozen=True)
class PlannedOperation:
    """An operation together with the flags selected for it."""

    operation: Operation
    release_name: str
    flags: tuple[tuple[str, bool], ...]

    @property
    def command(self) -> str:
        """The helm subcommand to run."""
        return self.operation.command

    @property
    def args(self) -> list[str]:
        """The subcommand followed by the enabled flags."""
        return [self.command] + [flag for flag, enabled in self.flags if enabled]


def select_operation(replace: bool, state: ReleaseState | None) -> Operation:
    """Select the operation from the replace override and the observed state."""
    if replace:
        return Operation.INSTALL_REPLACE
    if state is None:
        return Operation.UPGRADE_INSTALL
    if state.status == ReleaseStatus.FAILED:
        return Operation.INSTALL_REPLACE
    return Operation.UPGRADE_INSTALL


def plan_operation(release: ResolvedRelease, state: ReleaseState | None) -> PlannedOperation:
    """Select the operation for a release and assemble its flags."""
    operation = select_operation(release.replace, state)
    flags: tuple[tuple[str, bool], ...]
    if operation is Operation.INSTALL_REPLACE:
        # --reset-values and --reuse-values do not apply to install
        flags = (("--replace", True),)
    else:
        flags = (
            ("--install", True),
            ("--reset-values", release.reset_values),
            ("--reuse-values", release.reuse_values),
        )
    return PlannedOperation(
        operation=operation, release_name=release.release_name, flags=flags
    )


class ReleaseActionPlanner:
    """Plans install/upgrade operations using the live state of each release."""

    def __init__(self, query: ReleaseQuery) -> None:
        """Initialize ReleaseActionPlanner."""
        self._query = query

    async def plan(self, release: ResolvedRelease) -> PlannedOperation:
        """Return the operation that brings the release to its desired state.

        Errors raised by the query propagate to the caller.
        """
        name = release.release_name
        if release.replace:
            _LOGGER.info(
                "Release \"%s\" has replace enabled. Using 'helm install --replace'.",
                name,
            )
            return plan_operation(release, None)

        state = await self._query(name, release.namespace)
        planned = plan_operation(release, state)
        if state is None:
            _LOGGER.info(
                "Release \"%s\" does not exist. Using 'helm upgrade --install' to install it.",
                name,
            )
        elif planned.operation is Operation.INSTALL_REPLACE:
            _LOGGER.info(
                "Release \"%s\" has previously failed. Using 'helm install --replace' to install it.",
                name,
            )
        else:
            _LOGGER.info(
                "Release \"%s\" is %s at revision %d. Using 'helm upgrade --install'.",
                name,
                state.status,
                state.revision,
            )
        return planned
