"""Library for running `helm` commands against a cluster.

The `Helm` class turns resolved charts and releases into helm invocations.
Every method takes values that were already resolved during configuration, so
nothing is looked up while a command is being assembled.

This is an example that installs or upgrades every release of a project:
```python
from helm_reconcile.project import load_project
from helm_reconcile.helm import Helm

project = load_project(Path("helm-project.yaml"))
helm = Helm(project.helm_options())
for release in project.releases:
    await helm.install_or_upgrade(release.resolve(project.charts))
```
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
import json
import logging
from pathlib import Path
import re
import tempfile
from typing import Any

import aiofiles
from aiofiles.os import makedirs
import yaml

from . import command
from .chart import ResolvedChart
from .config import format_duration
from .exceptions import (
    CommandException,
    ExecutionError,
    QueryError,
    ReleaseNotFoundError,
)
from .manifest import ReleaseState
from .planner import PlannedOperation, ReleaseActionPlanner
from .release import ResolvedRelease, ResolvedTestOptions
from .repository import ResolvedRepository

__all__ = [
    "Helm",
    "HelmArgs",
    "Options",
]

_LOGGER = logging.getLogger(__name__)


HELM_BIN = "helm"

Runner = Callable[[command.Task], Awaitable[str]]


class HelmArgs:
    """Builds the argument list of a helm invocation.

    Flags and options are added in order; an option whose value is None and a
    flag that is not enabled are left out of the command line entirely.
    """

    def __init__(self, *subcommand: str) -> None:
        """Initialize HelmArgs."""
        self._args: list[str] = list(subcommand)

    def args(self, *values: str | Path) -> "HelmArgs":
        """Append positional arguments."""
        self._args.extend(str(value) for value in values)
        return self

    def flag(self, name: str, enabled: bool | None = True) -> "HelmArgs":
        """Append a boolean flag when enabled."""
        if enabled:
            self._args.append(name)
        return self

    def option(self, name: str, value: Any | None) -> "HelmArgs":
        """Append an option with a value, unless the value is absent."""
        if value is None:
            return self
        if isinstance(value, timedelta):
            value = format_duration(value)
        self._args.extend([name, str(value)])
        return self

    def options(self, pairs: list[tuple[str, Any | None]]) -> "HelmArgs":
        """Append `(name, value)` options in order."""
        for name, value in pairs:
            self.option(name, value)
        return self

    def build(self) -> list[str]:
        """Return the arguments, without the helm executable."""
        return list(self._args)


@dataclass
class Options:
    """Options shared by every helm invocation."""

    helm_bin: str = HELM_BIN
    """The helm executable."""

    kube_context: str | None = None
    """Value of the helm --kube-context flag."""

    kube_config: str | None = None
    """Value of the helm --kubeconfig flag."""

    @property
    def base_args(self) -> list[str]:
        """Helm CLI arguments built from the options."""
        return (
            HelmArgs()
            .option("--kube-context", self.kube_context)
            .option("--kubeconfig", self.kube_config)
            .build()
        )


class QueryCommandError(CommandException):
    """Raised when the helm command used to query release state fails."""


class Helm:
    """Runs helm commands for the charts and releases of a project."""

    def __init__(self, options: Options | None = None, runner: Runner | None = None) -> None:
        """Initialize Helm."""
        self._options = options or Options()
        self._runner = runner or command.run
        self._planner = ReleaseActionPlanner(self.get_release)

    async def _run(
        self,
        args: HelmArgs,
        exc: type[CommandException] = ExecutionError,
        redact: list[str] | None = None,
    ) -> str:
        cmd = [self._options.helm_bin] + args.build() + self._options.base_args
        return await self._runner(command.Command(cmd, exc=exc, redact=redact or []))

    async def get_release(self, name: str, namespace: str | None = None) -> ReleaseState | None:
        """Query the current state of a release.

        Returns None when the release does not exist. Raises QueryError when
        the state could not be determined.
        """
        args = (
            HelmArgs("list")
            .flag("--all")
            .option("--filter", f"^{re.escape(name)}$")
            .option("--namespace", namespace)
            .flag("--all-namespaces", namespace is None)
            .option("--output", "json")
        )
        try:
            out = await self._run(args, exc=QueryCommandError)
        except QueryCommandError as err:
            raise QueryError(f"Failed to query release {name}: {err}") from err
        try:
            doc = json.loads(out) if out.strip() else []
        except json.JSONDecodeError as err:
            raise QueryError(f"Invalid response querying release {name}: {err}") from err
        if not isinstance(doc, list):
            raise QueryError(f"Invalid response querying release {name}: {doc!r}")
        states = [ReleaseState.parse_doc(entry) for entry in doc]
        # The filter is a regular expression over names, so check again
        matches = [state for state in states if state.name == name]
        if not matches:
            _LOGGER.debug("Release %s not found", name)
            return None
        if len(matches) > 1:
            raise QueryError(
                f"Found {len(matches)} releases named {name}, specify a namespace"
            )
        return matches[0]

    async def add_repository(self, repo: ResolvedRepository) -> None:
        """Register a chart repository with helm."""
        args = (
            HelmArgs("repo", "add")
            .args(repo.name, repo.url)
            .flag("--force-update")
            .option("--ca-file", repo.ca_file)
        )
        secrets: list[str] = []
        if repo.credentials is not None:
            args.options(repo.credentials.helm_options())
            secrets = repo.credentials.secrets()
        await self._run(args, redact=secrets)

    async def update_repositories(self) -> None:
        """Update the index of all registered repositories."""
        await self._run(HelmArgs("repo", "update"))

    async def package(self, chart: ResolvedChart, source_dir: Path | None = None) -> Path:
        """Package a chart into a versioned chart archive.

        Returns the path of the created package file.
        """
        # helm package fails if the destination does not exist
        await makedirs(chart.base_output_dir, exist_ok=True)
        args = (
            HelmArgs("package")
            .option("--app-version", chart.app_version)
            .flag("--dependency-update", chart.update_dependencies)
            .option("--destination", chart.base_output_dir)
            .option("--version", chart.chart_version)
            .args(source_dir or chart.source_dir)
        )
        await self._run(args)
        _LOGGER.info("Packaged chart %s to %s", chart.chart_name, chart.package_file)
        return chart.package_file

    async def plan(self, release: ResolvedRelease) -> PlannedOperation:
        """Select the install or upgrade operation for a release."""
        return await self._planner.plan(release)

    def installation_args(
        self, release: ResolvedRelease, planned: PlannedOperation, values_file: Path | None
    ) -> HelmArgs:
        """Return the arguments for the planned install or upgrade operation."""
        args = HelmArgs(planned.command).args(release.release_name, release.chart)
        for flag, enabled in planned.flags:
            args.flag(flag, enabled)
        args.options(
            [
                ("--namespace", release.namespace),
                ("--version", release.version),
            ]
        )
        for value_file in release.value_files:
            args.option("--values", value_file)
        args.option("--values", values_file)
        args.flag("--atomic", release.atomic)
        args.flag("--wait", release.wait)
        args.flag("--dry-run", release.dry_run)
        args.flag("--create-namespace", release.create_namespace)
        args.option("--timeout", release.timeout)
        return args

    async def install_or_upgrade(self, release: ResolvedRelease) -> PlannedOperation:
        """Install the release, or upgrade it if it already exists."""
        planned = await self.plan(release)
        with tempfile.TemporaryDirectory() as tmp_dir:
            values_file: Path | None = None
            if release.values:
                values_file = Path(tmp_dir) / f"{release.release_name}-values.yaml"
                async with aiofiles.open(values_file, mode="w") as values:
                    await values.write(yaml.dump(release.values, sort_keys=False))
            await self._run(self.installation_args(release, planned, values_file))
        return planned

    def test_args(self, release: ResolvedRelease, options: ResolvedTestOptions) -> HelmArgs:
        """Return the arguments for `helm test`."""
        return (
            HelmArgs("test")
            .args(release.release_name)
            .option("--namespace", release.namespace)
            .flag("--logs", options.show_logs)
            .option("--timeout", options.timeout)
        )

    async def test(self, release: ResolvedRelease) -> bool:
        """Run the tests of a release, returning False when testing is disabled."""
        options = release.test_options
        if not options.enabled:
            _LOGGER.info("Testing is disabled for release \"%s\"", release.release_name)
            return False
        await self._run(self.test_args(release, options))
        return True

    async def uninstall(self, release: ResolvedRelease, keep_history: bool = False) -> bool:
        """Uninstall a release, returning False if it did not exist."""
        state = await self.get_release(release.release_name, release.namespace)
        if state is None:
            _LOGGER.info(
                "Release \"%s\" does not exist, nothing to uninstall", release.release_name
            )
            return False
        args = (
            HelmArgs("uninstall")
            .args(release.release_name)
            .option("--namespace", release.namespace)
            .flag("--keep-history", keep_history)
            .flag("--wait", release.wait)
            .option("--timeout", release.timeout)
        )
        await self._run(args)
        return True

    async def rollback(self, release: ResolvedRelease, revision: int | None = None) -> int:
        """Roll a release back to a revision, by default the previous one.

        Returns the revision the release was rolled back to.
        """
        state = await self.get_release(release.release_name, release.namespace)
        if state is None:
            raise ReleaseNotFoundError(
                f"Release \"{release.release_name}\" does not exist, nothing to roll back"
            )
        if revision is None:
            if state.revision <= 1:
                raise ReleaseNotFoundError(
                    f"Release \"{release.release_name}\" has no previous revision"
                )
            revision = state.revision - 1
        args = (
            HelmArgs("rollback")
            .args(release.release_name, str(revision))
            .option("--namespace", release.namespace)
            .flag("--wait", release.wait)
            .option("--timeout", release.timeout)
        )
        await self._run(args)
        return revision
