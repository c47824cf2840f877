"""Command line actions for the releases of a project."""

from argparse import (
    ArgumentParser,
    BooleanOptionalAction,
    _SubParsersAction as SubParsersAction,
)
import logging
import pathlib
import shlex
import sys
from typing import Any, cast

from helm_reconcile.helm import Helm
from helm_reconcile.project import HelmProject
from helm_reconcile.release import HelmRelease

from . import common
from .format import formatter

_LOGGER = logging.getLogger(__name__)


def _register(
    cls: type,
    subparsers: SubParsersAction,  # type: ignore[type-arg]
    name: str,
    help: str,
    description: str | None = None,
) -> ArgumentParser:
    args = cast(
        ArgumentParser,
        subparsers.add_parser(name, help=help, description=description or help),
    )
    common.add_common_flags(args, "release")
    args.set_defaults(cls=cls)
    return args


async def _add_repositories(project: HelmProject, helm: Helm) -> None:
    """Register the project's repositories with helm before using their charts."""
    if not len(project.repositories):
        return
    for repo in project.repositories:
        await helm.add_repository(repo.resolve())
    await helm.update_repositories()


class PlanAction:
    """Print the command used to install or upgrade each release."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        return _register(
            cls,
            subparsers,
            "plan",
            help="Print the helm command that install would run",
            description="""Query the current state of each release and print the
                helm command that would install or upgrade it, without running it.""",
        )

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, helm = common.load(config)

        async def plan_release(release: HelmRelease) -> None:
            resolved = release.resolve(project.charts)
            planned = await helm.plan(resolved)
            values_file = None
            if resolved.values:
                values_file = pathlib.Path(f"{resolved.release_name}-values.yaml")
            args = helm.installation_args(resolved, planned, values_file).build()
            print(f"{release.name}: helm {shlex.join(args)}")

        await common.for_each(
            "release", project.releases.select(names), lambda r: r.name, plan_release
        )


class InstallAction:
    """Install or upgrade releases."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        return _register(
            cls,
            subparsers,
            "install",
            help="Install or upgrade releases",
            description="""Install each release with 'helm upgrade --install', or with
                'helm install --replace' when replace is enabled or the release has
                previously failed.""",
        )

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, helm = common.load(config)
        releases = project.releases.select(names)
        if not releases:
            print("No releases found")
            return
        await _add_repositories(project, helm)

        async def install_release(release: HelmRelease) -> None:
            planned = await helm.install_or_upgrade(release.resolve(project.charts))
            print(f"{release.name}: {' '.join(planned.args)}")

        await common.for_each("release", releases, lambda r: r.name, install_release)


class TestAction:
    """Run the tests of releases."""

    __test__ = False

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        return _register(cls, subparsers, "test", help="Run helm test for releases")

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, helm = common.load(config)

        async def test_release(release: HelmRelease) -> None:
            if await helm.test(release.resolve()):
                print(f"{release.name}: tested")
            else:
                print(f"{release.name}: testing disabled")

        await common.for_each(
            "release", project.releases.select(names), lambda r: r.name, test_release
        )


class UninstallAction:
    """Uninstall releases."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = _register(cls, subparsers, "uninstall", help="Uninstall releases")
        args.add_argument(
            "--keep-history",
            type=bool,
            default=False,
            action=BooleanOptionalAction,
            help="Keep the release history so the release can be rolled back",
        )
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        keep_history: bool,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, helm = common.load(config)

        async def uninstall_release(release: HelmRelease) -> None:
            if await helm.uninstall(release.resolve(), keep_history=keep_history):
                print(f"{release.name}: uninstalled")
            else:
                print(f"{release.name}: not installed")

        await common.for_each(
            "release",
            project.releases.select(names),
            lambda r: r.name,
            uninstall_release,
        )


class RollbackAction:
    """Roll releases back to a previous revision."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = _register(
            cls, subparsers, "rollback", help="Roll releases back to a previous revision"
        )
        args.add_argument(
            "--revision",
            type=int,
            default=None,
            help="The revision to roll back to (default: the previous revision)",
        )
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        revision: int | None,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, helm = common.load(config)

        async def rollback_release(release: HelmRelease) -> None:
            rolled_back = await helm.rollback(release.resolve(), revision)
            print(f"{release.name}: rolled back to revision {rolled_back}")

        await common.for_each(
            "release",
            project.releases.select(names),
            lambda r: r.name,
            rollback_release,
        )


class StatusAction:
    """Print the current state of releases."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = _register(
            cls, subparsers, "status", help="Print the current state of releases"
        )
        args.add_argument(
            "--output",
            "-o",
            choices=["table", "yaml", "json"],
            default="table",
            help="Output format of the command",
        )
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, helm = common.load(config)
        cols = ["name", "release", "namespace", "status", "revision"]
        results: list[dict[str, Any]] = []

        async def release_status(release: HelmRelease) -> None:
            name = release.release_name.get()
            namespace = release.namespace.get_or_none()
            state = await helm.get_release(name, namespace)
            results.append(
                {
                    "name": release.name,
                    "release": name,
                    "namespace": state.namespace if state else namespace,
                    "status": str(state.status) if state else "not-installed",
                    "revision": state.revision if state else None,
                }
            )

        try:
            await common.for_each(
                "release",
                project.releases.select(names),
                lambda r: r.name,
                release_status,
            )
        finally:
            if results:
                formatter(output, cols).print(results, file=sys.stdout)
