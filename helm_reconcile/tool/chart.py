"""Command line actions for the charts of a project."""

from argparse import (
    ArgumentParser,
    _SubParsersAction as SubParsersAction,
)
import logging
import pathlib
import sys
from typing import Any, cast

from helm_reconcile.chart import HelmChart
from helm_reconcile.filtering import filter_chart_sources

from . import common
from .format import formatter

_LOGGER = logging.getLogger(__name__)


class ChartsAction:
    """List the charts of a project."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "charts",
                help="List the charts of the project",
                description="Print the effective name, version and dependencies of each chart",
            ),
        )
        common.add_common_flags(args, "chart")
        args.add_argument(
            "--output",
            "-o",
            choices=["table", "yaml", "json"],
            default="table",
            help="Output format of the command",
        )
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        output: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, _ = common.load(config)
        results: list[dict[str, Any]] = []
        for chart in project.buildable_charts(names):
            resolved = chart.resolve()
            results.append(
                {
                    "name": resolved.name,
                    "chart": resolved.chart_name,
                    "version": resolved.chart_version,
                    "package": resolved.package_file_name,
                    "dependencies": ",".join(dep.name for dep in resolved.dependencies),
                }
            )
        if not results:
            print("No charts found")
            return
        formatter(output).print(results, file=sys.stdout)


class FilterAction:
    """Filter the sources of charts into the output directory."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "filter",
                help="Copy chart sources to the output directory, expanding placeholders",
                description="Copy chart sources to the output directory, expanding placeholders",
            ),
        )
        common.add_common_flags(args, "chart")
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, _ = common.load(config)

        async def filter_chart(chart: HelmChart) -> None:
            target = await filter_chart_sources(
                chart.resolve(), project.filtering_values
            )
            print(f"{chart.name}: {target}")

        await common.for_each(
            "chart", project.buildable_charts(names), lambda c: c.name, filter_chart
        )


class PackageAction:
    """Package charts into versioned chart archives."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "package",
                help="Package charts with helm package",
                description="""Package each chart into a <name>-<version>.tgz archive
                    in its output directory. Sources are filtered first unless
                    filtering is disabled in the project file.""",
            ),
        )
        common.add_common_flags(args, "chart")
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        config: pathlib.Path,
        names: list[str],
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        project, helm = common.load(config)

        async def package_chart(chart: HelmChart) -> None:
            resolved = chart.resolve()
            source_dir = resolved.source_dir
            if project.filtering_enabled:
                source_dir = await filter_chart_sources(
                    resolved, project.filtering_values
                )
            package_file = await helm.package(resolved, source_dir)
            print(f"{chart.name}: {package_file}")

        await common.for_each(
            "chart", project.buildable_charts(names), lambda c: c.name, package_chart
        )
