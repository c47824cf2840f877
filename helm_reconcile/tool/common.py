"""Helpers shared by the command line actions."""

from argparse import ArgumentParser
from collections.abc import Awaitable, Callable
import logging
import pathlib
from typing import TypeVar

from helm_reconcile.config import DEFAULT_PROJECT_FILE
from helm_reconcile.context import trace_context
from helm_reconcile.exceptions import HelmReconcileException
from helm_reconcile.helm import Helm
from helm_reconcile.project import HelmProject, load_project

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


def add_common_flags(args: ArgumentParser, kind: str) -> None:
    """Add flags for selecting the project file and the objects to act on."""
    args.add_argument(
        "names",
        nargs="*",
        metavar="NAME",
        help=f"Names of the {kind}s to act on (default: all)",
    )
    args.add_argument(
        "--config",
        "-c",
        type=pathlib.Path,
        default=pathlib.Path(DEFAULT_PROJECT_FILE),
        help="Path to the project file",
    )


def load(config: pathlib.Path) -> tuple[HelmProject, Helm]:
    """Load the project and create a Helm client for it."""
    project = load_project(config)
    return project, Helm(project.helm_options())


async def for_each(
    kind: str,
    items: list[_T],
    name: Callable[[_T], str],
    func: Callable[[_T], Awaitable[None]],
) -> None:
    """Run `func` for each item in turn, isolating failures.

    An error for one item is logged and does not stop the remaining items.
    Once all items were processed, an exception naming the failed items is
    raised if there were any failures.
    """
    failed: list[str] = []
    for item in items:
        item_name = name(item)
        with trace_context(f"{kind} {item_name}"):
            try:
                await func(item)
            except HelmReconcileException as err:
                _LOGGER.error("%s '%s' failed: %s", kind.capitalize(), item_name, err)
                failed.append(item_name)
    if failed:
        raise HelmReconcileException(
            f"{len(failed)} of {len(items)} {kind}s failed: {', '.join(failed)}"
        )
