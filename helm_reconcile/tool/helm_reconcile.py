"""Command line tool for packaging charts and reconciling releases with helm."""

import argparse
import asyncio
import logging
import sys
import traceback

from helm_reconcile.exceptions import HelmReconcileException
from . import chart, release

_LOGGER = logging.getLogger(__name__)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="helm-reconcile",
        description="Command line utility for packaging charts and reconciling releases with helm.",
    )
    parser.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    chart.ChartsAction.register(subparsers)
    chart.FilterAction.register(subparsers)
    chart.PackageAction.register(subparsers)
    release.PlanAction.register(subparsers)
    release.InstallAction.register(subparsers)
    release.TestAction.register(subparsers)
    release.UninstallAction.register(subparsers)
    release.RollbackAction.register(subparsers)
    release.StatusAction.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> None:
    """helm-reconcile command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        logging.basicConfig(level=args.log_level)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except HelmReconcileException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("helm-reconcile error: ", err, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
