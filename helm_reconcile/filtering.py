"""Copies chart sources to the output directory, expanding placeholders.

Placeholders of the form `${key}` in `Chart.yaml`, `requirements.yaml` and
`values.yaml` are replaced with the chart name and version and any values
configured under `filtering.values`. Unknown placeholders are left as is so
that templates using the same syntax pass through untouched. All other files
are copied verbatim.
"""

from collections.abc import Mapping
import logging
from pathlib import Path
import re
import shutil

import aiofiles

from .chart import ResolvedChart
from .manifest import CHART_FILE, REQUIREMENTS_FILE, VALUES_FILE

__all__ = [
    "filter_chart_sources",
    "expand_placeholders",
]

_LOGGER = logging.getLogger(__name__)

FILTERED_FILES = (CHART_FILE, REQUIREMENTS_FILE, VALUES_FILE)

_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z0-9_.\-]+)\}")


def expand_placeholders(content: str, values: Mapping[str, str]) -> str:
    """Replace `${key}` placeholders with values, keeping unknown keys."""

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in values:
            return values[key]
        return match.group(0)

    return _PLACEHOLDER_RE.sub(replace, content)


def chart_filter_values(
    chart: ResolvedChart, extra: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Return the placeholder values available when filtering a chart."""
    values = dict(extra or {})
    values["chartName"] = chart.chart_name
    values["chartVersion"] = chart.chart_version
    if chart.app_version is not None:
        values["appVersion"] = chart.app_version
    return values


async def filter_chart_sources(
    chart: ResolvedChart, extra_values: Mapping[str, str] | None = None
) -> Path:
    """Copy the chart sources into the chart output directory.

    Returns the output directory, which is named like the chart.
    """
    target_dir = chart.output_dir
    values = chart_filter_values(chart, extra_values)
    _LOGGER.debug("Filtering chart sources %s to %s", chart.source_dir, target_dir)
    if target_dir.exists():
        shutil.rmtree(target_dir)
    shutil.copytree(chart.source_dir, target_dir)
    for name in FILTERED_FILES:
        path = target_dir / name
        if not path.exists():
            continue
        async with aiofiles.open(path, mode="r") as src:
            content = await src.read()
        async with aiofiles.open(path, mode="w") as dst:
            await dst.write(expand_placeholders(content, values))
    return target_dir
