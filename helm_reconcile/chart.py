"""Charts built by a project.

A `HelmChart` is configured with properties that may be left unset. The chart
name and version fall back to the values declared in the chart's Chart.yaml,
and then to project level defaults. Calling `resolve()` evaluates everything
once and returns a `ResolvedChart`, which is what packaging and filtering
operate on.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path

from .manifest import (
    CHART_FILE,
    REQUIREMENTS_FILE,
    ChartDescriptor,
    DependencyRef,
    load_chart_descriptor,
    resolve_dependencies,
)
from .provider import Property, Provider

__all__ = [
    "MAIN_CHART_NAME",
    "HelmChart",
    "ResolvedChart",
    "packaged_chart_file_name",
]

_LOGGER = logging.getLogger(__name__)

MAIN_CHART_NAME = "main"


def packaged_chart_file_name(
    chart_name: Provider[str], chart_version: Provider[str]
) -> Provider[str]:
    """Return the name of the packaged chart file, `<name>-<version>.tgz`."""
    return chart_name.flat_map(
        lambda name: chart_version.map(lambda version: f"{name}-{version}.tgz")
    )


@dataclass(frozen=True)
class ResolvedChart:
    """A chart with all configuration resolved to concrete values."""

    name: str
    """The name of the chart in the project configuration."""

    chart_name: str
    """The effective chart name."""

    chart_version: str
    """The effective chart version."""

    source_dir: Path
    """The directory containing the chart sources."""

    base_output_dir: Path
    """The directory the packaged chart is written to."""

    app_version: str | None = None
    """Overrides the appVersion of the packaged chart."""

    update_dependencies: bool = False
    """Update dependencies into `charts/` before packaging."""

    dependencies: list[DependencyRef] = field(default_factory=list)
    """Dependencies declared by the chart."""

    @property
    def output_dir(self) -> Path:
        """The directory the filtered chart sources are written to.

        Helm requires the chart directory to have the same name as the chart.
        """
        return self.base_output_dir / self.chart_name

    @property
    def package_file_name(self) -> str:
        """The name of the packaged chart file."""
        return f"{self.chart_name}-{self.chart_version}.tgz"

    @property
    def package_file(self) -> Path:
        """The location of the packaged chart file."""
        return self.base_output_dir / self.package_file_name


class HelmChart:
    """A chart built by the project."""

    def __init__(
        self,
        name: str,
        default_name: Provider[str] | None = None,
        default_version: Provider[str] | None = None,
        default_base_output_dir: Provider[Path] | None = None,
    ) -> None:
        """Initialize HelmChart."""
        self._name = name
        self._descriptor: ChartDescriptor | None = None
        self._descriptor_path: Path | None = None

        self.source_dir: Property[Path] = Property(f"chart '{name}' sourceDir")
        self.base_output_dir: Property[Path] = Property(
            f"chart '{name}' baseOutputDir"
        )
        self.base_output_dir.convention(default_base_output_dir)
        self.app_version: Property[str] = Property(f"chart '{name}' appVersion")
        self.update_dependencies: Property[bool] = Property(
            f"chart '{name}' updateDependencies"
        )
        self.update_dependencies.convention(False)

        self.chart_descriptor: Provider[ChartDescriptor] = Provider(
            self._load_descriptor, lambda: (f"{CHART_FILE} in chart '{name}' sourceDir",)
        )

        self.chart_name: Property[str] = Property(f"chart '{name}' chartName")
        self.chart_name.convention(
            self.chart_descriptor.map(lambda d: d.name).or_else(
                default_name if default_name is not None else Provider.of(name)
            )
        )
        self.chart_version: Property[str] = Property(f"chart '{name}' chartVersion")
        chart_version = self.chart_descriptor.map(lambda d: d.version)
        if default_version is not None:
            chart_version = chart_version.or_else(default_version)
        self.chart_version.convention(chart_version)

    @property
    def name(self) -> str:
        """The name of the chart in the project configuration."""
        return self._name

    @property
    def output_dir(self) -> Provider[Path]:
        """The directory the filtered chart sources are written to."""
        return self.base_output_dir.flat_map(
            lambda base: self.chart_name.map(lambda chart_name: base / chart_name)
        )

    @property
    def package_file_name(self) -> Provider[str]:
        """The name of the packaged chart file."""
        return packaged_chart_file_name(self.chart_name, self.chart_version)

    @property
    def model_dependencies(self) -> Provider[list[DependencyRef]]:
        """The dependencies from Chart.yaml (v2) or requirements.yaml (v1)."""
        return self.chart_descriptor.flat_map(
            lambda descriptor: self.source_dir.map(
                lambda source_dir: resolve_dependencies(
                    descriptor, source_dir / REQUIREMENTS_FILE
                )
            )
        )

    def _load_descriptor(self) -> ChartDescriptor | None:
        """Parse Chart.yaml once per source directory."""
        if (source_dir := self.source_dir.get_or_none()) is None:
            return None
        path = source_dir / CHART_FILE
        if self._descriptor_path == path:
            return self._descriptor
        if not path.exists():
            _LOGGER.debug("Chart '%s' has no %s at %s", self._name, CHART_FILE, path)
            return None
        self._descriptor = load_chart_descriptor(path)
        self._descriptor_path = path
        return self._descriptor

    def resolve(self) -> ResolvedChart:
        """Resolve the chart configuration into concrete values."""
        return ResolvedChart(
            name=self._name,
            chart_name=self.chart_name.get(),
            chart_version=self.chart_version.get(),
            source_dir=self.source_dir.get(),
            base_output_dir=self.base_output_dir.get(),
            app_version=self.app_version.get_or_none(),
            update_dependencies=bool(self.update_dependencies.get_or_none()),
            dependencies=self.model_dependencies.get_or_none() or [],
        )

    def __repr__(self) -> str:
        return f"HelmChart({self._name!r})"
