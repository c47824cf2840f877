"""Releases declared in a project and their test options.

Release level settings fall back to the project wide defaults. The test
options of a release resolve field by field: a value set on the release wins,
then the global `helm.test` setting, then the built-in default (`enabled`
defaults to `True`, `showLogs` and `timeout` stay unset so helm uses its own
defaults).
"""

from dataclasses import dataclass, field
from datetime import timedelta
import logging
from pathlib import Path
from typing import Any

from .chart import HelmChart
from .container import NamedContainer
from .provider import Property, Provider

__all__ = [
    "HelmReleaseTestOptions",
    "ConfigurableHelmReleaseTestOptions",
    "ResolvedTestOptions",
    "HelmRelease",
    "ResolvedRelease",
]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedTestOptions:
    """A snapshot of the test options at the time a test is run."""

    enabled: bool = True
    """Whether testing is enabled for this release."""

    show_logs: bool | None = None
    """Dump the logs from test pods, the `--logs` flag of `helm test`."""

    timeout: timedelta | None = None
    """The `--timeout` of `helm test`, or None for the helm default."""


@dataclass(frozen=True)
class HelmReleaseTestOptions:
    """Remote testing options for a release using `helm test`."""

    enabled: Provider[bool]
    show_logs: Provider[bool]
    timeout: Provider[timedelta]

    def with_defaults(self, defaults: "HelmReleaseTestOptions") -> "HelmReleaseTestOptions":
        """Return options that fall back to `defaults` for each unset field."""
        return HelmReleaseTestOptions(
            enabled=self.enabled.or_else(defaults.enabled),
            show_logs=self.show_logs.or_else(defaults.show_logs),
            timeout=self.timeout.or_else(defaults.timeout),
        )

    def resolve(self) -> ResolvedTestOptions:
        """Evaluate the options, applying the built-in defaults."""
        return ResolvedTestOptions(
            enabled=self.enabled.or_else(True).get(),
            show_logs=self.show_logs.get_or_none(),
            timeout=self.timeout.get_or_none(),
        )


class ConfigurableHelmReleaseTestOptions(HelmReleaseTestOptions):
    """Test options backed by settable properties."""

    enabled: Property[bool]
    show_logs: Property[bool]
    timeout: Property[timedelta]

    def __init__(self, owner: str) -> None:
        """Initialize ConfigurableHelmReleaseTestOptions."""
        super().__init__(
            enabled=Property(f"{owner} test.enabled"),
            show_logs=Property(f"{owner} test.showLogs"),
            timeout=Property(f"{owner} test.timeout"),
        )

    def set_from(self, other: HelmReleaseTestOptions) -> None:
        """Bind every field to the corresponding field of `other`."""
        self.enabled.set(other.enabled)
        self.show_logs.set(other.show_logs)
        self.timeout.set(other.timeout)


@dataclass(frozen=True)
class ResolvedRelease:
    """A release with all configuration resolved to concrete values."""

    name: str
    """The name of the release in the project configuration."""

    release_name: str
    """The name of the release in the cluster."""

    chart: str
    """The chart reference passed to helm: a path, `repo/chart` or URL."""

    version: str | None = None
    """The chart version constraint, the `--version` flag."""

    namespace: str | None = None
    """The namespace to install the release into."""

    values: dict[str, Any] = field(default_factory=dict)
    """Inline values, written to a temporary values file."""

    value_files: list[Path] = field(default_factory=list)
    """Values files passed with `--values`."""

    replace: bool = False
    """Always perform `helm install --replace`."""

    reset_values: bool = False
    """Reset values to the chart defaults when upgrading."""

    reuse_values: bool = False
    """Reuse the values of the last release when upgrading."""

    atomic: bool | None = None
    wait: bool | None = None
    dry_run: bool | None = None
    create_namespace: bool | None = None

    timeout: timedelta | None = None
    """Timeout for install and upgrade operations."""

    test_options: ResolvedTestOptions = field(default_factory=ResolvedTestOptions)
    """Options used by `helm test`."""


class HelmRelease:
    """A release of a chart into a cluster."""

    def __init__(
        self,
        name: str,
        default_namespace: Provider[str] | None = None,
        default_timeout: Provider[timedelta] | None = None,
        default_test_options: HelmReleaseTestOptions | None = None,
    ) -> None:
        """Initialize HelmRelease."""
        self._name = name
        self._default_test_options = default_test_options
        owner = f"release '{name}'"

        self.release_name: Property[str] = Property(f"{owner} releaseName")
        self.release_name.convention(name)
        self.chart: Property[str] = Property(f"{owner} chart")
        self.version: Property[str] = Property(f"{owner} version")
        self.namespace: Property[str] = Property(f"{owner} namespace")
        self.namespace.convention(default_namespace)
        self.values: dict[str, Any] = {}
        self.value_files: list[Path] = []
        self.replace: Property[bool] = Property(f"{owner} replace")
        self.replace.convention(False)
        self.reset_values: Property[bool] = Property(f"{owner} resetValues")
        self.reset_values.convention(False)
        self.reuse_values: Property[bool] = Property(f"{owner} reuseValues")
        self.reuse_values.convention(False)
        self.atomic: Property[bool] = Property(f"{owner} atomic")
        self.wait: Property[bool] = Property(f"{owner} wait")
        self.dry_run: Property[bool] = Property(f"{owner} dryRun")
        self.create_namespace: Property[bool] = Property(f"{owner} createNamespace")
        self.timeout: Property[timedelta] = Property(f"{owner} timeout")
        self.timeout.convention(default_timeout)
        self.test = ConfigurableHelmReleaseTestOptions(owner)

    @property
    def name(self) -> str:
        """The name of the release in the project configuration."""
        return self._name

    @property
    def test_options(self) -> HelmReleaseTestOptions:
        """The test options of this release, falling back to the global defaults."""
        if self._default_test_options is None:
            return self.test
        return self.test.with_defaults(self._default_test_options)

    def chart_reference(
        self, charts: NamedContainer[HelmChart] | None = None
    ) -> tuple[str, str | None]:
        """Return the chart reference and version to pass to helm.

        A chart that names one of the project's charts refers to its package
        file, otherwise the reference is passed to helm as is.
        """
        chart = self.chart.get()
        if charts is not None and (local := charts.get(chart)) is not None:
            resolved = local.resolve()
            return str(resolved.package_file), self.version.get_or_none()
        return chart, self.version.get_or_none()

    def resolve(self, charts: NamedContainer[HelmChart] | None = None) -> ResolvedRelease:
        """Resolve the release configuration into concrete values."""
        chart, version = self.chart_reference(charts)
        return ResolvedRelease(
            name=self._name,
            release_name=self.release_name.get(),
            chart=chart,
            version=version,
            namespace=self.namespace.get_or_none(),
            values=dict(self.values),
            value_files=list(self.value_files),
            replace=self.replace.get(),
            reset_values=self.reset_values.get(),
            reuse_values=self.reuse_values.get(),
            atomic=self.atomic.get_or_none(),
            wait=self.wait.get_or_none(),
            dry_run=self.dry_run.get_or_none(),
            create_namespace=self.create_namespace.get_or_none(),
            timeout=self.timeout.get_or_none(),
            test_options=self.test_options.resolve(),
        )

    def __repr__(self) -> str:
        return f"HelmRelease({self._name!r})"
