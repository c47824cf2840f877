"""A project groups the charts, repositories and releases of a project file.

The project is assembled from a `ProjectConfig` in a configuration phase:
every declared object is created in its container and its properties are
bound to the configured values or to project wide conventions. Nothing is
evaluated until an operation resolves the objects it needs.
"""

from collections.abc import Callable
from datetime import timedelta
import logging
import os
from pathlib import Path

from .chart import MAIN_CHART_NAME, HelmChart
from .config import (
    DEFAULT_MAIN_SOURCE_DIR,
    DEFAULT_PROJECT_FILE,
    ChartConfig,
    CredentialsConfig,
    ProjectConfig,
    ReleaseConfig,
    RepositoryConfig,
    TestOptionsConfig,
    parse_duration,
    read_project_config,
)
from .container import NamedContainer
from .credentials import CertificateCredentials, Credentials, PasswordCredentials
from .exceptions import ConfigurationError
from .helm import HELM_BIN, Options
from .provider import Property, Provider
from .release import ConfigurableHelmReleaseTestOptions, HelmRelease
from .repository import HelmRepository

__all__ = [
    "HelmProject",
    "load_project",
]

_LOGGER = logging.getLogger(__name__)


def _duration(value: str | None, description: str) -> timedelta | None:
    if value is None:
        return None
    try:
        return parse_duration(value)
    except ValueError as err:
        raise ConfigurationError(f"Invalid {description}: {err}") from err


def _credentials(
    config: CredentialsConfig, name: str, resolve: Callable[[str], Path]
) -> Credentials:
    if config.certificate_file:
        if config.username:
            raise ConfigurationError(
                f"Repository '{name}' credentials must use either a username or a certificateFile, not both"
            )
        return CertificateCredentials(
            cert_file=resolve(config.certificate_file),
            key_file=resolve(config.key_file) if config.key_file else None,
        )
    if not config.username:
        raise ConfigurationError(
            f"Repository '{name}' credentials require a username or a certificateFile"
        )
    return PasswordCredentials(username=config.username, password=config.password)


class HelmProject:
    """The charts, repositories and releases of a project."""

    def __init__(self, config: ProjectConfig, project_dir: Path) -> None:
        """Initialize HelmProject."""
        self._config = config
        self._project_dir = project_dir

        self.name: Property[str] = Property("project name")
        self.name.set(config.name)
        self.version: Property[str] = Property("project version")
        self.version.set(config.version)
        self.output_dir: Property[Path] = Property("project outputDir")
        self.output_dir.set(self._path(config.output_dir))
        self.namespace: Property[str] = Property("helm.namespace")
        self.namespace.set(config.helm.namespace)
        self.remote_timeout: Property[timedelta] = Property("helm.remoteTimeout")
        self.remote_timeout.set(
            _duration(config.helm.remote_timeout, "helm.remoteTimeout")
        )
        self.test = ConfigurableHelmReleaseTestOptions("helm")
        self._configure_test_options(self.test, config.helm.test, "helm.test")

        self.charts: NamedContainer[HelmChart] = NamedContainer("chart", self._new_chart)
        self.repositories: NamedContainer[HelmRepository] = NamedContainer(
            "repository", HelmRepository
        )
        self.releases: NamedContainer[HelmRelease] = NamedContainer(
            "release", self._new_release
        )

        main = self.charts.maybe_create(MAIN_CHART_NAME)
        main.source_dir.convention(self._path(DEFAULT_MAIN_SOURCE_DIR))

        for name, repo_config in config.repositories.items():
            self._configure_repository(self.repositories.maybe_create(name), repo_config)
        for name, chart_config in config.charts.items():
            self._configure_chart(self.charts.maybe_create(name), chart_config)
        for name, release_config in config.releases.items():
            self._configure_release(self.releases.maybe_create(name), release_config)

    @property
    def project_dir(self) -> Path:
        """The directory relative paths are resolved against."""
        return self._project_dir

    @property
    def filtering_enabled(self) -> bool:
        """Whether chart sources are filtered before packaging."""
        return self._config.filtering.enabled

    @property
    def filtering_values(self) -> dict[str, str]:
        """Extra placeholder values used when filtering chart sources."""
        values = {str(k): str(v) for k, v in self._config.filtering.values.items()}
        values.setdefault("projectName", self.name.get())
        if (version := self.version.get_or_none()) is not None:
            values.setdefault("projectVersion", version)
        return values

    def helm_options(self) -> Options:
        """Options shared by every helm invocation."""
        helm = self._config.helm
        return Options(
            helm_bin=helm.executable or os.environ.get("HELM_BIN") or HELM_BIN,
            kube_context=helm.kube_context,
            kube_config=str(self._path(helm.kube_config)) if helm.kube_config else None,
        )

    def buildable_charts(self, names: list[str] | None) -> list[HelmChart]:
        """Return the selected charts, skipping the main chart when it has no sources."""
        charts = self.charts.select(names)
        if names:
            return charts
        result = []
        for chart in charts:
            source_dir = chart.source_dir.get_or_none()
            if source_dir is None or not source_dir.exists():
                _LOGGER.debug("Skipping chart '%s' without sources", chart.name)
                continue
            result.append(chart)
        return result

    def _path(self, value: str) -> Path:
        path = Path(value)
        if path.is_absolute():
            return path
        return self._project_dir / path

    def _new_chart(self, name: str) -> HelmChart:
        default_name: Provider[str] | None = None
        if name == MAIN_CHART_NAME:
            # The main chart is named like the project by default
            default_name = self.name
        return HelmChart(
            name,
            default_name=default_name,
            default_version=self.version,
            default_base_output_dir=self.output_dir.map(lambda d: d / "charts"),
        )

    def _new_release(self, name: str) -> HelmRelease:
        return HelmRelease(
            name,
            default_namespace=self.namespace,
            default_timeout=self.remote_timeout,
            default_test_options=self.test,
        )

    def _configure_test_options(
        self,
        options: ConfigurableHelmReleaseTestOptions,
        config: TestOptionsConfig,
        description: str,
    ) -> None:
        options.enabled.set(config.enabled)
        options.show_logs.set(config.show_logs)
        options.timeout.set(_duration(config.timeout, f"{description}.timeout"))

    def _configure_repository(self, repo: HelmRepository, config: RepositoryConfig) -> None:
        repo.url.set(config.url)
        if config.ca_file:
            repo.ca_file.set(self._path(config.ca_file))
        if config.credentials is not None:
            repo.set_credentials(
                _credentials(config.credentials, repo.name, self._path)
            )

    def _configure_chart(self, chart: HelmChart, config: ChartConfig) -> None:
        chart.chart_name.set(config.chart_name)
        chart.chart_version.set(config.chart_version)
        if config.source_dir:
            chart.source_dir.set(self._path(config.source_dir))
        elif chart.name != MAIN_CHART_NAME:
            chart.source_dir.convention(self._path(f"src/{chart.name}/helm"))
        if config.base_output_dir:
            chart.base_output_dir.set(self._path(config.base_output_dir))
        chart.app_version.set(config.app_version)
        chart.update_dependencies.set(config.update_dependencies)

    def _configure_release(self, release: HelmRelease, config: ReleaseConfig) -> None:
        description = f"release '{release.name}'"
        release.chart.set(config.chart)
        release.release_name.set(config.release_name)
        release.version.set(config.version)
        release.namespace.set(config.namespace)
        release.values.update(config.values)
        release.value_files.extend(self._path(f) for f in config.value_files)
        release.replace.set(config.replace)
        release.reset_values.set(config.reset_values)
        release.reuse_values.set(config.reuse_values)
        release.atomic.set(config.atomic)
        release.wait.set(config.wait)
        release.dry_run.set(config.dry_run)
        release.create_namespace.set(config.create_namespace)
        release.timeout.set(_duration(config.timeout, f"{description} timeout"))
        self._configure_test_options(release.test, config.test, f"{description} test")


def load_project(path: Path | None = None) -> HelmProject:
    """Load the project from a project file."""
    if path is None:
        path = Path(DEFAULT_PROJECT_FILE)
    config = read_project_config(path)
    return HelmProject(config, path.parent)
