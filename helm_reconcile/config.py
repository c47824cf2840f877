"""Configuration objects for helm-reconcile.

The project file (`helm-project.yaml` by default) is decoded into the
dataclasses below. Relative paths are interpreted relative to the directory
containing the project file; see `helm_reconcile.project`.
"""

from dataclasses import dataclass, field
from datetime import timedelta
import logging
from pathlib import Path
import re
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import ExtraKeysError, InvalidFieldValue, MissingField
import yaml

from .exceptions import ParseError

__all__ = [
    "ProjectConfig",
    "HelmConfig",
    "TestOptionsConfig",
    "FilteringConfig",
    "CredentialsConfig",
    "RepositoryConfig",
    "ChartConfig",
    "ReleaseConfig",
    "read_project_config",
    "parse_duration",
    "format_duration",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_PROJECT_FILE = "helm-project.yaml"
DEFAULT_OUTPUT_DIR = "build/helm"
DEFAULT_MAIN_SOURCE_DIR = "src/main/helm"

_DURATION_RE = re.compile(r"(\d+(?:\.\d+)?)(h|ms|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


def parse_duration(value: str | int) -> timedelta:
    """Parse a duration in helm syntax such as `90s`, `5m` or `1h30m`.

    A bare number is a number of seconds.
    """
    if isinstance(value, int):
        return timedelta(seconds=value)
    text = value.strip()
    if text.isdigit():
        return timedelta(seconds=int(text))
    pos = 0
    total = timedelta()
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if not text or pos != len(text):
        raise ValueError(f"Invalid duration '{value}'")
    return total


def format_duration(value: timedelta) -> str:
    """Format a duration in helm syntax."""
    total_ms = value // timedelta(milliseconds=1)
    if total_ms <= 0:
        return "0s"
    seconds, millis = divmod(total_ms, 1000)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs:
        parts.append(f"{secs}s")
    if millis:
        parts.append(f"{millis}ms")
    return "".join(parts)


@dataclass
class BaseConfigModel(DataClassDictMixin):
    """Base class for all configuration objects."""

    class Config(BaseConfig):
        omit_none = True
        forbid_extra_keys = True


@dataclass
class TestOptionsConfig(BaseConfigModel):
    """Options for `helm test`, set globally or per release."""

    __test__ = False

    enabled: bool | None = None
    show_logs: bool | None = field(metadata=field_options(alias="showLogs"), default=None)
    timeout: str | None = None


@dataclass
class HelmConfig(BaseConfigModel):
    """Settings shared by every helm invocation."""

    executable: str | None = None
    kube_context: str | None = field(
        metadata=field_options(alias="kubeContext"), default=None
    )
    kube_config: str | None = field(
        metadata=field_options(alias="kubeConfig"), default=None
    )
    namespace: str | None = None
    remote_timeout: str | None = field(
        metadata=field_options(alias="remoteTimeout"), default=None
    )
    test: TestOptionsConfig = field(default_factory=TestOptionsConfig)


@dataclass
class FilteringConfig(BaseConfigModel):
    """Placeholder substitution applied to chart sources."""

    enabled: bool = True
    values: dict[str, str] = field(default_factory=dict)


@dataclass
class CredentialsConfig(BaseConfigModel):
    """Credentials for a repository, either a password or a client certificate."""

    username: str | None = None
    password: str | None = None
    certificate_file: str | None = field(
        metadata=field_options(alias="certificateFile"), default=None
    )
    key_file: str | None = field(metadata=field_options(alias="keyFile"), default=None)


@dataclass
class RepositoryConfig(BaseConfigModel):
    """A chart repository."""

    url: str
    ca_file: str | None = field(metadata=field_options(alias="caFile"), default=None)
    credentials: CredentialsConfig | None = None


@dataclass
class ChartConfig(BaseConfigModel):
    """A chart built by the project."""

    chart_name: str | None = field(
        metadata=field_options(alias="chartName"), default=None
    )
    chart_version: str | None = field(
        metadata=field_options(alias="chartVersion"), default=None
    )
    source_dir: str | None = field(
        metadata=field_options(alias="sourceDir"), default=None
    )
    base_output_dir: str | None = field(
        metadata=field_options(alias="baseOutputDir"), default=None
    )
    app_version: str | None = field(
        metadata=field_options(alias="appVersion"), default=None
    )
    update_dependencies: bool | None = field(
        metadata=field_options(alias="updateDependencies"), default=None
    )


@dataclass
class ReleaseConfig(BaseConfigModel):
    """A release of a chart."""

    chart: str
    release_name: str | None = field(
        metadata=field_options(alias="releaseName"), default=None
    )
    version: str | None = None
    namespace: str | None = None
    values: dict[str, Any] = field(default_factory=dict)
    value_files: list[str] = field(
        metadata=field_options(alias="valueFiles"), default_factory=list
    )
    replace: bool | None = None
    reset_values: bool | None = field(
        metadata=field_options(alias="resetValues"), default=None
    )
    reuse_values: bool | None = field(
        metadata=field_options(alias="reuseValues"), default=None
    )
    atomic: bool | None = None
    wait: bool | None = None
    dry_run: bool | None = field(metadata=field_options(alias="dryRun"), default=None)
    create_namespace: bool | None = field(
        metadata=field_options(alias="createNamespace"), default=None
    )
    timeout: str | None = None
    test: TestOptionsConfig = field(default_factory=TestOptionsConfig)


@dataclass
class ProjectConfig(BaseConfigModel):
    """The contents of a project file."""

    name: str
    version: str | None = None
    output_dir: str = field(
        metadata=field_options(alias="outputDir"), default=DEFAULT_OUTPUT_DIR
    )
    helm: HelmConfig = field(default_factory=HelmConfig)
    filtering: FilteringConfig = field(default_factory=FilteringConfig)
    repositories: dict[str, RepositoryConfig] = field(default_factory=dict)
    charts: dict[str, ChartConfig] = field(default_factory=dict)
    releases: dict[str, ReleaseConfig] = field(default_factory=dict)

    @classmethod
    def parse_doc(cls, doc: Any, path: Path) -> "ProjectConfig":
        """Parse the project configuration from a YAML document."""
        if not isinstance(doc, dict):
            raise ParseError(path, f"Expected a mapping but was {type(doc).__name__}")
        try:
            return cls.from_dict(doc)
        except (
            MissingField,
            ExtraKeysError,
            InvalidFieldValue,
            ValueError,
            TypeError,
        ) as err:
            raise ParseError(path, str(err)) from err


def read_project_config(path: Path) -> ProjectConfig:
    """Read the project file."""
    _LOGGER.debug("Reading project file %s", path)
    try:
        content = path.read_text()
    except FileNotFoundError as err:
        raise ParseError(path, "Project file does not exist") from err
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise ParseError(path, f"Invalid YAML: {err}") from err
    return ProjectConfig.parse_doc(doc, path)
