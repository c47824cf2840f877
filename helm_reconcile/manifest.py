"""Representation of chart manifests and remote release state.

A `ChartDescriptor` is parsed from the `Chart.yaml` file in a chart source
directory. Charts with `apiVersion: v1` declare their dependencies in a
separate `requirements.yaml` file, while later API versions embed them in the
descriptor itself. The two layouts are not interchangeable, which is why
`resolve_dependencies` picks the source based on the API version.

A `ReleaseState` is the state of an installed release as reported by
`helm list --output json`.
"""

from dataclasses import dataclass, field
from enum import StrEnum
import logging
from pathlib import Path
from typing import Any, ClassVar

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
import yaml

from .exceptions import ParseError, QueryError

__all__ = [
    "ChartDescriptor",
    "DependencyRef",
    "ReleaseStatus",
    "ReleaseState",
    "load_chart_descriptor",
    "load_requirements",
    "resolve_dependencies",
]

_LOGGER = logging.getLogger(__name__)


CHART_FILE = "Chart.yaml"
REQUIREMENTS_FILE = "requirements.yaml"
VALUES_FILE = "values.yaml"
API_VERSION_V1 = "v1"
API_VERSION_V2 = "v2"


@dataclass(frozen=True)
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    def compact_dict(self) -> dict[str, Any]:
        """Return a compact dictionary representation of the object."""
        return self.to_dict()

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass(frozen=True)
class DependencyRef(BaseManifest):
    """A dependency of a chart on another chart."""

    name: str
    """The name of the chart the dependency refers to."""

    version: str | None = None
    """A version or version range of the dependency."""

    repository: str | None = None
    """The repository URL or alias (e.g. `@stable`) to fetch the chart from."""

    condition: str | None = None
    """A values path that enables or disables the dependency."""

    tags: list[str] | None = None
    """Tags used to enable or disable groups of dependencies."""

    alias: str | None = None
    """An alternative name for the dependency within the parent chart."""

    @classmethod
    def parse_doc(cls, doc: Any, path: Path) -> "DependencyRef":
        """Parse a DependencyRef from an entry of a `dependencies` list."""
        if not isinstance(doc, dict):
            raise ParseError(path, f"Dependency entry is not a mapping: {doc!r}")
        if not (name := doc.get("name")):
            raise ParseError(path, f"Dependency missing name: {doc!r}")
        tags = doc.get("tags")
        if tags is not None and not isinstance(tags, list):
            raise ParseError(path, f"Dependency {name} tags is not a list: {tags!r}")
        return cls(
            name=str(name),
            version=_optional_str(doc.get("version")),
            repository=doc.get("repository"),
            condition=doc.get("condition"),
            tags=[str(tag) for tag in tags] if tags is not None else None,
            alias=doc.get("alias"),
        )


def _parse_dependencies(doc: dict[str, Any], path: Path) -> list[DependencyRef]:
    deps = doc.get("dependencies")
    if deps is None:
        return []
    if not isinstance(deps, list):
        raise ParseError(path, f"Expected 'dependencies' to be a list: {deps!r}")
    return [DependencyRef.parse_doc(dep, path) for dep in deps]


def _optional_str(value: Any) -> str | None:
    # YAML turns unquoted versions like `1.0` into floats
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True)
class ChartDescriptor(BaseManifest):
    """The identity and dependencies of a chart as declared in Chart.yaml."""

    api_version: str = field(metadata=field_options(alias="apiVersion"))
    """The chart API version (`v1` or `v2`)."""

    name: str | None = None
    """The chart name, if declared."""

    version: str | None = None
    """The chart version, if declared."""

    app_version: str | None = field(
        metadata=field_options(alias="appVersion"), default=None
    )
    """The version of the application contained in the chart."""

    description: str | None = None
    """A single-sentence description of the chart."""

    dependencies: list[DependencyRef] = field(default_factory=list)
    """Dependencies embedded in the descriptor (API version v2 and later)."""

    @classmethod
    def parse_doc(cls, doc: Any, path: Path) -> "ChartDescriptor":
        """Parse a ChartDescriptor from the contents of a Chart.yaml file."""
        if not isinstance(doc, dict):
            raise ParseError(path, f"Expected a mapping but was {type(doc).__name__}")
        if not (api_version := doc.get("apiVersion")):
            raise ParseError(path, "Chart descriptor missing apiVersion")
        return cls(
            api_version=str(api_version),
            name=_optional_str(doc.get("name")),
            version=_optional_str(doc.get("version")),
            app_version=_optional_str(doc.get("appVersion")),
            description=doc.get("description"),
            dependencies=_parse_dependencies(doc, path),
        )


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text())
    except yaml.YAMLError as err:
        raise ParseError(path, f"Invalid YAML: {err}") from err


def load_chart_descriptor(path: Path) -> ChartDescriptor:
    """Parse a Chart.yaml file into a ChartDescriptor."""
    _LOGGER.debug("Loading chart descriptor %s", path)
    return ChartDescriptor.parse_doc(_load_yaml(path), path)


def load_requirements(path: Path) -> list[DependencyRef]:
    """Parse the dependencies from a requirements.yaml file.

    A missing file means the chart has no dependencies.
    """
    if not path.exists():
        _LOGGER.debug("No requirements file %s", path)
        return []
    doc = _load_yaml(path)
    if doc is None:
        return []
    if not isinstance(doc, dict):
        raise ParseError(path, f"Expected a mapping but was {type(doc).__name__}")
    return _parse_dependencies(doc, path)


def resolve_dependencies(
    descriptor: ChartDescriptor, requirements_path: Path
) -> list[DependencyRef]:
    """Return the dependencies of a chart according to its API version."""
    if descriptor.api_version == API_VERSION_V1:
        return load_requirements(requirements_path)
    return list(descriptor.dependencies)


class ReleaseStatus(StrEnum):
    """The status of a release as reported by helm."""

    DEPLOYED = "deployed"
    FAILED = "failed"
    PENDING_INSTALL = "pending-install"
    PENDING_UPGRADE = "pending-upgrade"
    PENDING_ROLLBACK = "pending-rollback"
    UNINSTALLED = "uninstalled"
    UNINSTALLING = "uninstalling"
    SUPERSEDED = "superseded"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ReleaseState(BaseManifest):
    """The observed state of a release in the remote cluster."""

    exists: ClassVar[bool] = True
    """A parsed state always refers to an existing release."""

    name: str
    """The release name."""

    status: ReleaseStatus
    """The status of the latest revision."""

    revision: int
    """The latest revision number."""

    namespace: str | None = None
    """The namespace the release is installed into."""

    chart: str | None = None
    """The chart name and version, e.g. `nginx-1.2.3`."""

    app_version: str | None = None
    """The application version of the installed chart."""

    @classmethod
    def parse_doc(cls, doc: Any) -> "ReleaseState":
        """Parse a ReleaseState from an entry of `helm list --output json`."""
        if not isinstance(doc, dict):
            raise QueryError(f"Invalid release entry, expected a mapping: {doc!r}")
        if not (name := doc.get("name")):
            raise QueryError(f"Invalid release entry missing name: {doc!r}")
        if not (status := doc.get("status")):
            raise QueryError(f"Release {name} missing status: {doc!r}")
        try:
            release_status = ReleaseStatus(str(status).lower())
        except ValueError as err:
            raise QueryError(f"Release {name} has unrecognized status '{status}'") from err
        if (raw_revision := doc.get("revision")) is None:
            raise QueryError(f"Release {name} missing revision: {doc!r}")
        try:
            revision = int(raw_revision)
        except (TypeError, ValueError) as err:
            raise QueryError(
                f"Release {name} has invalid revision '{raw_revision}'"
            ) from err
        return cls(
            name=name,
            status=release_status,
            revision=revision,
            namespace=doc.get("namespace"),
            chart=doc.get("chart"),
            app_version=doc.get("app_version"),
        )
