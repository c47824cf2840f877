"""Chart repositories declared in a project."""

from dataclasses import dataclass
import logging
from pathlib import Path

from .credentials import Credentials, CredentialsContainer, CredentialsSupport
from .provider import Property, Provider

__all__ = [
    "HelmRepository",
    "ResolvedRepository",
]

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedRepository:
    """A repository with all configuration resolved to concrete values."""

    name: str
    url: str
    ca_file: Path | None = None
    credentials: Credentials | None = None


class HelmRepository:
    """A helm chart repository, optionally requiring credentials."""

    def __init__(
        self, name: str, credentials: CredentialsContainer | None = None
    ) -> None:
        """Initialize HelmRepository."""
        self._name = name
        self._credentials_container = credentials or CredentialsSupport(
            f"repository '{name}'"
        )
        self.url: Property[str] = Property(f"repository '{name}' url")
        self.ca_file: Property[Path] = Property(f"repository '{name}' caFile")

    @property
    def name(self) -> str:
        """The name of the repository, used as the chart reference prefix."""
        return self._name

    @property
    def credentials(self) -> Provider[Credentials]:
        return self._credentials_container.credentials

    def set_credentials(self, credentials: Credentials | None) -> None:
        self._credentials_container.set_credentials(credentials)

    def resolve(self) -> ResolvedRepository:
        """Resolve the repository configuration."""
        return ResolvedRepository(
            name=self._name,
            url=self.url.get(),
            ca_file=self.ca_file.get_or_none(),
            credentials=self.credentials.get_or_none(),
        )

    def __repr__(self) -> str:
        return f"HelmRepository({self._name!r})"
