"""Credentials for accessing chart repositories.

Objects that need credentials hold a `CredentialsContainer` rather than
inheriting from it. The container is created when the owner is constructed
and owners expose it through delegation.
"""

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Protocol

from .provider import Property, Provider

__all__ = [
    "Credentials",
    "PasswordCredentials",
    "CertificateCredentials",
    "CredentialsContainer",
    "CredentialsSupport",
]

_LOGGER = logging.getLogger(__name__)


class Credentials(Protocol):
    """Credentials that translate into helm CLI options."""

    def helm_options(self) -> list[tuple[str, str | None]]:
        """Return the `(flag, value)` pairs used to pass the credentials to helm."""

    def secrets(self) -> list[str]:
        """Return the values that must not appear in logs or error messages."""


@dataclass(frozen=True)
class PasswordCredentials:
    """Username and password credentials."""

    username: str
    password: str | None = None

    def helm_options(self) -> list[tuple[str, str | None]]:
        return [("--username", self.username), ("--password", self.password)]

    def secrets(self) -> list[str]:
        return [self.password] if self.password else []

    def __repr__(self) -> str:
        return f"PasswordCredentials(username={self.username!r}, password=***)"


@dataclass(frozen=True)
class CertificateCredentials:
    """Client certificate credentials."""

    cert_file: Path
    key_file: Path | None = None

    def helm_options(self) -> list[tuple[str, str | None]]:
        return [
            ("--cert-file", str(self.cert_file)),
            ("--key-file", str(self.key_file) if self.key_file else None),
        ]

    def secrets(self) -> list[str]:
        return []


class CredentialsContainer(Protocol):
    """Something that may be configured with credentials."""

    @property
    def credentials(self) -> Provider[Credentials]:
        """The configured credentials, if any."""

    def set_credentials(self, credentials: Credentials | None) -> None:
        """Configure the credentials."""


class CredentialsSupport:
    """Default `CredentialsContainer` implementation backed by a property."""

    def __init__(self, owner: str) -> None:
        """Initialize CredentialsSupport."""
        self._credentials: Property[Credentials] = Property(f"{owner} credentials")

    @property
    def credentials(self) -> Provider[Credentials]:
        return self._credentials

    def set_credentials(self, credentials: Credentials | None) -> None:
        self._credentials.set(credentials)
