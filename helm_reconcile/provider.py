"""Lazily evaluated values with fallback chains.

A `Provider` wraps a supplier function that is only called when the value is
requested. Providers compose with `or_else` into chains where the leftmost
present value wins, e.g. a release level setting that falls back to a global
default:

```python
timeout = release_timeout.or_else(global_timeout).or_else(timedelta(minutes=5))
```

Fallbacks replace *absence* only. If evaluating a present value raises, the
error propagates and the fallback is never consulted. Nothing is memoized, so
a chain always reflects the current state of the underlying properties.
"""

from collections.abc import Callable
import logging
from typing import Any, Generic, TypeVar

from .exceptions import ConfigurationError

__all__ = [
    "Provider",
    "Property",
    "with_default",
]

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")
_U = TypeVar("_U")

_Sources = Callable[[], tuple[str, ...]]


def _no_sources() -> tuple[str, ...]:
    return ()


class Provider(Generic[_T]):
    """A lazily evaluated value that may be absent."""

    def __init__(
        self,
        supplier: Callable[[], _T | None],
        sources: _Sources = _no_sources,
    ) -> None:
        """Initialize Provider."""
        self._supplier = supplier
        self._sources = sources

    @classmethod
    def of(cls, value: _T | None, source: str = "default") -> "Provider[_T]":
        """Return a provider for a value that is already known."""
        return cls(lambda: value, lambda: (source,))

    @classmethod
    def absent(cls) -> "Provider[_T]":
        """Return a provider that never has a value."""
        return cls(lambda: None)

    @property
    def sources(self) -> tuple[str, ...]:
        """Descriptions of the places this provider looks for a value."""
        return self._sources()

    def get_or_none(self) -> _T | None:
        """Evaluate the provider, returning None when absent."""
        return self._supplier()

    def is_present(self) -> bool:
        """Return True if the provider currently has a value."""
        return self.get_or_none() is not None

    def get(self, description: str = "value") -> _T:
        """Evaluate the provider, raising ConfigurationError when there is no value."""
        if (value := self.get_or_none()) is None:
            checked = ", ".join(self.sources) or "no sources"
            raise ConfigurationError(
                f"Required {description} is not set (checked: {checked})"
            )
        return value

    def or_else(self, fallback: "Provider[_T] | _T") -> "Provider[_T]":
        """Return a provider that falls back to `fallback` when this one is absent."""
        default = _as_provider(fallback)

        def supplier() -> _T | None:
            if (value := self.get_or_none()) is not None:
                return value
            return default.get_or_none()

        return Provider(supplier, lambda: self.sources + default.sources)

    def map(self, func: Callable[[_T], _U | None]) -> "Provider[_U]":
        """Transform the value, if present."""

        def supplier() -> _U | None:
            if (value := self.get_or_none()) is None:
                return None
            return func(value)

        return Provider(supplier, lambda: self.sources)

    def flat_map(self, func: Callable[[_T], "Provider[_U]"]) -> "Provider[_U]":
        """Transform the value into another provider, if present."""

        def supplier() -> _U | None:
            if (value := self.get_or_none()) is None:
                return None
            return func(value).get_or_none()

        return Provider(supplier, lambda: self.sources)

    def __repr__(self) -> str:
        return f"Provider(sources={list(self.sources)})"


class Property(Provider[_T]):
    """A settable provider with a convention used when nothing is set."""

    def __init__(self, name: str) -> None:
        """Initialize Property."""
        super().__init__(self._resolve, self._property_sources)
        self._name = name
        self._value: Provider[_T] | None = None
        self._convention: Provider[_T] | None = None

    @property
    def name(self) -> str:
        """The name of the property, used in error messages."""
        return self._name

    def set(self, value: "Provider[_T] | _T | None") -> None:
        """Set an explicit value, or clear it by passing None."""
        self._value = None if value is None else _as_provider(value, self._name)

    def convention(self, value: "Provider[_T] | _T | None") -> None:
        """Set the value used when no explicit value is set."""
        self._convention = None if value is None else _as_provider(value)

    @property
    def is_explicit(self) -> bool:
        """Return True when an explicit value is bound."""
        return self._value is not None and self._value.is_present()

    def get(self, description: str | None = None) -> _T:
        return super().get(description or self._name)

    def _resolve(self) -> _T | None:
        if self._value is not None:
            if (value := self._value.get_or_none()) is not None:
                return value
        if self._convention is not None:
            return self._convention.get_or_none()
        return None

    def _property_sources(self) -> tuple[str, ...]:
        sources = [self._name]
        if self._value is not None:
            sources.extend(s for s in self._value.sources if s not in sources)
        if self._convention is not None:
            sources.extend(s for s in self._convention.sources if s not in sources)
        return tuple(sources)

    def __repr__(self) -> str:
        return f"Property({self._name!r})"


def _as_provider(value: Any, source: str = "default") -> Provider[Any]:
    if isinstance(value, Provider):
        return value
    return Provider.of(value, source)


def with_default(primary: Provider[_T], fallback: Provider[_T] | _T) -> Provider[_T]:
    """Return a provider yielding `primary` if present, else `fallback`.

    The fallback is not evaluated when `primary` has a value.
    """
    return primary.or_else(fallback)
