"""A registry of named objects created on first reference."""

from collections.abc import Callable, Iterator
import logging
from typing import Generic, TypeVar

from .exceptions import ConfigurationError

__all__ = [
    "NamedContainer",
]

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


class NamedContainer(Generic[_T]):
    """Holds objects keyed by name, creating them with a factory when first used."""

    def __init__(self, kind: str, factory: Callable[[str], _T]) -> None:
        """Initialize NamedContainer."""
        self._kind = kind
        self._factory = factory
        self._items: dict[str, _T] = {}

    def maybe_create(self, name: str) -> _T:
        """Return the object with the given name, creating it if needed."""
        if (item := self._items.get(name)) is None:
            _LOGGER.debug("Creating %s '%s'", self._kind, name)
            item = self._factory(name)
            self._items[name] = item
        return item

    def __getitem__(self, name: str) -> _T:
        if (item := self._items.get(name)) is None:
            raise ConfigurationError(
                f"No {self._kind} named '{name}' (available: {', '.join(self._items) or 'none'})"
            )
        return item

    def get(self, name: str) -> _T | None:
        """Return the object with the given name, or None."""
        return self._items.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._items

    def __iter__(self) -> Iterator[_T]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    @property
    def names(self) -> list[str]:
        """Names of all objects, in the order they were created."""
        return list(self._items)

    def select(self, names: list[str] | None) -> list[_T]:
        """Return the named objects, or all objects when no names are given."""
        if not names:
            return list(self._items.values())
        return [self[name] for name in names]
