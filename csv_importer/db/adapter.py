from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

"""Model adapter interface.

The importer never talks to a persistence layer directly: lookups,
construction, validation and saving all go through a ModelAdapter. The
adapter owns its store and decides transactional semantics; the importer
only opens ``transaction()`` around a whole run.
"""

__all__ = [
    "ModelAdapter",
]


class ModelAdapter(ABC):
    """Persistence/validation capabilities consumed by the importer."""

    @abstractmethod
    def find_by(self, attribute: str, value: Any) -> Any | None:
        """Return the model whose ``attribute`` equals ``value``, or None."""

    @abstractmethod
    def new(self) -> Any:
        """Construct a fresh, unsaved model."""

    @abstractmethod
    def is_valid(self, model: Any) -> bool:
        """Run validations, refreshing ``errors(model)``."""

    @abstractmethod
    def errors(self, model: Any) -> dict[str, list[str] | str]:
        """Validation/persistence errors keyed by model attribute."""

    @abstractmethod
    def save(self, model: Any) -> bool:
        """Persist ``model``; True on success."""

    @abstractmethod
    def is_persisted(self, model: Any) -> bool:
        ...

    def get_attribute(self, model: Any, name: str) -> Any:
        return getattr(model, name, None)

    def set_attribute(self, model: Any, name: str, value: Any) -> None:
        setattr(model, name, value)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Scope wrapping a whole run. Default: no transactional semantics."""
        yield
