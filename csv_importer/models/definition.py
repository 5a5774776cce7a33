from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from .column_spec import ColumnSpec

if TYPE_CHECKING:
    from ..db.adapter import ModelAdapter

"""Import job definition (model adapter + columns + identifier + policy)."""

__all__ = [
    "ConfigurationError",
    "WhenInvalid",
    "ImportDefinition",
]


class ConfigurationError(Exception):
    """Raised when a job definition is inconsistent (programmer error)."""


class WhenInvalid(Enum):
    SKIP = "skip"
    ABORT = "abort"


@dataclass(frozen=True)
class ImportDefinition:
    model: ModelAdapter
    columns: tuple[ColumnSpec, ...]
    identifier: str | None = None
    when_invalid: WhenInvalid = WhenInvalid.SKIP
    _keys: frozenset[str] = field(default=frozenset(), init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        columns = tuple(self.columns)
        object.__setattr__(self, "columns", columns)
        keys = [c.key for c in columns]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ConfigurationError(f"duplicate column keys: {duplicates}")
        object.__setattr__(self, "_keys", frozenset(keys))
        if not isinstance(self.when_invalid, WhenInvalid):
            object.__setattr__(self, "when_invalid", WhenInvalid(self.when_invalid))
        if self.identifier is not None:
            self.identifier_spec(self.identifier)

    def identifier_spec(self, identifier: str) -> ColumnSpec:
        """Resolve an identifier naming a column key or the attribute it writes."""
        for spec in self.columns:
            if spec.key == identifier:
                return spec
        for spec in self.columns:
            if spec.target == identifier:
                return spec
        raise ConfigurationError(
            f"identifier '{identifier}' does not name a column or attribute "
            f"(columns: {sorted(self._keys)})"
        )

    def with_identifier(self, identifier: str | None) -> ImportDefinition:
        return replace(self, identifier=identifier)

    @classmethod
    def build(
        cls,
        model: ModelAdapter,
        columns: Sequence[ColumnSpec],
        *,
        identifier: str | None = None,
        when_invalid: WhenInvalid | str = WhenInvalid.SKIP,
    ) -> ImportDefinition:
        return cls(
            model=model,
            columns=tuple(columns),
            identifier=identifier,
            when_invalid=WhenInvalid(when_invalid),
        )
