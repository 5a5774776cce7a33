from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .adapter import ModelAdapter

"""Table-backed records, validation rules and the in-memory adapter.

TableRecord is a plain attribute bag used by the table adapters. Column
transforms assign attributes on it (``record.email = ...``) exactly as they
would on an ORM object.

MemoryTableAdapter keeps its store on the instance. It backs ``--dry-run``
and the test-suite; nothing is shared between adapter instances.
"""

__all__ = [
    "TableRules",
    "TableRecord",
    "TableAdapterBase",
    "MemoryTableAdapter",
]

logger = logging.getLogger(__name__)

BLANK_MESSAGE = "can't be blank"
INVALID_MESSAGE = "is invalid"


@dataclass(frozen=True)
class TableRules:
    """Presence and format validation for table records."""
    required: frozenset[str] = frozenset()
    formats: Mapping[str, re.Pattern[str]] = field(default_factory=dict)

    @classmethod
    def build(
        cls, required: Iterable[str] = (), formats: Mapping[str, str] | None = None
    ) -> TableRules:
        return cls(
            required=frozenset(required),
            formats={k: re.compile(v) for k, v in (formats or {}).items()},
        )

    def validate(self, values: Mapping[str, Any]) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}
        for name in sorted(self.required):
            value = values.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.setdefault(name, []).append(BLANK_MESSAGE)
        for name, pattern in self.formats.items():
            value = values.get(name)
            # None は presence 側で扱う
            if value is not None and not pattern.search(str(value)):
                errors.setdefault(name, []).append(INVALID_MESSAGE)
        return errors


class TableRecord:
    """Attribute bag for one table row."""

    def __init__(self, values: Mapping[str, Any] | None = None, *, persisted: bool = False) -> None:
        object.__setattr__(self, "_values", dict(values or {}))
        object.__setattr__(self, "persisted", persisted)
        object.__setattr__(self, "errors", {})

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._values[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("persisted", "errors") or name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self._values[name] = value

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"TableRecord({self._values!r}, persisted={self.persisted})"


class TableAdapterBase(ModelAdapter):
    """Validation and attribute access shared by the table adapters."""

    def __init__(self, rules: TableRules | None = None, *, primary_key: str = "id") -> None:
        self.rules = rules or TableRules()
        self.primary_key = primary_key

    def new(self) -> TableRecord:
        return TableRecord()

    def is_valid(self, model: TableRecord) -> bool:
        model.errors = self.rules.validate(model.values)
        return not model.errors

    def errors(self, model: TableRecord) -> dict[str, list[str] | str]:
        return dict(model.errors)

    def is_persisted(self, model: TableRecord) -> bool:
        return bool(model.persisted)


class MemoryTableAdapter(TableAdapterBase):
    """In-memory store. ``find_by`` hands out copies; ``save`` writes back."""

    def __init__(
        self,
        rules: TableRules | None = None,
        records: Iterable[Mapping[str, Any]] = (),
        *,
        primary_key: str = "id",
    ) -> None:
        super().__init__(rules, primary_key=primary_key)
        self._store: dict[Any, dict[str, Any]] = {}
        for values in records:
            record = TableRecord(values)
            if not self.save(record):
                raise ValueError(f"invalid seed record {values!r}: {record.errors}")

    @property
    def records(self) -> list[TableRecord]:
        return [TableRecord(v, persisted=True) for v in self._store.values()]

    def find_by(self, attribute: str, value: Any) -> TableRecord | None:
        for stored in self._store.values():
            if stored.get(attribute) == value:
                return TableRecord(stored, persisted=True)
        return None

    def save(self, model: TableRecord) -> bool:
        if not self.is_valid(model):
            return False
        if not model.persisted:
            pk = model.values.get(self.primary_key)
            if pk is None:
                pk = max((k for k in self._store if isinstance(k, int)), default=0) + 1
                setattr(model, self.primary_key, pk)
            model.persisted = True
        key = model.values[self.primary_key]
        self._store[key] = model.values
        logger.debug("memory save %s=%s", self.primary_key, key)
        return True
