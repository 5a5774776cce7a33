from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from ..models.column_spec import Transform

"""Named column transforms for YAML job definitions.

Unary transforms map the trimmed cell to a value. Binary transforms receive
``(raw, model)`` plus the target attribute and write to the model
themselves (e.g. a "confirmed" flag driving a ``confirmed_at`` timestamp).
Invalid input raises ValueError, which the importer records as a row error
on the source column.
"""

__all__ = [
    "TRUE_VALUES",
    "FALSE_VALUES",
    "UNARY_TRANSFORMS",
    "BINARY_TRANSFORMS",
    "named_transform",
]

TRUE_VALUES = frozenset({"true", "t", "yes", "y", "1"})
FALSE_VALUES = frozenset({"false", "f", "no", "n", "0"})


def to_boolean(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError("is not a boolean")


def to_integer(raw: str) -> int:
    try:
        return int(raw.replace(",", ""))
    except ValueError:
        raise ValueError("is not an integer") from None


def to_decimal(raw: str) -> Decimal:
    try:
        return Decimal(raw.replace(",", ""))
    except InvalidOperation:
        raise ValueError("is not a number") from None


UNARY_TRANSFORMS: dict[str, Callable[[str], Any]] = {
    "downcase": str.lower,
    "upcase": str.upper,
    "strip": str.strip,
    "integer": to_integer,
    "decimal": to_decimal,
    "boolean": to_boolean,
}


def timestamp_if_true(attribute: str) -> Callable[[str | None, Any], None]:
    """Set ``attribute`` to now (UTC) for truthy cells, else None."""
    def apply(raw: str | None, model: Any) -> None:
        flag = raw is not None and raw.strip().lower() in TRUE_VALUES
        setattr(model, attribute, datetime.now(UTC) if flag else None)
    return apply


BINARY_TRANSFORMS: dict[str, Callable[[str], Callable[[str | None, Any], None]]] = {
    "timestamp_if_true": timestamp_if_true,
}


def named_transform(name: str, attribute: str) -> Transform:
    """Resolve a transform name from a job file.

    Raises:
        KeyError: If the name is unknown
    """
    if name in UNARY_TRANSFORMS:
        return Transform.unary(UNARY_TRANSFORMS[name])
    if name in BINARY_TRANSFORMS:
        return Transform.binary(BINARY_TRANSFORMS[name](attribute))
    raise KeyError(f"unknown transform '{name}' (known: {sorted(UNARY_TRANSFORMS) + sorted(BINARY_TRANSFORMS)})")
