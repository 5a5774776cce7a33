from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..db.adapter import ModelAdapter
from ..models.column_spec import TransformKind
from ..models.definition import ImportDefinition
from ..models.header import Header
from ..models.row import Row, RowStatus
from .row_transformer import apply_transforms

"""Model binding: identity resolution, attribute assignment, validate + save.

Identity is resolved first, from the transformed identifier value, so that
case folding and similar normalization live in the column transform and not
in lookup logic. Only then are the row's attributes applied, since later
transforms may overwrite the identifier attribute itself.
"""

__all__ = [
    "IdentifierError",
    "resolve_identity",
    "map_errors",
    "RowBinder",
]

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "could not be saved"


class IdentifierError(Exception):
    """Raised when the identifier value of a row cannot be computed."""

    def __init__(self, column: str, message: str) -> None:
        super().__init__(message)
        self.column = column
        self.message = message


def resolve_identity(
    identifier: str | None,
    values: dict[str, str | None],
    header: Header,
    definition: ImportDefinition,
) -> tuple[Any, bool]:
    """Find the model addressed by the row, or construct a new one.

    Args:
        identifier: Column key or model attribute used for lookup (None = always create)
        values: Row values keyed by column key
        header: Resolved header of the run
        definition: Import job definition (owns the model adapter)

    Returns:
        (model, created) where ``created`` is True for a newly constructed model

    Raises:
        IdentifierError: If the identifier column's transform rejects the value
    """
    adapter = definition.model
    if identifier is None:
        return adapter.new(), True

    spec = definition.identifier_spec(identifier)
    if spec.key not in header.mapping:
        return adapter.new(), True

    try:
        if spec.transform.kind is TransformKind.BINARY:
            # 派生属性: 一時モデルに全変換を適用して読み出す
            scratch = adapter.new()
            apply_transforms(scratch, values, header, adapter)
            value = adapter.get_attribute(scratch, spec.target)
        else:
            value = spec.transform.compute(values.get(spec.key))
    except ValueError as e:
        raise IdentifierError(header.column_name(spec.key) or spec.key, str(e) or "is invalid") from e

    if value is None:
        return adapter.new(), True
    found = adapter.find_by(spec.target, value)
    if found is None:
        return adapter.new(), True
    return found, False


def map_errors(
    errors: Mapping[str, list[str] | str], attribute_columns: Mapping[str, str]
) -> dict[str, str]:
    """Re-key model errors by the CSV header text that feeds each attribute.

    Attributes not fed by any header keep their attribute name.
    """
    mapped: dict[str, str] = {}
    for attribute, messages in errors.items():
        if not messages:
            continue
        text = messages if isinstance(messages, str) else ", ".join(messages)
        column = attribute_columns.get(attribute, attribute)
        mapped[column] = f"{mapped[column]}, {text}" if column in mapped else text
    return mapped


class RowBinder:
    """Bind rows of one run onto models.

    The attribute -> header reverse lookup is computed once per run.
    """

    def __init__(self, definition: ImportDefinition, header: Header, identifier: str | None) -> None:
        self.definition = definition
        self.header = header
        self.identifier = identifier
        self.adapter: ModelAdapter = definition.model
        self.attribute_columns = header.attribute_columns()

    def bind(self, row: Row) -> Row:
        """Resolve, assign, validate and persist one row (updates ``row`` in place)."""
        try:
            model, created = resolve_identity(self.identifier, row.values, self.header, self.definition)
        except IdentifierError as e:
            row.status = RowStatus.INVALID
            row.errors = {e.column: e.message}
            logger.debug("line=%d identifier rejected: %s", row.line_number, e.message)
            return row

        row.model = model
        errors = apply_transforms(model, row.values, self.header, self.adapter)
        valid = self.adapter.is_valid(model)
        if not errors and valid and self.adapter.save(model):
            row.status = RowStatus.CREATED if created else RowStatus.UPDATED
            row.errors = {}
            logger.debug("line=%d %s", row.line_number, row.status.value)
            return row

        model_errors = map_errors(self.adapter.errors(model), self.attribute_columns)
        # 変換エラーを優先 (同一列)
        merged = {**model_errors, **errors}
        if not merged:
            merged = {"base": SAVE_FAILED_MESSAGE}
        row.errors = merged
        row.status = RowStatus.FAILED_TO_CREATE if created else RowStatus.FAILED_TO_UPDATE
        logger.debug("line=%d %s errors=%s", row.line_number, row.status.value, merged)
        return row
