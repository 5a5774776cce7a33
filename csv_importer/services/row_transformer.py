from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..csvfile.reader import ParsedRow
from ..db.adapter import ModelAdapter
from ..models.column_spec import TransformKind
from ..models.header import Header
from ..models.row import Row

"""Row transformation.

Two stages:
1. ``extract_row``: raw cells -> trimmed values for every matched column
   (empty cell -> None), keyed both by original header text
   (``csv_attributes``) and by column key (``values``).
2. ``apply_transforms``: assign the values onto a model through the
   adapter, running each column's transform.

Unmatched optional columns are skipped entirely; the model attribute is
left untouched rather than set to None.
"""

__all__ = [
    "clean_cell",
    "extract_row",
    "apply_transforms",
]

logger = logging.getLogger(__name__)


def clean_cell(cell: str | None) -> str | None:
    if cell is None:
        return None
    stripped = cell.strip()
    return stripped or None


def _cell(cells: Sequence[str], idx: int) -> str | None:
    # ヘッダより短い行は欠損セル扱い
    return clean_cell(cells[idx]) if idx < len(cells) else None


def extract_row(parsed: ParsedRow, header: Header) -> Row:
    """Build a pending Row from one parsed data record."""
    csv_attributes: dict[str, str | None] = {}
    for idx in sorted(header.mapping.values()):
        csv_attributes[header.raw_columns[idx].strip()] = _cell(parsed.cells, idx)
    values = {key: _cell(parsed.cells, idx) for key, idx in header.mapping.items()}
    return Row(line_number=parsed.line_number, csv_attributes=csv_attributes, values=values)


def apply_transforms(
    model: Any,
    values: dict[str, str | None],
    header: Header,
    adapter: ModelAdapter,
) -> dict[str, str]:
    """Apply every matched column's transform onto ``model``.

    A transform raising ValueError marks that column as failed; the other
    columns are still applied.

    Returns:
        Transform errors keyed by original header text (empty if none)
    """
    errors: dict[str, str] = {}
    for spec in header.matched_specs():
        raw = values.get(spec.key)
        try:
            if spec.transform.kind is TransformKind.BINARY:
                assert spec.transform.fn is not None
                spec.transform.fn(raw, model)
            else:
                adapter.set_attribute(model, spec.target, spec.transform.compute(raw))
        except ValueError as e:
            column = header.column_name(spec.key) or spec.key
            logger.debug("transform failed column=%s value=%r: %s", column, raw, e)
            errors[column] = str(e) or "is invalid"
    return errors
