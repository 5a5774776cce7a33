from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Row model for CSV import.

One Row per data line of the input. The orchestrator fills in ``model``,
``status`` and ``errors`` while the run is in progress; rows are not
touched after the run completes.
"""

__all__ = [
    "RowStatus",
    "Row",
]


class RowStatus(Enum):
    """Outcome bucket of a processed row.

    - CREATED / UPDATED: persisted (new / pre-existing model)
    - FAILED_TO_CREATE / FAILED_TO_UPDATE: validation or persistence failed
    - INVALID: failed before it could be framed as create or update
    """
    CREATED = "created"
    UPDATED = "updated"
    INVALID = "invalid"
    FAILED_TO_CREATE = "failed_to_create"
    FAILED_TO_UPDATE = "failed_to_update"

    @property
    def failed(self) -> bool:
        return self not in (RowStatus.CREATED, RowStatus.UPDATED)


@dataclass
class Row:
    line_number: int  # 1-based physical line in the source
    csv_attributes: dict[str, str | None]  # header text -> trimmed cell (空 -> None)
    values: dict[str, str | None] = field(default_factory=dict, repr=False)  # key -> cell
    model: Any = None
    errors: dict[str, str] = field(default_factory=dict)  # header text -> message
    status: RowStatus | None = None  # None until processed

    @property
    def valid(self) -> bool:
        return self.status is not None and not self.status.failed
