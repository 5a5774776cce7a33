from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import pandas as pd

from .row import Row, RowStatus

"""Report model: immutable summary of one import run.

Every processed row falls into exactly one RowStatus bucket; the bucket
views below are partitions of ``rows``.
"""

__all__ = [
    "RunState",
    "ReportStatus",
    "Report",
]


class RunState(Enum):
    """Run lifecycle.

    NOT_STARTED → HEADER_VALIDATING → (HEADER_INVALID | ROW_PROCESSING)
    ROW_PROCESSING → (ABORTED | COMPLETED)
    PARSE_FAILED is reached directly from NOT_STARTED.
    """
    NOT_STARTED = "not_started"
    PARSE_FAILED = "parse_failed"
    HEADER_VALIDATING = "header_validating"
    HEADER_INVALID = "header_invalid"
    ROW_PROCESSING = "row_processing"
    ABORTED = "aborted"
    COMPLETED = "completed"


class ReportStatus(Enum):
    SUCCESS = "success"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    ABORTED = "aborted"
    INVALID_HEADER = "invalid_header"
    INVALID_CSV = "invalid_csv"


@dataclass(frozen=True)
class Report:
    status: ReportStatus
    message: str
    rows: tuple[Row, ...] = ()
    missing_columns: tuple[str, ...] = ()  # invalid_header のみ
    parser_line: int | None = None  # invalid_csv のみ
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def success(self) -> bool:
        return self.status is ReportStatus.SUCCESS

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    def _rows_with(self, *statuses: RowStatus) -> list[Row]:
        return [r for r in self.rows if r.status in statuses]

    @property
    def created_rows(self) -> list[Row]:
        return self._rows_with(RowStatus.CREATED)

    @property
    def updated_rows(self) -> list[Row]:
        return self._rows_with(RowStatus.UPDATED)

    @property
    def failed_to_create_rows(self) -> list[Row]:
        return self._rows_with(RowStatus.FAILED_TO_CREATE)

    @property
    def failed_to_update_rows(self) -> list[Row]:
        return self._rows_with(RowStatus.FAILED_TO_UPDATE)

    @property
    def valid_rows(self) -> list[Row]:
        return self._rows_with(RowStatus.CREATED, RowStatus.UPDATED)

    @property
    def invalid_rows(self) -> list[Row]:
        """Every failed row, whatever its create/update framing."""
        return self._rows_with(
            RowStatus.INVALID, RowStatus.FAILED_TO_CREATE, RowStatus.FAILED_TO_UPDATE
        )

    def counts(self) -> dict[str, int]:
        """Disjoint per-status counts; values always sum to len(rows)."""
        result = {status.value: 0 for status in RowStatus}
        for row in self.rows:
            if row.status is not None:
                result[row.status.value] += 1
        return result

    def to_frame(self) -> pd.DataFrame:
        """Per-row outcome table (line, status, errors) for inspection/export."""
        records = [
            {
                "line": row.line_number,
                "status": row.status.value if row.status else None,
                "errors": "; ".join(f"{col}: {msg}" for col, msg in row.errors.items()),
            }
            for row in self.rows
        ]
        return pd.DataFrame(records, columns=["line", "status", "errors"])
