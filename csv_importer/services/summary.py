from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from ..models.report import Report, ReportStatus, RunState
from ..models.row import Row, RowStatus

"""Report aggregation and message rendering.

``build_report`` classifies a finished run into one terminal ReportStatus
and renders the canonical message:

- completed: "Import completed: 1 created, 2 updated" (non-zero clauses in
  fixed order; "Import completed" when nothing was counted)
- aborted: "Import aborted"
- invalid header: "The following columns are required: email"
- invalid csv: the parser message, e.g. "Unclosed quoted field on line 3."
"""

__all__ = [
    "ABORTED_MESSAGE",
    "build_report",
    "render_completed_message",
    "render_summary_line",
]

ABORTED_MESSAGE = "Import aborted"
COMPLETED_MESSAGE = "Import completed"

# 表示順固定
_MESSAGE_CLAUSES: tuple[tuple[RowStatus, str], ...] = (
    (RowStatus.CREATED, "created"),
    (RowStatus.UPDATED, "updated"),
    (RowStatus.FAILED_TO_CREATE, "failed to create"),
    (RowStatus.FAILED_TO_UPDATE, "failed to update"),
    (RowStatus.INVALID, "invalid"),
)


def render_completed_message(counts: dict[str, int]) -> str:
    clauses = [
        f"{counts[status.value]} {label}"
        for status, label in _MESSAGE_CLAUSES
        if counts.get(status.value)
    ]
    if not clauses:
        return COMPLETED_MESSAGE
    return f"{COMPLETED_MESSAGE}: {', '.join(clauses)}"


def build_report(
    run_state: RunState,
    rows: Sequence[Row] = (),
    *,
    missing_columns: Sequence[str] = (),
    parser_message: str | None = None,
    parser_line: int | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
) -> Report:
    """Build the terminal Report of a run.

    Args:
        run_state: Terminal state reached by the run
        rows: Processed rows (ignored for every state but COMPLETED)
        missing_columns: Required column keys absent from the header
        parser_message: Parser failure description (PARSE_FAILED)
        parser_line: Line reported by the parser (PARSE_FAILED)

    Raises:
        ValueError: If ``run_state`` is not terminal
    """
    times = {"start_time": start_time, "end_time": end_time}
    if run_state is RunState.PARSE_FAILED:
        return Report(
            status=ReportStatus.INVALID_CSV,
            message=parser_message or "Invalid CSV",
            parser_line=parser_line,
            **times,
        )
    if run_state is RunState.HEADER_INVALID:
        return Report(
            status=ReportStatus.INVALID_HEADER,
            message=f"The following columns are required: {', '.join(missing_columns)}",
            missing_columns=tuple(missing_columns),
            **times,
        )
    if run_state is RunState.ABORTED:
        # 中断時は行結果を破棄 (保存済みの行があっても件数は 0)
        return Report(status=ReportStatus.ABORTED, message=ABORTED_MESSAGE, **times)
    if run_state is RunState.COMPLETED:
        report = Report(status=ReportStatus.SUCCESS, message="", rows=tuple(rows), **times)
        counts = report.counts()
        failed = any(r.status is None or r.status.failed for r in report.rows)
        return Report(
            status=ReportStatus.COMPLETED_WITH_ERRORS if failed else ReportStatus.SUCCESS,
            message=render_completed_message(counts),
            rows=report.rows,
            **times,
        )
    raise ValueError(f"run state {run_state.value} is not terminal")


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(report: Report) -> str:
    """Render the machine-greppable SUMMARY line of a run.

    Format:
        SUMMARY status={status} rows={n} created={n} updated={n}
        failed_to_create={n} failed_to_update={n} invalid={n} elapsed_sec={sec}

    Examples:
        >>> from csv_importer.models.report import Report, ReportStatus
        >>> render_summary_line(Report(status=ReportStatus.ABORTED, message="Import aborted"))
        'SUMMARY status=aborted rows=0 created=0 updated=0 failed_to_create=0 failed_to_update=0 invalid=0 elapsed_sec=0'
    """
    counts = report.counts()
    return (
        f"SUMMARY status={report.status.value} "
        f"rows={len(report.rows)} "
        f"created={counts[RowStatus.CREATED.value]} "
        f"updated={counts[RowStatus.UPDATED.value]} "
        f"failed_to_create={counts[RowStatus.FAILED_TO_CREATE.value]} "
        f"failed_to_update={counts[RowStatus.FAILED_TO_UPDATE.value]} "
        f"invalid={counts[RowStatus.INVALID.value]} "
        f"elapsed_sec={_format_seconds(report.elapsed_seconds)}"
    )
