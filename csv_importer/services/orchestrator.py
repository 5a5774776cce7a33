from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import IO

from ..csvfile.reader import CSVParseError, ParsedTable, decode_source, load_source, parse_csv
from ..logging.error_log import ErrorLogBuffer
from ..models.definition import ImportDefinition, WhenInvalid
from ..models.error_record import ErrorRecord
from ..models.header import Header
from ..models.report import Report, RunState
from ..models.row import Row, RowStatus
from .binder import RowBinder
from .header_resolver import resolve_header
from .progress import RowProgressTracker
from .row_transformer import extract_row
from .summary import build_report

"""Service orchestration for one CSV import run.

Drives the run state machine:

    NOT_STARTED → HEADER_VALIDATING → (HEADER_INVALID | ROW_PROCESSING)
    ROW_PROCESSING → (ABORTED | COMPLETED)

with malformed CSV short-circuiting straight to PARSE_FAILED. Rows are
processed strictly in file order inside the adapter's ``transaction()``
scope. Expected data problems (bad CSV, missing columns, invalid rows)
always end in a Report; only programmer errors propagate.
"""

__all__ = [
    "CSVImport",
    "run_import",
]

logger = logging.getLogger(__name__)

_UNSET = object()

_TERMINAL_STATES = frozenset({
    RunState.PARSE_FAILED,
    RunState.HEADER_INVALID,
    RunState.ABORTED,
    RunState.COMPLETED,
})


class _RunAborted(Exception):
    """Unwinds the transaction scope when the abort policy triggers."""

    def __init__(self, row: Row) -> None:
        super().__init__(f"aborted at line {row.line_number}")
        self.row = row


class CSVImport:
    """One import run over one input source.

    Exactly one of ``content`` / ``file`` / ``path`` must be given.
    ``identifier`` overrides the definition's identifier for this run
    (pass None explicitly to always create).
    """

    def __init__(
        self,
        definition: ImportDefinition,
        *,
        content: str | bytes | None = None,
        file: IO[str] | IO[bytes] | None = None,
        path: str | Path | None = None,
        identifier: str | None | object = _UNSET,
        source_name: str | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        if identifier is not _UNSET:
            definition = definition.with_identifier(identifier)  # type: ignore[arg-type]
        self.definition = definition
        self.error_log = error_log
        self.source_name = source_name or (Path(path).name if path is not None else "<content>")
        self.state = RunState.NOT_STARTED
        self._raw = load_source(content=content, file=file, path=path)
        self._table: ParsedTable | None = None
        self._parse_error: CSVParseError | None = None
        self._parsed = False
        self._header: Header | None = None
        self._rows: list[Row] | None = None
        self._report: Report | None = None
        self._start_time: datetime | None = None

    @property
    def identifier(self) -> str | None:
        return self.definition.identifier

    def _parse(self) -> ParsedTable | None:
        if not self._parsed:
            self._parsed = True
            try:
                self._table = parse_csv(decode_source(self._raw))
            except CSVParseError as e:
                self._parse_error = e
        return self._table

    @property
    def header(self) -> Header | None:
        """Resolved header (None if the input could not be parsed)."""
        if self._header is None:
            table = self._parse()
            if table is not None:
                self._header = resolve_header(table.header, self.definition.columns)
        return self._header

    @property
    def rows(self) -> list[Row]:
        """Data rows, available before ``run()`` with ``status`` None."""
        if self._rows is None:
            table = self._parse()
            header = self.header
            if table is None or header is None:
                self._rows = []
            else:
                self._rows = [extract_row(parsed, header) for parsed in table.rows]
        return self._rows

    @property
    def report(self) -> Report | None:
        return self._report

    def valid_header(self) -> bool:
        """Validate parse + header, producing the terminal report on failure."""
        # 終了済みの run は状態を書き換えない
        if self._report is not None and self.state in _TERMINAL_STATES:
            return self.state not in (RunState.PARSE_FAILED, RunState.HEADER_INVALID)
        if self._start_time is None:
            self._start_time = datetime.now(UTC)
        if self._parse() is None:
            self._finish_parse_failed()
            return False
        self.state = RunState.HEADER_VALIDATING
        header = self.header
        assert header is not None
        if not header.valid:
            self._finish_header_invalid(header)
            return False
        return True

    def run(self) -> Report:
        """Execute the import and return its Report (idempotent)."""
        if self._report is not None and self.state in _TERMINAL_STATES:
            return self._report
        self._start_time = datetime.now(UTC)
        logger.info(
            "import started source=%s identifier=%s when_invalid=%s",
            self.source_name,
            self.identifier,
            self.definition.when_invalid.value,
        )
        if not self.valid_header():
            assert self._report is not None
            return self._report

        header = self.header
        assert header is not None
        rows = self.rows
        self.state = RunState.ROW_PROCESSING
        binder = RowBinder(self.definition, header, self.identifier)
        abort = self.definition.when_invalid is WhenInvalid.ABORT

        try:
            with self.definition.model.transaction():
                with RowProgressTracker(len(rows)) as progress:
                    for row in rows:
                        binder.bind(row)
                        progress.advance(status=row.status.value if row.status else "")
                        if row.status is not None and row.status.failed:
                            self._log_row_errors(row)
                            if abort:
                                raise _RunAborted(row)
        except _RunAborted as e:
            return self._finish_aborted(e.row)

        self.state = RunState.COMPLETED
        self._report = build_report(
            RunState.COMPLETED,
            rows,
            start_time=self._start_time,
            end_time=datetime.now(UTC),
        )
        logger.info("%s (source=%s)", self._report.message, self.source_name)
        return self._report

    # ── terminal transitions ───────────────────────────────────────────

    def _finish_parse_failed(self) -> None:
        error = self._parse_error
        assert error is not None
        self.state = RunState.PARSE_FAILED
        logger.warning("csv parse failed source=%s: %s", self.source_name, error.message)
        self._log(error.line_number, "", "CSV_PARSE_ERROR", error.message)
        self._report = build_report(
            RunState.PARSE_FAILED,
            parser_message=error.message,
            parser_line=error.line_number,
            start_time=self._start_time,
            end_time=datetime.now(UTC),
        )

    def _finish_header_invalid(self, header: Header) -> None:
        missing = header.missing_required_columns
        self.state = RunState.HEADER_INVALID
        self._report = build_report(
            RunState.HEADER_INVALID,
            missing_columns=missing,
            start_time=self._start_time,
            end_time=datetime.now(UTC),
        )
        logger.warning("invalid header source=%s: %s", self.source_name, self._report.message)
        self._log(1, ",".join(missing), "HEADER_INVALID", self._report.message)

    def _finish_aborted(self, row: Row) -> Report:
        self.state = RunState.ABORTED
        # 中断前に保存された行はアダプタ側に残り得るがレポートには含めない
        logger.warning(
            "import aborted source=%s line=%d errors=%s", self.source_name, row.line_number, row.errors
        )
        self._log(row.line_number, "", "IMPORT_ABORTED", f"aborted at line {row.line_number}")
        self._report = build_report(
            RunState.ABORTED, start_time=self._start_time, end_time=datetime.now(UTC)
        )
        return self._report

    # ── error log ──────────────────────────────────────────────────────

    def _log(self, line: int, column: str, error_type: str, message: str) -> None:
        if self.error_log is not None:
            self.error_log.append(ErrorRecord.create(self.source_name, line, column, error_type, message))

    def _log_row_errors(self, row: Row) -> None:
        error_type = "TRANSFORM_ERROR" if row.status is RowStatus.INVALID else "ROW_VALIDATION_ERROR"
        for column, message in row.errors.items():
            self._log(row.line_number, column, error_type, message)


def run_import(definition: ImportDefinition, **source: object) -> Report:
    """Convenience wrapper: ``CSVImport(definition, **source).run()``."""
    return CSVImport(definition, **source).run()  # type: ignore[arg-type]
