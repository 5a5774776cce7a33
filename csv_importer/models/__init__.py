"""Domain models for the CSV -> model importer.

Column specifications, resolved headers, processed rows and the run report.
"""

from .column_spec import ColumnSpec, Matcher, MatcherKind, Transform, TransformKind, binary, column
from .definition import ConfigurationError, ImportDefinition, WhenInvalid
from .error_record import ErrorRecord
from .header import Header
from .report import Report, ReportStatus, RunState
from .row import Row, RowStatus

__all__ = [
    # Configuration models
    "ColumnSpec",
    "Matcher",
    "MatcherKind",
    "Transform",
    "TransformKind",
    "binary",
    "column",
    "ConfigurationError",
    "ImportDefinition",
    "WhenInvalid",
    # Processing models
    "ErrorRecord",
    "Header",
    "Report",
    "ReportStatus",
    "RunState",
    "Row",
    "RowStatus",
]
