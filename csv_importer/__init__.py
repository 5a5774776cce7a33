"""csv_importer - declarative CSV import onto persistence models.

Public API:
    column(...) / binary(fn)          → ColumnSpec / Transform
    ImportDefinition.build(...)       → job definition (adapter + columns)
    CSVImport(definition, content=…)  → run() → Report
"""

from csv_importer.db.adapter import ModelAdapter  # noqa: F401
from csv_importer.db.table import MemoryTableAdapter, TableRecord, TableRules  # noqa: F401
from csv_importer.models import (  # noqa: F401
    ColumnSpec,
    ConfigurationError,
    Header,
    ImportDefinition,
    Report,
    ReportStatus,
    Row,
    RowStatus,
    Transform,
    WhenInvalid,
    binary,
    column,
)
from csv_importer.csvfile.reader import CSVParseError  # noqa: F401
from csv_importer.services.orchestrator import CSVImport, run_import  # noqa: F401

__version__ = "0.1.0"
