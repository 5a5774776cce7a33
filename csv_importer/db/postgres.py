from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from .table import TableAdapterBase, TableRecord, TableRules

"""PostgreSQL table adapter (psycopg2 cursor).

Each row is written inside its own SAVEPOINT so that a constraint violation
on one row is reported as that row's error and does not abort the
surrounding transaction. The run-level transaction is opened with explicit
BEGIN/COMMIT/ROLLBACK on the cursor, so the connection must be in
autocommit mode.
"""

__all__ = [
    "PostgresTableAdapter",
]

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SAVEPOINT = "csv_import_row"


def _quote(name: str) -> str:
    # テーブル名/列名は英数字とアンダースコアのみ許可
    if not _IDENTIFIER.match(name):
        raise ValueError(f"invalid SQL identifier: {name!r}")
    return f'"{name}"'


class PostgresTableAdapter(TableAdapterBase):
    def __init__(
        self,
        cursor: Any,
        table: str,
        rules: TableRules | None = None,
        *,
        primary_key: str = "id",
        columns: Iterable[str] | None = None,
    ) -> None:
        super().__init__(rules, primary_key=primary_key)
        self.cursor = cursor
        self.table = _quote(table)
        self.columns = frozenset(columns) if columns is not None else None

    def find_by(self, attribute: str, value: Any) -> TableRecord | None:
        self.cursor.execute(
            f"SELECT * FROM {self.table} WHERE {_quote(attribute)} = %s LIMIT 1", (value,)
        )
        found = self.cursor.fetchone()
        if found is None:
            return None
        names = [d[0] for d in self.cursor.description]
        return TableRecord(dict(zip(names, found, strict=False)), persisted=True)

    def _writable(self, record: TableRecord) -> dict[str, Any]:
        values = record.values
        values.pop(self.primary_key, None)
        if self.columns is not None:
            values = {k: v for k, v in values.items() if k in self.columns}
        return values

    def save(self, model: TableRecord) -> bool:
        if not self.is_valid(model):
            return False
        values = self._writable(model)
        names = list(values)
        pk = _quote(self.primary_key)
        self.cursor.execute(f"SAVEPOINT {_SAVEPOINT}")
        try:
            if model.persisted:
                if names:
                    assignments = ", ".join(f"{_quote(n)} = %s" for n in names)
                    self.cursor.execute(
                        f"UPDATE {self.table} SET {assignments} WHERE {pk} = %s",
                        [*values.values(), getattr(model, self.primary_key)],
                    )
            elif not names:
                self.cursor.execute(f"INSERT INTO {self.table} DEFAULT VALUES RETURNING {pk}")
                setattr(model, self.primary_key, self.cursor.fetchone()[0])
            else:
                cols_sql = ", ".join(_quote(n) for n in names)
                placeholders = ", ".join(["%s"] * len(names))
                self.cursor.execute(
                    f"INSERT INTO {self.table} ({cols_sql}) VALUES ({placeholders}) RETURNING {pk}",
                    list(values.values()),
                )
                setattr(model, self.primary_key, self.cursor.fetchone()[0])
        except psycopg2.Error as e:
            self.cursor.execute(f"ROLLBACK TO SAVEPOINT {_SAVEPOINT}")
            message = (getattr(e, "pgerror", None) or str(e)).strip()
            logger.debug("table=%s save failed: %s", self.table, message)
            model.errors = {"base": [message]}
            return False
        self.cursor.execute(f"RELEASE SAVEPOINT {_SAVEPOINT}")
        model.persisted = True
        return True

    @contextmanager
    def transaction(self) -> Iterator[None]:
        self.cursor.execute("BEGIN")
        try:
            yield
        except BaseException:
            self.cursor.execute("ROLLBACK")
            raise
        self.cursor.execute("COMMIT")
