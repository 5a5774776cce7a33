# Shared pytest fixtures
from __future__ import annotations

import re
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from csv_importer import ImportDefinition, MemoryTableAdapter, TableRules, WhenInvalid, binary, column
from csv_importer.logging.init import reset_logging

CONFIRMED_AT = datetime(2012, 1, 1)


def _set_confirmed(confirmed, model) -> None:
    model.confirmed_at = CONFIRMED_AT if confirmed == "true" else None


@pytest.fixture(autouse=True)
def _clean_logging():
    # capsys の stdout を掴んだハンドラを次のテストに持ち越さない
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def user_rules() -> TableRules:
    # email は @ を 1 つ含むこと
    return TableRules.build(required=["email", "f_name"], formats={"email": r"[^@]+@[^@]"})


@pytest.fixture()
def user_adapter(user_rules: TableRules) -> MemoryTableAdapter:
    return MemoryTableAdapter(
        user_rules,
        records=[
            {
                "email": "mark@example.com",
                "f_name": "mark",
                "l_name": "old last name",
                "confirmed_at": CONFIRMED_AT,
            }
        ],
    )


@pytest.fixture()
def import_user_csv(user_adapter: MemoryTableAdapter) -> ImportDefinition:
    """Users keyed by email (downcased), skipping invalid rows."""
    return ImportDefinition.build(
        user_adapter,
        [
            column("email", as_=re.compile("email", re.IGNORECASE), required=True, to=str.lower),
            column("f_name", as_="first_name", required=True),
            column("last_name", to="l_name"),
            column("confirmed", to=binary(_set_confirmed)),
        ],
        identifier="email",
        when_invalid=WhenInvalid.SKIP,
    )


@pytest.fixture()
def import_user_csv_by_first_name(user_adapter: MemoryTableAdapter) -> ImportDefinition:
    """Users keyed by first name, aborting on the first invalid row."""
    return ImportDefinition.build(
        user_adapter,
        [
            column("email", required=True),
            column("first_name", to="f_name", required=True),
            column("last_name", to="l_name"),
            column("confirmed", to=binary(_set_confirmed)),
        ],
        identifier="f_name",
        when_invalid="abort",
    )


@pytest.fixture()
def sample_job_yaml() -> str:
    return """model:
  table: users
  primary_key: id
  required: [email, f_name]
  formats:
    email: "[^@]+@[^@]"
columns:
  - key: email
    required: true
    as: {pattern: email}
    to: {transform: downcase}
  - key: f_name
    required: true
    as: first_name
  - key: last_name
    to: l_name
  - key: confirmed
    to: {attribute: confirmed_at, transform: timestamp_if_true}
identifier: email
when_invalid: skip
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_job_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_job_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def write_csv(temp_workdir: Path):
    def _write(content: str, name: str = "users.csv") -> Path:
        path = temp_workdir / "data" / name
        path.write_text(content, encoding="utf-8")
        return path
    return _write
