from __future__ import annotations

import re

from csv_importer.models.column_spec import column
from csv_importer.services.header_resolver import resolve_header

SPECS = [
    column("email", as_=re.compile("email", re.IGNORECASE), required=True),
    column("f_name", as_="first_name", required=True),
    column("last_name", to="l_name"),
    column("confirmed"),
]


def test_resolves_all_columns() -> None:
    header = resolve_header(["email", "confirmed", "first_name", "last_name"], SPECS)

    assert header.mapping == {"email": 0, "confirmed": 1, "f_name": 2, "last_name": 3}
    assert header.valid
    assert header.missing_columns == []
    assert header.extra_columns == []


def test_missing_and_extra_columns() -> None:
    header = resolve_header(["Email Address", "age", "first_name", ""], SPECS)

    assert header.missing_columns == ["last_name", "confirmed"]
    assert header.missing_required_columns == []
    # 空のヘッダセルは extra に含めない
    assert header.extra_columns == ["age"]


def test_missing_required_makes_header_invalid() -> None:
    header = resolve_header(["confirmed", "first_name", "last_name"], SPECS)

    assert header.missing_required_columns == ["email"]
    assert header.valid is False


def test_raw_column_binds_at_most_one_spec() -> None:
    pattern = re.compile("mail", re.IGNORECASE)
    specs = [column("primary", as_=pattern), column("secondary", as_=pattern)]
    header = resolve_header(["mail", "Mail"], specs)

    assert header.mapping == {"primary": 0, "secondary": 1}


def test_spec_binds_first_matching_column() -> None:
    header = resolve_header(["email", "work email"], [column("email", as_=re.compile("email"))])

    assert header.mapping == {"email": 0}
    assert header.extra_columns == ["work email"]


def test_column_name_and_attribute_columns() -> None:
    header = resolve_header([" Email ", "First name", "last_name"], SPECS)

    assert header.column_name("email") == "Email"
    assert header.column_name("confirmed") is None
    assert header.attribute_columns() == {
        "email": "Email",
        "f_name": "First name",
        "l_name": "last_name",
        "last_name": "last_name",
    }


def test_empty_header() -> None:
    header = resolve_header([], SPECS)

    assert header.mapping == {}
    assert header.missing_required_columns == ["email", "f_name"]
