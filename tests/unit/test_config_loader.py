from __future__ import annotations

from pathlib import Path

import pytest

from csv_importer.config.loader import ConfigError, build_definition, build_rules, load_config
from csv_importer.db.table import MemoryTableAdapter
from csv_importer.models.column_spec import MatcherKind, TransformKind
from csv_importer.models.definition import WhenInvalid


def test_load_config_ok(write_config: Path) -> None:
    cfg = load_config(write_config)

    assert cfg.model.table == "users"
    assert cfg.model.primary_key == "id"
    assert cfg.model.required == ("email", "f_name")
    assert cfg.model.columns is None
    assert [c.key for c in cfg.columns] == ["email", "f_name", "last_name", "confirmed"]
    assert cfg.columns[3].attribute == "confirmed_at"
    assert cfg.columns[3].transform == "timestamp_if_true"
    assert cfg.columns[2].attribute == "l_name"
    assert cfg.identifier == "email"
    assert cfg.when_invalid is WhenInvalid.SKIP
    assert cfg.database.port == 5432


def test_load_config_defaults(temp_workdir: Path) -> None:
    p = temp_workdir / "config" / "import.yml"
    p.write_text("model: {table: items}\ncolumns:\n  - key: sku\n", encoding="utf-8")

    cfg = load_config(p)

    assert cfg.model.primary_key == "id"
    assert cfg.identifier is None
    assert cfg.when_invalid is WhenInvalid.SKIP
    assert cfg.database.host is None


def test_load_config_missing_file(temp_workdir: Path) -> None:
    with pytest.raises(ConfigError, match="config file not found"):
        load_config(temp_workdir / "config" / "nope.yml")


def test_load_config_invalid_yaml(temp_workdir: Path) -> None:
    p = temp_workdir / "config" / "import.yml"
    p.write_text("model: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


@pytest.mark.parametrize(
    "body,location",
    [
        ("columns:\n  - key: sku\n", "<root>"),
        ("model: {table: items}\ncolumns:\n  - key: sku\n    required: maybe\n", "columns/0/required"),
        ("model: {table: items}\ncolumns:\n  - key: sku\nwhen_invalid: explode\n", "when_invalid"),
        ("model: {table: 'items; drop'}\ncolumns:\n  - key: sku\n", "model/table"),
        ("model: {table: items}\ncolumns:\n  - key: sku\n    colour: red\n", "columns/0"),
    ],
)
def test_schema_violations(temp_workdir: Path, body: str, location: str) -> None:
    p = temp_workdir / "config" / "import.yml"
    p.write_text(body, encoding="utf-8")
    with pytest.raises(ConfigError, match=f"config validation failed at {location}"):
        load_config(p)


def test_build_definition(write_config: Path) -> None:
    cfg = load_config(write_config)
    adapter = MemoryTableAdapter(build_rules(cfg))

    definition = build_definition(cfg, adapter)

    email, f_name, last_name, confirmed = definition.columns
    assert email.required and email.patterns
    assert email.transform.kind is TransformKind.UNARY
    assert [m.kind for m in f_name.matchers] == [MatcherKind.NAME, MatcherKind.ALIAS]
    assert last_name.target == "l_name"
    assert confirmed.target == "confirmed_at"
    assert confirmed.transform.kind is TransformKind.BINARY
    assert definition.identifier == "email"
    assert definition.model is adapter


def test_build_definition_identifier_override(write_config: Path) -> None:
    cfg = load_config(write_config)
    definition = build_definition(cfg, MemoryTableAdapter(), identifier="l_name")

    assert definition.identifier == "l_name"
    assert definition.identifier_spec("l_name").key == "last_name"


def test_build_definition_unknown_identifier(write_config: Path) -> None:
    cfg = load_config(write_config)
    with pytest.raises(ConfigError, match="identifier 'age'"):
        build_definition(cfg, MemoryTableAdapter(), identifier="age")


def test_build_definition_unknown_transform(temp_workdir: Path) -> None:
    p = temp_workdir / "config" / "import.yml"
    p.write_text("model: {table: items}\ncolumns:\n  - key: sku\n    to: {transform: shout}\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="column 'sku': unknown transform 'shout'"):
        build_definition(load_config(p), MemoryTableAdapter())


def test_build_definition_bad_pattern(temp_workdir: Path) -> None:
    p = temp_workdir / "config" / "import.yml"
    p.write_text("model: {table: items}\ncolumns:\n  - key: sku\n    as: {pattern: '('}\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid pattern"):
        build_definition(load_config(p), MemoryTableAdapter())


def test_build_rules_bad_format(temp_workdir: Path) -> None:
    p = temp_workdir / "config" / "import.yml"
    p.write_text("model: {table: items, formats: {sku: '['}}\ncolumns:\n  - key: sku\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid format pattern"):
        build_rules(load_config(p))


def test_pattern_ignore_case_flag(temp_workdir: Path) -> None:
    p = temp_workdir / "config" / "import.yml"
    p.write_text(
        "model: {table: items}\ncolumns:\n  - key: sku\n    as: [{pattern: '^SKU$', ignore_case: false}]\n",
        encoding="utf-8",
    )
    spec = build_definition(load_config(p), MemoryTableAdapter()).columns[0]

    # 大文字パターンは小文字のヘッダに一致しない
    assert spec.matches("SKU")
    assert not spec.matches("sku")
