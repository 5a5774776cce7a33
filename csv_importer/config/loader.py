from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..db.adapter import ModelAdapter
from ..db.table import TableRules
from ..models.column_spec import ColumnSpec, Matcher, MatcherKind, Transform
from ..models.definition import ConfigurationError, ImportDefinition, WhenInvalid
from ..services.transforms import named_transform

"""Import job config loader.

Responsibilities:
- Load a YAML job file (model table, columns, identifier, when_invalid)
- Validate it against the bundled JSON schema (job_schema.json)
- Apply defaults (primary_key=id, when_invalid=skip)
- Turn it into an ImportDefinition bound to a model adapter
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "ModelConfig",
    "ColumnConfig",
    "JobConfig",
    "load_config",
    "build_rules",
    "build_definition",
]

SCHEMA_PATH = Path(__file__).with_name("job_schema.json")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection fallback; environment variables take precedence."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ModelConfig:
    table: str
    primary_key: str = "id"
    required: tuple[str, ...] = ()
    formats: dict[str, str] = field(default_factory=dict)
    columns: tuple[str, ...] | None = None  # 書き込み対象列 (None = 全属性)


@dataclass(frozen=True)
class ColumnConfig:
    key: str
    matchers: tuple[Any, ...] = ()  # str | {"pattern": ..., "ignore_case": bool}
    required: bool = False
    attribute: str | None = None
    transform: str | None = None


@dataclass(frozen=True)
class JobConfig:
    model: ModelConfig
    columns: tuple[ColumnConfig, ...]
    identifier: str | None
    when_invalid: WhenInvalid
    database: DatabaseConfig


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate job data against the JSON schema.

    Raises:
        ConfigError: If the schema is missing/unreadable or validation fails
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {location}: {e.message}") from e


def _column_config(raw: dict[str, Any]) -> ColumnConfig:
    matchers = raw.get("as")
    if matchers is None:
        matchers = []
    elif not isinstance(matchers, list):
        matchers = [matchers]
    to = raw.get("to")
    attribute = transform = None
    if isinstance(to, str):
        attribute = to
    elif isinstance(to, dict):
        attribute = to.get("attribute")
        transform = to.get("transform")
    return ColumnConfig(
        key=raw["key"],
        matchers=tuple(matchers),
        required=bool(raw.get("required", False)),
        attribute=attribute,
        transform=transform,
    )


def load_config(path: Path) -> JobConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    model_raw = data["model"]
    model = ModelConfig(
        table=model_raw["table"],
        primary_key=model_raw.get("primary_key", "id"),
        required=tuple(model_raw.get("required", [])),
        formats=dict(model_raw.get("formats", {})),
        columns=tuple(model_raw["columns"]) if "columns" in model_raw else None,
    )
    db_raw = data.get("database", {})
    return JobConfig(
        model=model,
        columns=tuple(_column_config(c) for c in data["columns"]),
        identifier=data.get("identifier"),
        when_invalid=WhenInvalid(data.get("when_invalid", "skip")),
        database=DatabaseConfig(**db_raw),
    )


def build_rules(config: JobConfig) -> TableRules:
    try:
        return TableRules.build(config.model.required, config.model.formats)
    except re.error as e:
        raise ConfigError(f"invalid format pattern: {e}") from e


def _matcher(key: str, raw: Any) -> Matcher:
    if isinstance(raw, str):
        return Matcher(MatcherKind.ALIAS, raw)
    flags = re.IGNORECASE if raw.get("ignore_case", True) else 0
    try:
        return Matcher(MatcherKind.PATTERN, re.compile(raw["pattern"], flags))
    except re.error as e:
        raise ConfigError(f"column '{key}': invalid pattern: {e}") from e


def _column_spec(column: ColumnConfig) -> ColumnSpec:
    target = column.attribute or column.key
    transform = Transform.identity()
    if column.transform is not None:
        try:
            transform = named_transform(column.transform, target)
        except KeyError as e:
            raise ConfigError(f"column '{column.key}': {e.args[0]}") from e
    matchers = (Matcher(MatcherKind.NAME, column.key),) + tuple(
        _matcher(column.key, m) for m in column.matchers
    )
    return ColumnSpec(
        key=column.key,
        matchers=matchers,
        required=column.required,
        target=target,
        transform=transform,
    )


def build_definition(
    config: JobConfig, adapter: ModelAdapter, *, identifier: str | None = None
) -> ImportDefinition:
    """Build the ImportDefinition; ``identifier`` overrides the job's one."""
    try:
        return ImportDefinition.build(
            adapter,
            [_column_spec(c) for c in config.columns],
            identifier=identifier if identifier is not None else config.identifier,
            when_invalid=config.when_invalid,
        )
    except ConfigurationError as e:
        raise ConfigError(str(e)) from e
