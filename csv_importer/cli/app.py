from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from csv_importer.config.loader import ConfigError, DatabaseConfig, JobConfig, build_definition, build_rules, load_config
from csv_importer.db.adapter import ModelAdapter
from csv_importer.db.postgres import PostgresTableAdapter
from csv_importer.db.table import MemoryTableAdapter
from csv_importer.logging.error_log import ErrorLogBuffer
from csv_importer.logging.init import log_summary, setup_logging
from csv_importer.models.report import ReportStatus
from csv_importer.services.orchestrator import CSVImport
from csv_importer.services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load .env (override) and the YAML job file
- Connect to PostgreSQL (or use the in-memory adapter for --dry-run)
- Run the import, print the report message and the SUMMARY line
- Flush the JSON Lines error log and optionally write a per-row report CSV
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2

_FATAL_STATUSES = frozenset({ReportStatus.INVALID_CSV, ReportStatus.INVALID_HEADER})


def _resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """DSN resolution order: DATABASE_URL/PGDSN, PG* variables, job file."""
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_cursor(cfg: JobConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper; tested via integration)
    """Provide a psycopg2 cursor; the adapter issues BEGIN/COMMIT itself."""
    conn = psycopg2.connect(_resolve_dsn(cfg.database))
    conn.autocommit = True  # 明示トランザクション境界 (adapter が BEGIN/COMMIT 実行)
    try:
        with conn.cursor() as cur:
            yield cur
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="CSV -> model bulk importer")
    p.add_argument("--config", type=Path, default=Path("config/import.yml"), help="Job YAML file")
    p.add_argument("--file", type=Path, required=True, help="CSV file to import")
    p.add_argument("--identifier", help="Override the job's identifier column")
    p.add_argument("--dry-run", action="store_true", help="Validate against an in-memory store")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect", action="store_true", help="Print header resolution then exit")
    p.add_argument("--report-out", type=Path, help="Write per-row outcomes as CSV")
    return p.parse_args(argv)


def _inspect(job: CSVImport) -> int:
    header = job.header
    if header is None:
        valid = job.valid_header()
        assert not valid and job.report is not None
        print(f"inspect: {job.report.message}")
        return EXIT_FATAL
    matched = {key: header.column_name(key) for key in header.mapping}
    print(f"FILE: {job.source_name}")
    print(f"  matched={matched}")
    print(f"  missing={header.missing_columns} missing_required={header.missing_required_columns}")
    print(f"  extra={header.extra_columns}")
    for row in job.rows[:3]:
        print(f"  line {row.line_number}: {row.csv_attributes}")
    return EXIT_SUCCESS_ALL if header.valid else EXIT_FATAL


def _execute(args: argparse.Namespace, cfg: JobConfig, adapter: ModelAdapter, logger: logging.Logger) -> int:
    try:
        definition = build_definition(cfg, adapter, identifier=args.identifier)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer()
    job = CSVImport(definition, path=args.file, error_log=error_log)
    if args.inspect:
        return _inspect(job)

    report = job.run()
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log: {log_path}")
    if args.report_out is not None:
        report.to_frame().to_csv(args.report_out, index=False)
        logger.info(f"row report: {args.report_out}")

    if report.status in _FATAL_STATUSES:
        logger.error(report.message)
    elif report.success:
        logger.info(report.message)
    else:
        logger.warning(report.message)
    log_summary(render_summary_line(report)[len("SUMMARY "):])

    if report.success:
        return EXIT_SUCCESS_ALL
    if report.status in _FATAL_STATUSES:
        return EXIT_FATAL
    return EXIT_PARTIAL_FAILURE


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみシステム引数を読む ([] はテストからの明示指定)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in logger.handlers:
            h.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    try:
        cfg = load_config(args.config)
        rules = build_rules(cfg)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if not args.file.exists():
        logger.error(f"file not found: {args.file}")
        return EXIT_FATAL

    if args.dry_run or os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.info(f"mode=dry-run table={cfg.model.table}")
        adapter = MemoryTableAdapter(rules, primary_key=cfg.model.primary_key)
        return _execute(args, cfg, adapter, logger)

    try:
        with _db_cursor(cfg) as cur:
            logger.info(f"mode=live table={cfg.model.table}")
            adapter = PostgresTableAdapter(
                cur,
                cfg.model.table,
                rules,
                primary_key=cfg.model.primary_key,
                columns=cfg.model.columns,
            )
            return _execute(args, cfg, adapter, logger)
    except psycopg2.Error as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL
