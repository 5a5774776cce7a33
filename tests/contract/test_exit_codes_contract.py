from __future__ import annotations

from pathlib import Path

from csv_importer.cli import main as cli_main
from csv_importer.logging.init import reset_logging

"""Exit code contract: 0 success, 2 completed with errors or aborted, 1 fatal."""

VALID_CSV = "email,confirmed,first_name,last_name\nbob@example.com,true,bob,\n"


def _run(args: list[str]) -> int:
    reset_logging()  # Ensure clean logging state
    return cli_main(args)


def test_exit_code_fatal_startup(temp_workdir: Path, write_csv, capsys):
    # config/import.yml 無し → exit 1
    path = write_csv(VALID_CSV)
    code = _run(["--file", str(path), "--dry-run"])
    captured = capsys.readouterr()
    assert code == 1
    assert "ERROR config: config file not found" in captured.out


def test_exit_code_missing_csv(write_config: Path, capsys):
    code = _run(["--config", str(write_config), "--file", "data/none.csv", "--dry-run"])
    assert code == 1
    assert "ERROR file not found: data/none.csv" in capsys.readouterr().out


def test_exit_code_all_success(write_config: Path, write_csv, capsys):
    path = write_csv(VALID_CSV)
    code = _run(["--config", str(write_config), "--file", str(path), "--dry-run"])
    out = capsys.readouterr().out
    assert code == 0
    assert "INFO mode=dry-run table=users" in out
    assert "INFO Import completed: 1 created" in out
    assert "SUMMARY status=success rows=1 created=1 updated=0" in out


def test_exit_code_partial_failure(write_config: Path, write_csv, capsys):
    path = write_csv(VALID_CSV + "not-an-email,false,ann,\n")
    code = _run(["--config", str(write_config), "--file", str(path), "--dry-run"])
    out = capsys.readouterr().out
    assert code == 2
    assert "WARN Import completed: 1 created, 1 failed to create" in out
    assert "SUMMARY status=completed_with_errors rows=2 created=1" in out
    assert "failed_to_create=1" in out


def test_exit_code_aborted(write_config: Path, write_csv, capsys):
    write_config.write_text(
        write_config.read_text(encoding="utf-8").replace("when_invalid: skip", "when_invalid: abort"),
        encoding="utf-8",
    )
    path = write_csv(VALID_CSV + "not-an-email,false,ann,\n")
    code = _run(["--config", str(write_config), "--file", str(path), "--dry-run"])
    out = capsys.readouterr().out
    assert code == 2
    assert "WARN Import aborted" in out
    assert "SUMMARY status=aborted rows=0" in out


def test_exit_code_invalid_header(write_config: Path, write_csv, capsys):
    path = write_csv("confirmed,first_name\ntrue,bob\n")
    code = _run(["--config", str(write_config), "--file", str(path), "--dry-run"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR The following columns are required: email" in out
    assert "SUMMARY status=invalid_header" in out


def test_exit_code_invalid_csv(write_config: Path, write_csv, capsys):
    path = write_csv('email,first_name\n"bob@example.com,bob\n')
    code = _run(["--config", str(write_config), "--file", str(path), "--dry-run"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR Unclosed quoted field on line 2." in out
    assert "SUMMARY status=invalid_csv" in out
