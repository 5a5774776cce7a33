from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from pathlib import Path
from typing import IO

"""CSV source reader.

Reduces the three supported input sources (in-memory content, an open
stream, a file path) to UTF-8 text, then tokenizes it with the stdlib csv
module in strict mode. Undecodable bytes and malformed quoting surface as a
CSVParseError carrying the 1-based line the offending record starts on.

The whole table is parsed up front; rows are held in memory.
"""

__all__ = [
    "CSVParseError",
    "ParsedRow",
    "ParsedTable",
    "decode_source",
    "load_source",
    "read_source",
    "parse_csv",
]

_UTF8_BOM = b"\xef\xbb\xbf"


class CSVParseError(Exception):
    """Raised when the input is not well-formed CSV."""

    def __init__(self, line_number: int, message: str) -> None:
        super().__init__(message)
        self.line_number = line_number
        self.message = message


@dataclass(frozen=True)
class ParsedRow:
    line_number: int  # レコード開始行 (1-based, ヘッダ=1)
    cells: list[str]


@dataclass(frozen=True)
class ParsedTable:
    header: list[str]
    rows: list[ParsedRow]


def load_source(
    content: str | bytes | None = None,
    file: IO[str] | IO[bytes] | None = None,
    path: str | Path | None = None,
) -> str | bytes:
    """Return the raw contents of exactly one source, undecoded.

    Raises:
        ValueError: If zero or several sources are given
    """
    given = [name for name, value in (("content", content), ("file", file), ("path", path))
             if value is not None]
    if len(given) != 1:
        raise ValueError(f"exactly one of content/file/path is required (got: {given or 'none'})")

    if path is not None:
        return Path(path).read_bytes()
    if file is not None:
        return file.read()
    assert content is not None
    return content


def decode_source(raw: str | bytes) -> str:
    """Strip a leading BOM and decode bytes as UTF-8.

    Raises:
        CSVParseError: If the bytes are not valid UTF-8
    """
    if isinstance(raw, bytes):
        # Strip UTF-8 BOM
        if raw.startswith(_UTF8_BOM):
            raw = raw[len(_UTF8_BOM):]
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            line = raw.count(b"\n", 0, e.start) + 1
            raise CSVParseError(line, f"Invalid byte sequence on line {line}.") from e
    if raw.startswith("\ufeff"):
        return raw[1:]
    return raw


def read_source(
    content: str | bytes | None = None,
    file: IO[str] | IO[bytes] | None = None,
    path: str | Path | None = None,
) -> str:
    """Return the CSV text of exactly one source.

    Raises:
        ValueError: If zero or several sources are given
        CSVParseError: If byte input is not valid UTF-8
    """
    return decode_source(load_source(content=content, file=file, path=path))


def _describe(error: csv.Error, line_number: int) -> str:
    detail = str(error)
    if "unexpected end of data" in detail:
        return f"Unclosed quoted field on line {line_number}."
    if "NUL" in detail:
        return f"Null byte in line {line_number}."
    if "field larger than field limit" in detail:
        return f"Field size limit exceeded in line {line_number}."
    return f"Illegal quoting in line {line_number}."


def parse_csv(text: str) -> ParsedTable:
    """Tokenize CSV text into a header and data rows.

    Blank lines are skipped. Empty input yields an empty header.

    Raises:
        CSVParseError: On malformed quoting (message names the line)
    """
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    records: list[ParsedRow] = []
    while True:
        start_line = reader.line_num + 1
        try:
            cells = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            raise CSVParseError(start_line, _describe(e, start_line)) from e
        # 空行 / 空白のみの行はスキップ
        if not cells or (len(cells) == 1 and not cells[0].strip()):
            continue
        records.append(ParsedRow(line_number=start_line, cells=cells))

    if not records:
        return ParsedTable(header=[], rows=[])
    header = [c.strip() for c in records[0].cells]
    return ParsedTable(header=header, rows=records[1:])
