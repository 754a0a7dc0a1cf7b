"""Comma-separated tabular codec used by product import and export.

The decoder is a single-pass scanner rather than ``csv.reader`` so that the
import contract is fully pinned down: quoted fields may contain commas and
newlines, ``""`` inside quotes is a literal quote, a bare ``\\r`` is dropped,
blank rows disappear and an unterminated quote is a hard error. Export goes
through ``csv.DictWriter``.
"""
from __future__ import annotations

import csv
import io
from typing import Any, Iterable, Iterator, Mapping, Sequence

from catalog.core.exceptions import CSVDecodeError

_QUOTE = '"'
_DELIMITER = ","


def _is_blank(row: Sequence[str]) -> bool:
    return all(not value.strip() for value in row)


def decode_rows(content: str) -> Iterator[list[str]]:
    """Yield each non-blank row of ``content`` as a list of raw field values.

    Raises:
        CSVDecodeError: If a quoted field is still open at end of input
    """
    field: list[str] = []
    row: list[str] = []
    in_quotes = False
    index = 0
    length = len(content)

    while index < length:
        char = content[index]
        index += 1

        if in_quotes:
            if char == _QUOTE:
                if index < length and content[index] == _QUOTE:
                    field.append(_QUOTE)
                    index += 1
                else:
                    in_quotes = False
            else:
                field.append(char)
            continue

        if char == _QUOTE:
            in_quotes = True
        elif char == _DELIMITER:
            row.append("".join(field))
            field = []
        elif char == "\n":
            row.append("".join(field))
            if not _is_blank(row):
                yield row
            row = []
            field = []
        elif char != "\r":
            field.append(char)

    if in_quotes:
        raise CSVDecodeError()

    row.append("".join(field))
    if not _is_blank(row):
        yield row


def decode_records(raw: bytes) -> Iterator[dict[str, str]]:
    """Decode a UTF-8 payload into header-keyed mappings, one per data row.

    The first row is the header. Rows shorter than the header map the missing
    columns to ``""``; cells past the last header column are ignored.
    """
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CSVDecodeError("CSV file must be UTF-8 encoded", original_error=exc) from exc

    if not content.strip():
        return

    rows = decode_rows(content)
    headers = next(rows, None)
    if headers is None:
        return
    headers = [header.strip() for header in headers]

    for row in rows:
        yield {header: (row[position] if position < len(row) else "") for position, header in enumerate(headers)}


def encode_records(records: Iterable[Mapping[str, Any]], fields: Sequence[str]) -> str:
    """Serialize ``records`` to CSV text with a header row built from ``fields``.

    Missing and ``None`` values are written as empty cells; keys outside
    ``fields`` are ignored.
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=list(fields),
        restval="",
        extrasaction="ignore",
        lineterminator="\n",
        quoting=csv.QUOTE_MINIMAL,
    )
    writer.writeheader()
    writer.writerows(records)
    return buffer.getvalue()
