"""
app/services/csv_reader.py

CSV decoding helpers: encoding and delimiter detection, header cleanup,
and chunked streaming for large vendor files.
"""

from __future__ import annotations

import codecs
import csv
import io
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator

logger = logging.getLogger(__name__)

DELIMITER_CANDIDATES: tuple[str, ...] = (",", "\t", "|", ";")
DEFAULT_ENCODING = "utf-8"
SAMPLE_LINES = 5
SAMPLE_BYTES = 64 * 1024

RawRow = dict[str, str | None]


class CSVFormatError(ValueError):
    """
    Raised when a CSV payload cannot be decoded or has no header row.
    """


@dataclass(frozen=True)
class CSVTable:
    headers: list[str]
    rows: list[RawRow] = field(default_factory=list)
    delimiter: str = ","
    encoding: str = DEFAULT_ENCODING


@dataclass(frozen=True)
class CSVChunk:
    """
    A slice of a streamed file. ``start_index`` is the zero-based index of
    the first row in the chunk within the whole file.
    """

    headers: list[str]
    rows: list[RawRow]
    start_index: int


def detect_encoding(data: bytes, default: str = DEFAULT_ENCODING) -> str:
    """
    Detect the text encoding from a byte-order mark, falling back to ``default``.
    """

    if data.startswith(codecs.BOM_UTF8):
        return "utf-8-sig"
    if data.startswith(codecs.BOM_UTF16_LE) or data.startswith(codecs.BOM_UTF16_BE):
        return "utf-16"
    return default


def detect_delimiter(sample: str, candidates: Iterable[str] = DELIMITER_CANDIDATES) -> str:
    """
    Pick the delimiter that splits the first lines of ``sample`` most
    consistently. Defaults to a comma.
    """

    allowed = "".join(candidates)
    try:
        return csv.Sniffer().sniff(sample, delimiters=allowed).delimiter
    except csv.Error:
        pass

    lines = [line for line in sample.splitlines() if line.strip()][:SAMPLE_LINES]
    if not lines:
        return ","
    best = ","
    best_score = 0
    for candidate in allowed:
        counts = Counter(line.count(candidate) for line in lines)
        per_line, frequency = counts.most_common(1)[0]
        score = per_line * frequency if per_line > 0 else 0
        if score > best_score:
            best, best_score = candidate, score
    return best


def clean_header(header: str) -> str:
    return header.replace("\u200b", "").replace("\ufeff", "").strip()


def _rows_from_reader(
    reader: Iterator[list[str]],
    headers: list[str],
    *,
    keep_blank_lines: bool,
) -> Iterator[RawRow]:
    for values in reader:
        if not values or all(not value.strip() for value in values):
            if not keep_blank_lines:
                continue
        yield {
            header: values[index] if index < len(values) else None
            for index, header in enumerate(headers)
        }


def read_csv_text(
    text: str,
    *,
    delimiter: str | None = None,
    keep_blank_lines: bool = False,
) -> CSVTable:
    """
    Parse CSV text with a header row into raw rows keyed by cleaned header.
    """

    if text.startswith("\ufeff"):
        text = text[1:]
    resolved_delimiter = delimiter or detect_delimiter(text[:SAMPLE_BYTES])
    try:
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=resolved_delimiter)
        first = next(reader, None)
        if not first or not any(cell.strip() for cell in first):
            raise CSVFormatError("CSV header row is missing.")
        headers = [clean_header(cell) for cell in first]
        rows = list(_rows_from_reader(reader, headers, keep_blank_lines=keep_blank_lines))
    except csv.Error as exc:
        raise CSVFormatError(f"Invalid CSV format: {exc}") from exc

    return CSVTable(headers=headers, rows=rows, delimiter=resolved_delimiter)


def read_csv_bytes(
    data: bytes,
    *,
    encoding: str | None = None,
    delimiter: str | None = None,
    keep_blank_lines: bool = False,
) -> CSVTable:
    resolved_encoding = detect_encoding(data, default=encoding or DEFAULT_ENCODING)
    try:
        text = data.decode(resolved_encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise CSVFormatError(f"CSV could not be decoded as {resolved_encoding}.") from exc

    table = read_csv_text(text, delimiter=delimiter, keep_blank_lines=keep_blank_lines)
    return CSVTable(
        headers=table.headers,
        rows=table.rows,
        delimiter=table.delimiter,
        encoding=resolved_encoding,
    )


def read_csv_file(
    path: str | Path,
    *,
    encoding: str | None = None,
    delimiter: str | None = None,
    keep_blank_lines: bool = False,
) -> CSVTable:
    data = Path(path).read_bytes()
    logger.debug("Read CSV file path=%s bytes=%s", path, len(data))
    return read_csv_bytes(
        data,
        encoding=encoding,
        delimiter=delimiter,
        keep_blank_lines=keep_blank_lines,
    )


def iter_csv_chunks(
    path: str | Path,
    *,
    chunk_size: int,
    encoding: str | None = None,
    delimiter: str | None = None,
    keep_blank_lines: bool = False,
) -> Iterator[CSVChunk]:
    """
    Stream a CSV file in sequential chunks of at most ``chunk_size`` rows.
    """

    chunk_size = max(1, chunk_size)
    file_path = Path(path)
    with file_path.open("rb") as raw:
        head = raw.read(SAMPLE_BYTES)
    resolved_encoding = detect_encoding(head, default=encoding or DEFAULT_ENCODING)
    if delimiter is None:
        delimiter = detect_delimiter(head.decode(resolved_encoding, errors="ignore"))

    try:
        with file_path.open("r", encoding=resolved_encoding, newline="") as handle:
            reader = csv.reader(handle, delimiter=delimiter)
            first = next(reader, None)
            if not first or not any(cell.strip() for cell in first):
                raise CSVFormatError("CSV header row is missing.")
            headers = [clean_header(cell) for cell in first]

            batch: list[RawRow] = []
            start_index = 0
            for row in _rows_from_reader(reader, headers, keep_blank_lines=keep_blank_lines):
                batch.append(row)
                if len(batch) >= chunk_size:
                    yield CSVChunk(headers=headers, rows=batch, start_index=start_index)
                    start_index += len(batch)
                    batch = []
            # A header-only file still yields one empty chunk carrying the headers.
            if batch or start_index == 0:
                yield CSVChunk(headers=headers, rows=batch, start_index=start_index)
    except UnicodeDecodeError as exc:
        raise CSVFormatError(f"CSV could not be decoded as {resolved_encoding}.") from exc
    except csv.Error as exc:
        raise CSVFormatError(f"Invalid CSV format: {exc}") from exc


def stream_csv_file(
    path: str | Path,
    on_chunk: Callable[[CSVChunk], None],
    *,
    chunk_size: int,
    encoding: str | None = None,
    delimiter: str | None = None,
) -> int:
    """
    Feed every chunk to ``on_chunk`` in file order. Returns the row count.
    """

    total = 0
    for chunk in iter_csv_chunks(path, chunk_size=chunk_size, encoding=encoding, delimiter=delimiter):
        on_chunk(chunk)
        total += len(chunk.rows)
    return total
