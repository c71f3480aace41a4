from __future__ import annotations

import codecs
from pathlib import Path

import pytest

from app.services.csv_reader import (
    CSVFormatError,
    clean_header,
    detect_delimiter,
    detect_encoding,
    iter_csv_chunks,
    read_csv_bytes,
    read_csv_file,
    read_csv_text,
    stream_csv_file,
)


def test_detects_encoding_from_byte_order_mark() -> None:
    assert detect_encoding(codecs.BOM_UTF8 + b"a,b") == "utf-8-sig"
    assert detect_encoding(codecs.BOM_UTF16_LE + b"a") == "utf-16"
    assert detect_encoding(b"a,b", default="iso-8859-1") == "iso-8859-1"


@pytest.mark.parametrize("delimiter", [",", "\t", "|", ";"])
def test_detects_delimiter(delimiter: str) -> None:
    sample = delimiter.join(["order_id", "order_date", "amount"]) + "\n"
    sample += delimiter.join(["A1", "2024-01-01", "10"]) + "\n"

    assert detect_delimiter(sample) == delimiter


def test_clean_header_strips_invisible_characters() -> None:
    assert clean_header("\ufeff Order ID\u200b ") == "Order ID"


def test_read_text_returns_rows_keyed_by_header() -> None:
    table = read_csv_text("Order ID,Date\nA1,2024-01-01\nA2,2024-01-02\n")

    assert table.headers == ["Order ID", "Date"]
    assert table.rows == [
        {"Order ID": "A1", "Date": "2024-01-01"},
        {"Order ID": "A2", "Date": "2024-01-02"},
    ]
    assert table.delimiter == ","


def test_short_rows_are_padded_with_none() -> None:
    table = read_csv_text("a,b,c\n1,2\n", delimiter=",")

    assert table.rows == [{"a": "1", "b": "2", "c": None}]


def test_blank_lines_follow_keep_blank_lines() -> None:
    text = "a,b\n1,2\n,\n3,4\n"

    assert len(read_csv_text(text, delimiter=",").rows) == 2
    assert len(read_csv_text(text, delimiter=",", keep_blank_lines=True).rows) == 3


def test_missing_header_raises() -> None:
    with pytest.raises(CSVFormatError):
        read_csv_text("")
    with pytest.raises(CSVFormatError):
        read_csv_text(" , \n1,2\n", delimiter=",")


def test_read_bytes_decodes_with_fallback_encoding() -> None:
    data = "Order ID;Product\nA1;Café\n".encode("iso-8859-1")

    table = read_csv_bytes(data, encoding="iso-8859-1")

    assert table.delimiter == ";"
    assert table.encoding == "iso-8859-1"
    assert table.rows[0]["Product"] == "Café"


def test_read_bytes_strips_utf8_bom() -> None:
    table = read_csv_bytes(codecs.BOM_UTF8 + b"order_id,order_date\nA1,2024-01-01\n")

    assert table.headers == ["order_id", "order_date"]
    assert table.encoding == "utf-8-sig"


def test_undecodable_bytes_raise_format_error() -> None:
    with pytest.raises(CSVFormatError):
        read_csv_bytes(b"order_id\n\xff\xfe\xfa\n", encoding="utf-8")


def test_read_file(tmp_path: Path) -> None:
    path = tmp_path / "orders.csv"
    path.write_text("order_id|order_date\nA1|2024-01-01\n", encoding="utf-8")

    table = read_csv_file(path)

    assert table.delimiter == "|"
    assert table.rows == [{"order_id": "A1", "order_date": "2024-01-01"}]


def test_iter_chunks_tracks_start_index(tmp_path: Path) -> None:
    path = tmp_path / "large.csv"
    lines = ["order_id,order_date"] + [f"A{index},2024-01-01" for index in range(5)]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    chunks = list(iter_csv_chunks(path, chunk_size=2))

    assert [len(chunk.rows) for chunk in chunks] == [2, 2, 1]
    assert [chunk.start_index for chunk in chunks] == [0, 2, 4]
    assert chunks[2].rows[0]["order_id"] == "A4"


def test_header_only_file_yields_one_empty_chunk(tmp_path: Path) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("order_id,order_date\n", encoding="utf-8")

    chunks = list(iter_csv_chunks(path, chunk_size=2))

    assert len(chunks) == 1
    assert chunks[0].headers == ["order_id", "order_date"]
    assert chunks[0].rows == []
    assert stream_csv_file(path, lambda chunk: None, chunk_size=2) == 0


def test_stream_feeds_every_chunk_in_order(tmp_path: Path) -> None:
    path = tmp_path / "large.csv"
    lines = ["order_id,order_date"] + [f"A{index},2024-01-01" for index in range(7)]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    seen: list[str] = []

    total = stream_csv_file(
        path,
        lambda chunk: seen.extend(row["order_id"] for row in chunk.rows),
        chunk_size=3,
    )

    assert total == 7
    assert seen == [f"A{index}" for index in range(7)]
