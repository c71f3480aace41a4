"""
app/api/dependencies.py

Upload validation for the vendor ingestion endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, File, HTTPException, UploadFile, status

from app.config import IngestionSettings, get_ingestion_settings

VENDOR_FILE_EXTENSIONS = (".csv", ".tsv")

VENDOR_FILE_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
    "text/tab-separated-values",
}

_READ_CHUNK_BYTES = 64 * 1024


@dataclass(frozen=True)
class VendorUpload:
    file_name: str | None
    data: bytes


def get_vendor_upload(
    file: UploadFile = File(...),
    settings: IngestionSettings = Depends(get_ingestion_settings),
) -> VendorUpload:
    """
    Accept a delimited vendor export by extension or MIME type and read it
    into memory, refusing anything above the configured upload limit.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()

    if not filename.endswith(VENDOR_FILE_EXTENSIONS) and content_type not in VENDOR_FILE_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV files are allowed.",
        )

    try:
        data = _read_limited(file, settings.max_upload_bytes)
    finally:
        file.file.close()

    return VendorUpload(file_name=file.filename, data=data)


def _read_limited(file: UploadFile, max_bytes: int) -> bytes:
    chunks: list[bytes] = []
    size = 0
    while True:
        chunk = file.file.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Upload exceeds the {max_bytes} byte limit.",
            )
        chunks.append(chunk)
    return b"".join(chunks)
