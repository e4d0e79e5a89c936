"""
File helpers: type detection, upload validation, size formatting and
per-format metadata.
"""
import csv
import hashlib
import io
import math
import os
import struct
from typing import Optional
from urllib.parse import quote

import fitz  # PyMuPDF

ALLOWED_EXTENSIONS = [".pdf", ".doc", ".docx", ".xls", ".xlsx", ".csv", ".jpg", ".jpeg", ".png"]

ALLOWED_MIME_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/csv",
    "image/jpeg",
    "image/png",
]

EXTENSION_MIME_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "doc": "application/msword",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "xls": "application/vnd.ms-excel",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "ppt": "application/vnd.ms-powerpoint",
    "txt": "text/plain",
    "json": "application/json",
    "csv": "text/csv",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
}

GENERIC_MIME_TYPE = "application/octet-stream"

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def get_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def get_mime_type(mime_type: Optional[str], filename: str) -> str:
    """Declared MIME type when it is specific, otherwise derived from the extension."""
    if mime_type and mime_type != GENERIC_MIME_TYPE:
        return mime_type
    return EXTENSION_MIME_TYPES.get(get_extension(filename).lstrip("."), GENERIC_MIME_TYPE)


def categorize_file(mime_type: Optional[str], filename: str) -> str:
    """Collapse a MIME type / extension into pdf, image, spreadsheet, document or other."""
    mime_type = (mime_type or "").lower()
    extension = get_extension(filename)

    if mime_type == "application/pdf" or extension == ".pdf":
        return "pdf"
    if mime_type.startswith("image/") or extension in (".jpg", ".jpeg", ".png", ".gif"):
        return "image"
    if (
        "spreadsheet" in mime_type
        or "excel" in mime_type
        or mime_type == "text/csv"
        or extension in (".csv", ".xls", ".xlsx")
    ):
        return "spreadsheet"
    if "word" in mime_type or extension in (".doc", ".docx"):
        return "document"
    return "other"


def validate_file(filename: str, size: int, mime_type: Optional[str], max_size: int) -> tuple[bool, list[str]]:
    """
    Check an upload against the size limit and the allowed types.

    Returns:
        tuple: (is_valid, list_of_errors)
    """
    errors = []

    if size <= 0:
        errors.append("File is empty")
    elif size > max_size:
        errors.append(f"File size exceeds the maximum limit of {format_bytes(max_size)}")

    if get_extension(filename) not in ALLOWED_EXTENSIONS:
        errors.append(f"File type not allowed. Allowed types: {', '.join(ALLOWED_EXTENSIONS)}")
    elif mime_type and mime_type != GENERIC_MIME_TYPE and mime_type not in ALLOWED_MIME_TYPES:
        errors.append(f"MIME type {mime_type} is not allowed")

    return len(errors) == 0, errors


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human-readable size, e.g. 1536 -> '1.5 KB'."""
    if size == 0:
        return "0 Bytes"

    units = ["Bytes", "KB", "MB", "GB", "TB"]
    index = min(int(math.floor(math.log(abs(size)) / math.log(1024))), len(units) - 1)
    value = round(size / math.pow(1024, index), max(decimals, 0))
    if value == int(value):
        value = int(value)
    return f"{value} {units[index]}"


def _png_dimensions(data: bytes) -> Optional[dict]:
    if len(data) < 24 or not data.startswith(PNG_SIGNATURE):
        return None
    width, height = struct.unpack(">II", data[16:24])
    return {"width": width, "height": height}


def _csv_shape(data: bytes) -> dict:
    text = data.decode("utf-8-sig", errors="replace")
    rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    return {
        "row_count": max(len(rows) - 1, 0),
        "column_count": len(rows[0]) if rows else 0,
    }


def _pdf_page_count(data: bytes) -> Optional[int]:
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            return len(doc)
    except RuntimeError:
        # Damaged or truncated file
        return None


def content_disposition(filename: str, disposition: str = "attachment") -> str:
    """
    Content-Disposition value for a download.

    Header values are latin-1, so the real name goes into ``filename*``
    (RFC 5987) and ``filename`` carries an ASCII rendering of it.
    """
    fallback = "".join(c if 32 <= ord(c) < 127 else "_" for c in filename)
    fallback = fallback.replace("\\", "\\\\").replace('"', '\\"')
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def get_file_metadata(data: bytes, mime_type: str) -> dict:
    """Size, type and checksum for every file, plus format details where cheap to read."""
    metadata = {
        "size": len(data),
        "type": mime_type,
        "checksum": hashlib.sha256(data).hexdigest(),
    }

    if mime_type == "application/pdf":
        page_count = _pdf_page_count(data)
        if page_count is not None:
            metadata["page_count"] = page_count
    elif mime_type == "image/png":
        dimensions = _png_dimensions(data)
        if dimensions:
            metadata["dimensions"] = dimensions
    elif mime_type == "text/csv":
        metadata.update(_csv_shape(data))

    return metadata
