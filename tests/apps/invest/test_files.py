import hashlib
import struct

import fitz

from common.utils.files import (
    categorize_file,
    content_disposition,
    format_bytes,
    get_file_metadata,
    get_mime_type,
    validate_file,
)

MAX_SIZE = 10 * 1024 * 1024


def test_validate_file_accepts_allowed_types():
    assert validate_file("report.pdf", 1024, "application/pdf", MAX_SIZE) == (True, [])
    assert validate_file("data.csv", 10, "application/octet-stream", MAX_SIZE) == (True, [])
    assert validate_file("scan.JPG", 10, None, MAX_SIZE) == (True, [])


def test_validate_file_rejects_extension_size_and_mime():
    is_valid, errors = validate_file("script.exe", 10, None, MAX_SIZE)
    assert not is_valid
    assert errors[0].startswith("File type not allowed")

    is_valid, errors = validate_file("big.pdf", MAX_SIZE + 1, "application/pdf", MAX_SIZE)
    assert not is_valid
    assert errors == ["File size exceeds the maximum limit of 10 MB"]

    is_valid, errors = validate_file("fake.pdf", 10, "text/html", MAX_SIZE)
    assert errors == ["MIME type text/html is not allowed"]

    is_valid, errors = validate_file("empty.pdf", 0, "application/pdf", MAX_SIZE)
    assert errors == ["File is empty"]


def test_categorize_file():
    assert categorize_file("application/pdf", "a.pdf") == "pdf"
    assert categorize_file("image/png", "a.png") == "image"
    assert categorize_file("text/csv", "a.csv") == "spreadsheet"
    assert categorize_file(None, "a.xlsx") == "spreadsheet"
    assert categorize_file(None, "a.docx") == "document"
    assert categorize_file("text/plain", "a.txt") == "other"


def test_get_mime_type_falls_back_to_extension():
    assert get_mime_type("application/octet-stream", "a.csv") == "text/csv"
    assert get_mime_type(None, "a.unknown") == "application/octet-stream"
    assert get_mime_type("image/png", "a.bin") == "image/png"


def test_format_bytes():
    assert format_bytes(0) == "0 Bytes"
    assert format_bytes(512) == "512 Bytes"
    assert format_bytes(1024) == "1 KB"
    assert format_bytes(1536) == "1.5 KB"
    assert format_bytes(10 * 1024 * 1024) == "10 MB"


def test_metadata_checksum_and_csv_shape():
    data = b"a,b,c\n1,2,3\n4,5,6\n"
    metadata = get_file_metadata(data, "text/csv")
    assert metadata["size"] == len(data)
    assert metadata["type"] == "text/csv"
    assert metadata["checksum"] == hashlib.sha256(data).hexdigest()
    assert metadata["row_count"] == 2
    assert metadata["column_count"] == 3


def _compressed_pdf(pages: int) -> bytes:
    """A PDF whose page objects live in a Flate-compressed object stream."""
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page()
    data = doc.tobytes(garbage=3, deflate=True, use_objstms=1)
    doc.close()
    return data


def test_metadata_pdf_page_count_with_object_streams():
    pdf = _compressed_pdf(3)
    assert b"/ObjStm" in pdf
    assert get_file_metadata(pdf, "application/pdf")["page_count"] == 3


def test_metadata_png_dimensions():
    png = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + struct.pack(">II", 640, 480) + b"\x08\x02"
    assert get_file_metadata(png, "image/png")["dimensions"] == {"width": 640, "height": 480}


def test_content_disposition_non_ascii_name():
    header = content_disposition("报告.csv")
    header.encode("latin-1")
    assert header == "attachment; filename=\"__.csv\"; filename*=UTF-8''%E6%8A%A5%E5%91%8A.csv"


def test_content_disposition_escapes_quotes():
    assert content_disposition('say "hi".csv').startswith('attachment; filename="say \\"hi\\".csv";')
