"""
Mistral OCR parser for document text extraction
"""
import base64
import logging
from functools import lru_cache
from typing import Optional

from mistralai import Mistral

from apps.invest.config import get_invest_settings

logger = logging.getLogger(__name__)

EXTENSION_MIME_OVERRIDES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


class OCRError(Exception):
    """Raised when the OCR service cannot produce text for a document."""


@lru_cache()
def get_mistral_client() -> Mistral:
    settings = get_invest_settings()
    if not settings.MISTRAL_API_KEY:
        raise OCRError("INVEST_MISTRAL_API_KEY is not configured")
    return Mistral(api_key=settings.MISTRAL_API_KEY)


def build_ocr_document(file_bytes: bytes, filename: str, mime_type: Optional[str] = None) -> dict:
    """
    Build the Mistral OCR payload for a file.
    - PDFs and office documents are sent as a base64 document_url
    - Images are sent as a base64 image_url
    """
    encoded = base64.b64encode(file_bytes).decode("utf-8")

    lowered = filename.lower()
    for extension, override in EXTENSION_MIME_OVERRIDES.items():
        if lowered.endswith(extension):
            mime_type = override
            break
    mime_type = mime_type or "application/octet-stream"

    if mime_type.startswith("image/"):
        return {
            "type": "image_url",
            "image_url": f"data:{mime_type};base64,{encoded}"
        }
    return {
        "type": "document_url",
        "document_url": f"data:{mime_type};base64,{encoded}"
    }


def parse_with_mistral_from_bytes(file_bytes: bytes, filename: str, mime_type: Optional[str] = None) -> str:
    """
    Extract the text of a file with Mistral OCR and return it as Markdown,
    one block per page.
    """
    settings = get_invest_settings()
    document = build_ocr_document(file_bytes, filename, mime_type)
    logger.info(f"Running OCR on {filename} ({len(file_bytes)} bytes, {document['type']})")

    try:
        ocr_response = get_mistral_client().ocr.process(
            model=settings.OCR_MODEL,
            document=document
        )
    except OCRError:
        raise
    except Exception as e:
        raise OCRError(f"OCR request failed: {e}") from e

    pages = getattr(ocr_response, "pages", None)
    if pages is None:
        raise OCRError("No pages found in OCR result")

    return "\n\n".join(page.markdown for page in pages)
