import logging
import os
from typing import List, Optional

from pydantic import BaseModel

from apps.invest.extraction import confidence
from apps.invest.extraction.fields import ParsedField
from apps.invest.extraction.normalizer import normalize_fields
from apps.invest.extraction.strategies import get_strategy

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Raised when a document cannot be parsed into fields."""


class ParseResult(BaseModel):
    fields: List[ParsedField]
    confidence: float


def parse_document(data: bytes, filename: str, file_type: str, mime_type: Optional[str] = None) -> ParseResult:
    """
    Extract, normalize and score the fields of a document.

    Raises ParseError when no strategy handles the file or the strategy fails.
    """
    extension = os.path.splitext(filename)[1].lower()
    strategy = get_strategy(file_type, extension)
    if strategy is None:
        raise ParseError(f"No extraction strategy available for file type: {file_type}")

    logger.info(f"Parsing {filename} with {strategy.name} strategy")
    try:
        raw_fields = strategy.extract(data, filename, mime_type)
    except Exception as e:
        raise ParseError(f"Failed to parse document: {e}") from e

    fields = confidence.rescore(normalize_fields(raw_fields, file_type))
    return ParseResult(fields=fields, confidence=confidence.overall_confidence(fields))
