from .fields import ParsedField
from .parser import parse_document, ParseError, ParseResult

__all__ = ["ParsedField", "parse_document", "ParseError", "ParseResult"]
