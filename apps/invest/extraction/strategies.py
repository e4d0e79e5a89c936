"""
Extraction strategies.

Each strategy reports whether it handles a file (by category and
extension) and turns the raw bytes into a list of ``ParsedField``.
"""
import csv
import io
import json
import logging
import re
from typing import Any, Dict, List, Optional

from openpyxl import load_workbook

from apps.invest.extraction.fields import ParsedField
from common.utils.parser import parse_with_mistral_from_bytes

logger = logging.getLogger(__name__)

LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
DATE_LIKE = re.compile(r"^\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}$")


def _parse_float(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    match = LEADING_NUMBER.match(str(value))
    return float(match.group(0)) if match else None


class ExtractionStrategy:
    name = "base"

    def supports(self, file_type: str, extension: str) -> bool:
        raise NotImplementedError

    def extract(self, data: bytes, filename: str, mime_type: Optional[str] = None) -> List[ParsedField]:
        raise NotImplementedError


class SpreadsheetStrategy(ExtractionStrategy):
    """CSV and Excel workbooks: one field per column plus summary fields."""
    name = "spreadsheet"
    extensions = (".csv", ".xlsx", ".xlsm")

    def supports(self, file_type: str, extension: str) -> bool:
        return extension.lower() in self.extensions

    def extract(self, data: bytes, filename: str, mime_type: Optional[str] = None) -> List[ParsedField]:
        if filename.lower().endswith(".csv"):
            rows = self.read_csv(data)
        else:
            rows = self.read_workbook(data)
        return self.process_rows(rows)

    @staticmethod
    def read_csv(data: bytes) -> List[Dict[str, Any]]:
        text = data.decode("utf-8-sig", errors="replace")
        return list(csv.DictReader(io.StringIO(text)))

    @staticmethod
    def read_workbook(data: bytes) -> List[Dict[str, Any]]:
        """First sheet, first row as headers."""
        workbook = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        try:
            sheet = workbook.worksheets[0]
            rows = [list(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()

        if len(rows) < 2:
            return []

        headers = [str(h) if h is not None else "" for h in rows[0]]
        records = []
        for row in rows[1:]:
            record = {}
            for index, cell in enumerate(row):
                if index < len(headers) and headers[index]:
                    record[headers[index]] = cell
            records.append(record)
        return records

    def process_rows(self, rows: List[Dict[str, Any]]) -> List[ParsedField]:
        if not rows:
            return []

        fields: List[ParsedField] = []
        headers = list(rows[0].keys())

        for header in headers:
            if not header or not str(header).strip():
                continue

            values = [row.get(header) for row in rows]
            values = [v for v in values if v is not None and v != ""]
            if not values:
                continue

            fields.append(ParsedField(
                name=header,
                value=str(self.representative_value(values, header)),
                confidence=self.column_confidence(values, header),
            ))

        self.add_metadata(rows, headers, fields)
        return fields

    @staticmethod
    def representative_value(values: List[Any], header: str) -> Any:
        lowered = header.lower()

        if any(key in lowered for key in ("id", "number", "date", "name")):
            return values[0]

        if any(key in lowered for key in ("amount", "total", "price", "cost", "value")):
            numbers = [_parse_float(v) for v in values]
            if all(n is not None for n in numbers):
                return f"{sum(numbers):.2f}"

        return values[0]

    @staticmethod
    def column_confidence(values: List[Any], header: str) -> float:
        if not values:
            return 0.0

        lowered = header.lower()
        base = 0.7
        if any(key in lowered for key in ("total", "amount", "invoice", "date", "customer", "vendor", "id")):
            base = 0.85

        non_empty = [v for v in values if v is not None and str(v).strip() != ""]
        consistency = len(non_empty) / len(values)

        if any(key in lowered for key in ("amount", "price", "cost", "total")):
            numeric = [v for v in values if _parse_float(v) is not None]
            return base * (consistency * 0.5 + (len(numeric) / len(values)) * 0.5)

        if "date" in lowered:
            dated = [v for v in values if DATE_LIKE.match(str(v))]
            return base * (consistency * 0.5 + (len(dated) / len(values)) * 0.5)

        return base * consistency

    def add_metadata(self, rows: List[Dict[str, Any]], headers: List[str], fields: List[ParsedField]) -> None:
        fields.append(ParsedField(name="_metadata_row_count", value=str(len(rows)), confidence=1.0))

        document_type = self.identify_document_type(headers)
        if document_type:
            fields.append(ParsedField(name="Document Type", value=document_type, confidence=0.8))

        for header in headers:
            lowered = str(header).lower()
            if not any(key in lowered for key in ("amount", "total", "price", "cost")):
                continue

            numbers = [_parse_float(row.get(header)) for row in rows if row.get(header) not in (None, "")]
            numbers = [n for n in numbers if n is not None]
            if not numbers:
                continue

            total = f"{sum(numbers):.2f}"
            fields.append(ParsedField(name=f"Sum of {header}", value=total, confidence=0.85))

            if ("total" in lowered or "amount" in lowered) and not any(f.name == "Grand Total" for f in fields):
                fields.append(ParsedField(name="Grand Total", value=total, confidence=0.8))

    @staticmethod
    def identify_document_type(headers: List[str]) -> Optional[str]:
        lowered = [str(h).lower() for h in headers]

        def has(keyword: str) -> bool:
            return any(keyword in h for h in lowered)

        if has("invoice") or (has("total") and has("item")):
            return "Invoice"
        if has("expense") or has("claim"):
            return "Expense Report"
        if has("order") or has("purchase"):
            return "Purchase Order"
        if has("inventory") or has("stock") or has("quantity"):
            return "Inventory"
        return None


class OCRTextStrategy(ExtractionStrategy):
    """PDFs, images and office documents: OCR to Markdown, then pattern matching."""
    name = "ocr"
    file_types = ("pdf", "image", "document")
    extensions = (".pdf", ".jpg", ".jpeg", ".png", ".doc", ".docx", ".xls")

    INVOICE_NUMBER = re.compile(
        r"(?:invoice|bill|receipt)(?:\s+|\s*[:#]\s*)(?:number|num|no|#)?\s*[:#]?\s*(\w+[-\s]?\w+)",
        re.IGNORECASE,
    )
    DATE = re.compile(
        r"(?:invoice|bill|receipt|order|date)(?:\s+|\s*[:#]\s*)(?:date|issued|created)?\s*[:#]?\s*"
        r"(\d{1,2}[-/.]\d{1,2}[-/.]\d{2,4}|\d{2,4}[-/.]\d{1,2}[-/.]\d{1,2}|"
        r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{1,2}(?:,|\s+)\s*\d{2,4})",
        re.IGNORECASE,
    )
    TOTAL = re.compile(
        r"(?:total|amount|sum|balance|due)(?:\s+|\s*[:#]\s*)(?:due|amount|payable)?\s*[:#]?\s*"
        r"([$€£]?\s*\d{1,3}(?:,\d{3})*(?:\.\d{2})?)",
        re.IGNORECASE,
    )
    PARTY_NAME = re.compile(
        r"(?:customer|client|vendor|supplier|bill to|sold to)(?:\s+|\s*[:#]\s*)(?:name|company)?\s*[:#]?\s*"
        r"([A-Za-z0-9\s.,&'-]{2,40}?)(?:\r|\n|,)",
        re.IGNORECASE,
    )
    KEY_VALUE = re.compile(r"^\s*([A-Za-z\s&]{2,25}?)(?:\s*[:|-]\s*|\s{2,})(.+)$")
    TABLE_SEPARATOR = re.compile(r"^\|?\s*:?-{3,}")

    def supports(self, file_type: str, extension: str) -> bool:
        return file_type in self.file_types or extension.lower() in self.extensions

    def extract(self, data: bytes, filename: str, mime_type: Optional[str] = None) -> List[ParsedField]:
        markdown = parse_with_mistral_from_bytes(data, filename, mime_type)
        return self.process_text(self.flatten_markdown(markdown))

    @classmethod
    def flatten_markdown(cls, markdown: str) -> str:
        """Strip Markdown decoration; two-cell table rows become 'Key: Value' lines."""
        lines = []
        for raw in markdown.splitlines():
            line = raw.strip()
            if cls.TABLE_SEPARATOR.match(line):
                continue
            line = re.sub(r"^#+\s*", "", line)
            line = line.replace("**", "").replace("__", "")
            if line.startswith("|") and line.endswith("|"):
                cells = [cell.strip() for cell in line.strip("|").split("|")]
                if len(cells) == 2 and all(cells):
                    line = f"{cells[0]}: {cells[1]}"
                else:
                    line = "\t".join(cells)
            lines.append(line)
        return "\n".join(lines)

    def process_text(self, text: str) -> List[ParsedField]:
        fields: List[ParsedField] = []

        patterns = (
            (self.INVOICE_NUMBER, "Invoice Number", 0.85),
            (self.DATE, "Date", 0.9),
            (self.TOTAL, "Total Amount", 0.9),
            (self.PARTY_NAME, "Customer Name", 0.75),
        )
        for pattern, name, confidence in patterns:
            match = pattern.search(text)
            if match:
                fields.append(ParsedField(name=name, value=match.group(1).strip(), confidence=confidence))

        tables = self.extract_tables(text)
        if tables:
            fields.append(ParsedField(name="Line Items", value=json.dumps(tables), confidence=0.7))

        known = {f.name.lower().replace(" ", "") for f in fields}
        for key, value in self.extract_key_values(text).items():
            normalized_key = re.sub(r"\s+", "", key.lower())
            if normalized_key in known or not value.strip():
                continue
            known.add(normalized_key)
            fields.append(ParsedField(name=key, value=value.strip(), confidence=0.7))

        return fields

    @classmethod
    def extract_key_values(cls, text: str) -> Dict[str, str]:
        result: Dict[str, str] = {}
        for line in text.splitlines():
            match = cls.KEY_VALUE.match(line)
            if not match:
                continue
            key, value = match.group(1).strip(), match.group(2).strip()
            if 1 < len(key) < 25 and value:
                result[key] = value
        return result

    @staticmethod
    def extract_tables(text: str) -> List[Dict[str, List]]:
        """Runs of lines with three or more columns, the first row being the header."""
        tables = []
        headers: List[str] = []
        rows: List[List[str]] = []

        for raw in text.splitlines():
            line = raw.strip()
            if not line:
                continue

            columns = [c for c in re.split(r"\s{2,}|\t", line) if c]
            if len(columns) >= 3:
                if not headers:
                    headers = columns
                elif len(columns) == len(headers):
                    rows.append(columns)
            else:
                if rows:
                    tables.append({"headers": headers, "rows": rows})
                headers, rows = [], []

        if rows:
            tables.append({"headers": headers, "rows": rows})
        return tables


STRATEGIES: List[ExtractionStrategy] = [SpreadsheetStrategy(), OCRTextStrategy()]


def get_strategy(file_type: str, extension: str) -> Optional[ExtractionStrategy]:
    for strategy in STRATEGIES:
        if strategy.supports(file_type, extension):
            return strategy
    return None
