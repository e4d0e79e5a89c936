"""
Field value normalization applied after a strategy has produced raw fields.

Order: file-type specific cleanup, then the common pass that routes each
field to a normalizer by its name.
"""
import re
from typing import List

from apps.invest.extraction.fields import ParsedField

CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")
AMOUNT_NAME = re.compile(r"amount|price|total|cost|fee|tax|sum", re.IGNORECASE)
ADDRESS_NAME = re.compile(r"address|street|city|state|zip|postal", re.IGNORECASE)
PERSON_NAME = re.compile(r"name|customer|client|vendor|supplier", re.IGNORECASE)

STREET_WORDS = re.compile(
    r"\b(street|st|avenue|ave|road|rd|boulevard|blvd|drive|dr|lane|ln|court|ct|plaza|plz|square|sq)\b",
    re.IGNORECASE,
)
STATE_ABBREVIATION = re.compile(r"\b([a-z]{2})\b")
LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)")

MONTHS = {
    "january": "01", "february": "02", "march": "03", "april": "04",
    "may": "05", "june": "06", "july": "07", "august": "08",
    "september": "09", "october": "10", "november": "11", "december": "12",
    "jan": "01", "feb": "02", "mar": "03", "apr": "04",
    "jun": "06", "jul": "07", "aug": "08", "sep": "09",
    "oct": "10", "nov": "11", "dec": "12",
}


class FieldNormalizer:
    """Normalizes extracted values into consistent formats."""

    @staticmethod
    def normalize_email(value: str) -> str:
        email = re.sub(r"\s+", "", value.lower().strip())
        if "@" not in email or not re.match(r"^[^@]+@[^@]+\.[^@]+$", email):
            return value
        return email

    @staticmethod
    def normalize_phone(value: str) -> str:
        digits = re.sub(r"\D", "", value)
        if len(digits) == 10:
            return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
        if len(digits) == 11 and digits[0] == "1":
            return f"1-{digits[1:4]}-{digits[4:7]}-{digits[7:]}"
        return value

    @staticmethod
    def normalize_date(value: str) -> str:
        """Convert MM/DD/YYYY, DD-MM-YYYY and 'Month DD, YYYY' to YYYY-MM-DD."""
        value = value.strip()

        match = re.match(r"^(\d{1,2})/(\d{1,2})/(\d{4})$", value)
        if match:
            month, day, year = match.groups()
            return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

        match = re.match(r"^(\d{1,2})-(\d{1,2})-(\d{4})$", value)
        if match:
            day, month, year = match.groups()
            return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

        match = re.match(r"^([A-Za-z]+)\s+(\d{1,2})(?:,|\s+)?\s*(\d{4})$", value)
        if match:
            month = MONTHS.get(match.group(1).lower())
            if month:
                return f"{match.group(3)}-{month}-{match.group(2).zfill(2)}"
            return match.group(0)

        return value

    @staticmethod
    def normalize_amount(value: str) -> str:
        amount = re.sub(r"[^0-9.\-]", "", value)

        # Keep the first decimal point only
        if amount.count(".") > 1:
            head, *rest = amount.split(".")
            amount = head + "." + "".join(rest)

        match = LEADING_NUMBER.match(amount)
        if match:
            return f"{float(match.group(0)):.2f}"
        return amount

    @staticmethod
    def normalize_address(value: str) -> str:
        address = re.sub(r"\s{2,}", " ", value.strip())
        address = STREET_WORDS.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), address)
        return STATE_ABBREVIATION.sub(lambda m: m.group(0).upper(), address)

    @staticmethod
    def normalize_name(value: str) -> str:
        return re.sub(r"\b\w", lambda m: m.group(0).upper(), value.strip().lower())


def _process_pdf_value(name: str, value: str) -> str:
    value = re.sub(r"\s{2,}", " ", value).strip()
    value = re.sub(r"\r\n|\r|\n", " ", value)
    lowered = name.lower()
    if "date" in lowered:
        value = FieldNormalizer.normalize_date(value)
    if "amount" in lowered or "total" in lowered or "price" in lowered:
        value = FieldNormalizer.normalize_amount(value)
    return value


def _process_spreadsheet_value(name: str, value: str) -> str:
    value = re.sub(r"^=['\"](.+)['\"]$", r"\1", value)
    value = re.sub(r"^=", "", value)
    lowered = name.lower()
    if "amount" in lowered or "total" in lowered or "price" in lowered:
        value = FieldNormalizer.normalize_amount(value)
    return value


def _process_image_value(name: str, value: str) -> str:
    lowered = name.lower()
    if "email" in lowered:
        value = FieldNormalizer.normalize_email(value)
    if "phone" in lowered:
        value = FieldNormalizer.normalize_phone(value)
    return value


TYPE_PROCESSORS = {
    "pdf": _process_pdf_value,
    "spreadsheet": _process_spreadsheet_value,
    "image": _process_image_value,
}


def _common_value(name: str, value: str) -> str:
    value = CONTROL_CHARS.sub("", value.strip())
    lowered = name.lower()

    if "email" in lowered:
        return FieldNormalizer.normalize_email(value)
    if "phone" in lowered:
        return FieldNormalizer.normalize_phone(value)
    if "date" in lowered:
        return FieldNormalizer.normalize_date(value)
    if AMOUNT_NAME.search(name):
        return FieldNormalizer.normalize_amount(value)
    if ADDRESS_NAME.search(name):
        return FieldNormalizer.normalize_address(value)
    if PERSON_NAME.search(name):
        return FieldNormalizer.normalize_name(value)
    return value


def normalize_fields(fields: List[ParsedField], file_type: str) -> List[ParsedField]:
    """Apply the file-type pass and then the common pass to every field."""
    processor = TYPE_PROCESSORS.get(file_type)
    normalized = []
    for field in fields:
        value = field.value
        if processor:
            value = processor(field.name, value)
        normalized.append(field.with_changes(value=_common_value(field.name, value)))
    return normalized
