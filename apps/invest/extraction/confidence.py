"""
Confidence scoring for extracted fields.

A field's stored confidence blends what the extraction strategy reported
with a content-quality check driven by the field name. The document-level
confidence is a weighted mean where key business fields count double.
"""
import re
from typing import Iterable, List

from apps.invest.extraction.fields import ParsedField

HIGH_WEIGHT_KEYWORDS = ("total", "amount", "invoice", "date", "customer", "vendor", "id")
MEDIUM_WEIGHT_KEYWORDS = ("address", "email", "phone", "tax", "description")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_DIGITS_PATTERN = re.compile(r"\d{7,}")
NUMERIC_DATE_PATTERN = re.compile(r"\d{1,4}[/\-.]\d{1,2}[/\-.]\d{1,4}")
TEXT_DATE_PATTERN = re.compile(r"\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{4}", re.IGNORECASE)
AMOUNT_PATTERN = re.compile(r"^[$£€]?\s*\d+(?:,\d{3})*(?:\.\d{2})?$")
US_ZIP_PATTERN = re.compile(r"^\d{5}(?:-\d{4})?$")
CA_POSTAL_PATTERN = re.compile(r"^[A-Z]\d[A-Z]\s*\d[A-Z]\d$")


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def field_weight(name: str) -> float:
    """Importance weight of a field, based on its name."""
    name = name.lower()
    if any(keyword in name for keyword in HIGH_WEIGHT_KEYWORDS):
        return 2.0
    if any(keyword in name for keyword in MEDIUM_WEIGHT_KEYWORDS):
        return 1.5
    return 1.0


def variety_score(value: str) -> float:
    if not value:
        return 0.0
    length_factor = min(1.0, len(value) / 15)
    variety = len(set(value)) / min(len(value), 20)
    return variety * length_factor


def content_quality(name: str, value: str) -> float:
    """Score in [0, 1] for how plausible ``value`` is for a field called ``name``."""
    name = name.lower()

    if not value or not value.strip():
        return 0.1

    if "email" in name:
        return 0.95 if EMAIL_PATTERN.match(value) else 0.3

    if "phone" in name:
        return 0.9 if PHONE_DIGITS_PATTERN.search(re.sub(r"\D", "", value)) else 0.4

    if "date" in name:
        if NUMERIC_DATE_PATTERN.search(value) or TEXT_DATE_PATTERN.search(value):
            return 0.9
        return 0.4

    if "amount" in name or "total" in name or "price" in name:
        return 0.95 if AMOUNT_PATTERN.match(value) else 0.3

    if "zip" in name or "postal" in name:
        return 0.9 if US_ZIP_PATTERN.match(value) or CA_POSTAL_PATTERN.match(value) else 0.5

    if len(value) > 100 and ("description" in name or "notes" in name):
        return 0.8

    if len(value) < 3 and "id" not in name and "code" not in name:
        return 0.4

    length_score = min(1.0, len(value) / 20)
    return length_score * 0.6 + variety_score(value) * 0.4


def field_confidence(field: ParsedField) -> float:
    score = 0.7 * (field.confidence or 0.0) + 0.3 * content_quality(field.name, field.value)
    return _clamp(score)


def rescore(fields: Iterable[ParsedField]) -> List[ParsedField]:
    return [field.with_changes(confidence=field_confidence(field)) for field in fields]


def overall_confidence(fields: Iterable[ParsedField]) -> float:
    total_weight = 0.0
    weighted_sum = 0.0
    for field in fields:
        weight = field_weight(field.name)
        weighted_sum += field.confidence * weight
        total_weight += weight

    if total_weight == 0:
        return 0.0
    return _clamp(weighted_sum / total_weight)
