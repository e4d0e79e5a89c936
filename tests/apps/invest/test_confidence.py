import pytest

from apps.invest.extraction import confidence
from apps.invest.extraction.fields import ParsedField


def test_field_weight_by_name():
    assert confidence.field_weight("Total Amount") == 2.0
    assert confidence.field_weight("Invoice Date") == 2.0
    assert confidence.field_weight("Email") == 1.5
    assert confidence.field_weight("Phone") == 1.5
    assert confidence.field_weight("Notes") == 1.0


def test_content_quality_email():
    assert confidence.content_quality("Email", "jane@example.com") == 0.95
    assert confidence.content_quality("Email", "not-an-email") == 0.3


def test_content_quality_amount_and_date():
    assert confidence.content_quality("Total", "$1,250.00") == 0.95
    assert confidence.content_quality("Total", "about twelve") == 0.3
    assert confidence.content_quality("Due Date", "03/15/2024") == 0.9
    assert confidence.content_quality("Due Date", "15 March 2024") == 0.9
    assert confidence.content_quality("Due Date", "soon") == 0.4


def test_content_quality_empty_and_short_values():
    assert confidence.content_quality("Reference", "") == 0.1
    assert confidence.content_quality("Reference", "  ") == 0.1
    assert confidence.content_quality("Reference", "ab") == 0.4
    # ids and codes may legitimately be short
    assert confidence.content_quality("Customer ID", "7") != 0.4


def test_field_confidence_blends_raw_and_quality():
    field = ParsedField(name="Total", value="1250.00", confidence=1.0)
    assert confidence.field_confidence(field) == pytest.approx(0.7 + 0.3 * 0.95)


def test_field_confidence_is_clamped():
    field = ParsedField(name="Total", value="1250.00", confidence=2.0)
    assert confidence.field_confidence(field) == 1.0


def test_rescore_does_not_mutate_input():
    fields = [ParsedField(name="Email", value="jane@example.com", confidence=0.5)]
    rescored = confidence.rescore(fields)
    assert fields[0].confidence == 0.5
    assert rescored[0].confidence == pytest.approx(0.7 * 0.5 + 0.3 * 0.95)


def test_overall_confidence_weighted_mean():
    fields = [
        ParsedField(name="Total", value="1", confidence=0.9),
        ParsedField(name="Notes", value="x", confidence=0.6),
    ]
    assert confidence.overall_confidence(fields) == pytest.approx((0.9 * 2 + 0.6) / 3)


def test_overall_confidence_empty():
    assert confidence.overall_confidence([]) == 0.0
