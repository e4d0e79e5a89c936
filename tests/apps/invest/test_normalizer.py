from apps.invest.extraction.fields import ParsedField
from apps.invest.extraction.normalizer import FieldNormalizer, normalize_fields


def test_normalize_phone():
    assert FieldNormalizer.normalize_phone("555.123.4567") == "(555) 123-4567"
    assert FieldNormalizer.normalize_phone("+1 555 123 4567") == "1-555-123-4567"
    assert FieldNormalizer.normalize_phone("12345") == "12345"


def test_normalize_date_formats():
    assert FieldNormalizer.normalize_date("1/5/2024") == "2024-01-05"
    assert FieldNormalizer.normalize_date("15-03-2024") == "2024-03-15"
    assert FieldNormalizer.normalize_date("March 5, 2024") == "2024-03-05"
    assert FieldNormalizer.normalize_date("Dec 31 2023") == "2023-12-31"
    assert FieldNormalizer.normalize_date("2024-03-15") == "2024-03-15"
    assert FieldNormalizer.normalize_date("next week") == "next week"


def test_normalize_amount():
    assert FieldNormalizer.normalize_amount("$1,250.5") == "1250.50"
    assert FieldNormalizer.normalize_amount("EUR 99") == "99.00"
    assert FieldNormalizer.normalize_amount("1.2.3") == "1.23"


def test_normalize_email_and_name():
    assert FieldNormalizer.normalize_email(" Jane@Example.COM ") == "jane@example.com"
    assert FieldNormalizer.normalize_email("not an email") == "not an email"
    assert FieldNormalizer.normalize_name("jANE   smith") == "Jane   Smith"


def test_normalize_address():
    assert FieldNormalizer.normalize_address("123 main street  springfield il") == "123 main Street springfield IL"


def test_spreadsheet_formula_prefix_removed():
    fields = normalize_fields([ParsedField(name="Total", value="=1,000", confidence=0.8)], "spreadsheet")
    assert fields[0].value == "1000.00"
    assert fields[0].confidence == 0.8


def test_pdf_whitespace_collapsed():
    fields = normalize_fields([ParsedField(name="Reference", value="AB  12\nCD")], "pdf")
    assert fields[0].value == "AB 12 CD"


def test_control_characters_stripped():
    fields = normalize_fields([ParsedField(name="Reference", value="AB\x0012\x7f")], "document")
    assert fields[0].value == "AB12"


def test_routing_by_field_name():
    fields = normalize_fields([
        ParsedField(name="Contact Email", value="JANE@EXAMPLE.COM"),
        ParsedField(name="Invoice Date", value="01/15/2024"),
        ParsedField(name="Vendor", value="acme supplies"),
    ], "other")
    assert [f.value for f in fields] == ["jane@example.com", "2024-01-15", "Acme Supplies"]
