# tests/test_feeds.py
from datetime import datetime, timezone

import pytest

from carfinder.dedupe import signature
from carfinder.errors import PayloadError
from carfinder.feeds import (
    SOURCE_ID_MAX_LENGTH, normalize_images, normalize_record, parse_csv, parse_csv_line,
    parse_payload, to_optional_date, to_optional_int, to_optional_number, to_optional_string,
)


def test_string_coercion():
    assert to_optional_string("  Civic ") == "Civic"
    assert to_optional_string("   ") is None
    assert to_optional_string(2019) == "2019"
    assert to_optional_string(True) is None
    assert to_optional_string({"a": 1}) is None


def test_number_coercion_strips_formatting():
    assert to_optional_number("$18,500") == 18500
    assert to_optional_number("12,345 mi") == 12345
    assert to_optional_number("-87.62") == -87.62
    assert to_optional_number("call us") is None
    assert to_optional_number("") is None
    assert to_optional_number(float("nan")) is None
    assert to_optional_number("1.2.3") is None


def test_int_coercion_rounds_half_up():
    assert to_optional_int("18499.5") == 18500
    assert to_optional_int(2.4) == 2
    assert to_optional_int(None) is None


def test_int_coercion_drops_values_outside_32_bit_range():
    assert to_optional_int("99999999999999999999") is None
    assert to_optional_int("$3,000,000,000") is None
    assert to_optional_int(-2**31 - 1) is None
    assert to_optional_int(2**31 - 1) == 2147483647


def test_date_coercion():
    assert to_optional_date("2024-03-01T12:00:00Z") == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    assert to_optional_date(1709294400000) == datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    assert to_optional_date("2024-03-01").tzinfo is not None
    assert to_optional_date("next tuesday") is None
    assert to_optional_date("") is None


@pytest.mark.parametrize("text, expected", [
    ("01/15/2024", datetime(2024, 1, 15, tzinfo=timezone.utc)),
    ("1/15/2024 3:30 PM", datetime(2024, 1, 15, 15, 30, tzinfo=timezone.utc)),
    ("2024/01/15", datetime(2024, 1, 15, tzinfo=timezone.utc)),
    ("Jan 15, 2024", datetime(2024, 1, 15, tzinfo=timezone.utc)),
    ("Mon, 15 Jan 2024 10:00:00 GMT", datetime(2024, 1, 15, 10, tzinfo=timezone.utc)),
    ("2024-01-15T10:00:00-05:00", datetime(2024, 1, 15, 15, tzinfo=timezone.utc)),
])
def test_date_coercion_accepts_dealer_export_formats(text, expected):
    parsed = to_optional_date(text)
    assert parsed == expected
    assert parsed.tzinfo is not None


def test_date_coercion_rejects_impossible_dates():
    assert to_optional_date("13/45/2024") is None
    assert to_optional_date("Feb 30, 2024") is None


def test_images_from_list_or_delimited_string():
    assert normalize_images(["a.jpg", " ", None, "b.jpg"]) == ["a.jpg", "b.jpg"]
    assert normalize_images("a.jpg| b.jpg ;c.jpg,d.jpg") == ["a.jpg", "b.jpg", "c.jpg", "d.jpg"]
    assert normalize_images(" |;, ") is None
    assert normalize_images([]) is None


def test_normalize_record_resolves_synonyms_in_order():
    record = normalize_record({
        "VIN": " 1FTEW1EP5JFA12345 ",
        "Name": "2018 Ford F-150 XLT",
        "price": None,
        "ListPrice": "$31,990",
        "Odometer": "48,200",
        "ExteriorColor": "Blue",
        "StockNumber": "F1234",
        "photos": "https://img/1.jpg|https://img/2.jpg",
        "Latitude": "41.88",
    })
    assert record is not None
    assert record.source_id == "F1234"
    assert record.values["vin"] == "1FTEW1EP5JFA12345"
    assert record.values["title"] == "2018 Ford F-150 XLT"
    assert record.values["price"] == 31990
    assert record.values["mileage"] == 48200
    assert record.values["color_ext"] == "Blue"
    assert record.values["lat"] == 41.88
    assert record.values["images"] == ["https://img/1.jpg", "https://img/2.jpg"]
    assert "make" not in record.values
    assert record.hash_signature == signature(
        vin="1FTEW1EP5JFA12345", title="2018 Ford F-150 XLT", price=31990, phone=None
    )


def test_lowercase_key_wins_over_capitalized():
    record = normalize_record({"title": "first", "Title": "second"})
    assert record.values["title"] == "first"


def test_record_without_vin_or_title_is_rejected():
    assert normalize_record({"price": "12000", "make": "Toyota"}) is None
    assert normalize_record({"vin": "  ", "title": ""}) is None


def test_source_id_falls_back_to_signature():
    record = normalize_record({"title": "2015 Mazda 3", "price": 9000})
    assert record.source_id == record.hash_signature


def test_source_id_is_truncated():
    record = normalize_record({"title": "x", "sourceId": "s" * 300})
    assert len(record.source_id) == SOURCE_ID_MAX_LENGTH


def test_csv_quoted_field_with_comma():
    assert parse_csv_line('"Smith, John",30000') == ["Smith, John", "30000"]


def test_csv_doubled_quotes_are_literal():
    assert parse_csv_line('"The ""Beast"" truck",1') == ['The "Beast" truck', "1"]


def test_parse_csv_rows():
    text = 'title,price,vin\r\n"Honda Civic, LX",15000,ABC\n\n,,\nToyota Camry\n'
    assert parse_csv(text) == [
        {"title": "Honda Civic, LX", "price": "15000", "vin": "ABC"},
        {"title": "Toyota Camry", "price": "", "vin": ""},
    ]


def test_parse_csv_empty_text():
    assert parse_csv("\n \r\n") == []


def test_parse_payload_json_shapes():
    assert parse_payload("application/json", b'[{"title": "a"}]') == [{"title": "a"}]
    assert parse_payload("application/json; charset=utf-8", b'{"listings": [{"vin": "1"}]}') == [{"vin": "1"}]
    assert parse_payload("application/json", b"[]") == []


@pytest.mark.parametrize("content_type,body", [
    ("application/json", b"{not json"),
    ("application/json", b'{"items": []}'),
    ("application/json", b'["just a string"]'),
    ("text/plain", b"title\nfoo"),
    (None, b""),
    ("text/csv", b"\xff\xfe\x00bad"),
])
def test_parse_payload_rejects_bad_input(content_type, body):
    with pytest.raises(PayloadError):
        parse_payload(content_type, body)


def test_parse_payload_csv():
    assert parse_payload("text/csv", b"title,price\nFord Focus,8000\n") == [{"title": "Ford Focus", "price": "8000"}]
    assert parse_payload("application/csv", b"\xef\xbb\xbfvin\nXYZ\n") == [{"vin": "XYZ"}]
