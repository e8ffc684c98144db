import pytest

from invoice_lens.postprocessor import coerce, parse
from invoice_lens.postprocessor.response_parser import (
    closing_sequence,
    find_object_end,
    repair_truncated,
    strip_code_fences,
)
from invoice_lens.utils.exceptions import NoJsonFoundError


def test_strip_code_fences_tagged_and_bare():
    text = "```JSON\n{\"a\": 1}\n```"
    assert strip_code_fences(text) == '{"a": 1}'
    assert strip_code_fences("```\n{}\n```") == "{}"


def test_parse_fenced_json_with_prose():
    raw = 'Sure, here it is:\n```json\n{"invoiceNo": "A1", "lineItems": []}\n```\nLet me know!'
    assert parse(raw) == {"invoiceNo": "A1", "lineItems": []}


def test_parse_ignores_trailing_object():
    raw = '{"invoiceNo": "A1"} and also {"invoiceNo": "B2"}'
    assert parse(raw) == {"invoiceNo": "A1"}


def test_parse_nested_objects():
    raw = '{"lineItems": [{"description": "x", "meta": {"k": "v"}}], "amount": "1"}'
    assert parse(raw)["lineItems"][0]["meta"] == {"k": "v"}


def test_find_object_end():
    text = 'x {"a": {"b": 1}} y'
    start = text.index("{")
    assert text[start:find_object_end(text, start) + 1] == '{"a": {"b": 1}}'
    assert find_object_end('{"a": {', 0) == -1


def test_parse_no_brace_raises_with_raw_text():
    with pytest.raises(NoJsonFoundError) as exc_info:
        parse("I could not read this invoice.")

    assert exc_info.value.raw_text == "I could not read this invoice."
    assert "No JSON object in response" in str(exc_info.value)


def test_parse_empty_text_raises():
    with pytest.raises(NoJsonFoundError):
        parse("")


def test_repairs_truncation_mid_line_item():
    raw = '{"invoiceNo":"A1","lineItems":[{"description":"x","qty":"1"'

    parsed = parse(raw)

    assert parsed["invoiceNo"] == "A1"
    assert parsed["lineItems"] == [{"description": "x"}]


def test_repairs_truncation_mid_scalar_value():
    parsed = parse('{"invoiceNo":"A1","vendorName":"Acme","amount":"42.0')
    assert parsed == {"invoiceNo": "A1", "vendorName": "Acme"}


def test_repairs_truncation_after_dangling_key():
    parsed = parse('{"invoiceNo":"A1","amount":')
    assert parsed == {"invoiceNo": "A1"}


def test_repairs_truncation_after_trailing_comma():
    parsed = parse('{"invoiceNo":"A1","lineItems":[{"description":"x"},')
    assert parsed == {"invoiceNo": "A1", "lineItems": [{"description": "x"}]}


def test_repair_closes_in_nesting_order():
    assert closing_sequence('{"a":[{"b":[') == "]}]}"
    assert closing_sequence('{"a":"[not a bracket"') == "}"
    assert closing_sequence('{"a":"quote \\" [x"') == "}"


def test_repair_truncated_output_is_valid_json():
    import json

    repaired = repair_truncated('{"invoiceNo":"A1","lineItems":[{"description":"x","qty":"1"')
    assert json.loads(repaired) == {"invoiceNo": "A1", "lineItems": [{"description": "x"}]}


class TestUnrepairedShapes:
    """Truncation shapes the repair does not recover; they fail cleanly."""

    def test_truncated_inside_string_containing_comma(self):
        raw = '{"invoiceNo":"A1","vendorName":"Acme, Inc'
        with pytest.raises(NoJsonFoundError) as exc_info:
            parse(raw)
        assert exc_info.value.raw_text == raw

    def test_truncated_inside_first_key(self):
        with pytest.raises(NoJsonFoundError):
            parse('{"invoi')


def test_parse_then_coerce_end_to_end():
    raw = 'Here you go:\n```json\n{"invoiceNo":"INV-9","amount":"42.00","lineItems":[]}\n```'

    record = coerce(parse(raw))
    data = record.to_dict()

    assert data["invoiceNo"] == "INV-9"
    assert data["amount"] == "42.00"
    assert data["lineItems"] == []
    others = {k: v for k, v in data.items() if k not in ("invoiceNo", "amount", "lineItems")}
    assert others and all(v == "" for v in others.values())
