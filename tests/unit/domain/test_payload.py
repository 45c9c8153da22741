import json

import pytest

from stockcast.domain.errors import ParseFailure
from stockcast.domain.models.payload import Payload, PayloadKind


@pytest.mark.parametrize("raw", [None, {}, [], "null", "[]"])
def test_empty_shapes_decode_to_empty(raw):
    payload = Payload.decode(raw)
    assert payload.kind is PayloadKind.EMPTY
    assert payload.is_empty
    assert payload.first() is None
    assert list(payload) == []

def test_single_object_decodes_to_single():
    payload = Payload.decode({"symbol": "2330"})
    assert payload.kind is PayloadKind.SINGLE
    assert payload.first() == {"symbol": "2330"}
    assert len(payload) == 1

def test_array_decodes_to_many():
    payload = Payload.decode([{"symbol": "2330"}, {"symbol": "2317"}])
    assert payload.kind is PayloadKind.MANY
    assert [item["symbol"] for item in payload] == ["2330", "2317"]

def test_string_encoded_body_is_parsed_before_field_descent():
    raw = json.dumps({"llm": [{"next_day": "2024-05-03", "price": 90.0}]})
    payload = Payload.decode(raw, field="llm")
    assert payload.kind is PayloadKind.MANY
    assert payload.first()["price"] == 90.0

def test_missing_field_is_empty():
    assert Payload.decode({"neuralprophet": []}, field="llm").is_empty
    assert Payload.decode([{"llm": 1}], field="llm").is_empty

def test_field_holding_single_object():
    payload = Payload.decode({"neuralprophet": {"next_day": "2024-05-03", "price": 55.0}}, field="neuralprophet")
    assert payload.kind is PayloadKind.SINGLE

def test_invalid_json_string_raises():
    with pytest.raises(ParseFailure):
        Payload.decode("{broken")

def test_scalar_payload_raises():
    with pytest.raises(ParseFailure):
        Payload.decode(42)
