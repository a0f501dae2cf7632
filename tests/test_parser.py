"""Tests for decoding model responses."""

import json

from prism.enrichment.parser import Decoded, Malformed, decode_response


def test_empty_array_is_valid_empty_result():
    result = decode_response("[]")
    assert isinstance(result, Decoded)
    assert result.items == []


def test_null_title_object_is_valid_empty_result():
    result = decode_response('{"title": null}')
    assert isinstance(result, Decoded)
    assert result.items == []


def test_array_of_items():
    payload = [
        {"title": "A", "description": "d1", "confidence": 0.9, "reasoning": "r"},
        {"title": "B", "description": "d2", "confidence": 0.4},
    ]
    result = decode_response(json.dumps(payload))
    assert isinstance(result, Decoded)
    assert [i.title for i in result.items] == ["A", "B"]
    assert result.items[1].reasoning == ""


def test_single_object_becomes_one_item():
    result = decode_response('{"title": "Cluster pattern", "description": "x", "confidence": 0.7}')
    assert isinstance(result, Decoded)
    assert len(result.items) == 1
    assert result.items[0].confidence == 0.7


def test_markdown_fence():
    text = 'Here you go:\n```json\n[{"title": "Fenced", "confidence": 0.8}]\n```'
    result = decode_response(text)
    assert isinstance(result, Decoded)
    assert result.items[0].title == "Fenced"


def test_json_embedded_in_prose():
    text = 'I found one: [{"title": "Inline", "confidence": 0.6}] hope that helps'
    result = decode_response(text)
    assert isinstance(result, Decoded)
    assert result.items[0].title == "Inline"


def test_title_is_stripped_and_blank_titles_skipped():
    payload = [{"title": "  Padded  ", "confidence": 0.9}, {"title": "   ", "confidence": 0.9}]
    result = decode_response(json.dumps(payload))
    assert [i.title for i in result.items] == ["Padded"]


def test_null_description_becomes_empty():
    result = decode_response('[{"title": "T", "description": null, "confidence": 0.9}]')
    assert result.items[0].description == ""


def test_not_json_is_malformed():
    result = decode_response("Sorry, I cannot help with that.")
    assert isinstance(result, Malformed)
    assert result.raw.startswith("Sorry")


def test_empty_text_is_malformed():
    assert isinstance(decode_response(""), Malformed)
    assert isinstance(decode_response(None), Malformed)


def test_scalar_json_is_malformed():
    assert isinstance(decode_response("42"), Malformed)


def test_missing_confidence_is_malformed():
    assert isinstance(decode_response('[{"title": "No score"}]'), Malformed)


def test_out_of_range_confidence_is_malformed():
    assert isinstance(decode_response('[{"title": "Too sure", "confidence": 1.5}]'), Malformed)


def test_non_object_entry_is_malformed():
    assert isinstance(decode_response('["just a string"]'), Malformed)


def test_wrong_title_type_is_malformed():
    assert isinstance(decode_response('[{"title": 7, "confidence": 0.9}]'), Malformed)


def test_invalid_entry_dropped_and_valid_siblings_kept():
    result = decode_response('[{"title": "Good", "confidence": 0.9}, {"title": "No conf"}]')
    assert isinstance(result, Decoded)
    assert [i.title for i in result.items] == ["Good"]
    assert result.rejected == 1


def test_non_object_entry_dropped_beside_valid_item():
    result = decode_response('["noise", {"title": "Kept", "confidence": 0.6}]')
    assert isinstance(result, Decoded)
    assert [i.title for i in result.items] == ["Kept"]
    assert result.rejected == 1


def test_all_entries_invalid_is_malformed():
    result = decode_response('[{"title": "A"}, {"title": "B", "confidence": 2}]')
    assert isinstance(result, Malformed)
    assert "entry 0" in result.reason
    assert "entry 1" in result.reason


def test_valid_response_has_no_rejections():
    assert decode_response('[{"title": "A", "confidence": 0.9}]').rejected == 0
