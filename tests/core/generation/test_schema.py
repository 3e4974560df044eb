"""
Unit Tests for output schema helpers
"""

import pytest

from ruleloop.core.exceptions import GenerationSchemaError
from ruleloop.core.generation.schema import describe_schema, extract_json_object, validate_output
from ruleloop.core.automation.invokers import CATEGORIZE_SCHEMA, VALIDATE_SCHEMA


# ============================================================================
# extract_json_object
# ============================================================================

@pytest.mark.unit
def test_extract_bare_json():
    assert extract_json_object('{"category": "billing", "confidence": 0.7}') == {
        "category": "billing",
        "confidence": 0.7,
    }


@pytest.mark.unit
def test_extract_fenced_json():
    text = '```json\n{"is_valid": true, "issues": []}\n```'

    assert extract_json_object(text) == {"is_valid": True, "issues": []}


@pytest.mark.unit
def test_extract_json_surrounded_by_prose():
    text = 'Sure! Here is the result: {"category": "other", "confidence": 0.4} Hope it helps.'

    assert extract_json_object(text)["category"] == "other"


@pytest.mark.unit
@pytest.mark.parametrize("text", ["", "   ", None])
def test_extract_empty_response(text):
    with pytest.raises(GenerationSchemaError, match="empty"):
        extract_json_object(text, model="gpt-4o-mini")


@pytest.mark.unit
def test_extract_not_json():
    with pytest.raises(GenerationSchemaError) as exc_info:
        extract_json_object("I cannot help with that", model="gpt-4o-mini")

    assert exc_info.value.model == "gpt-4o-mini"
    assert exc_info.value.retry_allowed is False


@pytest.mark.unit
def test_extract_rejects_non_object():
    with pytest.raises(GenerationSchemaError, match="list"):
        extract_json_object("[1, 2, 3]")


# ============================================================================
# validate_output
# ============================================================================

@pytest.mark.unit
def test_validate_accepts_conforming_payload():
    payload = {"category": "technical", "confidence": 0.95, "reasoning": "API error"}

    assert validate_output(payload, CATEGORIZE_SCHEMA) is payload


@pytest.mark.unit
def test_validate_reports_every_violation():
    with pytest.raises(GenerationSchemaError) as exc_info:
        validate_output({"is_valid": "yes"}, VALIDATE_SCHEMA)

    message = exc_info.value.message
    assert "'issues' is a required property" in message
    assert "is_valid" in message
    assert exc_info.value.payload == {"is_valid": "yes"}


@pytest.mark.unit
def test_validate_rejects_invalid_schema():
    with pytest.raises(GenerationSchemaError, match="Invalid output schema"):
        validate_output({}, {"type": "not-a-type"})


@pytest.mark.unit
def test_describe_schema_is_json():
    rendered = describe_schema(CATEGORIZE_SCHEMA)

    assert '"required"' in rendered
    assert '"category"' in rendered
