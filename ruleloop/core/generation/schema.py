"""
Output schema helpers for the generation service.

- extract_json_object(): turn raw model text into a dict
- validate_output(): check a payload against the declared JSON schema
- describe_schema(): render the schema for the system prompt
"""

import json
import re
from typing import Any, Dict

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError

from ..exceptions import GenerationSchemaError

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def extract_json_object(text: str, model: str = None) -> Dict[str, Any]:
    """
    Parse the model's answer as a JSON object.

    Accepts bare JSON or JSON wrapped in a ```json fence. Falls back to the
    outermost {...} span when the model added prose around it.

    Raises:
        GenerationSchemaError: If no JSON object can be parsed
    """
    if not text or not text.strip():
        raise GenerationSchemaError("Model returned an empty response", model=model, payload=text)

    cleaned = _FENCE_RE.sub("", text.strip()).strip()

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise GenerationSchemaError(
                f"Model response is not JSON: {cleaned[:200]}", model=model, payload=text
            )
        try:
            payload = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e:
            raise GenerationSchemaError(
                f"Model response is not valid JSON: {e}", model=model, payload=text
            )

    if not isinstance(payload, dict):
        raise GenerationSchemaError(
            f"Expected a JSON object, got {type(payload).__name__}", model=model, payload=payload
        )
    return payload


def validate_output(payload: Dict[str, Any], schema: Dict[str, Any], model: str = None) -> Dict[str, Any]:
    """
    Validate payload against schema and return it unchanged.

    All violations are reported in a single error message.

    Raises:
        GenerationSchemaError: If the schema itself is invalid or the payload does not conform
    """
    try:
        Draft202012Validator.check_schema(schema)
    except SchemaError as e:
        raise GenerationSchemaError(f"Invalid output schema: {e.message}", model=model, payload=payload)

    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(payload), key=lambda err: list(err.path))
    if errors:
        details = "; ".join(
            f"{'/'.join(str(p) for p in err.path) or '<root>'}: {err.message}" for err in errors
        )
        raise GenerationSchemaError(f"Output does not match schema: {details}", model=model, payload=payload)

    return payload


def describe_schema(schema: Dict[str, Any]) -> str:
    """Pretty JSON rendering of the schema for prompts"""
    return json.dumps(schema, indent=2, ensure_ascii=False)
