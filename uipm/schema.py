from __future__ import annotations

from functools import lru_cache
from importlib import resources
import json
from typing import Any

from jsonschema import Draft202012Validator

SCHEMA_FILE = "schemas/uipm-api.schema.json"


def load_schema() -> dict[str, Any]:
    schema_path = resources.files("uipm").joinpath(SCHEMA_FILE)
    return json.loads(schema_path.read_text(encoding="utf-8"))


@lru_cache(maxsize=None)
def get_validator(kind: str) -> Draft202012Validator:
    schema = load_schema()
    if kind not in schema["$defs"]:
        raise KeyError(f"Unknown snapshot kind: {kind}")
    # Validate against one definition while keeping $defs resolvable
    return Draft202012Validator(schema={**schema, "$ref": f"#/$defs/{kind}"})


def validate_snapshot(kind: str, payload: Any) -> list[str]:
    validator = get_validator(kind)
    errors = sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    return [error.message for error in errors]
