"""
JSON Schema checks for the JSON files agentpm reads and writes.

Two boundaries are covered: the config file (.agentpm.json) and the
operation list given to `batch-test --input`. Schemas live in
agentpm/schemas as <name>.schema.json.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema

SCHEMAS_DIR = Path(__file__).parent.parent / "schemas"


class SchemaError(Exception):
    """Data did not match its schema, or could not be read at all."""

    def __init__(self, schema_name: str, message: str, location: str = ""):
        self.schema_name = schema_name
        self.location = location
        detail = f"{message} at {location}" if location else message
        super().__init__(f"[{schema_name}] {detail}")


@lru_cache(maxsize=None)
def _validator(schema_name: str):
    schema_path = SCHEMAS_DIR / f"{schema_name}.schema.json"
    if not schema_path.exists():
        raise SchemaError(schema_name, f"Schema file not found: {schema_path}")
    schema = json.loads(schema_path.read_text())
    validator_cls = jsonschema.validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def check(data: Any, schema_name: str) -> None:
    """
    Check data against a named schema.

    The most relevant violation is reported, with its location written as a
    dotted path ("hints.min_priority", "2.test_id") or "(root)".

    Raises:
        SchemaError: If the data does not match
    """
    error = jsonschema.exceptions.best_match(_validator(schema_name).iter_errors(data))
    if error is None:
        return
    location = ".".join(str(p) for p in error.absolute_path) or "(root)"
    raise SchemaError(schema_name, error.message, location)


def load_json(path: Path, schema_name: str) -> Any:
    """
    Read a JSON file and check it against a named schema.

    Raises:
        SchemaError: Missing file, invalid JSON, or schema violation
    """
    path = Path(path)
    if not path.exists():
        raise SchemaError(schema_name, f"File not found: {path}")
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise SchemaError(schema_name, f"Invalid JSON in {path}: {e}") from None
    check(data, schema_name)
    return data
