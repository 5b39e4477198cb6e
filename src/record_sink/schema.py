"""
Record schema parsing.

A SchemaDescriptor is parsed once per sink instance and is used to validate
and encode every record written by that instance.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from fastavro import parse_schema
from fastavro.schema import SchemaParseException, UnknownType
from fastavro.validation import ValidationError, validate as validate_datum

from .errors import EncodingError, SchemaError

SchemaInput = Union[str, Mapping[str, Any], None]


class SchemaDescriptor:
    """Immutable, parsed record schema."""

    def __init__(self, definition: Mapping[str, Any], parsed: dict):
        self._definition = copy.deepcopy(dict(definition))
        self._parsed = parsed
        self._named = _named_types(parsed, {})

    @classmethod
    def parse(cls, definition: SchemaInput) -> "SchemaDescriptor":
        """Parse a schema from JSON text or a mapping.

        Raises:
            SchemaError: if the schema is absent, not valid JSON, not a record
                schema, or references unknown types.
        """
        if definition is None or (isinstance(definition, str) and not definition.strip()):
            raise SchemaError("schema is absent")

        if isinstance(definition, str):
            try:
                definition = json.loads(definition)
            except ValueError as e:
                raise SchemaError(f"schema is not valid JSON: {e}") from e

        if not isinstance(definition, Mapping):
            raise SchemaError(f"schema must be a JSON object, got {type(definition).__name__}")
        if definition.get("type") != "record":
            raise SchemaError("top-level schema must be of type 'record'")
        if not isinstance(definition.get("fields"), list):
            raise SchemaError("record schema must declare a 'fields' list")

        try:
            parsed = parse_schema(copy.deepcopy(dict(definition)))
        except (SchemaParseException, UnknownType, KeyError, TypeError, ValueError) as e:
            raise SchemaError(f"malformed schema: {e}") from e

        return cls(definition, parsed)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SchemaDescriptor":
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise SchemaError(f"cannot read schema file {path}: {e}") from e
        return cls.parse(text)

    def validate(self, record: Any) -> None:
        """Check that `record` has exactly the schema's fields with matching types.

        Raises:
            EncodingError: missing, extra or mistyped fields.
        """
        if not isinstance(record, Mapping):
            raise EncodingError(f"record must be a mapping, got {type(record).__name__}", record)
        fields = self._definition["fields"]
        extra = _extra_fields(record, self._parsed, self._named, ())
        if extra:
            raise EncodingError(f"fields not in schema {self.name}: {extra}", record)
        missing = [f["name"] for f in fields if f["name"] not in record and "default" not in f]
        if missing:
            raise EncodingError(f"fields missing for schema {self.name}: {missing}", record)

        try:
            validate_datum(record, self._parsed, raise_errors=True)
        except (ValidationError, TypeError, AttributeError) as e:
            raise EncodingError(f"record does not match schema {self.name}: {e}", record) from e

    @property
    def parsed(self) -> dict:
        """Parsed form handed to the codec."""
        return self._parsed

    @property
    def name(self) -> str:
        return self._definition["name"]

    @property
    def field_names(self) -> list[str]:
        return [f["name"] for f in self._definition["fields"]]

    @property
    def definition(self) -> dict:
        return copy.deepcopy(self._definition)

    def to_json(self) -> str:
        return json.dumps(self._definition, sort_keys=True)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SchemaDescriptor):
            return NotImplemented
        return self.to_json() == other.to_json()

    def __hash__(self) -> int:
        return hash(self.to_json())

    def __repr__(self) -> str:
        return f"SchemaDescriptor(name={self.name!r}, fields={self.field_names!r})"


_RECORD_TYPES = ("record", "error")


def _named_types(schema: Any, acc: dict) -> dict:
    """Index record/enum/fixed definitions of a parsed schema by full name."""
    if isinstance(schema, list):
        for branch in schema:
            _named_types(branch, acc)
    elif isinstance(schema, dict):
        kind = schema.get("type")
        if kind in (*_RECORD_TYPES, "enum", "fixed") and "name" in schema:
            acc[schema["name"]] = schema
        if kind in _RECORD_TYPES:
            for f in schema.get("fields", []):
                _named_types(f["type"], acc)
        elif kind == "array":
            _named_types(schema.get("items"), acc)
        elif kind == "map":
            _named_types(schema.get("values"), acc)
        elif isinstance(kind, (dict, list)):
            _named_types(kind, acc)
    return acc


def _extra_fields(datum: Any, schema: Any, named: dict, path: tuple) -> list[str]:
    """Dotted paths of record keys in `datum` that `schema` does not declare.

    The codec drops such keys silently at any depth, so they are looked for
    through nested records, unions, arrays and maps.
    """
    if isinstance(schema, str):
        schema = named.get(schema)
        if schema is None:
            return []
    if isinstance(schema, list):
        return _extra_fields_union(datum, schema, named, path)

    kind = schema.get("type")
    if isinstance(kind, (dict, list, str)) and kind not in (*_RECORD_TYPES, "array", "map"):
        # {"type": <nested schema>} or a primitive/enum/fixed
        return _extra_fields(datum, kind, named, path) if isinstance(kind, (dict, list)) else []

    if kind in _RECORD_TYPES:
        if not isinstance(datum, Mapping):
            return []
        fields = {f["name"]: f for f in schema["fields"]}
        extra = [".".join((*path, str(k))) for k in datum if k not in fields]
        for name, f in fields.items():
            if name in datum:
                extra += _extra_fields(datum[name], f["type"], named, (*path, name))
        return extra
    if kind == "array" and isinstance(datum, (list, tuple)):
        extra = []
        for i, item in enumerate(datum):
            extra += _extra_fields(item, schema["items"], named, (*path, str(i)))
        return extra
    if kind == "map" and isinstance(datum, Mapping):
        extra = []
        for key, value in datum.items():
            extra += _extra_fields(value, schema["values"], named, (*path, str(key)))
        return extra
    return []


def _extra_fields_union(datum: Any, branches: list, named: dict, path: tuple) -> list[str]:
    if isinstance(datum, tuple) and len(datum) == 2 and isinstance(datum[0], str):
        # (type name, value) union notation
        return _extra_fields(datum[1], datum[0], named, path)

    resolved = [named.get(b, b) if isinstance(b, str) else b for b in branches]
    if isinstance(datum, Mapping):
        candidates = [b for b in resolved if isinstance(b, dict) and b.get("type") in _RECORD_TYPES]
        candidates = candidates or [b for b in resolved if isinstance(b, dict) and b.get("type") == "map"]
    elif isinstance(datum, (list, tuple)):
        candidates = [b for b in resolved if isinstance(b, dict) and b.get("type") == "array"]
    else:
        candidates = []

    first: list[str] = []
    for i, branch in enumerate(candidates):
        extra = _extra_fields(datum, branch, named, path)
        if not extra:
            return []
        if i == 0:
            first = extra
    return first


def load_schema(
    definition: SchemaInput = None, schema_file: Optional[Union[str, Path]] = None
) -> SchemaDescriptor:
    """Load a schema from inline text/mapping, falling back to a file."""
    if definition is not None:
        return SchemaDescriptor.parse(definition)
    if schema_file is not None:
        return SchemaDescriptor.from_file(schema_file)
    raise SchemaError("schema is absent")
