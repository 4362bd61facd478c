"""
Tool argument validation.

Arguments are checked strictly against the registered ToolSchema.
Mis-shaped input is rejected rather than reinterpreted: there is one
typed contract per tool.
"""

from __future__ import annotations

from typing import Any

from sandloop.core.models import ToolSchema

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list, tuple),
    "null": (type(None),),
}


def matches_type(value: Any, declared: str | list[str] | None) -> bool:
    """Check a value against a JSON-schema type (or list of types).

    Booleans are not accepted as integers or numbers.
    """
    if declared is None:
        return True
    types = [declared] if isinstance(declared, str) else list(declared)
    for name in types:
        expected = _JSON_TYPES.get(name)
        if expected is None:
            continue
        if isinstance(value, bool) and name in ("integer", "number"):
            continue
        if isinstance(value, expected):
            return True
    return False


def validate_arguments(schema: ToolSchema, arguments: Any) -> tuple[dict[str, Any], list[str]]:
    """Validate and normalize arguments for a tool call.

    Returns (normalized_arguments, errors). Defaults declared in the
    schema are filled in for missing optional arguments. When errors
    is non-empty the normalized arguments must not be used.
    """
    if not isinstance(arguments, dict):
        return {}, [f"arguments must be an object, got {type(arguments).__name__}"]

    properties = schema.parameters.properties
    errors: list[str] = []

    for name in schema.parameters.required:
        if name not in arguments or (arguments[name] is None and not _allows_null(properties.get(name))):
            errors.append(f"missing required argument '{name}'")

    unknown = sorted(set(arguments) - set(properties))
    for name in unknown:
        errors.append(f"unexpected argument '{name}'")

    normalized: dict[str, Any] = {}
    for name, prop in properties.items():
        if name in arguments:
            value = arguments[name]
            if value is None:
                if "default" in prop and name not in schema.parameters.required:
                    normalized[name] = prop["default"]
                    continue
                if name in schema.parameters.required and not _allows_null(prop):
                    continue  # already reported as missing
            if not matches_type(value, prop.get("type")):
                errors.append(
                    f"argument '{name}' must be of type {_describe(prop.get('type'))}, "
                    f"got {type(value).__name__}"
                )
                continue
            if "enum" in prop and value not in prop["enum"]:
                errors.append(f"argument '{name}' must be one of {prop['enum']}")
                continue
            normalized[name] = value
        elif "default" in prop:
            normalized[name] = prop["default"]

    return normalized, errors


def _allows_null(prop: dict[str, Any] | None) -> bool:
    if not prop:
        return False
    declared = prop.get("type")
    return declared == "null" or (isinstance(declared, list) and "null" in declared)


def _describe(declared: str | list[str] | None) -> str:
    if isinstance(declared, list):
        return " or ".join(declared)
    return str(declared)
