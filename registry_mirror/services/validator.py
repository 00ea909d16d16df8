"""Validation of registry items against the shadcn registry-item shape"""

import json
from collections.abc import Mapping
from typing import Any

from registry_mirror.models.registry_item import (
    REGISTRY_ITEM_SCHEMA,
    VALID_ITEM_TYPES,
    RegistryItem,
    ValidationResult,
)


def _invalid(error: str) -> ValidationResult:
    return ValidationResult(valid=False, error=error)


def _check_string_list(data: Mapping[str, Any], field: str) -> str | None:
    if field not in data:
        return None
    value = data[field]
    if not isinstance(value, list):
        return f"{field} must be an array"
    if not all(isinstance(entry, str) for entry in value):
        return f"{field} must be string array"
    return None


def validate_registry_item(item: Any) -> ValidationResult:
    """
    Validate a decoded registry item

    Structural problems are errors and the first one found is returned.
    A missing or non-standard $schema only produces a warning.

    Args:
        item: Decoded JSON value

    Returns:
        ValidationResult with either an error or a (possibly empty) warnings list
    """
    if not isinstance(item, Mapping):
        return _invalid("Item must be an object")

    warnings: list[str] = []
    schema = item.get("$schema")
    if not schema:
        warnings.append("Missing $schema field")
    elif schema != REGISTRY_ITEM_SCHEMA:
        warnings.append(f"Non-standard $schema: {schema}")

    name = item.get("name")
    if not name or not isinstance(name, str):
        return _invalid("Missing or invalid name field")

    item_type = item.get("type")
    if not item_type or not isinstance(item_type, str):
        return _invalid("Missing or invalid type field")

    if item_type not in VALID_ITEM_TYPES:
        return _invalid(f"Invalid type: {item_type}")

    if "files" in item:
        files = item["files"]
        if not isinstance(files, list):
            return _invalid("files must be an array")
        for i, file in enumerate(files):
            if not isinstance(file, Mapping):
                return _invalid(f"files[{i}]: missing path")
            path = file.get("path")
            if not path or not isinstance(path, str):
                return _invalid(f"files[{i}]: missing path")
            file_type = file.get("type")
            if not file_type or not isinstance(file_type, str):
                return _invalid(f"files[{i}]: missing type")

    for field in ("dependencies", "registryDependencies"):
        error = _check_string_list(item, field)
        if error:
            return _invalid(error)

    return ValidationResult(valid=True, warnings=warnings)


def validate_registry_item_json(text: str) -> ValidationResult:
    """Validate a registry item given as JSON text"""
    try:
        data = json.loads(text)
    except ValueError as e:
        return _invalid(f"Invalid JSON: {e}")
    return validate_registry_item(data)


def get_missing_file_contents(item: RegistryItem) -> list[str]:
    """Paths of files that carry no content"""
    if not item.files:
        return []
    return [file.path for file in item.files if file.content is None]
