"""
Input validation utilities.
"""

from typing import Any, Iterable, List, Mapping
import json

from ..core.exceptions import InvalidRecordPayload, ValidationError


MAX_FIELD_NAME_LENGTH = 256

SORT_DIRECTIONS = ("asc", "desc")


def validate_field_name(field: str) -> str:
    """
    Validate an indexable / sortable field name.
    
    Args:
        field: The field name
        
    Returns:
        The validated field name
        
    Raises:
        ValidationError: If the name is not a non-empty string
    """
    if not isinstance(field, str):
        raise ValidationError(
            f"Field name must be a string, got {type(field).__name__}"
        )
    
    if not field:
        raise ValidationError("Field name cannot be empty")
    
    if len(field) > MAX_FIELD_NAME_LENGTH:
        raise ValidationError(
            f"Field name too long: {len(field)} characters "
            f"(max {MAX_FIELD_NAME_LENGTH})"
        )
    
    return field


def validate_field_names(fields: Iterable[str]) -> List[str]:
    """Validate a sequence of field names, dropping repeats."""
    if isinstance(fields, str):
        raise ValidationError("Field names must be given as a list, not a string")
    
    validated: List[str] = []
    for field in fields:
        field = validate_field_name(field)
        if field not in validated:
            validated.append(field)
    return validated


def coerce_payload(payload: Any) -> Mapping[str, Any]:
    """
    Turn raw input into a mapping payload.
    
    Strings are parsed as JSON first. Anything that is not a mapping
    afterwards has no usable record shape.
    
    Raises:
        InvalidRecordPayload: If the payload is not mapping-shaped
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            pass
    
    if not isinstance(payload, Mapping):
        raise InvalidRecordPayload(
            f"Cannot add a non-object record ({type(payload).__name__})"
        )
    
    for key in payload.keys():
        if not isinstance(key, str):
            raise InvalidRecordPayload(
                f"Record field names must be strings, got {type(key).__name__}"
            )
    
    return payload


def validate_sort_direction(field: str, direction: str) -> str:
    """Normalize an ``asc``/``desc`` direction string."""
    normalized = direction.strip().lower()
    if normalized not in SORT_DIRECTIONS:
        raise ValidationError(
            f"Invalid sort direction for '{field}': {direction!r} "
            f"(expected one of {', '.join(SORT_DIRECTIONS)} or a comparator)"
        )
    return normalized
