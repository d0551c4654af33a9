"""
Record ordering.

A sorter is either a two-argument comparator over records (negative,
zero or positive, like ``functools.cmp_to_key`` expects), or a mapping of
field name to ``"asc"``, ``"desc"`` or a per-field comparator. Mapping
sorters compare field by field in the mapping's iteration order:

- a record that lacks the field sorts after one that has it
- equal or unordered (NaN) values fall through to the next field
- a per-field comparator replaces the asc/desc comparison for that field

Example:
    >>> records = sort_records(records, {"lname": "asc", "age": "desc"})
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Callable, List, Mapping, Sequence, Tuple, Union

from ..core.exceptions import ValidationError
from ..core.record import MISSING, get_field
from ..utils.validation import validate_field_name, validate_sort_direction


Comparator = Callable[[Any, Any], int]
Sorter = Union[Comparator, Mapping[str, Union[str, Comparator]]]


def _compare_values(a: Any, b: Any) -> int:
    try:
        if a > b:
            return 1
        if a < b:
            return -1
        # Unordered values (NaN, overlapping sets)
        return 0
    except TypeError:
        # Mixed types: order by type name, then by text
        left = (type(a).__name__, str(a))
        right = (type(b).__name__, str(b))
        if left == right:
            return 0
        return 1 if left > right else -1


def _normalize_keys(sorter: Mapping[str, Any]) -> List[Tuple[str, Any]]:
    keys: List[Tuple[str, Any]] = []
    for field, direction in sorter.items():
        field = validate_field_name(field)
        if callable(direction):
            keys.append((field, direction))
        elif isinstance(direction, str):
            keys.append((field, validate_sort_direction(field, direction)))
        else:
            raise ValidationError(
                f"Sort direction for '{field}' must be 'asc', 'desc' or a "
                f"comparator, got {type(direction).__name__}"
            )
    return keys


def build_comparator(sorter: Sorter) -> Comparator:
    """
    Turn a sorter into a single comparator.
    
    Raises:
        ValidationError: If the sorter or any direction is invalid
    """
    if callable(sorter):
        return sorter
    
    if not isinstance(sorter, Mapping):
        raise ValidationError(
            f"Sorter must be a comparator or a mapping, got {type(sorter).__name__}"
        )
    
    keys = _normalize_keys(sorter)
    
    def compare(a: Any, b: Any) -> int:
        for field, direction in keys:
            a_value = get_field(a, field)
            b_value = get_field(b, field)
            
            if a_value is MISSING and b_value is MISSING:
                continue
            if b_value is MISSING:
                return -1
            if a_value is MISSING:
                return 1
            
            if a_value == b_value:
                continue
            
            if callable(direction):
                result = direction(a, b)
                if result:
                    return 1 if result > 0 else -1
                continue
            
            result = _compare_values(a_value, b_value)
            if result:
                return result if direction == "asc" else -result
        
        return 0
    
    return compare


def sort_records(records: Sequence[Any], sorter: Sorter) -> List[Any]:
    """Return ``records`` ordered by ``sorter``. The sort is stable."""
    return sorted(records, key=cmp_to_key(build_comparator(sorter)))
