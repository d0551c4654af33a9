"""
Record filtering for RecordStore.

Two layers live here:

- :class:`FilterPipeline`, the ordered list of predicates a collection
  threads its records through. Every registered filter narrows the output
  of the previous one, so the view is the AND of all filters.
- Composable predicate objects (:class:`FieldFilter`, :class:`AndFilter`,
  :class:`OrFilter`, :class:`NotFilter`) and a fluent
  :class:`FilterBuilder`. They are plain callables over a record, so they
  can be registered on a pipeline or passed to ``find`` like any function.

Example:
    >>> pipeline = FilterPipeline()
    >>> pipeline.add(lambda rec: "e" in rec["fname"])
    >>> pipeline.add(FieldFilter("fname", FilterOperator.EQ, "The"))
    >>> pipeline.apply(records)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union
import re

from ..core.record import MISSING, get_field


Predicate = Callable[[Any], bool]


class FilterPipeline:
    """
    Ordered sequence of record predicates.
    
    Filters are kept in registration order and removed either by identity
    or by their position in the pipeline.
    """
    
    def __init__(self, filters: Optional[Iterable[Predicate]] = None):
        self._filters: List[Predicate] = []
        for fn in filters or []:
            self.add(fn)
    
    def add(self, fn: Predicate) -> Predicate:
        """Append a filter. Returns it for convenience."""
        if not callable(fn):
            raise TypeError(f"Filter must be callable, got {type(fn).__name__}")
        self._filters.append(fn)
        return fn
    
    def remove(self, fn: Union[Predicate, int]) -> Optional[Predicate]:
        """
        Remove a filter by identity or by zero-based position.
        
        Returns:
            The removed filter, or None when nothing matched
        """
        if isinstance(fn, int) and not isinstance(fn, bool):
            if 0 <= fn < len(self._filters):
                return self._filters.pop(fn)
            return None
        
        for i, registered in enumerate(self._filters):
            if registered is fn:
                return self._filters.pop(i)
        return None
    
    def pop(self) -> Predicate:
        """Remove and return the most recently added filter."""
        return self._filters.pop()
    
    def clear(self) -> List[Predicate]:
        """Remove every filter. Returns them in registration order."""
        removed = list(self._filters)
        self._filters.clear()
        return removed
    
    def apply(self, data: Sequence[Any]) -> List[Any]:
        """Thread ``data`` through every filter in order."""
        result = list(data)
        for fn in self._filters:
            result = [record for record in result if fn(record)]
        return result
    
    def accepts(self, record: Any) -> bool:
        """True when ``record`` passes every filter."""
        return all(fn(record) for fn in self._filters)
    
    @property
    def filters(self) -> List[Predicate]:
        return list(self._filters)
    
    def __len__(self) -> int:
        return len(self._filters)
    
    def __bool__(self) -> bool:
        return bool(self._filters)
    
    def __iter__(self):
        return iter(list(self._filters))
    
    def __repr__(self) -> str:
        return f"FilterPipeline(filters={len(self._filters)})"


# =============================================================================
# PREDICATE OBJECTS
# =============================================================================

class FilterOperator(str, Enum):
    """Field comparison operators."""
    
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    IN = "in"
    NIN = "nin"
    CONTAINS = "contains"
    ICONTAINS = "icontains"
    STARTSWITH = "startswith"
    ENDSWITH = "endswith"
    REGEX = "regex"
    EXISTS = "exists"


class Filter(ABC):
    """Abstract base class for predicate objects."""
    
    @abstractmethod
    def evaluate(self, record: Any) -> bool:
        """
        Evaluate the filter against a record.
        
        Args:
            record: A Record or raw mapping
            
        Returns:
            True if the record matches
        """
        pass
    
    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert filter to dictionary representation."""
        pass
    
    def __call__(self, record: Any) -> bool:
        return self.evaluate(record)
    
    def __and__(self, other: "Filter") -> "AndFilter":
        return AndFilter([self, other])
    
    def __or__(self, other: "Filter") -> "OrFilter":
        return OrFilter([self, other])
    
    def __invert__(self) -> "NotFilter":
        return NotFilter(self)


class FieldFilter(Filter):
    """
    Filter on a single field.
    
    Nested values can be reached with dot notation:
        FieldFilter("address.city", FilterOperator.EQ, "Austin")
    """
    
    def __init__(self, field: str, operator: FilterOperator, value: Any):
        self.field = field
        self.operator = FilterOperator(operator)
        self.value = value
    
    def _get_field_value(self, record: Any) -> Any:
        parts = self.field.split(".")
        current = get_field(record, parts[0])
        
        for part in parts[1:]:
            if isinstance(current, dict):
                current = current.get(part, MISSING)
            elif isinstance(current, list):
                try:
                    current = current[int(part)]
                except (ValueError, IndexError):
                    return MISSING
            else:
                return MISSING
        
        return current
    
    def evaluate(self, record: Any) -> bool:
        field_value = self._get_field_value(record)
        
        try:
            return self._compare(field_value, self.operator, self.value)
        except (TypeError, ValueError):
            return False
    
    def _compare(self, field_value: Any, op: FilterOperator, compare_value: Any) -> bool:
        if op == FilterOperator.EXISTS:
            return (field_value is not MISSING) == bool(compare_value)
        
        if field_value is MISSING:
            return op in (FilterOperator.NE, FilterOperator.NIN)
        
        if op == FilterOperator.EQ:
            return field_value == compare_value
        
        if op == FilterOperator.NE:
            return field_value != compare_value
        
        if op == FilterOperator.GT:
            return field_value is not None and field_value > compare_value
        
        if op == FilterOperator.GTE:
            return field_value is not None and field_value >= compare_value
        
        if op == FilterOperator.LT:
            return field_value is not None and field_value < compare_value
        
        if op == FilterOperator.LTE:
            return field_value is not None and field_value <= compare_value
        
        if op == FilterOperator.BETWEEN:
            if field_value is None or not isinstance(compare_value, (list, tuple)):
                return False
            low, high = compare_value[0], compare_value[1]
            return low <= field_value <= high
        
        if op == FilterOperator.IN:
            return field_value in compare_value
        
        if op == FilterOperator.NIN:
            return field_value not in compare_value
        
        if op == FilterOperator.CONTAINS:
            if isinstance(field_value, str):
                return isinstance(compare_value, str) and compare_value in field_value
            if isinstance(field_value, (list, tuple, set)):
                return compare_value in field_value
            return False
        
        if op == FilterOperator.ICONTAINS:
            return (
                isinstance(field_value, str) and
                isinstance(compare_value, str) and
                compare_value.lower() in field_value.lower()
            )
        
        if op == FilterOperator.STARTSWITH:
            return isinstance(field_value, str) and field_value.startswith(compare_value)
        
        if op == FilterOperator.ENDSWITH:
            return isinstance(field_value, str) and field_value.endswith(compare_value)
        
        if op == FilterOperator.REGEX:
            return isinstance(field_value, str) and bool(re.search(compare_value, field_value))
        
        return False
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "field",
            "field": self.field,
            "operator": self.operator.value,
            "value": self.value,
        }
    
    def __repr__(self) -> str:
        return f"FieldFilter({self.field} {self.operator.value} {self.value!r})"


class AndFilter(Filter):
    """Logical AND of multiple filters."""
    
    def __init__(self, filters: List[Filter]):
        self.filters = filters
    
    def evaluate(self, record: Any) -> bool:
        return all(f(record) for f in self.filters)
    
    def to_dict(self) -> Dict[str, Any]:
        return {"type": "and", "filters": [f.to_dict() for f in self.filters]}
    
    def __repr__(self) -> str:
        return f"AndFilter({self.filters})"


class OrFilter(Filter):
    """Logical OR of multiple filters."""
    
    def __init__(self, filters: List[Filter]):
        self.filters = filters
    
    def evaluate(self, record: Any) -> bool:
        return any(f(record) for f in self.filters)
    
    def to_dict(self) -> Dict[str, Any]:
        return {"type": "or", "filters": [f.to_dict() for f in self.filters]}
    
    def __repr__(self) -> str:
        return f"OrFilter({self.filters})"


class NotFilter(Filter):
    """Logical NOT of a filter."""
    
    def __init__(self, filter: Filter):
        self.filter = filter
    
    def evaluate(self, record: Any) -> bool:
        return not self.filter(record)
    
    def to_dict(self) -> Dict[str, Any]:
        return {"type": "not", "filter": self.filter.to_dict()}
    
    def __repr__(self) -> str:
        return f"NotFilter({self.filter})"


def filter_from_dict(data: Dict[str, Any]) -> Filter:
    """Create a filter from its dictionary representation."""
    filter_type = data.get("type", "field")
    
    if filter_type == "field":
        return FieldFilter(data["field"], FilterOperator(data["operator"]), data["value"])
    elif filter_type == "and":
        return AndFilter([filter_from_dict(f) for f in data["filters"]])
    elif filter_type == "or":
        return OrFilter([filter_from_dict(f) for f in data["filters"]])
    elif filter_type == "not":
        return NotFilter(filter_from_dict(data["filter"]))
    else:
        raise ValueError(f"Unknown filter type: {filter_type}")


class FieldFilterBuilder:
    """Builder step for one field of a :class:`FilterBuilder`."""
    
    def __init__(self, parent: "FilterBuilder", field: str):
        self._parent = parent
        self._field = field
    
    def _add(self, operator: FilterOperator, value: Any) -> "FilterBuilder":
        self._parent._add_condition(self._field, operator, value)
        return self._parent
    
    def eq(self, value: Any) -> "FilterBuilder":
        return self._add(FilterOperator.EQ, value)
    
    def ne(self, value: Any) -> "FilterBuilder":
        return self._add(FilterOperator.NE, value)
    
    def gt(self, value: Any) -> "FilterBuilder":
        return self._add(FilterOperator.GT, value)
    
    def gte(self, value: Any) -> "FilterBuilder":
        return self._add(FilterOperator.GTE, value)
    
    def lt(self, value: Any) -> "FilterBuilder":
        return self._add(FilterOperator.LT, value)
    
    def lte(self, value: Any) -> "FilterBuilder":
        return self._add(FilterOperator.LTE, value)
    
    def between(self, low: Any, high: Any) -> "FilterBuilder":
        return self._add(FilterOperator.BETWEEN, [low, high])
    
    def in_(self, values: List[Any]) -> "FilterBuilder":
        return self._add(FilterOperator.IN, values)
    
    def not_in(self, values: List[Any]) -> "FilterBuilder":
        return self._add(FilterOperator.NIN, values)
    
    def contains(self, value: Any) -> "FilterBuilder":
        return self._add(FilterOperator.CONTAINS, value)
    
    def icontains(self, value: str) -> "FilterBuilder":
        return self._add(FilterOperator.ICONTAINS, value)
    
    def startswith(self, value: str) -> "FilterBuilder":
        return self._add(FilterOperator.STARTSWITH, value)
    
    def endswith(self, value: str) -> "FilterBuilder":
        return self._add(FilterOperator.ENDSWITH, value)
    
    def regex(self, pattern: str) -> "FilterBuilder":
        return self._add(FilterOperator.REGEX, pattern)
    
    def exists(self, exists: bool = True) -> "FilterBuilder":
        return self._add(FilterOperator.EXISTS, exists)


class FilterBuilder:
    """
    Fluent builder for predicate objects.
    
    Example:
        >>> adults_named_doe = (
        ...     FilterBuilder()
        ...     .field("lname").eq("Doe")
        ...     .field("age").gte(18)
        ...     .build()
        ... )
    """
    
    def __init__(self):
        self._conditions: List[Filter] = []
        self._logic = "and"
    
    def field(self, name: str) -> FieldFilterBuilder:
        return FieldFilterBuilder(self, name)
    
    def _add_condition(self, field: str, operator: FilterOperator, value: Any) -> None:
        self._conditions.append(FieldFilter(field, operator, value))
    
    def or_(self) -> "FilterBuilder":
        self._logic = "or"
        return self
    
    def and_(self) -> "FilterBuilder":
        self._logic = "and"
        return self
    
    def build(self) -> Optional[Filter]:
        if not self._conditions:
            return None
        if len(self._conditions) == 1:
            return self._conditions[0]
        if self._logic == "and":
            return AndFilter(self._conditions)
        return OrFilter(self._conditions)
