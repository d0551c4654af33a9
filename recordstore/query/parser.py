"""
Query parsing for RecordStore.

``Collection.find`` accepts loosely-typed queries (a position, a predicate,
an identifier string, a field/value mapping, a record, or nothing). They
are normalized here, once, into one variant per query shape so the planner
can dispatch on :attr:`kind` instead of inspecting runtime types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Mapping, Union

from ..core.exceptions import ValidationError
from ..core.record import Record


class QueryType(str, Enum):
    """Shapes of ``find`` queries."""
    ALL = "all"                 # every record
    POSITION = "position"       # single record by offset
    PREDICATE = "predicate"     # records accepted by a function
    IDENTITY = "identity"       # single record by id attribute
    FIELDS = "fields"           # records matching every field/value pair
    RECORD = "record"           # membership check for a record instance


@dataclass(frozen=True)
class AllQuery:
    kind: ClassVar[QueryType] = QueryType.ALL
    single: ClassVar[bool] = False


@dataclass(frozen=True)
class PositionQuery:
    position: int
    kind: ClassVar[QueryType] = QueryType.POSITION
    single: ClassVar[bool] = True


@dataclass(frozen=True)
class PredicateQuery:
    predicate: Callable[[Any], bool]
    kind: ClassVar[QueryType] = QueryType.PREDICATE
    single: ClassVar[bool] = False


@dataclass(frozen=True)
class IdentityQuery:
    value: str
    kind: ClassVar[QueryType] = QueryType.IDENTITY
    single: ClassVar[bool] = True


@dataclass(frozen=True)
class FieldQuery:
    """
    Field/value criteria. Values are matched by equality, except compiled
    regular expressions, which are searched against ``str(value)``.
    """
    criteria: Dict[str, Any] = field(default_factory=dict)
    kind: ClassVar[QueryType] = QueryType.FIELDS
    single: ClassVar[bool] = False


@dataclass(frozen=True)
class RecordQuery:
    record: Any
    kind: ClassVar[QueryType] = QueryType.RECORD
    single: ClassVar[bool] = True


Query = Union[
    AllQuery,
    PositionQuery,
    PredicateQuery,
    IdentityQuery,
    FieldQuery,
    RecordQuery,
]

QUERY_TYPES = (
    AllQuery,
    PositionQuery,
    PredicateQuery,
    IdentityQuery,
    FieldQuery,
    RecordQuery,
)


def parse_query(query: Any = None) -> Query:
    """
    Normalize a raw ``find`` argument into a query variant.
    
    Args:
        query: None, int, str, callable, mapping, Record, or a query variant
        
    Returns:
        The matching query variant
        
    Raises:
        ValidationError: If the argument has no query shape
        
    Example:
        >>> parse_query(2)
        PositionQuery(position=2)
        >>> parse_query({"lname": "Doe"})
        FieldQuery(criteria={'lname': 'Doe'})
    """
    if query is None:
        return AllQuery()
    
    if isinstance(query, QUERY_TYPES):
        return query
    
    if isinstance(query, bool):
        raise ValidationError("Boolean values are not valid queries")
    
    if isinstance(query, int):
        return PositionQuery(query)
    
    if isinstance(query, str):
        return IdentityQuery(query.strip())
    
    if isinstance(query, Record):
        return RecordQuery(query)
    
    if isinstance(query, Mapping):
        if not query:
            return AllQuery()
        for key in query.keys():
            if not isinstance(key, str):
                raise ValidationError(
                    f"Query field names must be strings, got {type(key).__name__}"
                )
        return FieldQuery(dict(query))
    
    if callable(query):
        return PredicateQuery(query)
    
    raise ValidationError(f"Unsupported query type: {type(query).__name__}")
