"""
RecordStore - An in-memory, indexed collection of records.

Example:
    >>> from recordstore import Collection, Record
    >>> 
    >>> Person = Record.define("Person", {"fname": None, "lname": None})
    >>> people = Collection(record_factory=Person, index_fields=["lname"])
    >>> 
    >>> # Add records
    >>> people.add({"fname": "John", "lname": "Doe"})
    >>> people.add({"fname": "Jane", "lname": "Doe"})
    >>> 
    >>> # Query
    >>> people.find({"lname": "Doe"})
"""

from .core import (
    # Main classes
    Collection,
    Record,
    FieldChange,
    MISSING,
    # Config
    StoreConfig,
    CollectionStats,
    # Events
    StoreEvent,
    EventSink,
    EventEmitter,
    # Exceptions
    StoreError,
    ValidationError,
    InvalidRecordPayload,
    RecordError,
    DuplicateRecordError,
    RecordNotFoundError,
    IndexNotFoundError,
)

from .query import (
    FilterBuilder,
    FieldFilter,
    QueryPlan,
)

__version__ = "0.1.0"
__author__ = "RecordStore Team"

__all__ = [
    # Main classes
    "Collection",
    "Record",
    "FieldChange",
    "MISSING",
    # Config
    "StoreConfig",
    "CollectionStats",
    # Events
    "StoreEvent",
    "EventSink",
    "EventEmitter",
    # Exceptions
    "StoreError",
    "ValidationError",
    "InvalidRecordPayload",
    "RecordError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "IndexNotFoundError",
    # Query helpers
    "FilterBuilder",
    "FieldFilter",
    "QueryPlan",
]
