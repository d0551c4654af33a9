"""
Core components for RecordStore.
"""

from .exceptions import (
    StoreError,
    ValidationError,
    InvalidRecordPayload,
    RecordError,
    DuplicateRecordError,
    RecordNotFoundError,
    IndexNotFoundError,
)
from .record import (
    MISSING,
    FieldChange,
    Record,
    RecordFactory,
    is_record,
    get_field,
    has_field,
    identity_of,
    serialize_record,
)
from .events import StoreEvent, EventSink, EventEmitter
from .collection import Collection, StoreConfig, CollectionStats

__all__ = [
    # Record
    "MISSING",
    "FieldChange",
    "Record",
    "RecordFactory",
    "is_record",
    "get_field",
    "has_field",
    "identity_of",
    "serialize_record",
    # Events
    "StoreEvent",
    "EventSink",
    "EventEmitter",
    # Collection
    "Collection",
    "StoreConfig",
    "CollectionStats",
    # Exceptions
    "StoreError",
    "ValidationError",
    "InvalidRecordPayload",
    "RecordError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "IndexNotFoundError",
]
