"""
Custom exceptions for RecordStore.
"""


class StoreError(Exception):
    """Base exception for RecordStore."""
    pass


class ValidationError(StoreError):
    """Input validation error."""
    pass


class InvalidRecordPayload(ValidationError):
    """Input has no usable record shape (not a mapping or record)."""
    pass


class RecordError(StoreError):
    """Error related to record operations."""
    pass


class DuplicateRecordError(RecordError):
    """Duplicate record blocked by the collection's duplicate policy."""
    pass


class RecordNotFoundError(RecordError):
    """Record could not be resolved within the collection."""
    pass


class IndexNotFoundError(StoreError):
    """Field has no index."""
    pass
