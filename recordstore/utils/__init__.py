"""
Utility functions for RecordStore.
"""

from .validation import (
    validate_field_name,
    validate_field_names,
    validate_sort_direction,
    coerce_payload,
)
from .serialization import canonicalize, encode_canonical, decode, fingerprint
from .logging import setup_logger, get_logger, LogContext

__all__ = [
    "validate_field_name",
    "validate_field_names",
    "validate_sort_direction",
    "coerce_payload",
    "canonicalize",
    "encode_canonical",
    "decode",
    "fingerprint",
    "setup_logger",
    "get_logger",
    "LogContext",
]
