"""
Secondary indexes for RecordStore collections.
"""

from .table import IndexEntry, IndexTable, make_key

__all__ = [
    "IndexEntry",
    "IndexTable",
    "make_key",
]
