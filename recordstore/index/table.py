"""
Secondary indexes over record positions.

Each indexed field maps the distinct values found in that field to the set
of positions (zero-based offsets into the collection's storage) holding
that value:

    {"lname": {"Doe": {0, 1}, "Vaughn": {2}}}

Positions are raw offsets, not stable handles. Removing a record shifts
every later record down by one, so :meth:`IndexTable.unapply` renumbers
the remaining positions, and any wholesale reorder (sorting) must be
followed by :meth:`IndexTable.reindex`.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..core.exceptions import IndexNotFoundError
from ..core.record import MISSING, get_field
from ..utils.serialization import fingerprint
from ..utils.validation import validate_field_name


FieldAccessor = Callable[[Any, str], Any]


class _KeyTag:
    """Marks a bucket key built from a container so it never equals a plain value."""
    
    def __init__(self, name: str):
        self.name = name
    
    def __repr__(self) -> str:
        return f"<{self.name}>"


_LIST = _KeyTag("list")
_DICT = _KeyTag("dict")
_UNHASHABLE = _KeyTag("unhashable")


def make_key(value: Any) -> Any:
    """
    Convert a field value to a hashable bucket key.
    
    Two values share a key only when they compare equal: ``[1, 2]`` and
    ``(1, 2)`` get different keys, as do ``{"a": 1}`` and ``[("a", 1)]``.
    """
    if isinstance(value, list):
        return (_LIST, tuple(make_key(v) for v in value))
    if isinstance(value, dict):
        items = sorted(
            ((repr(k), make_key(v)) for k, v in value.items()),
            key=lambda kv: kv[0],
        )
        return (_DICT, tuple(items))
    if isinstance(value, (set, frozenset)):
        return frozenset(make_key(v) for v in value)
    try:
        hash(value)
    except TypeError:
        return (_UNHASHABLE, fingerprint(value))
    return value


class IndexEntry:
    """
    Value -> positions mapping for a single field.
    
    Empty buckets are pruned as soon as their last position leaves.
    """
    
    def __init__(self, field: str):
        self.field = field
        # {bucket key: set of positions}
        self._buckets: Dict[Any, Set[int]] = {}
        # {bucket key: first value seen for that key}
        self._values: Dict[Any, Any] = {}
    
    def add(self, value: Any, position: int) -> None:
        key = make_key(value)
        if key not in self._buckets:
            self._buckets[key] = set()
            self._values[key] = value
        self._buckets[key].add(position)
    
    def discard(self, value: Any, position: int) -> bool:
        """
        Remove ``position`` from the bucket for ``value``.
        
        Falls back to searching every bucket when the position is not
        filed under ``value``.
        
        Returns:
            True if the position was found
        """
        if value is not MISSING:
            key = make_key(value)
            if position in self._buckets.get(key, ()):
                self._drop(key, position)
                return True
        return self.remove_position(position)
    
    def remove_position(self, position: int) -> bool:
        """Remove ``position`` from whichever bucket holds it."""
        for key, positions in self._buckets.items():
            if position in positions:
                self._drop(key, position)
                return True
        return False
    
    def shift_after(self, position: int) -> None:
        """Decrement every position greater than ``position``."""
        for key, positions in self._buckets.items():
            if any(p > position for p in positions):
                self._buckets[key] = {
                    p - 1 if p > position else p for p in positions
                }
    
    def lookup(self, value: Any) -> List[int]:
        """Sorted positions holding ``value``."""
        return sorted(self._buckets.get(make_key(value), ()))
    
    def positions(self) -> Set[int]:
        result: Set[int] = set()
        for positions in self._buckets.values():
            result.update(positions)
        return result
    
    def buckets(self) -> List[Tuple[Any, List[int]]]:
        """``(value, sorted positions)`` pairs in bucket creation order."""
        return [
            (self._values[key], sorted(positions))
            for key, positions in self._buckets.items()
        ]
    
    def clear(self) -> None:
        self._buckets.clear()
        self._values.clear()
    
    def _drop(self, key: Any, position: int) -> None:
        positions = self._buckets[key]
        positions.discard(position)
        if not positions:
            del self._buckets[key]
            del self._values[key]
    
    def __len__(self) -> int:
        return len(self._buckets)
    
    def __repr__(self) -> str:
        return f"IndexEntry(field='{self.field}', buckets={len(self)})"


class IndexTable:
    """
    Collection of per-field indexes.
    
    Example:
        >>> table = IndexTable(["lname"])
        >>> table.apply({"fname": "John", "lname": "Doe"}, 0)
        >>> table.apply({"fname": "Jane", "lname": "Doe"}, 1)
        >>> table.lookup("lname", "Doe")
        [0, 1]
        >>> table.lookup("fname", "John") is None   # not indexed
        True
    """
    
    def __init__(
        self,
        fields: Iterable[str] = (),
        accessor: FieldAccessor = get_field,
    ):
        self._accessor = accessor
        self._entries: Dict[str, IndexEntry] = {}
        for field in fields:
            self.create_index(field)
    
    # =========================================================================
    # INDEX MANAGEMENT
    # =========================================================================
    
    @property
    def fields(self) -> List[str]:
        """Indexed field names, in creation order."""
        return list(self._entries.keys())
    
    def has_index(self, field: str) -> bool:
        return field in self._entries
    
    def __contains__(self, field: object) -> bool:
        return field in self._entries
    
    def __len__(self) -> int:
        return len(self._entries)
    
    def entry(self, field: str) -> IndexEntry:
        try:
            return self._entries[field]
        except KeyError:
            raise IndexNotFoundError(f"Field '{field}' is not indexed") from None
    
    def create_index(self, field: str) -> bool:
        """
        Add an empty index for ``field``.
        
        Returns:
            True if the index was created, False if it already existed
        """
        field = validate_field_name(field)
        if field in self._entries:
            return False
        self._entries[field] = IndexEntry(field)
        return True
    
    def delete_index(self, field: str) -> bool:
        """Drop the index for ``field``. Returns False if there was none."""
        return self._entries.pop(field, None) is not None
    
    def clear(self) -> None:
        """Empty every index while keeping the set of indexed fields."""
        for entry in self._entries.values():
            entry.clear()
    
    # =========================================================================
    # MAINTENANCE
    # =========================================================================
    
    def apply(
        self,
        record: Any,
        position: int,
        fields: Optional[Iterable[str]] = None,
    ) -> None:
        """File ``record`` under ``position`` in every index it has a value for."""
        for field in fields if fields is not None else self._entries:
            value = self._accessor(record, field)
            if value is not MISSING:
                self._entries[field].add(value, position)
    
    def unapply(self, position: int) -> None:
        """
        Forget ``position`` in every index.
        
        Positions after it are renumbered to match storage once the record
        at ``position`` has been spliced out.
        """
        for entry in self._entries.values():
            entry.remove_position(position)
            entry.shift_after(position)
    
    def update(
        self,
        field: str,
        old_value: Any,
        new_value: Any,
        position: int,
    ) -> None:
        """
        Move ``position`` from the ``old_value`` bucket to the ``new_value``
        bucket. A ``MISSING`` new value means the field was removed.
        """
        entry = self._entries.get(field)
        if entry is None:
            return
        if (
            old_value is not MISSING
            and new_value is not MISSING
            and make_key(old_value) == make_key(new_value)
        ):
            return
        
        entry.discard(old_value, position)
        if new_value is not MISSING:
            entry.add(new_value, position)
    
    def reindex(self, records: Iterable[Any]) -> None:
        """Rebuild every index from ``records`` at their current positions."""
        self.clear()
        for position, record in enumerate(records):
            self.apply(record, position)
    
    # =========================================================================
    # LOOKUP
    # =========================================================================
    
    def lookup(self, field: str, value: Any) -> Optional[List[int]]:
        """
        Positions holding ``value`` in ``field``.
        
        Returns:
            Sorted positions, or None when ``field`` is not indexed
        """
        entry = self._entries.get(field)
        if entry is None:
            return None
        return entry.lookup(value)
    
    def to_dict(self) -> Dict[str, List[List[Any]]]:
        """
        Plain view of every index: ``{field: [[value, pos, pos, ...], ...]}``.
        """
        return {
            field: [[value, *positions] for value, positions in entry.buckets()]
            for field, entry in self._entries.items()
        }
    
    def __repr__(self) -> str:
        return f"IndexTable(fields={self.fields})"
