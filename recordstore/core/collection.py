"""
Collection class for managing records.

A Collection is an ordered, mutable set of records providing add/remove
with duplicate detection, index-accelerated queries, filtering, sorting,
and tracking of the records created and deleted since the last bulk load.

Positions
---------
Records are addressed by their zero-based position in storage, and the
secondary indexes store those positions. A position is only valid until
the next mutation that removes an earlier record or reorders storage
(``remove``, ``sort``, ``deduplicate``, ``clear``, ``reload``); callers
must not hold on to positions across such calls.
"""

from __future__ import annotations

import threading
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Union,
)
from dataclasses import dataclass, field

from .events import EventEmitter, EventSink, StoreEvent
from .exceptions import (
    DuplicateRecordError,
    RecordNotFoundError,
    ValidationError,
)
from .record import (
    FieldChange,
    Record,
    RecordFactory,
    identity_of,
    schema_of,
    serialize_record,
)
from ..index import IndexTable
from ..query import FilterPipeline, QueryPlan, QueryPlanner
from ..query.sorting import Sorter, sort_records
from ..utils.logging import get_logger
from ..utils.serialization import fingerprint
from ..utils.validation import coerce_payload, validate_field_name, validate_field_names


logger = get_logger("recordstore.core.collection")


@dataclass
class StoreConfig:
    """Configuration for a Collection."""
    
    record_factory: Optional[RecordFactory] = None
    index_fields: List[str] = field(default_factory=list)
    allow_duplicates: bool = True
    error_on_duplicate: Optional[bool] = None  # None = same as allow_duplicates
    id_attribute: str = "id"
    
    def __post_init__(self):
        if self.record_factory is not None and not callable(self.record_factory):
            raise ValidationError(
                f"record_factory must be callable, got {type(self.record_factory).__name__}"
            )
        
        self.index_fields = validate_field_names(self.index_fields or [])
        self.id_attribute = validate_field_name(self.id_attribute)
        
        if self.error_on_duplicate is None:
            self.error_on_duplicate = self.allow_duplicates


@dataclass
class CollectionStats:
    """Statistics about a collection."""
    
    record_count: int
    filtered_count: int
    created_count: int
    deleted_count: int
    filter_count: int
    indexed_fields: List[str]
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "record_count": self.record_count,
            "filtered_count": self.filtered_count,
            "created_count": self.created_count,
            "deleted_count": self.deleted_count,
            "filter_count": self.filter_count,
            "indexed_fields": list(self.indexed_fields),
        }


def _contains_instance(items: List[Any], record: Any) -> bool:
    return any(item is record for item in items)


def _discard_instance(items: List[Any], record: Any) -> bool:
    for i, item in enumerate(items):
        if item is record:
            del items[i]
            return True
    return False


class Collection:
    """
    An in-memory collection of records.
    
    Every public operation runs to completion under a per-collection
    re-entrant lock, so index maintenance never interleaves with another
    mutation of the same collection.
    
    Example:
        >>> Person = Record.define("Person", {"fname": None, "lname": None})
        >>> people = Collection(record_factory=Person, index_fields=["lname"])
        >>> 
        >>> people.add({"fname": "John", "lname": "Doe"})
        >>> people.add({"fname": "Jane", "lname": "Doe"})
        >>> people.find({"lname": "Doe"})        # index lookup
        >>> people.find(lambda p: p.fname == "Jane")
        >>> people.sort({"fname": "asc"})
    """
    
    def __init__(
        self,
        record_factory: Optional[RecordFactory] = None,
        index_fields: Optional[Iterable[str]] = None,
        allow_duplicates: bool = True,
        error_on_duplicate: Optional[bool] = None,
        id_attribute: str = "id",
        sink: Optional[EventSink] = None,
    ):
        """
        Initialize a new collection.
        
        Args:
            record_factory: Builds a record from a raw mapping. Without one,
                mappings are stored as-is.
            index_fields: Fields to index from the start
            allow_duplicates: Whether records with an existing identity
                may be added
            error_on_duplicate: Raise instead of silently skipping a
                blocked duplicate (defaults to ``allow_duplicates``)
            id_attribute: Identifier field for raw mappings; records use
                their own ``id_attribute``
            sink: Receives lifecycle notifications (defaults to a fresh
                :class:`EventEmitter`)
        """
        self.config = StoreConfig(
            record_factory=record_factory,
            index_fields=list(index_fields or []),
            allow_duplicates=allow_duplicates,
            error_on_duplicate=error_on_duplicate,
            id_attribute=id_attribute,
        )
        
        # Storage
        self._records: List[Any] = []
        
        # Change tracking since the last bulk load
        self._created: List[Any] = []
        self._deleted: List[Any] = []
        self._loading = False
        
        # Record change subscriptions: id(record) -> detach callables
        self._subscriptions: Dict[int, List[Callable[[], None]]] = {}
        
        self._filters = FilterPipeline()
        self._index = IndexTable(self.config.index_fields)
        self._planner = QueryPlanner(self._index, id_attribute=self.config.id_attribute)
        
        self._sink: EventSink = sink if sink is not None else EventEmitter()
        
        self._lock = threading.RLock()
    
    @classmethod
    def from_config(cls, config: StoreConfig, sink: Optional[EventSink] = None) -> "Collection":
        """Create a collection from a :class:`StoreConfig`."""
        return cls(
            record_factory=config.record_factory,
            index_fields=config.index_fields,
            allow_duplicates=config.allow_duplicates,
            error_on_duplicate=config.error_on_duplicate,
            id_attribute=config.id_attribute,
            sink=sink,
        )
    
    # =========================================================================
    # PROPERTIES
    # =========================================================================
    
    @property
    def record_factory(self) -> Optional[RecordFactory]:
        return self.config.record_factory
    
    @property
    def allow_duplicates(self) -> bool:
        return self.config.allow_duplicates
    
    @allow_duplicates.setter
    def allow_duplicates(self, value: bool) -> None:
        self.config.allow_duplicates = bool(value)
    
    @property
    def error_on_duplicate(self) -> bool:
        return bool(self.config.error_on_duplicate)
    
    @error_on_duplicate.setter
    def error_on_duplicate(self, value: bool) -> None:
        self.config.error_on_duplicate = bool(value)
    
    @property
    def sink(self) -> EventSink:
        return self._sink
    
    @property
    def data(self) -> List[Dict[str, Any]]:
        """The complete, unfiltered data of every record."""
        with self._lock:
            return [serialize_record(record) for record in self._records]
    
    @property
    def records(self) -> List[Any]:
        """Records visible through the current filters."""
        with self._lock:
            return self._filters.apply(self._records)
    
    @property
    def record_count(self) -> int:
        """Number of records visible through the current filters."""
        return len(self.records)
    
    @property
    def created(self) -> List[Any]:
        """Records added since the last bulk load."""
        with self._lock:
            return list(self._created)
    
    @property
    def deleted(self) -> List[Any]:
        """Records removed since the last bulk load."""
        with self._lock:
            return list(self._deleted)
    
    @property
    def loading(self) -> bool:
        return self._loading
    
    @property
    def filters(self) -> List[Callable[[Any], bool]]:
        return self._filters.filters
    
    @property
    def indexed_fields(self) -> List[str]:
        return self._index.fields
    
    @property
    def index_table(self) -> IndexTable:
        return self._index
    
    def __len__(self) -> int:
        """Number of records in storage, ignoring filters."""
        return len(self._records)
    
    def __iter__(self) -> Iterator[Any]:
        """Iterate over the filtered records."""
        return iter(self.records)
    
    def __contains__(self, record: Any) -> bool:
        return self.contains(record)
    
    # =========================================================================
    # EVENTS
    # =========================================================================
    
    def on(self, event: Union[StoreEvent, str], handler: Callable[[Any], None]) -> None:
        self._emitter().on(event, handler)
    
    def once(self, event: Union[StoreEvent, str], handler: Callable[[Any], None]) -> None:
        self._emitter().once(event, handler)
    
    def off(self, event: Union[StoreEvent, str], handler: Callable[[Any], None]) -> None:
        self._emitter().off(event, handler)
    
    def _emitter(self) -> EventEmitter:
        if not isinstance(self._sink, EventEmitter):
            raise TypeError(
                f"Event sink {type(self._sink).__name__} does not support subscriptions"
            )
        return self._sink
    
    def _emit(self, event: StoreEvent, payload: Any = None) -> None:
        self._sink.emit(event, payload)
    
    # =========================================================================
    # ADD / REMOVE
    # =========================================================================
    
    def add(self, data: Any, suppress_event: bool = False) -> Optional[Any]:
        """
        Add a record.
        
        Args:
            data: A record, or a mapping (or JSON object string) that is
                passed to the record factory. Without a factory the
                mapping itself is stored.
            suppress_event: Skip the ``record.create`` notification
            
        Returns:
            The stored record, or None when a duplicate was skipped
            
        Raises:
            InvalidRecordPayload: If ``data`` has no record shape
            DuplicateRecordError: If a duplicate is blocked and
                ``error_on_duplicate`` is set
        """
        record = self._to_record(data)
        
        with self._lock:
            if self._is_duplicate(record):
                self._emit(StoreEvent.RECORD_DUPLICATE, record)
                if not self.config.allow_duplicates:
                    if self.config.error_on_duplicate:
                        raise DuplicateRecordError(
                            "Cannot add duplicate record (allow_duplicates = False)"
                        )
                    return None
            
            self._listen(record)
            self._index.apply(record, len(self._records))
            self._records.append(record)
            
            if not self._loading:
                if not _discard_instance(self._deleted, record):
                    if not _contains_instance(self._created, record):
                        self._created.append(record)
            
            if not suppress_event:
                self._emit(StoreEvent.RECORD_CREATE, record)
            
            return record
    
    def remove(self, identifier: Any, suppress_events: bool = False) -> Any:
        """
        Remove a record.
        
        Args:
            identifier: A position, a record, or a raw mapping. Positions
                are fastest; a mapping is turned into a transient record
                just to compute its identity and is the slowest.
            suppress_events: Skip the ``record.delete`` notification
            
        Returns:
            The removed record
            
        Raises:
            RecordNotFoundError: If nothing matches ``identifier``
        """
        with self._lock:
            position = self._resolve_position(identifier)
            if position < 0:
                raise RecordNotFoundError(
                    f"Record removal failed (record not found: {identifier!r})"
                )
            
            record = self._records.pop(position)
            self._index.unapply(position)
            
            # The same instance may still be stored at another position
            if not _contains_instance(self._records, record):
                self._unlisten(record)
                if not self._loading:
                    if not _discard_instance(self._created, record):
                        if not _contains_instance(self._deleted, record):
                            self._deleted.append(record)
            
            if not suppress_events:
                self._emit(StoreEvent.RECORD_DELETE, record)
            
            return record
    
    def clear(self) -> None:
        """
        Remove every record. Indexed fields are kept, their buckets emptied.
        Created/deleted tracking is left alone.
        """
        with self._lock:
            for record in self._records:
                self._unlisten(record)
            self._records = []
            self._index.clear()
            self._emit(StoreEvent.CLEAR)
    
    def load(self, *data: Any) -> None:
        """
        Bulk load records, appending to the existing ones.
        
        Accepts a single list or any number of records/mappings. Individual
        ``record.create`` notifications are suppressed in favour of a single
        ``load`` event, and created/deleted tracking restarts afterwards.
        """
        self._bulk(StoreEvent.LOAD, self._bulk_items(data))
    
    def reload(self, *data: Any) -> None:
        """Same as :meth:`clear` followed by :meth:`load`, emitting ``reload``."""
        with self._lock:
            self.clear()
            self._bulk(StoreEvent.RELOAD, self._bulk_items(data))
    
    def _bulk(self, event: StoreEvent, items: List[Any]) -> None:
        with self._lock:
            self._loading = True
            try:
                for item in items:
                    self.add(item, suppress_event=True)
            finally:
                self._loading = False
            
            self._created = []
            self._deleted = []
            logger.debug("Bulk %s of %d records", event.value, len(items))
            self._emit(event)
    
    @staticmethod
    def _bulk_items(data: tuple) -> List[Any]:
        if len(data) == 1 and isinstance(data[0], (list, tuple)):
            return list(data[0])
        return list(data)
    
    # =========================================================================
    # MEMBERSHIP
    # =========================================================================
    
    def index_of(self, record: Any) -> int:
        """
        Position of ``record`` in storage, or -1.
        
        The instance itself is looked for first, then any record with the
        same identity token.
        """
        with self._lock:
            for position, stored in enumerate(self._records):
                if stored is record:
                    return position
            
            try:
                token = identity_of(record)
            except ValidationError:
                return -1
            
            for position, stored in enumerate(self._records):
                if identity_of(stored) == token:
                    return position
            return -1
    
    def contains(self, record: Any) -> bool:
        return self.index_of(record) >= 0
    
    def _resolve_position(self, identifier: Any) -> int:
        if isinstance(identifier, bool):
            return -1
        
        if isinstance(identifier, int):
            if 0 <= identifier < len(self._records):
                return identifier
            return -1
        
        if isinstance(identifier, Record) or callable(getattr(identifier, "identity", None)):
            return self.index_of(identifier)
        
        # Raw payload: compare against a transient record's identity
        for position, stored in enumerate(self._records):
            if stored is identifier:
                return position
        
        transient = self._to_record(identifier)
        return self.index_of(transient)
    
    def _is_duplicate(self, record: Any) -> bool:
        if _contains_instance(self._records, record):
            return False
        token = identity_of(record)
        return any(identity_of(stored) == token for stored in self._records)
    
    def _to_record(self, data: Any) -> Any:
        if isinstance(data, Record):
            return data
        
        factory = self.config.record_factory
        if isinstance(factory, type) and isinstance(data, factory):
            return data
        
        payload = coerce_payload(data)
        if factory is not None:
            return factory(payload)
        return payload
    
    # =========================================================================
    # RECORD CHANGE WIRING
    # =========================================================================
    
    def _listen(self, record: Any) -> None:
        """Subscribe to a record's field changes (once per instance)."""
        key = id(record)
        if key in self._subscriptions:
            return
        
        on_updated = getattr(record, "on_field_updated", None)
        on_removed = getattr(record, "on_field_removed", None)
        if not callable(on_updated) or not callable(on_removed):
            return
        
        def handle(change: FieldChange) -> None:
            self._on_field_change(record, change)
        
        self._subscriptions[key] = [on_updated(handle), on_removed(handle)]
    
    def _unlisten(self, record: Any) -> None:
        for detach in self._subscriptions.pop(id(record), []):
            if callable(detach):
                detach()
    
    def _on_field_change(self, record: Any, change: FieldChange) -> None:
        with self._lock:
            positions = [
                position for position, stored in enumerate(self._records)
                if stored is record
            ]
            if not positions:
                return
            
            for position in positions:
                self._index.update(change.field, change.old, change.new, position)
            
            self._emit(StoreEvent.RECORD_UPDATE, record)
    
    # =========================================================================
    # QUERY
    # =========================================================================
    
    def find(self, query: Any = None, ignore_filters: bool = False) -> Any:
        """
        Retrieve a record or a list of records.
        
        Args:
            query:
                - None: every record
                - int: the record at that position
                - callable: records for which it returns True
                - str: the record whose id attribute matches (compared as
                  stripped strings when the id field is not indexed)
                - mapping: records matching every field/value pair;
                  compiled regular expressions are searched instead of
                  compared
                - Record: the record itself if the collection contains it
            ignore_filters: Search the unfiltered storage
            
        Returns:
            A single record or None for int, str and Record queries; a
            list for everything else
        """
        with self._lock:
            return self._planner.execute(
                query,
                self._records,
                pipeline=self._filters,
                ignore_filters=ignore_filters,
            )
    
    def explain(self, query: Any = None, ignore_filters: bool = False) -> QueryPlan:
        """Plan ``query`` without running it."""
        with self._lock:
            return self._planner.plan(
                query,
                self._records,
                pipeline=self._filters,
                ignore_filters=ignore_filters,
            )
    
    # =========================================================================
    # FILTERS
    # =========================================================================
    
    def add_filter(self, fn: Callable[[Any], bool]) -> Callable[[Any], bool]:
        """Narrow :attr:`records` to the records ``fn`` accepts. Returns ``fn``."""
        with self._lock:
            self._filters.add(fn)
            self._emit(StoreEvent.FILTER_CREATE, fn)
            return fn
    
    def remove_filter(
        self,
        fn: Union[Callable[[Any], bool], int],
        suppress_events: bool = False,
    ) -> Optional[Callable[[Any], bool]]:
        """
        Remove a filter by identity or by its zero-based position.
        
        Returns:
            The removed filter, or None if nothing matched
        """
        with self._lock:
            removed = self._filters.remove(fn)
            if removed is not None and not suppress_events:
                self._emit(StoreEvent.FILTER_DELETE, removed)
            return removed
    
    def clear_filters(self, suppress_events: bool = False) -> None:
        """Remove every filter, most recently added first."""
        with self._lock:
            if suppress_events:
                self._filters.clear()
                return
            while self._filters:
                self._emit(StoreEvent.FILTER_DELETE, self._filters.pop())
    
    def apply_filters(self, data: Iterable[Any]) -> List[Any]:
        return self._filters.apply(list(data))
    
    # =========================================================================
    # INDEXES
    # =========================================================================
    
    def create_index(self, field: str, suppress_events: bool = False) -> None:
        """
        Index ``field``. Existing records are indexed immediately.
        """
        field = validate_field_name(field)
        
        schema = schema_of(self.config.record_factory)
        if schema is not None and field not in schema:
            logger.warning(
                "The record factory does not declare a field called '%s'", field
            )
        
        with self._lock:
            if not self._index.create_index(field):
                return
            for position, record in enumerate(self._records):
                self._index.apply(record, position, fields=[field])
            logger.debug("Created index on '%s' (%d records)", field, len(self._records))
            if not suppress_events:
                self._emit(StoreEvent.INDEX_CREATE, field)
    
    def delete_index(self, field: str, suppress_events: bool = False) -> None:
        with self._lock:
            if self._index.delete_index(field) and not suppress_events:
                self._emit(StoreEvent.INDEX_DELETE, field)
    
    def delete_indexes(self, suppress_events: bool = True) -> None:
        """Remove every index."""
        with self._lock:
            for field in self._index.fields:
                self.delete_index(field, suppress_events=suppress_events)
    
    def clear_indices(self) -> None:
        """
        Empty every index. Lookups return nothing until :meth:`reindex`.
        """
        with self._lock:
            self._index.clear()
    
    def reindex(self) -> None:
        """Rebuild every index from storage. Expensive on large collections."""
        with self._lock:
            self._index.reindex(self._records)
            logger.debug("Reindexed %d records", len(self._records))
    
    def lookup(self, field: str, value: Any) -> Optional[List[int]]:
        """
        Positions whose ``field`` equals ``value`` according to the index,
        or None if ``field`` is not indexed.
        """
        with self._lock:
            return self._index.lookup(field, value)
    
    # =========================================================================
    # ORDERING / DEDUPLICATION
    # =========================================================================
    
    def sort(self, sorter: Sorter) -> None:
        """
        Reorder storage and rebuild the indexes.
        
        Args:
            sorter: A comparator ``(a, b) -> int`` or a mapping of field
                name to ``"asc"``, ``"desc"`` or a comparator, applied in
                mapping order. Records missing a field sort after those
                that have it.
        """
        with self._lock:
            self._records = sort_records(self._records, sorter)
            self.reindex()
    
    def deduplicate(self, suppress_events: bool = True) -> List[Any]:
        """
        Remove records whose data is identical to an earlier record's.
        
        Returns:
            The removed records, in their former storage order
        """
        with self._lock:
            seen = set()
            duplicates: List[int] = []
            for position, record in enumerate(self._records):
                digest = fingerprint(serialize_record(record))
                if digest in seen:
                    duplicates.append(position)
                else:
                    seen.add(digest)
            
            # Highest position first so the remaining offsets stay valid
            removed = [
                self.remove(position, suppress_events=suppress_events)
                for position in reversed(duplicates)
            ]
            removed.reverse()
            
            if removed:
                logger.debug("Removed %d duplicate records", len(removed))
            return removed
    
    # =========================================================================
    # STATISTICS & INFO
    # =========================================================================
    
    def stats(self) -> CollectionStats:
        """Get collection statistics."""
        with self._lock:
            return CollectionStats(
                record_count=len(self._records),
                filtered_count=len(self._filters.apply(self._records)),
                created_count=len(self._created),
                deleted_count=len(self._deleted),
                filter_count=len(self._filters),
                indexed_fields=self._index.fields,
            )
    
    def describe(self) -> Dict[str, Any]:
        """Get collection description."""
        stats = self.stats()
        factory = self.config.record_factory
        return {
            **stats.to_dict(),
            "config": {
                "record_factory": getattr(factory, "__name__", None) if factory else None,
                "allow_duplicates": self.config.allow_duplicates,
                "error_on_duplicate": self.config.error_on_duplicate,
                "id_attribute": self.config.id_attribute,
            },
            "indexes": self._index.to_dict(),
        }
    
    def __repr__(self) -> str:
        return (
            f"Collection(count={len(self)}, "
            f"indexed={self._index.fields}, "
            f"filters={len(self._filters)})"
        )
