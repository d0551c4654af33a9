"""
Unit tests for Collection class.
"""

import json
import logging
import re

import pytest

from recordstore.core.collection import Collection, CollectionStats, StoreConfig
from recordstore.core.events import EventEmitter, StoreEvent
from recordstore.core.exceptions import (
    DuplicateRecordError,
    InvalidRecordPayload,
    RecordNotFoundError,
    ValidationError,
)
from recordstore.core.record import Record
from recordstore.utils.logging import LogContext, get_logger


Person = Record.define("Person", {"fname": None, "lname": None})


class TestStoreConfig:
    """Configuration defaults and validation."""
    
    def test_defaults(self):
        config = StoreConfig()
        
        assert config.record_factory is None
        assert config.index_fields == []
        assert config.allow_duplicates is True
        assert config.error_on_duplicate is True
        assert config.id_attribute == "id"
    
    def test_error_on_duplicate_follows_allow_duplicates(self):
        assert StoreConfig(allow_duplicates=False).error_on_duplicate is False
        assert StoreConfig(allow_duplicates=False, error_on_duplicate=True).error_on_duplicate is True
    
    def test_invalid_factory(self):
        with pytest.raises(ValidationError):
            StoreConfig(record_factory="Person")
    
    def test_invalid_index_fields(self):
        with pytest.raises(ValidationError):
            StoreConfig(index_fields=["ok", ""])
    
    def test_from_config(self):
        config = StoreConfig(record_factory=Person, index_fields=["lname"])
        collection = Collection.from_config(config)
        
        assert collection.record_factory is Person
        assert collection.indexed_fields == ["lname"]


class TestCollectionAdd:
    """Adding records."""
    
    @pytest.fixture
    def collection(self):
        return Collection(record_factory=Person, index_fields=["lname"])
    
    def test_add_payload_uses_factory(self, collection):
        record = collection.add({"fname": "John", "lname": "Doe"})
        
        assert isinstance(record, Person)
        assert len(collection) == 1
        assert collection.find(0) is record
    
    def test_add_record_instance(self, collection):
        person = Person(fname="John")
        
        assert collection.add(person) is person
    
    def test_add_json_string(self, collection):
        record = collection.add(json.dumps({"fname": "John", "lname": "Doe"}))
        
        assert record.lname == "Doe"
    
    @pytest.mark.parametrize("payload", [42, "not json", "[1]", None])
    def test_add_invalid_payload(self, collection, payload):
        with pytest.raises(InvalidRecordPayload):
            collection.add(payload)
        
        assert len(collection) == 0
    
    def test_add_indexes_record(self, collection):
        collection.add({"fname": "John", "lname": "Doe"})
        collection.add({"fname": "Jane", "lname": "Doe"})
        
        assert collection.lookup("lname", "Doe") == [0, 1]
    
    def test_add_tracks_created(self, collection):
        record = collection.add({"fname": "John"})
        
        assert collection.created == [record]
        assert collection.deleted == []
    
    def test_add_raw_mapping_without_factory(self):
        collection = Collection()
        payload = {"fname": "John"}
        
        assert collection.add(payload) is payload
        assert collection.data == [{"fname": "John"}]
    
    def test_add_emits_create(self, collection):
        events = []
        collection.on(StoreEvent.RECORD_CREATE, events.append)
        
        record = collection.add({"fname": "John"})
        collection.add({"fname": "Jane"}, suppress_event=True)
        
        assert events == [record]


class TestCollectionDuplicates:
    """Duplicate policy."""
    
    def test_duplicates_allowed_by_default(self):
        collection = Collection(record_factory=Person)
        collection.add({"fname": "John"})
        collection.add({"fname": "John"})
        
        assert len(collection) == 2
    
    def test_duplicate_event_even_when_allowed(self):
        collection = Collection(record_factory=Person)
        events = []
        collection.on(StoreEvent.RECORD_DUPLICATE, events.append)
        
        collection.add({"fname": "John"})
        duplicate = collection.add({"fname": "John"})
        
        assert events == [duplicate]
    
    def test_duplicate_blocked_silently(self):
        collection = Collection(record_factory=Person, allow_duplicates=False)
        collection.add({"fname": "John"})
        
        assert collection.add({"fname": "John"}) is None
        assert len(collection) == 1
    
    def test_duplicate_raises(self):
        collection = Collection(
            record_factory=Person,
            allow_duplicates=False,
            error_on_duplicate=True,
        )
        collection.add({"fname": "John"})
        
        with pytest.raises(DuplicateRecordError):
            collection.add({"fname": "John"})
        
        assert len(collection) == 1
        assert len(collection.created) == 1
    
    def test_same_instance_is_not_a_duplicate(self):
        collection = Collection(
            record_factory=Person,
            allow_duplicates=False,
            error_on_duplicate=True,
        )
        person = collection.add({"fname": "John"})
        
        assert collection.add(person) is person
        assert len(collection) == 2
        assert collection.created == [person]
    
    def test_policy_can_change(self):
        collection = Collection(record_factory=Person, allow_duplicates=False)
        collection.add({"fname": "John"})
        collection.allow_duplicates = True
        
        assert collection.add({"fname": "John"}) is not None


class TestCollectionRemove:
    """Removing records."""
    
    @pytest.fixture
    def collection(self, people_data):
        collection = Collection(record_factory=Person, index_fields=["lname"])
        collection.load(people_data)
        return collection
    
    def test_remove_by_position(self, collection):
        removed = collection.remove(0)
        
        assert removed.fname == "John"
        assert len(collection) == 2
        assert collection.lookup("lname", "Doe") == [0]
        assert collection.lookup("lname", "Vaughn") == [1]
    
    def test_remove_by_record(self, collection):
        jane = collection.find(1)
        
        assert collection.remove(jane) is jane
        assert [r.fname for r in collection] == ["John", "Vince"]
    
    def test_remove_by_payload(self, collection):
        removed = collection.remove({"fname": "Vince", "lname": "Vaughn"})
        
        assert removed.fname == "Vince"
        assert collection.lookup("lname", "Vaughn") == []
    
    @pytest.mark.parametrize("identifier", [3, -1, True, {"fname": "Nobody"}])
    def test_remove_not_found(self, collection, identifier):
        with pytest.raises(RecordNotFoundError):
            collection.remove(identifier)
        
        assert len(collection) == 3
        assert collection.lookup("lname", "Doe") == [0, 1]
    
    def test_remove_tracks_deleted(self, collection):
        removed = collection.remove(0)
        
        assert collection.deleted == [removed]
        assert collection.created == []
    
    def test_remove_created_record_is_net_zero(self, collection):
        record = collection.add({"fname": "New"})
        collection.remove(record)
        
        assert collection.created == []
        assert collection.deleted == []
    
    def test_readd_deleted_record_is_net_zero(self, collection):
        record = collection.remove(0)
        collection.add(record)
        
        assert collection.created == []
        assert collection.deleted == []
    
    def test_remove_emits_delete(self, collection):
        events = []
        collection.on(StoreEvent.RECORD_DELETE, events.append)
        
        removed = collection.remove(0)
        collection.remove(0, suppress_events=True)
        
        assert events == [removed]
    
    def test_removed_record_is_detached(self, collection):
        events = []
        collection.on(StoreEvent.RECORD_UPDATE, events.append)
        removed = collection.remove(0)
        
        removed.lname = "Smith"
        
        assert events == []
        assert collection.lookup("lname", "Smith") == []


class TestCollectionBulk:
    """load / reload / clear."""
    
    def test_load_list_and_varargs(self):
        collection = Collection()
        collection.load([{"a": 1}, {"a": 2}])
        collection.load({"a": 3}, {"a": 4})
        
        assert [r["a"] for r in collection] == [1, 2, 3, 4]
    
    def test_load_resets_tracking(self):
        collection = Collection()
        collection.add({"a": 0})
        collection.load([{"a": 1}])
        
        assert collection.created == []
        assert collection.deleted == []
        assert not collection.loading
    
    def test_load_emits_single_event(self):
        collection = Collection()
        log = []
        for event in StoreEvent:
            collection.on(event, lambda payload, e=event: log.append(e))
        
        collection.load([{"a": 1}, {"a": 2}])
        
        assert log == [StoreEvent.LOAD]
    
    def test_reload_replaces(self):
        collection = Collection(index_fields=["a"])
        collection.load([{"a": 1}, {"a": 2}])
        log = []
        collection.on(StoreEvent.CLEAR, lambda p: log.append("clear"))
        collection.on(StoreEvent.RELOAD, lambda p: log.append("reload"))
        
        collection.reload([{"a": 3}])
        
        assert collection.data == [{"a": 3}]
        assert collection.lookup("a", 1) == []
        assert collection.lookup("a", 3) == [0]
        assert log == ["clear", "reload"]
    
    def test_load_failure_resets_loading(self):
        collection = Collection()
        
        with pytest.raises(InvalidRecordPayload):
            collection.load([{"a": 1}, 42])
        
        assert not collection.loading
        assert len(collection) == 1
    
    def test_clear(self):
        collection = Collection(index_fields=["a"])
        collection.load([{"a": 1}])
        collection.add({"a": 2})
        events = []
        collection.on(StoreEvent.CLEAR, events.append)
        
        collection.clear()
        
        assert len(collection) == 0
        assert collection.indexed_fields == ["a"]
        assert collection.lookup("a", 1) == []
        assert events == [None]
        assert len(collection.created) == 1


class TestCollectionFind:
    """find() dispatch."""
    
    def test_find_all(self, people):
        assert len(people.find()) == 3
    
    def test_find_position(self, people):
        assert people.find(2).fname == "Vince"
        assert people.find(10) is None
    
    def test_find_predicate(self, people):
        assert [r.fname for r in people.find(lambda r: r.lname == "Doe")] == ["John", "Jane"]
    
    def test_find_fields(self, people):
        assert [r.fname for r in people.find({"lname": "Doe"})] == ["John", "Jane"]
        assert [r.fname for r in people.find({"fname": "Jane", "lname": "Doe"})] == ["Jane"]
    
    def test_find_pattern(self, people):
        assert [r.fname for r in people.find({"fname": re.compile("^V")})] == ["Vince"]
    
    def test_find_identity(self):
        collection = Collection()
        collection.load([{"id": "x1", "n": 1}, {"id": "x2", "n": 2}])
        
        assert collection.find("x2")["n"] == 2
        assert collection.find("nope") is None
    
    def test_find_record(self, people):
        john = people.find(0)
        
        assert people.find(john) is john
        assert people.find(Person(fname="Nobody")) is None
    
    def test_find_empty_collection(self):
        collection = Collection()
        
        assert collection.find() == []
        assert collection.find(0) is None
        assert collection.find("x") is None
        assert collection.find({"a": 1}) == []
    
    def test_find_respects_filters(self, people):
        people.add_filter(lambda r: r.fname != "John")
        
        assert [r.fname for r in people.find({"lname": "Doe"})] == ["Jane"]
        assert people.find(0) is None
        assert len(people.find(ignore_filters=True)) == 3
    
    def test_explain(self, people):
        plan = people.explain({"lname": "Doe"})
        
        assert plan.uses_index
        assert "lname" in plan.explain()
    
    def test_membership(self, people):
        john = people.find(0)
        
        assert people.index_of(john) == 0
        assert people.contains(john)
        assert john in people
        assert Person(fname="John", lname="Doe") in people
        assert people.index_of(Person(fname="Nobody")) == -1
        assert 42 not in people


class TestCollectionUpdates:
    """Record mutations keep indexes current."""
    
    def test_field_update_reindexes(self, people):
        events = []
        people.on(StoreEvent.RECORD_UPDATE, events.append)
        jane = people.find(1)
        
        jane.lname = "Smith"
        
        assert events == [jane]
        assert people.lookup("lname", "Doe") == [0]
        assert people.lookup("lname", "Smith") == [1]
        assert people.find({"lname": "Smith"}) == [jane]
    
    def test_field_removal_reindexes(self, people):
        vince = people.find(2)
        
        del vince.lname
        
        assert people.lookup("lname", "Vaughn") == []
        assert people.find({"lname": "Vaughn"}) == []
    
    def test_unindexed_update_still_notifies(self, people):
        events = []
        people.on(StoreEvent.RECORD_UPDATE, events.append)
        
        people.find(0).fname = "Jack"
        
        assert len(events) == 1
    
    def test_update_after_remove_uses_new_position(self, people):
        jane = people.find(1)
        people.remove(0)
        
        jane.lname = "Smith"
        
        assert people.lookup("lname", "Smith") == [0]
        assert people.lookup("lname", "Vaughn") == [1]
    
    def test_instance_stored_twice(self, people):
        john = people.find(0)
        people.add(john)
        
        john.lname = "Smith"
        
        assert people.lookup("lname", "Smith") == [0, 3]
        
        people.remove(3)
        john.lname = "Jones"
        
        assert people.lookup("lname", "Jones") == [0]


class TestCollectionFilters:
    """Filter management."""
    
    def test_records_view(self, people):
        people.add_filter(lambda r: r.lname == "Doe")
        
        assert people.record_count == 2
        assert len(people) == 3
        assert [r.fname for r in people.records] == ["John", "Jane"]
    
    def test_filters_are_anded(self, people):
        people.add_filter(lambda r: "e" in r.fname)
        people.add_filter(lambda r: r.lname == "Vaughn")
        
        assert [r.fname for r in people.records] == ["Vince"]
    
    def test_add_filter_emits(self, people):
        events = []
        people.on(StoreEvent.FILTER_CREATE, events.append)
        fn = lambda r: True
        
        people.add_filter(fn)
        
        assert events == [fn]
        assert people.filters == [fn]
    
    def test_remove_filter(self, people):
        events = []
        people.on(StoreEvent.FILTER_DELETE, events.append)
        first = people.add_filter(lambda r: r.lname == "Doe")
        
        assert people.remove_filter(0) is first
        assert people.remove_filter(0) is None
        assert events == [first]
        assert people.record_count == 3
    
    def test_clear_filters_last_first(self, people):
        first = lambda r: True
        second = lambda r: True
        people.add_filter(first)
        people.add_filter(second)
        events = []
        people.on(StoreEvent.FILTER_DELETE, events.append)
        
        people.clear_filters()
        
        assert events == [second, first]
        assert people.filters == []
    
    def test_clear_filters_suppressed(self, people):
        people.add_filter(lambda r: True)
        events = []
        people.on(StoreEvent.FILTER_DELETE, events.append)
        
        people.clear_filters(suppress_events=True)
        
        assert events == []
        assert people.filters == []
    
    def test_apply_filters(self, people):
        people.add_filter(lambda r: r.fname == "Jane")
        
        assert [r.fname for r in people.apply_filters(people.find(ignore_filters=True))] == ["Jane"]


class TestCollectionIndexes:
    """Index management."""
    
    def test_create_index_populates(self, people):
        events = []
        people.on(StoreEvent.INDEX_CREATE, events.append)
        
        people.create_index("fname")
        people.create_index("fname")
        
        assert people.indexed_fields == ["lname", "fname"]
        assert people.lookup("fname", "Jane") == [1]
        assert events == ["fname"]
    
    def test_create_index_warns_for_unknown_field(self, people, caplog):
        with caplog.at_level(logging.WARNING, logger="recordstore.core.collection"):
            people.create_index("age")
        
        assert "age" in caplog.text
        assert people.lookup("age", 1) == []
    
    def test_delete_index(self, people):
        events = []
        people.on(StoreEvent.INDEX_DELETE, events.append)
        
        people.delete_index("lname")
        people.delete_index("lname")
        
        assert people.indexed_fields == []
        assert people.lookup("lname", "Doe") is None
        assert events == ["lname"]
        assert len(people.find({"lname": "Doe"})) == 2
    
    def test_delete_indexes(self, people):
        people.create_index("fname")
        events = []
        people.on(StoreEvent.INDEX_DELETE, events.append)
        
        people.delete_indexes()
        
        assert people.indexed_fields == []
        assert events == []
    
    def test_clear_indices_then_reindex(self, people):
        people.clear_indices()
        assert people.lookup("lname", "Doe") == []
        
        people.reindex()
        assert people.lookup("lname", "Doe") == [0, 1]
    
    def test_lookup_container_values_match_exactly(self):
        collection = Collection(index_fields=["tags"])
        collection.add({"tags": [1, 2]})
        collection.add({"tags": {"a": 1}})
        
        assert collection.lookup("tags", (1, 2)) == []
        assert collection.lookup("tags", [("a", 1)]) == []
        assert collection.lookup("tags", [1, 2]) == [0]
        assert collection.lookup("tags", {"a": 1}) == [1]


class TestCollectionLogging:
    """Debug logging of maintenance operations."""
    
    def test_reindex_and_deduplicate_log_at_debug(self, people, caplog):
        logger = get_logger("recordstore.core.collection")
        people.add({"fname": "John", "lname": "Doe"})
        
        with LogContext(logger, "DEBUG"):
            people.reindex()
            people.deduplicate()
        
        assert "Reindexed 4 records" in caplog.text
        assert "Removed 1 duplicate records" in caplog.text
    
    def test_log_context_restores_level(self, people, caplog):
        logger = get_logger("recordstore.core.collection")
        previous = logger.level
        
        with LogContext(logger, "ERROR"):
            assert logger.level == logging.ERROR
        
        assert logger.level == previous
    
    def test_debug_silent_above_debug_level(self, people, caplog):
        logger = get_logger("recordstore.core.collection")
        
        with LogContext(logger, "WARNING"):
            people.reindex()
        
        assert "Reindexed" not in caplog.text


class TestCollectionSort:
    """Sorting storage."""
    
    def test_sort_reorders_and_reindexes(self, people):
        people.sort({"fname": "asc"})
        
        assert [r.fname for r in people] == ["Jane", "John", "Vince"]
        assert people.lookup("lname", "Doe") == [0, 1]
        assert people.lookup("lname", "Vaughn") == [2]
        assert people.find({"lname": "Vaughn"})[0].fname == "Vince"
    
    def test_sort_desc(self, people):
        people.sort({"lname": "desc", "fname": "asc"})
        
        assert [r.fname for r in people] == ["Vince", "Jane", "John"]
        assert people.lookup("lname", "Vaughn") == [0]
    
    def test_sort_invalid_direction_leaves_order(self, people):
        with pytest.raises(ValidationError):
            people.sort({"fname": "sideways"})
        
        assert [r.fname for r in people] == ["John", "Jane", "Vince"]
    
    def test_sort_sorts_storage_not_view(self, people):
        people.add_filter(lambda r: r.lname == "Doe")
        people.sort({"fname": "desc"})
        
        assert [r.fname for r in people.find(ignore_filters=True)] == ["Vince", "John", "Jane"]


class TestCollectionDeduplicate:
    """Deduplication."""
    
    def test_deduplicate(self):
        collection = Collection(record_factory=Person, index_fields=["lname"])
        collection.load([
            {"fname": "John", "lname": "Doe"},
            {"fname": "Jane", "lname": "Doe"},
            {"fname": "John", "lname": "Doe"},
            {"fname": "John", "lname": "Doe"},
        ])
        
        removed = collection.deduplicate()
        
        assert len(removed) == 2
        assert [r.fname for r in collection] == ["John", "Jane"]
        assert collection.lookup("lname", "Doe") == [0, 1]
    
    def test_deduplicate_idempotent(self, people):
        people.add({"fname": "John", "lname": "Doe"})
        people.deduplicate()
        
        assert people.deduplicate() == []
        assert len(people) == 3
    
    def test_deduplicate_events(self):
        collection = Collection()
        collection.load([{"a": 1}, {"a": 1}])
        events = []
        collection.on(StoreEvent.RECORD_DELETE, events.append)
        
        collection.deduplicate()
        assert events == []
        
        collection.add({"a": 1})
        collection.deduplicate(suppress_events=False)
        assert len(events) == 1


class TestCollectionEvents:
    """Event sink plumbing."""
    
    def test_custom_sink(self):
        class Recorder:
            def __init__(self):
                self.events = []
            
            def emit(self, event, payload=None):
                self.events.append(event)
        
        sink = Recorder()
        collection = Collection(sink=sink)
        collection.add({"a": 1})
        
        assert sink.events == [StoreEvent.RECORD_CREATE]
        with pytest.raises(TypeError):
            collection.on(StoreEvent.CLEAR, lambda p: None)
    
    def test_default_sink(self):
        assert isinstance(Collection().sink, EventEmitter)
    
    def test_once_and_off(self):
        collection = Collection()
        calls = []
        handler = calls.append
        collection.once(StoreEvent.RECORD_CREATE, handler)
        collection.add({"a": 1})
        collection.add({"a": 2})
        
        assert len(calls) == 1
        
        collection.on(StoreEvent.CLEAR, handler)
        collection.off(StoreEvent.CLEAR, handler)
        collection.clear()
        
        assert len(calls) == 1


class TestCollectionStats:
    """Statistics and description."""
    
    def test_stats(self, people):
        people.add({"fname": "New"})
        people.remove(0)
        people.add_filter(lambda r: r.lname == "Doe")
        
        stats = people.stats()
        
        assert isinstance(stats, CollectionStats)
        assert stats.record_count == 3
        assert stats.filtered_count == 1
        assert stats.created_count == 1
        assert stats.deleted_count == 1
        assert stats.filter_count == 1
        assert stats.indexed_fields == ["lname"]
    
    def test_describe(self, people):
        info = people.describe()
        
        assert info["record_count"] == 3
        assert info["config"]["record_factory"] == "Person"
        assert info["indexes"] == {"lname": [["Doe", 0, 1], ["Vaughn", 2]]}
    
    def test_repr(self, people):
        assert repr(people) == "Collection(count=3, indexed=['lname'], filters=0)"
