"""
Unit tests for query planning and execution.
"""

import re

import pytest

from recordstore.core.record import Record
from recordstore.index import IndexTable
from recordstore.query.filters import FilterPipeline
from recordstore.query.planner import PlanType, QueryPlanner, matches_value


@pytest.fixture
def records():
    return [
        {"id": "a1", "fname": "John", "lname": "Doe"},
        {"id": "b2", "fname": "Jane", "lname": "Doe"},
        {"id": "c3", "fname": "Vince", "lname": "Vaughn"},
    ]


@pytest.fixture
def planner(records):
    table = IndexTable(["lname"])
    table.reindex(records)
    return QueryPlanner(table)


class TestExecute:
    """Query execution against records and indexes."""
    
    def test_all(self, planner, records):
        assert planner.execute(None, records) == records
    
    def test_empty_records(self, planner):
        assert planner.execute(None, []) == []
        assert planner.execute(0, []) is None
        assert planner.execute("a1", []) is None
        assert planner.execute({"lname": "Doe"}, []) == []
    
    def test_position(self, planner, records):
        assert planner.execute(1, records) is records[1]
        assert planner.execute(5, records) is None
        assert planner.execute(-1, records) is None
    
    def test_predicate(self, planner, records):
        result = planner.execute(lambda r: r["fname"].startswith("J"), records)
        
        assert result == records[:2]
    
    def test_identity_scan(self, planner, records):
        assert planner.execute("b2", records) is records[1]
        assert planner.execute(" c3 ", records) is records[2]
        assert planner.execute("zz", records) is None
    
    def test_identity_index(self, records):
        table = IndexTable(["id"])
        table.reindex(records)
        planner = QueryPlanner(table)
        
        assert planner.execute("c3", records) is records[2]
    
    def test_identity_uses_record_id_attribute(self):
        Keyed = Record.define("Keyed", {"key": None}, id_attribute="key")
        records = [Keyed(key="x"), Keyed(key="y")]
        planner = QueryPlanner(IndexTable())
        
        assert planner.execute("y", records) is records[1]
    
    def test_identity_numeric_values_compare_as_text(self):
        records = [{"id": 7}, {"id": 42}]
        planner = QueryPlanner(IndexTable())
        
        assert planner.execute("42", records) is records[1]
    
    def test_fields_indexed(self, planner, records):
        assert planner.execute({"lname": "Doe"}, records) == records[:2]
    
    def test_fields_mixed(self, planner, records):
        assert planner.execute({"lname": "Doe", "fname": "Jane"}, records) == [records[1]]
    
    def test_fields_scan_only(self, planner, records):
        assert planner.execute({"fname": "Vince"}, records) == [records[2]]
    
    def test_fields_no_match(self, planner, records):
        assert planner.execute({"lname": "Doe", "fname": "Vince"}, records) == []
        assert planner.execute({"nope": 1}, records) == []
    
    def test_fields_pattern(self, planner, records):
        result = planner.execute({"fname": re.compile("^J")}, records)
        
        assert result == records[:2]
    
    def test_record(self, planner, records):
        assert planner.execute(Record(records[0]), records) is records[0]
        assert planner.execute(Record(id="zz"), records) is None
    
    def test_filters_applied(self, planner, records):
        pipeline = FilterPipeline([lambda r: r["fname"] != "John"])
        
        assert planner.execute(None, records, pipeline) == records[1:]
        assert planner.execute(0, records, pipeline) is None
        assert planner.execute(1, records, pipeline) is records[1]
        assert planner.execute({"lname": "Doe"}, records, pipeline) == [records[1]]
    
    def test_ignore_filters(self, planner, records):
        pipeline = FilterPipeline([lambda r: False])
        
        assert planner.execute(None, records, pipeline, ignore_filters=True) == records
        assert planner.execute(0, records, pipeline, ignore_filters=True) is records[0]


class TestPlan:
    """Plan construction."""
    
    def test_index_plan(self, planner, records):
        plan = planner.plan({"lname": "Doe"}, records)
        
        assert plan.root.type == PlanType.MERGE
        assert plan.uses_index
        assert plan.indexed_fields == ["lname"]
        assert plan.root.estimated_rows == 2
        assert not plan.single_result
    
    def test_scan_plan(self, planner, records):
        plan = planner.plan({"fname": "John"}, records)
        
        assert not plan.uses_index
        assert plan.scanned_fields == ["fname"]
        assert plan.root.children[0].type == PlanType.FIELD_SCAN
    
    def test_pattern_is_scanned(self, planner, records):
        plan = planner.plan({"lname": re.compile("D")}, records)
        
        assert plan.scanned_fields == ["lname"]
    
    def test_filter_node(self, planner, records):
        pipeline = FilterPipeline([lambda r: True])
        plan = planner.plan(None, records, pipeline)
        
        assert plan.applies_filters
        assert plan.root.type == PlanType.FILTER
        assert plan.root.children[0].type == PlanType.FULL_SCAN
    
    def test_position_plan(self, planner, records):
        plan = planner.plan(9, records)
        
        assert plan.root.type == PlanType.POSITION_FETCH
        assert plan.root.estimated_rows == 0
        assert plan.single_result
    
    def test_explain_text(self, planner, records):
        text = planner.plan({"lname": "Doe"}, records).explain()
        
        assert "Query Type: fields" in text
        assert "index_scan" in text
    
    def test_to_dict(self, planner, records):
        data = planner.plan("a1", records).to_dict()
        
        assert data["query_type"] == "identity"
        assert data["root"]["type"] == "first"


class TestMatchesValue:
    
    def test_pattern_against_non_string(self):
        assert matches_value(42, re.compile("^4"))
    
    def test_missing_never_matches(self):
        from recordstore.core.record import MISSING
        assert not matches_value(MISSING, None)
