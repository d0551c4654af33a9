"""
Query planning and execution for RecordStore.

The planner resolves a parsed query against a collection's storage,
consulting the :class:`~recordstore.index.IndexTable` wherever a field is
indexed and falling back to a linear scan otherwise.

Field/value queries are resolved in three steps:

1. every indexed key contributes its matching positions as candidates
2. the keys with no index are checked by a scan over the whole storage
   (skipping positions that are already candidates)
3. candidates and scan survivors are merged, deduplicated, put back in
   storage order and re-checked against *all* keys, which removes the
   false positives a partially indexed query lets through

The result then passes through the collection's filter pipeline unless
filters are explicitly ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple
import re
import time

from ..core.record import MISSING, get_field, id_attribute_of, identity_of
from ..index.table import IndexTable
from .filters import FilterPipeline
from .parser import (
    FieldQuery,
    IdentityQuery,
    PositionQuery,
    PredicateQuery,
    Query,
    QueryType,
    RecordQuery,
    parse_query,
)


class PlanType(str, Enum):
    """Types of plan nodes."""
    
    FULL_SCAN = "full_scan"             # Return every record
    POSITION_FETCH = "position_fetch"   # Fetch by storage offset
    PREDICATE_SCAN = "predicate_scan"   # Scan with a predicate function
    INDEX_SCAN = "index_scan"           # Positions from a field index
    FIELD_SCAN = "field_scan"           # Scan comparing field values
    IDENTITY_SCAN = "identity_scan"     # Scan comparing identity tokens
    MERGE = "merge"                     # Union + exact-match recheck
    FIRST = "first"                     # Take the first record
    FILTER = "filter"                   # Apply the filter pipeline


@dataclass
class PlanNode:
    """
    A node in the query plan tree.
    """
    
    type: PlanType
    children: List["PlanNode"] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)
    estimated_rows: int = 0
    
    def add_child(self, child: "PlanNode") -> None:
        self.children.append(child)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "params": self.params,
            "estimated_rows": self.estimated_rows,
            "children": [c.to_dict() for c in self.children],
        }
    
    def explain(self, indent: int = 0) -> str:
        prefix = "  " * indent
        lines = [f"{prefix}{self.type.value}"]
        
        for key, value in self.params.items():
            lines.append(f"{prefix}  {key}: {value}")
        
        lines.append(f"{prefix}  rows: {self.estimated_rows}")
        
        for child in self.children:
            lines.append(child.explain(indent + 1))
        
        return "\n".join(lines)


@dataclass
class QueryPlan:
    """
    Complete query plan.
    """
    
    root: PlanNode
    query: Query
    indexed_fields: List[str] = field(default_factory=list)
    scanned_fields: List[str] = field(default_factory=list)
    applies_filters: bool = False
    planning_time_ms: float = 0.0
    
    @property
    def uses_index(self) -> bool:
        return bool(self.indexed_fields)
    
    @property
    def single_result(self) -> bool:
        return self.query.single
    
    def explain(self) -> str:
        lines = [
            "Query Plan",
            "=" * 40,
            f"Query Type: {self.query.kind.value}",
            f"Indexed Fields: {', '.join(self.indexed_fields) or 'none'}",
            f"Scanned Fields: {', '.join(self.scanned_fields) or 'none'}",
            f"Applies Filters: {self.applies_filters}",
            f"Planning Time: {self.planning_time_ms:.2f}ms",
            "",
            "Plan Tree:",
            "-" * 40,
            self.root.explain(),
        ]
        return "\n".join(lines)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root.to_dict(),
            "query_type": self.query.kind.value,
            "indexed_fields": self.indexed_fields,
            "scanned_fields": self.scanned_fields,
            "uses_index": self.uses_index,
            "applies_filters": self.applies_filters,
            "planning_time_ms": self.planning_time_ms,
        }


def is_pattern(value: Any) -> bool:
    return isinstance(value, re.Pattern)


def matches_value(actual: Any, expected: Any) -> bool:
    """Exact-match test used for field queries."""
    if actual is MISSING:
        return False
    if is_pattern(expected):
        return expected.search(str(actual)) is not None
    return actual == expected


def matches_criteria(record: Any, criteria: Dict[str, Any], fields: Sequence[str]) -> bool:
    return all(matches_value(get_field(record, f), criteria[f]) for f in fields)


class QueryPlanner:
    """
    Resolves queries against a record sequence and its indexes.
    
    Example:
        >>> planner = QueryPlanner(index_table)
        >>> planner.execute({"lname": "Doe"}, records)
        >>> print(planner.plan({"lname": "Doe"}, records).explain())
    """
    
    def __init__(self, index_table: IndexTable, id_attribute: str = "id"):
        self.index_table = index_table
        self.id_attribute = id_attribute
    
    # =========================================================================
    # PLANNING
    # =========================================================================
    
    def plan(
        self,
        query: Any,
        records: Sequence[Any],
        pipeline: Optional[FilterPipeline] = None,
        ignore_filters: bool = False,
    ) -> QueryPlan:
        """
        Describe how ``query`` would be resolved, without running it.
        
        Row counts come from the real index buckets, so they are exact for
        index scans and an upper bound for everything else.
        """
        start_time = time.time()
        query = parse_query(query)
        total = len(records)
        indexed: List[str] = []
        scanned: List[str] = []
        
        if query.kind == QueryType.POSITION:
            hit = 0 <= query.position < total
            root = PlanNode(
                type=PlanType.POSITION_FETCH,
                params={"position": query.position},
                estimated_rows=1 if hit else 0,
            )
        elif query.kind == QueryType.PREDICATE:
            root = PlanNode(
                type=PlanType.PREDICATE_SCAN,
                params={"predicate": getattr(query.predicate, "__name__", repr(query.predicate))},
                estimated_rows=total,
            )
        elif query.kind == QueryType.IDENTITY:
            root, indexed, scanned = self._plan_identity(query, records)
        elif query.kind == QueryType.FIELDS:
            root, indexed, scanned = self._plan_fields(query, total)
        elif query.kind == QueryType.RECORD:
            root = PlanNode(
                type=PlanType.IDENTITY_SCAN,
                params={"identity": identity_of(query.record)},
                estimated_rows=1,
            )
        else:
            root = PlanNode(type=PlanType.FULL_SCAN, estimated_rows=total)
        
        applies_filters = bool(pipeline) and not ignore_filters
        if applies_filters:
            filter_node = PlanNode(
                type=PlanType.FILTER,
                params={"filters": len(pipeline)},
                estimated_rows=root.estimated_rows,
            )
            filter_node.add_child(root)
            root = filter_node
        
        return QueryPlan(
            root=root,
            query=query,
            indexed_fields=indexed,
            scanned_fields=scanned,
            applies_filters=applies_filters,
            planning_time_ms=(time.time() - start_time) * 1000,
        )
    
    def _plan_identity(
        self,
        query: IdentityQuery,
        records: Sequence[Any],
    ) -> Tuple[PlanNode, List[str], List[str]]:
        field_name = self._identity_field(records)
        positions = self.index_table.lookup(field_name, query.value)
        
        if positions:
            scan = PlanNode(
                type=PlanType.INDEX_SCAN,
                params={"field": field_name, "value": query.value},
                estimated_rows=len(positions),
            )
            indexed, scanned = [field_name], []
        else:
            scan = PlanNode(
                type=PlanType.FIELD_SCAN,
                params={"fields": [field_name], "stringify": True},
                estimated_rows=len(records),
            )
            indexed, scanned = [], [field_name]
        
        root = PlanNode(type=PlanType.FIRST, estimated_rows=min(1, scan.estimated_rows))
        root.add_child(scan)
        return root, indexed, scanned
    
    def _plan_fields(
        self,
        query: FieldQuery,
        total: int,
    ) -> Tuple[PlanNode, List[str], List[str]]:
        indexed, scanned = self._split_fields(query.criteria)
        merge = PlanNode(
            type=PlanType.MERGE,
            params={"keys": list(query.criteria)},
        )
        
        candidates = 0
        for field_name in indexed:
            positions = self.index_table.lookup(field_name, query.criteria[field_name])
            merge.add_child(PlanNode(
                type=PlanType.INDEX_SCAN,
                params={"field": field_name, "value": query.criteria[field_name]},
                estimated_rows=len(positions),
            ))
            candidates += len(positions)
        
        if scanned:
            merge.add_child(PlanNode(
                type=PlanType.FIELD_SCAN,
                params={"fields": scanned},
                estimated_rows=total,
            ))
            candidates = total
        
        merge.estimated_rows = min(candidates, total)
        return merge, indexed, scanned
    
    # =========================================================================
    # EXECUTION
    # =========================================================================
    
    def execute(
        self,
        query: Any,
        records: Sequence[Any],
        pipeline: Optional[FilterPipeline] = None,
        ignore_filters: bool = False,
    ) -> Any:
        """
        Resolve ``query`` against ``records``.
        
        Returns:
            A single record (or None) for position, identity and record
            queries; a list for everything else
        """
        query = parse_query(query)
        
        if not records:
            return None if query.single else []
        
        if query.kind == QueryType.POSITION:
            result = self._find_position(query, records)
        elif query.kind == QueryType.PREDICATE:
            result = self._find_predicate(query, records)
        elif query.kind == QueryType.IDENTITY:
            result = self._find_identity(query, records)
        elif query.kind == QueryType.FIELDS:
            result = self._find_fields(query, records)
        elif query.kind == QueryType.RECORD:
            result = self._find_record(query, records)
        else:
            result = list(records)
        
        if ignore_filters or not pipeline:
            return result
        
        if query.single:
            if result is None or not pipeline.accepts(result):
                return None
            return result
        
        return pipeline.apply(result)
    
    def _find_position(self, query: PositionQuery, records: Sequence[Any]) -> Any:
        if 0 <= query.position < len(records):
            return records[query.position]
        return None
    
    def _find_predicate(self, query: PredicateQuery, records: Sequence[Any]) -> List[Any]:
        return [record for record in records if query.predicate(record)]
    
    def _find_identity(self, query: IdentityQuery, records: Sequence[Any]) -> Any:
        field_name = self._identity_field(records)
        
        positions = self.index_table.lookup(field_name, query.value)
        if positions:
            return records[positions[0]]
        
        for record in records:
            value = get_field(record, field_name)
            if value is MISSING or value is None:
                value = ""
            if str(value).strip() == query.value:
                return record
        return None
    
    def _find_fields(self, query: FieldQuery, records: Sequence[Any]) -> List[Any]:
        criteria = query.criteria
        keys = list(criteria)
        indexed, scanned = self._split_fields(criteria)
        
        candidates: Set[int] = set()
        for field_name in indexed:
            candidates.update(self.index_table.lookup(field_name, criteria[field_name]))
        
        survivors: Set[int] = set()
        if scanned:
            for position, record in enumerate(records):
                if position in candidates:
                    continue
                if matches_criteria(record, criteria, scanned):
                    survivors.add(position)
        
        merged = sorted(candidates | survivors)
        return [
            records[position]
            for position in merged
            if position < len(records)
            and matches_criteria(records[position], criteria, keys)
        ]
    
    def _find_record(self, query: RecordQuery, records: Sequence[Any]) -> Any:
        for record in records:
            if record is query.record:
                return record
        
        token = identity_of(query.record)
        for record in records:
            if identity_of(record) == token:
                return record
        return None
    
    # =========================================================================
    # HELPERS
    # =========================================================================
    
    def _split_fields(self, criteria: Dict[str, Any]) -> Tuple[List[str], List[str]]:
        """Partition query keys into index-resolvable and scan-only keys."""
        indexed: List[str] = []
        scanned: List[str] = []
        for field_name, value in criteria.items():
            if not is_pattern(value) and self.index_table.has_index(field_name):
                indexed.append(field_name)
            else:
                scanned.append(field_name)
        return indexed, scanned
    
    def _identity_field(self, records: Sequence[Any]) -> str:
        if records:
            return id_attribute_of(records[0], self.id_attribute)
        return self.id_attribute
