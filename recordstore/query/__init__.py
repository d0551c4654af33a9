"""
Query processing for RecordStore.

This module provides:
- Query parsing into one variant per query shape
- Index-aware query planning and execution
- The filter pipeline and composable predicate objects
- Composite record sorting

Example:
    >>> from recordstore.query import FilterBuilder, QueryPlanner
    >>> 
    >>> doe = FilterBuilder().field("lname").eq("Doe").build()
    >>> planner = QueryPlanner(index_table)
    >>> planner.execute({"fname": "Jane"}, records)
"""

from .filters import (
    FilterPipeline,
    Filter,
    FilterBuilder,
    FilterOperator,
    FieldFilter,
    AndFilter,
    OrFilter,
    NotFilter,
    filter_from_dict,
)

from .parser import (
    QueryType,
    Query,
    AllQuery,
    PositionQuery,
    PredicateQuery,
    IdentityQuery,
    FieldQuery,
    RecordQuery,
    parse_query,
)

from .planner import (
    QueryPlanner,
    QueryPlan,
    PlanNode,
    PlanType,
)

from .sorting import build_comparator, sort_records

__all__ = [
    # Filters
    "FilterPipeline",
    "Filter",
    "FilterBuilder",
    "FilterOperator",
    "FieldFilter",
    "AndFilter",
    "OrFilter",
    "NotFilter",
    "filter_from_dict",
    # Parser
    "QueryType",
    "Query",
    "AllQuery",
    "PositionQuery",
    "PredicateQuery",
    "IdentityQuery",
    "FieldQuery",
    "RecordQuery",
    "parse_query",
    # Planner
    "QueryPlanner",
    "QueryPlan",
    "PlanNode",
    "PlanType",
    # Sorting
    "build_comparator",
    "sort_records",
]
