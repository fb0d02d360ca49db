"""pgrestql schema models: query state, request and response descriptors."""
from pgrestql.schema.column_path import ColumnPath
from pgrestql.schema.filters import FilterCondition, FilterGroup, RawLogicalFilter
from pgrestql.schema.modifiers import LimitOffset, OrderSpec, RowRange
from pgrestql.schema.operators import (
    AggregateFunction,
    Cardinality,
    CountMode,
    FilterOperator,
    LogicalOp,
    MutationKind,
    Returning,
)
from pgrestql.schema.request import RawResponse, RequestDescriptor, ResponseContext
from pgrestql.schema.response import (
    CountInfo,
    ErrorDescriptor,
    ErrorKind,
    PageInfo,
    PaginatedEnvelope,
    ResponseEnvelope,
)
from pgrestql.schema.selection import AggregateItem, AliasedItem, ColumnItem, EmbedSpec, RawItem
from pgrestql.schema.state import MutationSpec, QueryState, RpcSpec

__all__ = [
    "ColumnPath",
    "FilterCondition",
    "FilterGroup",
    "RawLogicalFilter",
    "LimitOffset",
    "OrderSpec",
    "RowRange",
    "AggregateFunction",
    "Cardinality",
    "CountMode",
    "FilterOperator",
    "LogicalOp",
    "MutationKind",
    "Returning",
    "RawResponse",
    "RequestDescriptor",
    "ResponseContext",
    "CountInfo",
    "ErrorDescriptor",
    "ErrorKind",
    "ResponseEnvelope",
    "PageInfo",
    "PaginatedEnvelope",
    "AggregateItem",
    "AliasedItem",
    "ColumnItem",
    "EmbedSpec",
    "RawItem",
    "MutationSpec",
    "QueryState",
    "RpcSpec",
]
