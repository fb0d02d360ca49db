"""pgrestql fluent builders."""
from pgrestql.query.builder import EmbedBuilder, QueryBuilder
from pgrestql.query.filters import FilterMixin, all_of, any_of, where
from pgrestql.query.rpc import RpcBuilder

__all__ = [
    "EmbedBuilder",
    "QueryBuilder",
    "RpcBuilder",
    "FilterMixin",
    "all_of",
    "any_of",
    "where",
]
