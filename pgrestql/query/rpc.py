"""Builder for stored-function calls (``/rpc/{function}``)."""
from __future__ import annotations

from pgrestql.query.builder import _BaseBuilder


class RpcBuilder(_BaseBuilder):
    """Calls a function and shapes its result like a table read.

    A function returning a set of rows can be filtered, ordered, paginated,
    counted and narrowed to a single row with the same methods as a table
    query::

        client.rpc("search_users", {"term": "ann"}).gte("age", 18).order("name").limit(5)

    ``read_only=True`` (for ``STABLE``/``IMMUTABLE`` functions) sends ``GET``
    with the arguments in the query string instead of a ``POST`` body.
    """

    def schema(self, name: str) -> RpcBuilder:
        """Call the function in a non-default schema."""
        return self._evolve(schema_name=name)
