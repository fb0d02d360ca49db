"""Mutation and RPC assembly: HTTP method, body and ``Prefer`` semantics.

=========  ======  ===============================================
operation  method  notes
=========  ======  ===============================================
insert     POST    ``columns=`` when bulk rows have differing keys
upsert     POST    ``resolution=...`` plus ``on_conflict=``
update     PATCH   filters select the target rows
delete     DELETE  filters select the target rows
rpc        POST    ``GET`` / ``HEAD`` with arguments in the query
=========  ======  ===============================================

Nothing here retries or batches; one state compiles to one request.
"""
from __future__ import annotations

from typing import Any

from pgrestql.compile.context import CompilationContext
from pgrestql.compile.naming import camel_to_snake, keys_to_snake
from pgrestql.compile.values import flatten_rpc_arg
from pgrestql.schema.operators import MutationKind
from pgrestql.schema.state import MutationSpec, RpcSpec

_METHODS = {
    MutationKind.INSERT: "POST",
    MutationKind.UPSERT: "POST",
    MutationKind.UPDATE: "PATCH",
    MutationKind.DELETE: "DELETE",
}


class MutationAssembler:
    """Compiles the write half of a table state."""

    def method(self, mutation: MutationSpec) -> str:
        return _METHODS[mutation.kind]

    def body(self, mutation: MutationSpec, context: CompilationContext) -> Any:
        """The JSON body: an object, an array of objects, or ``None``."""
        if mutation.payload is None:
            return None
        if mutation.is_bulk:
            payload: Any = [dict(row) for row in mutation.payload]
        else:
            payload = dict(mutation.payload)
        if context.transform_columns:
            payload = keys_to_snake(payload)
        return payload

    def params(self, mutation: MutationSpec, context: CompilationContext) -> list[tuple[str, str]]:
        """``on_conflict`` then ``columns``."""
        params = []
        if mutation.kind is MutationKind.UPSERT and mutation.on_conflict:
            params.append(
                ("on_conflict", ",".join(context.column(c) for c in mutation.on_conflict))
            )
        columns = self.columns(mutation, context)
        if columns:
            params.append(("columns", ",".join(columns)))
        return params

    def columns(self, mutation: MutationSpec, context: CompilationContext) -> list[str]:
        """Union of keys (first-seen order) when bulk rows differ in shape."""
        if not mutation.is_bulk:
            return []
        rows = mutation.rows
        shapes = {frozenset(row) for row in rows}
        if len(shapes) <= 1:
            return []
        seen: dict[str, None] = {}
        for row in rows:
            for key in row:
                seen.setdefault(key, None)
        if context.transform_columns:
            return [camel_to_snake(key) for key in seen]
        return list(seen)

    def prefer(self, mutation: MutationSpec) -> list[str]:
        """``resolution`` and ``return`` tokens; ``missing`` is added last by the caller."""
        tokens = []
        if mutation.kind is MutationKind.UPSERT:
            resolution = "ignore-duplicates" if mutation.ignore_duplicates else "merge-duplicates"
            tokens.append(f"resolution={resolution}")
        tokens.append(f"return={mutation.returning.value}")
        return tokens

    def missing(self, mutation: MutationSpec) -> str | None:
        if mutation.kind in (MutationKind.INSERT, MutationKind.UPSERT) and not mutation.default_to_null:
            return "missing=default"
        return None


class RpcAssembler:
    """Compiles a stored-function call."""

    def path(self, rpc: RpcSpec) -> str:
        return f"/rpc/{rpc.function}"

    def method(self, rpc: RpcSpec, head: bool) -> str:
        if head:
            return "HEAD"
        return "GET" if rpc.read_only else "POST"

    def params(self, rpc: RpcSpec, head: bool, context: CompilationContext) -> list[tuple[str, str]]:
        """Arguments flattened into the query string for ``GET``/``HEAD``."""
        if not (head or rpc.read_only):
            return []
        return [(self._name(name, context), flatten_rpc_arg(value)) for name, value in rpc.args.items()]

    def body(self, rpc: RpcSpec, head: bool, context: CompilationContext) -> Any:
        if head or rpc.read_only:
            return None
        args = dict(rpc.args)
        if context.transform_columns:
            return keys_to_snake(args)
        return args

    def _name(self, name: str, context: CompilationContext) -> str:
        return camel_to_snake(name) if context.transform_columns else name
