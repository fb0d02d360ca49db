"""pgrestql compilation layer: QueryState -> RequestDescriptor."""
from pgrestql.compile.builder import RequestAssembler
from pgrestql.compile.context import CompilationContext
from pgrestql.compile.filters import FilterEncoder
from pgrestql.compile.modifiers import ModifierCompiler
from pgrestql.compile.mutation import MutationAssembler, RpcAssembler
from pgrestql.compile.registry import OperatorRegistry
from pgrestql.compile.selection import SelectionCompiler

__all__ = [
    "RequestAssembler",
    "CompilationContext",
    "FilterEncoder",
    "ModifierCompiler",
    "MutationAssembler",
    "RpcAssembler",
    "OperatorRegistry",
    "SelectionCompiler",
]
