"""Selection and embedding compiler.

Builds the ``select=`` value and the parameters scoped to embedded
resources.  For::

    items  = [id, name, author_name:author]
    embeds = [posts!fk_posts_author!inner(title, comments(*))]

the select value is::

    id,name,author_name:author,posts!fk_posts_author!inner(title,comments(*))

Filters, order and pagination attached to an embed become parameters
qualified with the embed's path, emitted depth-first in embed order::

    posts.published=eq.true&posts.order=created_at.desc&posts.comments.limit=3
"""
from __future__ import annotations

from collections.abc import Sequence

from pgrestql.compile.context import CompilationContext
from pgrestql.compile.filters import FilterEncoder
from pgrestql.compile.modifiers import ModifierCompiler
from pgrestql.errors import ConfigurationError
from pgrestql.schema.selection import (
    AggregateItem,
    AliasedItem,
    ColumnItem,
    EmbedSpec,
    RawItem,
    SelectItem,
)


class SelectionCompiler:
    """Renders select items and embeds.

    Args:
        encoder: Used for filters scoped to embeds.
        modifiers: Used for order specs scoped to embeds.
    """

    def __init__(self, encoder: FilterEncoder, modifiers: ModifierCompiler) -> None:
        self._encoder = encoder
        self._modifiers = modifiers

    # ------------------------------------------------------------------
    # select=
    # ------------------------------------------------------------------

    def select_value(
        self,
        items: Sequence[SelectItem],
        embeds: Sequence[EmbedSpec],
        context: CompilationContext,
    ) -> str | None:
        """Return the top-level ``select`` value, or ``None`` to omit it."""
        if not items and not embeds:
            return None
        return self._join(items, embeds, context)

    def render_item(self, item: SelectItem, context: CompilationContext) -> str:
        if isinstance(item, ColumnItem):
            return context.column(item.name)
        if isinstance(item, AliasedItem):
            return f"{item.alias}:{context.column(item.column)}"
        if isinstance(item, RawItem):
            return item.expression
        if isinstance(item, AggregateItem):
            call = f"{item.function.value}()"
            if item.column is not None:
                call = f"{context.column(item.column)}.{call}"
            return f"{item.alias}:{call}" if item.alias else call
        raise ConfigurationError(f"Unsupported select item: {item!r}.", "select", item)

    def render_embed(self, embed: EmbedSpec, context: CompilationContext) -> str:
        head = embed.resource
        if embed.alias:
            head = f"{embed.alias}:{head}"
        if embed.hint:
            head = f"{head}!{embed.hint}"
        if embed.inner:
            head = f"{head}!inner"
        return f"{head}({self._join(embed.select, embed.embeds, context)})"

    def _join(
        self,
        items: Sequence[SelectItem],
        embeds: Sequence[EmbedSpec],
        context: CompilationContext,
    ) -> str:
        check_unique_embeds(embeds)
        tokens = [self.render_item(item, context) for item in items] or ["*"]
        tokens.extend(self.render_embed(embed, context) for embed in embeds)
        return ",".join(dedupe(tokens))

    # ------------------------------------------------------------------
    # Embed-scoped parameters
    # ------------------------------------------------------------------

    def embed_params(
        self,
        embeds: Sequence[EmbedSpec],
        context: CompilationContext,
        prefix: tuple[str, ...] = (),
    ) -> list[tuple[str, str]]:
        """Depth-first parameters for every embed's filters and modifiers."""
        params: list[tuple[str, str]] = []
        for embed in embeds:
            path = (*prefix, embed.key)
            scope = ".".join(path)
            for node in embed.filters:
                params.append(self._encoder.encode_node(node, context, path))
            order = self._modifiers.order_value(embed.order, context)
            if order is not None:
                params.append((f"{scope}.order", order))
            if embed.limit is not None:
                params.append((f"{scope}.limit", str(embed.limit)))
            if embed.offset is not None:
                params.append((f"{scope}.offset", str(embed.offset)))
            params.extend(self.embed_params(embed.embeds, context, path))
        return params


def dedupe(tokens: Sequence[str]) -> list[str]:
    """Drop repeated tokens, keeping the first occurrence."""
    seen: set[str] = set()
    result = []
    for token in tokens:
        if token not in seen:
            seen.add(token)
            result.append(token)
    return result


def check_unique_embeds(embeds: Sequence[EmbedSpec]) -> None:
    """Raise if two embeds at the same level share a response key."""
    seen: set[str] = set()
    for embed in embeds:
        if embed.key in seen:
            raise ConfigurationError(
                f"Resource '{embed.key}' is embedded twice; give one of them an alias.",
                "embed",
                embed.key,
            )
        seen.add(embed.key)
