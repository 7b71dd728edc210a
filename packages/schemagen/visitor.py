"""Visitor capability interface.

A visitor is any object implementing a subset of the hooks below. There is
no base class to inherit from: the traversal engine looks each hook up by
name and treats a missing one as a no-op.

Hooks, in traversal order:

    before(ctx)                       once, before anything else
    namespace(ctx)                    once
    type_enter(ctx) / field(ctx) / type_exit(ctx)
    enum_enter(ctx) / enum_member(ctx) / enum_exit(ctx)
    union_enter(ctx) / union_member(ctx) / union_exit(ctx)
    alias_enter(ctx) / alias_exit(ctx)
    after(ctx)                        once, after everything else

A hook may write to the context (`ctx.write`) or return a string, which is
appended to the output. Other return values are ignored.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from schemagen.context import Context

HOOK_NAMES = (
    "before",
    "namespace",
    "type_enter",
    "field",
    "type_exit",
    "enum_enter",
    "enum_member",
    "enum_exit",
    "union_enter",
    "union_member",
    "union_exit",
    "alias_enter",
    "alias_exit",
    "after",
)


class Visitor(Protocol):
    """Shape of a fully featured visitor. Every method is optional in practice."""

    def before(self, ctx: Context) -> str | None: ...

    def namespace(self, ctx: Context) -> str | None: ...

    def type_enter(self, ctx: Context) -> str | None: ...

    def field(self, ctx: Context) -> str | None: ...

    def type_exit(self, ctx: Context) -> str | None: ...

    def enum_enter(self, ctx: Context) -> str | None: ...

    def enum_member(self, ctx: Context) -> str | None: ...

    def enum_exit(self, ctx: Context) -> str | None: ...

    def union_enter(self, ctx: Context) -> str | None: ...

    def union_member(self, ctx: Context) -> str | None: ...

    def union_exit(self, ctx: Context) -> str | None: ...

    def alias_enter(self, ctx: Context) -> str | None: ...

    def alias_exit(self, ctx: Context) -> str | None: ...

    def after(self, ctx: Context) -> str | None: ...


def discover_hooks(visitor: Any) -> tuple[str, ...]:  # noqa: ANN401
    """Names of the recognised hooks the object (or class) implements"""
    return tuple(name for name in HOOK_NAMES if callable(getattr(visitor, name, None)))
