"""
Deterministic traversal of the Type Model driving visitor hooks
"""

from __future__ import annotations

from typing import Any, Callable

from schemagen.context import Context
from schemagen.errors import VisitorRuntimeError
from schemagen.gen_logging import get_logger
from schemagen.model import Namespace

logger = get_logger(__name__)


class TraversalEngine:
    """Walk a Namespace pre-order, depth-first, invoking matching hooks

    Order: before, namespace, types (type_enter, field..., type_exit),
    enums (enum_enter, enum_member..., enum_exit), unions (union_enter,
    union_member..., union_exit), aliases (alias_enter, alias_exit), after.
    Every collection is visited in declaration order.

    The engine only accumulates output in the Context; it never writes files.
    """

    def __init__(self, visitor: Any, context: Context) -> None:  # noqa: ANN401
        self.visitor = visitor
        self.context = context
        self.calls: list[str] = []

    def _hook(self, name: str) -> Callable[[Context], Any] | None:
        hook = getattr(self.visitor, name, None)
        return hook if callable(hook) else None

    def _call(self, name: str) -> None:
        hook = self._hook(name)
        if hook is None:
            return
        node = self.context.describe_node()
        self.calls.append(name)
        try:
            result = hook(self.context)
        except Exception as exc:
            raise VisitorRuntimeError(
                f"Hook '{name}' raised on {node}: {type(exc).__name__}: {exc}",
                target=self.context.target or None,
                hook=name,
                node=node,
            ) from exc
        if isinstance(result, str):
            self.context.write(result)

    def run(self) -> str:
        """Traverse the namespace and return the accumulated output

        Raises:
            VisitorRuntimeError: A hook raised; traversal is aborted
        """
        ctx = self.context
        namespace: Namespace = ctx.namespace
        ctx.reset_cursor()

        self._call("before")
        self._call("namespace")

        for type_def in namespace.types:
            ctx.type = type_def
            self._call("type_enter")
            for type_field in type_def.fields:
                ctx.field = type_field
                self._call("field")
            ctx.field = None
            self._call("type_exit")
            ctx.type = None

        for enum_def in namespace.enums:
            ctx.enum = enum_def
            self._call("enum_enter")
            for member in enum_def.members:
                ctx.member = member
                self._call("enum_member")
            ctx.member = None
            self._call("enum_exit")
            ctx.enum = None

        for union_def in namespace.unions:
            ctx.union = union_def
            self._call("union_enter")
            for union_member in union_def.members:
                ctx.member = union_member
                self._call("union_member")
            ctx.member = None
            self._call("union_exit")
            ctx.union = None

        for alias_def in namespace.aliases:
            ctx.alias = alias_def
            self._call("alias_enter")
            self._call("alias_exit")
            ctx.alias = None

        self._call("after")

        logger.debug(f"Traversal of '{namespace.name}' for {ctx.target or '<no target>'}: {len(self.calls)} hook call(s)")
        return ctx.getvalue()


def traverse(namespace: Namespace, visitor: Any, config: dict[str, Any] | None = None, target: str = "") -> str:  # noqa: ANN401
    """Run one traversal pass with a fresh Context and return its output"""
    context = Context(namespace, config=config, target=target)
    return TraversalEngine(visitor, context).run()
