"""
Traversal context handed to every visitor hook
"""

from __future__ import annotations

import io
from types import MappingProxyType
from typing import Any, Mapping

from schemagen.model import (
    AliasDefinition,
    AnyType,
    EnumDefinition,
    EnumMember,
    Field,
    Namespace,
    TypeDefinition,
    UnionDefinition,
    expand_type,
)


def merge_config(global_config: Mapping[str, Any], target_config: Mapping[str, Any]) -> dict[str, Any]:
    """Target keys override same-named global keys; unset keys fall back to global."""
    merged = dict(global_config)
    merged.update(target_config)
    return merged


class Context:
    """Per-target cursor and output accumulator

    A fresh Context is created for every target. Hooks read the merged
    configuration and the cursor, and append to the output buffer; the
    Type Model itself is never mutated.

    Attributes:
        target: Output path of the target being generated
        namespace: Namespace under traversal
        type: Current TypeDefinition (inside type_enter..type_exit)
        field: Current Field (inside the field hook)
        enum: Current EnumDefinition
        member: Current enum member (EnumMember) or union member (AnyType)
        union: Current UnionDefinition
        alias: Current AliasDefinition
    """

    def __init__(
        self,
        namespace: Namespace,
        config: Mapping[str, Any] | None = None,
        target: str = "",
    ) -> None:
        self.target = target
        self.namespace = namespace
        self._config = MappingProxyType(dict(config or {}))
        self._buffer = io.StringIO()

        self.type: TypeDefinition | None = None
        self.field: Field | None = None
        self.enum: EnumDefinition | None = None
        self.member: EnumMember | AnyType | None = None
        self.union: UnionDefinition | None = None
        self.alias: AliasDefinition | None = None

    @property
    def config(self) -> Mapping[str, Any]:
        """Merged configuration (read-only)"""
        return self._config

    def get(self, key: str, default: Any = None) -> Any:  # noqa: ANN401
        return self._config.get(key, default)

    def write(self, text: str) -> None:
        self._buffer.write(str(text))

    def writeln(self, text: str = "") -> None:
        self._buffer.write(f"{text}\n")

    def getvalue(self) -> str:
        return self._buffer.getvalue()

    def expand_type(self, any_type: AnyType) -> str:
        return expand_type(any_type)

    def reset_cursor(self) -> None:
        self.type = None
        self.field = None
        self.enum = None
        self.member = None
        self.union = None
        self.alias = None

    def describe_node(self) -> str:
        """Human readable position of the cursor, used in error reports"""
        if self.field is not None and self.type is not None:
            return f"field {self.type.name}.{self.field.name}"
        if self.type is not None:
            return f"type {self.type.name}"
        if self.enum is not None:
            if isinstance(self.member, EnumMember):
                return f"enum member {self.enum.name}.{self.member.name}"
            return f"enum {self.enum.name}"
        if self.union is not None:
            if self.member is not None:
                return f"union member {self.union.name}[{expand_type(self.member)}]"
            return f"union {self.union.name}"
        if self.alias is not None:
            return f"alias {self.alias.name}"
        return f"namespace {self.namespace.name}"
