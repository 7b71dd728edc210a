"""型モデル（Type Model）データ構造定義

スキーマ→型モデル→各ジェネレータ（Visitor）の一貫性を保つための中間表現。
全ノードは不変（frozen dataclass + tuple）で、全ターゲットから読み取り専用で共有される。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Union

import networkx as nx

from schemagen.errors import TypeCycleError

UNKNOWN_TYPE = "unknown"
MAX_TYPE_DEPTH = 64


class Kind(str, Enum):
    """AnyTypeの判別タグ"""

    PRIMITIVE = "primitive"
    ALIAS = "alias"
    ENUM = "enum"
    TYPE = "type"
    UNION = "union"
    LIST = "list"
    MAP = "map"
    OPTIONAL = "optional"


NAMED_KINDS = frozenset({Kind.PRIMITIVE, Kind.ALIAS, Kind.ENUM, Kind.TYPE, Kind.UNION})


@dataclass(frozen=True)
class NamedType:
    """名前で参照される型（Primitive / Alias / Enum / Type / Union）"""

    kind: Kind
    name: str

    def __post_init__(self) -> None:
        kind = Kind(self.kind)
        if kind not in NAMED_KINDS:
            raise ValueError(f"NamedType cannot have kind '{kind.value}'")
        object.__setattr__(self, "kind", kind)


@dataclass(frozen=True)
class ListType:
    """要素型を1つ持つリスト型"""

    element: AnyType
    kind: Kind = field(default=Kind.LIST, init=False)


@dataclass(frozen=True)
class MapType:
    """キー型と値型の組"""

    key_type: AnyType
    value_type: AnyType
    kind: Kind = field(default=Kind.MAP, init=False)


@dataclass(frozen=True)
class OptionalType:
    """内側の型を1つだけ包むOptional型（Optionalの二重包装は不可）"""

    inner: AnyType
    kind: Kind = field(default=Kind.OPTIONAL, init=False)

    def __post_init__(self) -> None:
        if getattr(self.inner, "kind", None) is Kind.OPTIONAL:
            raise ValueError("Optional cannot wrap another Optional")


AnyType = Union[NamedType, ListType, MapType, OptionalType]


def primitive(name: str) -> NamedType:
    return NamedType(Kind.PRIMITIVE, name)


def alias_ref(name: str) -> NamedType:
    return NamedType(Kind.ALIAS, name)


def enum_ref(name: str) -> NamedType:
    return NamedType(Kind.ENUM, name)


def type_ref(name: str) -> NamedType:
    return NamedType(Kind.TYPE, name)


def union_ref(name: str) -> NamedType:
    return NamedType(Kind.UNION, name)


def list_of(element: AnyType) -> ListType:
    return ListType(element)


def map_of(key_type: AnyType, value_type: AnyType) -> MapType:
    return MapType(key_type, value_type)


def optional(inner: AnyType) -> OptionalType:
    return OptionalType(inner)


@dataclass(frozen=True)
class Field:
    """フィールド定義

    Optional性は独立したフラグではなく、OptionalType で構造的に表現する。
    """

    name: str
    type: AnyType
    description: str = ""

    @property
    def optional(self) -> bool:
        return self.type.kind is Kind.OPTIONAL


@dataclass(frozen=True)
class TypeDefinition:
    """名前付き型定義（フィールド順序は宣言順のまま保持）"""

    name: str
    description: str = ""
    fields: tuple[Field, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))


@dataclass(frozen=True)
class EnumMember:
    """Enumメンバー定義"""

    name: str
    value: Any = None
    description: str = ""


@dataclass(frozen=True)
class EnumDefinition:
    """Enum定義"""

    name: str
    description: str = ""
    members: tuple[EnumMember, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))


@dataclass(frozen=True)
class UnionDefinition:
    """Union定義（メンバーは型式のリスト）"""

    name: str
    description: str = ""
    members: tuple[AnyType, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))


@dataclass(frozen=True)
class AliasDefinition:
    """型エイリアス定義"""

    name: str
    type: AnyType
    description: str = ""


Declaration = Union[TypeDefinition, EnumDefinition, UnionDefinition, AliasDefinition]


@dataclass(frozen=True)
class Namespace:
    """スキーマ全体（1回のパースにつき1つ）

    Attributes:
        name: 名前空間名
        description: 説明
        types: 型定義（宣言順）
        enums: Enum定義（宣言順）
        unions: Union定義（宣言順）
        aliases: エイリアス定義（宣言順）
    """

    name: str
    description: str = ""
    types: tuple[TypeDefinition, ...] = ()
    enums: tuple[EnumDefinition, ...] = ()
    unions: tuple[UnionDefinition, ...] = ()
    aliases: tuple[AliasDefinition, ...] = ()

    def __post_init__(self) -> None:
        for attr in ("types", "enums", "unions", "aliases"):
            object.__setattr__(self, attr, tuple(getattr(self, attr)))

    def declarations(self) -> Iterator[tuple[Kind, Declaration]]:
        """全宣言を (Kind, 宣言) の組でトラバーサル順に列挙"""
        for type_def in self.types:
            yield Kind.TYPE, type_def
        for enum_def in self.enums:
            yield Kind.ENUM, enum_def
        for union_def in self.unions:
            yield Kind.UNION, union_def
        for alias_def in self.aliases:
            yield Kind.ALIAS, alias_def

    def lookup(self, name: str) -> Declaration | None:
        for _, declaration in self.declarations():
            if declaration.name == name:
                return declaration
        return None

    def resolve(self, any_type: AnyType) -> AnyType:
        """エイリアス参照を実体の型まで辿る

        Raises:
            TypeCycleError: エイリアスが循環している場合
        """
        seen: list[str] = []
        current = any_type
        while isinstance(current, NamedType) and current.kind is Kind.ALIAS:
            if current.name in seen:
                chain = " -> ".join(seen + [current.name])
                raise TypeCycleError(f"Alias cycle: {chain}")
            seen.append(current.name)
            declaration = self.lookup(current.name)
            if not isinstance(declaration, AliasDefinition):
                return current
            current = declaration.type
        return current


# ==================== expand_type ====================


def _render_named(any_type: NamedType, depth: int, active: set[int]) -> str:
    return any_type.name


def _render_list(any_type: ListType, depth: int, active: set[int]) -> str:
    return _expand(any_type.element, depth, active) + "[]"


def _render_map(any_type: MapType, depth: int, active: set[int]) -> str:
    key = _expand(any_type.key_type, depth, active)
    value = _expand(any_type.value_type, depth, active)
    return "{" + key + ": " + value + "}"


def _render_optional(any_type: OptionalType, depth: int, active: set[int]) -> str:
    # Optional wrapper is invisible in the rendered name
    return _expand(any_type.inner, depth, active)


_RENDERERS: dict[Kind, Callable[[Any, int, set[int]], str]] = {
    Kind.PRIMITIVE: _render_named,
    Kind.ALIAS: _render_named,
    Kind.ENUM: _render_named,
    Kind.TYPE: _render_named,
    Kind.UNION: _render_named,
    Kind.LIST: _render_list,
    Kind.MAP: _render_map,
    Kind.OPTIONAL: _render_optional,
}


def _expand(any_type: Any, depth: int, active: set[int]) -> str:
    kind = getattr(any_type, "kind", None)
    renderer = _RENDERERS.get(kind) if isinstance(kind, Kind) else None
    if renderer is None:
        return UNKNOWN_TYPE

    node_id = id(any_type)
    if node_id in active:
        raise TypeCycleError(f"Type refers to itself while rendering {kind.value}")
    if depth >= MAX_TYPE_DEPTH:
        raise TypeCycleError(f"Type nesting exceeds {MAX_TYPE_DEPTH} levels")

    active.add(node_id)
    try:
        return renderer(any_type, depth + 1, active)
    finally:
        active.discard(node_id)


def expand_type(any_type: AnyType) -> str:
    """型の正規テキスト表現を返す

    Args:
        any_type: 任意の型

    Returns:
        例: "string[]", "{string: Target}"。未知のKindは "unknown"

    Raises:
        TypeCycleError: 構造が循環している、または深すぎる場合
    """
    return _expand(any_type, 0, set())


# ==================== validation ====================


def _walk(any_type: Any) -> Iterator[Any]:
    """型式の全ノードを深さ優先（前順）で列挙"""
    stack: list[tuple[Any, int]] = [(any_type, 0)]
    while stack:
        current, depth = stack.pop()
        if depth >= MAX_TYPE_DEPTH:
            raise TypeCycleError(f"Type nesting exceeds {MAX_TYPE_DEPTH} levels")
        yield current
        if isinstance(current, ListType):
            stack.append((current.element, depth + 1))
        elif isinstance(current, MapType):
            stack.append((current.value_type, depth + 1))
            stack.append((current.key_type, depth + 1))
        elif isinstance(current, OptionalType):
            stack.append((current.inner, depth + 1))


def iter_named_refs(any_type: AnyType) -> Iterator[NamedType]:
    """型式に含まれる名前参照を宣言順に列挙"""
    for node in _walk(any_type):
        if isinstance(node, NamedType):
            yield node


def _has_double_optional(any_type: Any) -> bool:
    return any(
        isinstance(node, OptionalType) and isinstance(node.inner, OptionalType) for node in _walk(any_type)
    )


def _type_expressions(namespace: Namespace) -> Iterator[tuple[str, AnyType]]:
    """(位置ラベル, 型式) を列挙"""
    for type_def in namespace.types:
        for type_field in type_def.fields:
            yield f"{type_def.name}.{type_field.name}", type_field.type
    for union_def in namespace.unions:
        for index, member in enumerate(union_def.members):
            yield f"{union_def.name}[{index}]", member
    for alias_def in namespace.aliases:
        yield alias_def.name, alias_def.type


def _alias_graph(namespace: Namespace) -> nx.DiGraph:
    graph = nx.DiGraph()
    for alias_def in namespace.aliases:
        graph.add_node(alias_def.name)
        for ref in iter_named_refs(alias_def.type):
            if ref.kind is Kind.ALIAS:
                graph.add_edge(alias_def.name, ref.name)
    return graph


def validate_namespace(namespace: Namespace) -> list[str]:
    """名前空間の整合性を検証

    Returns:
        エラーメッセージリスト（空なら妥当）
    """
    errors: list[str] = []

    declared: dict[str, Kind] = {}
    for kind, declaration in namespace.declarations():
        if declaration.name in declared:
            errors.append(
                f"Duplicate declaration '{declaration.name}' "
                f"({declared[declaration.name].value} and {kind.value})"
            )
            continue
        declared[declaration.name] = kind

    for type_def in namespace.types:
        seen_fields: set[str] = set()
        for type_field in type_def.fields:
            if type_field.name in seen_fields:
                errors.append(f"Type '{type_def.name}': duplicate field '{type_field.name}'")
            seen_fields.add(type_field.name)

    for enum_def in namespace.enums:
        seen_members: set[str] = set()
        for member in enum_def.members:
            if member.name in seen_members:
                errors.append(f"Enum '{enum_def.name}': duplicate member '{member.name}'")
            seen_members.add(member.name)

    for location, any_type in _type_expressions(namespace):
        if _has_double_optional(any_type):
            errors.append(f"{location}: Optional cannot wrap another Optional")
        for ref in iter_named_refs(any_type):
            if ref.kind is Kind.PRIMITIVE:
                continue
            actual = declared.get(ref.name)
            if actual is None:
                errors.append(f"{location}: reference to undeclared {ref.kind.value} '{ref.name}'")
            elif actual is not ref.kind:
                errors.append(
                    f"{location}: '{ref.name}' is declared as {actual.value}, referenced as {ref.kind.value}"
                )

    for cycle in nx.simple_cycles(_alias_graph(namespace)):
        chain = " -> ".join(cycle + [cycle[0]])
        errors.append(f"Alias cycle: {chain}")

    return errors
