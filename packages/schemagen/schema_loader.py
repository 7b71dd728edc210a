"""Loader: スキーマ文書→型モデル変換

YAML/JSONのスキーマ文書を読み込み、Namespace（型モデル）に変換する。
型式（"string[]", "{string: Target}", "string?"）のパーサと名前解決を含む。
"""

from __future__ import annotations

import importlib
import re
from pathlib import Path
from typing import Any, Callable

from schemagen.documents import DocumentError, read_document
from schemagen.errors import SchemaError
from schemagen.gen_logging import get_logger
from schemagen.model import (
    AliasDefinition,
    AnyType,
    EnumDefinition,
    EnumMember,
    Field,
    Kind,
    ListType,
    MapType,
    NamedType,
    Namespace,
    OptionalType,
    TypeDefinition,
    UnionDefinition,
    validate_namespace,
)

logger = get_logger(__name__)

PRIMITIVE_NAMES = frozenset(
    {
        "any",
        "bool",
        "boolean",
        "bytes",
        "date",
        "datetime",
        "float",
        "int",
        "integer",
        "null",
        "number",
        "string",
        "time",
    }
)

_TOKEN_PATTERN = re.compile(r"\s*(?:(?P<name>[A-Za-z_][A-Za-z0-9_.]*)|(?P<symbol>\[\]|[{}:?()]))")


def _tokenize(text: str) -> list[str]:
    tokens: list[str] = []
    position = 0
    stripped_end = len(text.rstrip())
    while position < stripped_end:
        match = _TOKEN_PATTERN.match(text, position)
        if match is None:
            raise SchemaError(f"Invalid type expression '{text}': unexpected '{text[position:].strip()[0]}'")
        tokens.append(match.group("name") or match.group("symbol"))
        position = match.end()
    return tokens


def primitive_resolver(name: str) -> Kind:
    """全ての名前をPrimitiveとして解決するデフォルトリゾルバ"""
    return Kind.PRIMITIVE


class _TypeExprParser:
    """型式の再帰下降パーサ

    expr   := atom suffix*
    atom   := NAME | "{" expr ":" expr "}" | "(" expr ")"
    suffix := "[]" | "?"
    """

    def __init__(self, text: str, resolve: Callable[[str], Kind]) -> None:
        self.text = text
        self.tokens = _tokenize(text)
        self.position = 0
        self.resolve = resolve

    def _peek(self) -> str | None:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _expect(self, token: str) -> None:
        actual = self._peek()
        if actual != token:
            found = f"'{actual}'" if actual is not None else "end of expression"
            raise SchemaError(f"Invalid type expression '{self.text}': expected '{token}', found {found}")
        self.position += 1

    def parse(self) -> AnyType:
        if not self.tokens:
            raise SchemaError("Empty type expression")
        result = self._expr()
        if self._peek() is not None:
            raise SchemaError(f"Invalid type expression '{self.text}': unexpected '{self._peek()}'")
        return result

    def _expr(self) -> AnyType:
        result = self._atom()
        while self._peek() in ("[]", "?"):
            token = self.tokens[self.position]
            self.position += 1
            if token == "[]":
                result = ListType(result)
            elif isinstance(result, OptionalType):
                raise SchemaError(f"Invalid type expression '{self.text}': Optional cannot wrap another Optional")
            else:
                result = OptionalType(result)
        return result

    def _atom(self) -> AnyType:
        token = self._peek()
        if token == "{":
            self.position += 1
            key_type = self._expr()
            self._expect(":")
            value_type = self._expr()
            self._expect("}")
            return MapType(key_type, value_type)
        if token == "(":
            self.position += 1
            inner = self._expr()
            self._expect(")")
            return inner
        if token is None or not re.match(r"[A-Za-z_]", token):
            found = f"'{token}'" if token is not None else "end of expression"
            raise SchemaError(f"Invalid type expression '{self.text}': expected a type name, found {found}")
        self.position += 1
        return NamedType(self.resolve(token), token)


def parse_type_expr(text: str, resolve: Callable[[str], Kind] | None = None) -> AnyType:
    """型式文字列をAnyTypeに変換

    Args:
        text: 型式（例: "string[]", "{string: Target}", "Target?"）
        resolve: 名前→Kindのリゾルバ（省略時は全てPrimitive）

    Returns:
        AnyType

    Raises:
        SchemaError: 構文エラー、未解決の名前、Optionalの二重包装
    """
    if not isinstance(text, str):
        raise SchemaError(f"Type expression must be a string, got {type(text).__name__}")
    return _TypeExprParser(text, resolve or primitive_resolver).parse()


def _make_resolver(data: dict[str, Any]) -> Callable[[str], Kind]:
    """文書内の宣言からリゾルバを作成（type → enum → union → alias の優先順）"""
    declared: dict[str, Kind] = {}
    for section, kind in (("aliases", Kind.ALIAS), ("unions", Kind.UNION), ("enums", Kind.ENUM), ("types", Kind.TYPE)):
        for entry in data.get(section) or []:
            if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                declared[entry["name"]] = kind

    def resolve(name: str) -> Kind:
        if name in declared:
            return declared[name]
        if name in PRIMITIVE_NAMES:
            return Kind.PRIMITIVE
        raise SchemaError(f"Unknown type name '{name}'")

    return resolve


def _require_name(entry: Any, section: str, index: int) -> str:  # noqa: ANN401
    if not isinstance(entry, dict):
        raise SchemaError(f"{section}[{index}]: must be a mapping")
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise SchemaError(f"{section}[{index}]: 'name' must be a non-empty string")
    return name


def _parse_at(location: str, text: Any, resolve: Callable[[str], Kind]) -> AnyType:  # noqa: ANN401
    try:
        return parse_type_expr(text, resolve)
    except SchemaError as exc:
        raise SchemaError(f"{location}: {exc}") from exc


def _load_types(entries: list[Any], resolve: Callable[[str], Kind]) -> list[TypeDefinition]:
    """型定義を読み込み"""
    types = []
    for index, entry in enumerate(entries):
        name = _require_name(entry, "types", index)
        fields = []
        for field_index, field_data in enumerate(entry.get("fields") or []):
            field_name = _require_name(field_data, f"types.{name}.fields", field_index)
            fields.append(
                Field(
                    name=field_name,
                    type=_parse_at(f"{name}.{field_name}", field_data.get("type"), resolve),
                    description=field_data.get("description") or "",
                )
            )
        types.append(TypeDefinition(name=name, description=entry.get("description") or "", fields=tuple(fields)))
    return types


def _load_enum_member(member: Any, enum_name: str, index: int) -> EnumMember:  # noqa: ANN401
    if isinstance(member, str):
        return EnumMember(name=member, value=member)
    name = _require_name(member, f"enums.{enum_name}.members", index)
    return EnumMember(
        name=name,
        value=member.get("value", name),
        description=member.get("description") or "",
    )


def _load_enums(entries: list[Any]) -> list[EnumDefinition]:
    """Enum定義を読み込み"""
    enums = []
    for index, entry in enumerate(entries):
        name = _require_name(entry, "enums", index)
        members = [_load_enum_member(member, name, i) for i, member in enumerate(entry.get("members") or [])]
        enums.append(EnumDefinition(name=name, description=entry.get("description") or "", members=tuple(members)))
    return enums


def _load_unions(entries: list[Any], resolve: Callable[[str], Kind]) -> list[UnionDefinition]:
    """Union定義を読み込み"""
    unions = []
    for index, entry in enumerate(entries):
        name = _require_name(entry, "unions", index)
        members = [
            _parse_at(f"{name}[{i}]", member, resolve) for i, member in enumerate(entry.get("members") or [])
        ]
        unions.append(UnionDefinition(name=name, description=entry.get("description") or "", members=tuple(members)))
    return unions


def _load_aliases(entries: list[Any], resolve: Callable[[str], Kind]) -> list[AliasDefinition]:
    """エイリアス定義を読み込み"""
    aliases = []
    for index, entry in enumerate(entries):
        name = _require_name(entry, "aliases", index)
        aliases.append(
            AliasDefinition(
                name=name,
                type=_parse_at(name, entry.get("type"), resolve),
                description=entry.get("description") or "",
            )
        )
    return aliases


def build_namespace(data: Any) -> Namespace:  # noqa: ANN401
    """辞書形式のスキーマ文書からNamespaceを構築

    Raises:
        SchemaError: 構造エラーまたは整合性エラー
    """
    if not isinstance(data, dict):
        raise SchemaError("Schema document must be a mapping")

    for section in ("types", "enums", "unions", "aliases"):
        if not isinstance(data.get(section) or [], list):
            raise SchemaError(f"'{section}' must be a list")

    resolve = _make_resolver(data)
    namespace = Namespace(
        name=str(data.get("namespace") or data.get("name") or "default"),
        description=data.get("description") or "",
        types=tuple(_load_types(data.get("types") or [], resolve)),
        enums=tuple(_load_enums(data.get("enums") or [])),
        unions=tuple(_load_unions(data.get("unions") or [], resolve)),
        aliases=tuple(_load_aliases(data.get("aliases") or [], resolve)),
    )

    errors = validate_namespace(namespace)
    if errors:
        raise SchemaError("\n".join(errors))
    return namespace


def load_schema(schema_path: str | Path) -> Namespace:
    """YAML/JSONスキーマを読み込み、Namespaceに変換

    Args:
        schema_path: スキーマファイルのパス

    Returns:
        Namespace: 検証済み型モデル

    Raises:
        SchemaError: ファイルが存在しない、形式エラー、整合性エラー
    """
    schema_path = Path(schema_path)
    try:
        data = read_document(schema_path)
    except FileNotFoundError as exc:
        raise SchemaError(f"Schema file not found: {schema_path}") from exc
    except DocumentError as exc:
        raise SchemaError(f"{schema_path}: {exc}") from exc

    namespace = build_namespace(data)
    logger.debug(
        f"Loaded schema '{namespace.name}': {len(namespace.types)} types, {len(namespace.enums)} enums, "
        f"{len(namespace.unions)} unions, {len(namespace.aliases)} aliases"
    )
    return namespace


def load_schema_with_parser(parser_ref: str, schema_path: str | Path) -> Namespace:
    """外部パーサ（"pkg.mod:parse"形式）でスキーマを読み込み

    パーサはスキーマのパスを受け取り、Namespaceを返す呼び出し可能オブジェクト。
    """
    if ":" not in parser_ref:
        raise SchemaError(f"Invalid parser reference '{parser_ref}' (expected 'module:callable')")
    module_path, func_name = parser_ref.rsplit(":", 1)
    try:
        module = importlib.import_module(module_path)
        parse = getattr(module, func_name)
    except (ImportError, AttributeError) as exc:
        raise SchemaError(f"Cannot import parser {parser_ref}: {exc}") from exc

    try:
        namespace = parse(str(schema_path))
    except SchemaError:
        raise
    except Exception as exc:
        raise SchemaError(f"Parser {parser_ref} failed on {schema_path}: {exc}") from exc

    if not isinstance(namespace, Namespace):
        raise SchemaError(f"Parser {parser_ref} returned {type(namespace).__name__}, expected Namespace")

    errors = validate_namespace(namespace)
    if errors:
        raise SchemaError("\n".join(errors))
    return namespace
