"""pytest設定とフィクスチャ定義"""

import sys
import textwrap
from pathlib import Path

import pytest
import yaml

# schemagenモジュールをインポート可能にする
REPO_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(REPO_ROOT / "packages"))

from schemagen.model import (  # noqa: E402
    AliasDefinition,
    EnumDefinition,
    EnumMember,
    Field,
    Namespace,
    TypeDefinition,
    UnionDefinition,
    alias_ref,
    list_of,
    map_of,
    optional,
    primitive,
    type_ref,
)


@pytest.fixture(autouse=True)
def clean_module_cache():
    """各テスト後にジェネレータモジュールをクリア"""
    yield
    for key in [key for key in sys.modules if key.startswith("_schemagen_generators")]:
        del sys.modules[key]


@pytest.fixture
def sample_namespace():
    """型・Enum・Union・エイリアスを1つ以上含む名前空間"""
    return Namespace(
        name="demo",
        description="Demo schema",
        types=(
            TypeDefinition(
                name="Command",
                fields=(
                    Field("command", primitive("string"), "Shell command"),
                    Field("cwd", optional(alias_ref("Path"))),
                ),
            ),
            TypeDefinition(
                name="Target",
                description="Generation target",
                fields=(
                    Field("module", primitive("string")),
                    Field("config", map_of(primitive("string"), primitive("string"))),
                    Field("runAfter", optional(list_of(type_ref("Command")))),
                ),
            ),
        ),
        enums=(EnumDefinition(name="Status", members=(EnumMember("OK", "ok"), EnumMember("FAILED", "failed"))),),
        unions=(UnionDefinition(name="CommandLike", members=(primitive("string"), type_ref("Command"))),),
        aliases=(AliasDefinition(name="Path", type=primitive("string")),),
    )


SAMPLE_SCHEMA = {
    "namespace": "demo",
    "description": "Demo schema",
    "types": [
        {
            "name": "Command",
            "fields": [
                {"name": "command", "type": "string", "description": "Shell command"},
                {"name": "cwd", "type": "Path?"},
            ],
        },
        {
            "name": "Target",
            "description": "Generation target",
            "fields": [
                {"name": "module", "type": "string"},
                {"name": "config", "type": "{string: string}"},
                {"name": "runAfter", "type": "Command[]?"},
            ],
        },
    ],
    "enums": [{"name": "Status", "members": [{"name": "OK", "value": "ok"}, {"name": "FAILED", "value": "failed"}]}],
    "unions": [{"name": "CommandLike", "members": ["string", "Command"]}],
    "aliases": [{"name": "Path", "type": "string"}],
}


@pytest.fixture
def sample_schema_data():
    """SAMPLE_SCHEMAのコピー"""
    return yaml.safe_load(yaml.safe_dump(SAMPLE_SCHEMA))


@pytest.fixture
def write_file(tmp_path):
    """tmp_path配下にファイルを書き込むヘルパー"""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"))
        return path

    return _write


# 全フックの呼び出しを記録するジェネレータ
RECORDING_GENERATOR = '''
class Recorder:
    def before(self, ctx):
        ctx.writeln("before")

    def namespace(self, ctx):
        ctx.writeln(f"namespace {ctx.namespace.name}")

    def type_enter(self, ctx):
        ctx.writeln(f"type {ctx.type.name} {ctx.get('greeting')}")

    def field(self, ctx):
        ctx.writeln(f"  {ctx.field.name}: {ctx.expand_type(ctx.field.type)}")

    def type_exit(self, ctx):
        ctx.writeln(f"end {ctx.type.name}")

    def enum_member(self, ctx):
        ctx.writeln(f"enum {ctx.enum.name}.{ctx.member.name}")

    def union_member(self, ctx):
        ctx.writeln(f"union {ctx.union.name} | {ctx.expand_type(ctx.member)}")

    def alias_enter(self, ctx):
        ctx.writeln(f"alias {ctx.alias.name}")

    def after(self, ctx):
        return "after\\n"
'''


@pytest.fixture
def project(tmp_path, write_file, sample_schema_data):
    """スキーマ・ジェネレータ・configを含むプロジェクトを作成

    Returns:
        config を書き込んで Path を返す関数
    """
    (tmp_path / "schema.yaml").write_text(yaml.safe_dump(sample_schema_data, sort_keys=False))
    write_file("generators/recorder.py", RECORDING_GENERATOR)

    def _make(generates: dict, global_config: dict | None = None, **extra) -> Path:
        data = {"schema": "schema.yaml", "config": global_config or {}, "generates": generates}
        data.update(extra)
        config_path = tmp_path / "schemagen.yaml"
        config_path.write_text(yaml.safe_dump(data, sort_keys=False))
        return config_path

    return _make
