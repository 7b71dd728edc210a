"""
schemagen - schema-driven, multi-target code generation

A Type Model is traversed by user-supplied visitor modules; each configured
target gets its own visitor instance and output file.
"""

__version__ = "0.1.0"

from schemagen.context import Context, merge_config
from schemagen.errors import (
    CommandExecutionError,
    ConfigInvalid,
    FileWriteError,
    GenerationCancelled,
    ModuleLoadError,
    SchemaError,
    SchemagenError,
    TypeCycleError,
    VisitorExportMissing,
    VisitorRuntimeError,
)
from schemagen.model import (
    AliasDefinition,
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
    expand_type,
)
from schemagen.pipeline import GenerationPipeline, GenerationReport, TargetResult, TargetStatus, generate
from schemagen.visitor import HOOK_NAMES, Visitor

__all__ = [
    "AliasDefinition",
    "CommandExecutionError",
    "ConfigInvalid",
    "Context",
    "EnumDefinition",
    "EnumMember",
    "Field",
    "FileWriteError",
    "GenerationCancelled",
    "GenerationPipeline",
    "GenerationReport",
    "HOOK_NAMES",
    "Kind",
    "ListType",
    "MapType",
    "ModuleLoadError",
    "NamedType",
    "Namespace",
    "OptionalType",
    "SchemaError",
    "SchemagenError",
    "TargetResult",
    "TargetStatus",
    "TypeCycleError",
    "TypeDefinition",
    "UnionDefinition",
    "Visitor",
    "VisitorExportMissing",
    "VisitorRuntimeError",
    "expand_type",
    "generate",
    "merge_config",
]
