"""
schemagen CLI - schema-driven multi-target code generator

Usage:
    schemagen generate [CONFIG] [--jobs N] [--fail-fast] [--dry-run] [--only PATH[,PATH...]]
    schemagen validate [CONFIG]
    schemagen inspect [CONFIG]
    schemagen version
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import fire

from schemagen import __version__
from schemagen.config_model import find_config, load_config
from schemagen.errors import ConfigInvalid, SchemaError
from schemagen.gen_logging import configure_gen_logging
from schemagen.model import expand_type
from schemagen.pipeline import GenerationPipeline, GenerationReport, TargetStatus, load_namespace

_STATUS_ICONS = {
    TargetStatus.GENERATED: "✅",
    TargetStatus.UNCHANGED: "✅",
    TargetStatus.WOULD_WRITE: "📝",
    TargetStatus.SKIPPED: "⏭️ ",
    TargetStatus.FAILED: "❌",
    TargetStatus.CANCELLED: "⛔",
    TargetStatus.NOT_RUN: "⏸️ ",
}


def _fail(message: str, debug: bool = False) -> NoReturn:
    print(f"❌ Error: {message}", file=sys.stderr)
    if debug:
        import traceback

        traceback.print_exc()
    sys.exit(1)


def _resolve_config_path(config: str | None) -> Path:
    if config:
        return Path(config)
    return find_config(Path.cwd())


def _split_only(only: str | list[str] | tuple[str, ...] | None) -> list[str] | None:
    if not only:
        return None
    if isinstance(only, str):
        return [item.strip() for item in only.split(",") if item.strip()]
    return [str(item) for item in only]


def print_report(report: GenerationReport) -> None:
    """Print per-target outcome lines and a summary; errors go to stderr"""
    print()
    for result in report.results:
        icon = _STATUS_ICONS.get(result.status, "•")
        print(f"  {icon} {result.path} ({result.status.value})")
        for command in result.commands_run:
            print(f"     ▶️  {command}")

    failures = report.failures
    if failures:
        print(f"\n❌ {len(failures)} target(s) failed:", file=sys.stderr)
        for result in failures:
            print(f"  - {result.error}", file=sys.stderr)

    counts = ", ".join(f"{count} {status}" for status, count in report.counts().items())
    if report.success:
        print(f"\n✅ Generation complete! ({counts})")
    elif report.cancelled:
        print(f"\n⛔ Generation cancelled ({counts})", file=sys.stderr)
    else:
        print(f"\n❌ Generation finished with errors ({counts})", file=sys.stderr)


class SchemagenCLI:
    """schemagen - schema-driven multi-target code generator"""

    def generate(
        self,
        config: str | None = None,
        jobs: int | None = None,
        fail_fast: bool | None = None,
        dry_run: bool = False,
        only: str | list[str] | None = None,
        verbose: bool = False,
        quiet: bool = False,
        debug: bool = False,
    ) -> None:
        """Generate every target configured in CONFIG.

        Args:
            config: Path to config file (default: schemagen.yaml in the current directory)
            jobs: Number of targets generated concurrently (default: config `jobs`)
            fail_fast: Stop after the first failed target (default: config `failFast`)
            dry_run: Build outputs without writing files or running commands
            only: Comma-separated list of target paths to generate
            verbose: Enable debug logging
            quiet: Only log warnings and errors
            debug: Print tracebacks for fatal errors
        """
        configure_gen_logging(verbose=verbose, quiet=quiet)
        try:
            config_path = _resolve_config_path(config)
            print(f"📖 Loading config: {config_path}")
            pipeline = GenerationPipeline.from_config_file(
                config_path,
                jobs=jobs,
                fail_fast=fail_fast,
                dry_run=dry_run,
                only=_split_only(only),
            )
            print(f"🔨 Generating {len(pipeline.selected_targets())} target(s)...")
            report = pipeline.run()
        except (ConfigInvalid, SchemaError) as e:
            _fail(str(e), debug)

        print_report(report)
        sys.exit(0 if report.success else 1)

    def validate(self, config: str | None = None, debug: bool = False) -> None:
        """Validate the config file and the schema it references.

        Args:
            config: Path to config file (default: schemagen.yaml in the current directory)
            debug: Print tracebacks for fatal errors
        """
        try:
            config_path = _resolve_config_path(config)
            print(f"📖 Loading config: {config_path}")
            generation_config = load_config(config_path)
            print(f"✅ Config valid: {len(generation_config.generates)} target(s)")

            print(f"🔍 Loading schema: {generation_config.schema_path}")
            namespace = load_namespace(generation_config, config_path.resolve().parent)
        except (ConfigInvalid, SchemaError) as e:
            _fail(str(e), debug)

        print(
            f"✅ Schema valid: {len(namespace.types)} types, {len(namespace.enums)} enums, "
            f"{len(namespace.unions)} unions, {len(namespace.aliases)} aliases"
        )

    def inspect(self, config: str | None = None, debug: bool = False) -> None:
        """Print the schema outline with rendered field types.

        Args:
            config: Path to config file (default: schemagen.yaml in the current directory)
            debug: Print tracebacks for fatal errors
        """
        try:
            config_path = _resolve_config_path(config)
            generation_config = load_config(config_path)
            namespace = load_namespace(generation_config, config_path.resolve().parent)
        except (ConfigInvalid, SchemaError) as e:
            _fail(str(e), debug)

        print(f"namespace {namespace.name}")
        for type_def in namespace.types:
            print(f"  type {type_def.name}")
            for type_field in type_def.fields:
                marker = "?" if type_field.optional else ""
                print(f"    {type_field.name}{marker}: {expand_type(type_field.type)}")
        for enum_def in namespace.enums:
            members = ", ".join(member.name for member in enum_def.members)
            print(f"  enum {enum_def.name} = {members}")
        for union_def in namespace.unions:
            members = " | ".join(expand_type(member) for member in union_def.members)
            print(f"  union {union_def.name} = {members}")
        for alias_def in namespace.aliases:
            print(f"  alias {alias_def.name} = {expand_type(alias_def.type)}")

    def version(self) -> None:
        """Print the schemagen version."""
        print(f"schemagen {__version__}")


def schemagen_main() -> None:
    """schemagen CLI entry point (called from python -m schemagen)."""
    fire.Fire(SchemagenCLI)


if __name__ == "__main__":
    schemagen_main()
