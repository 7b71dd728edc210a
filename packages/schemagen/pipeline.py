"""
Config-driven multi-target generation pipeline
"""

from __future__ import annotations

import contextlib
import os
import subprocess
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from schemagen.config_model import CommandSpec, GenerationConfig, TargetSpec, load_config
from schemagen.context import Context, merge_config
from schemagen.errors import (
    CommandExecutionError,
    ConfigInvalid,
    FileWriteError,
    GenerationCancelled,
    SchemagenError,
    TargetError,
)
from schemagen.gen_logging import get_logger
from schemagen.model import Namespace
from schemagen.module_loader import ModuleLoader
from schemagen.schema_loader import load_schema, load_schema_with_parser
from schemagen.traversal import TraversalEngine

logger = get_logger(__name__)


class TargetStatus(str, Enum):
    GENERATED = "generated"
    UNCHANGED = "unchanged"
    WOULD_WRITE = "would_write"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"
    NOT_RUN = "not_run"


SUCCESS_STATUSES = frozenset(
    {TargetStatus.GENERATED, TargetStatus.UNCHANGED, TargetStatus.WOULD_WRITE, TargetStatus.SKIPPED}
)


@dataclass
class TargetResult:
    """Outcome of one target"""

    path: str
    status: TargetStatus
    error: SchemagenError | None = None
    commands_run: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in SUCCESS_STATUSES


@dataclass
class GenerationReport:
    """Per-target results in declaration order"""

    results: list[TargetResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.cancelled and all(result.ok for result in self.results)

    @property
    def failures(self) -> list[TargetResult]:
        return [result for result in self.results if result.status is TargetStatus.FAILED]

    def result_for(self, path: str) -> TargetResult:
        for result in self.results:
            if result.path == path:
                return result
        raise KeyError(path)

    def counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for result in self.results:
            counts[result.status.value] = counts.get(result.status.value, 0) + 1
        return counts


def write_atomic(path: Path, content: str) -> None:
    """Write via a temporary sibling file and os.replace so readers never see a partial file"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def _read_existing(path: Path) -> bytes | None:
    # Raw bytes: text mode would fold CRLF into LF
    try:
        return path.read_bytes()
    except OSError:
        return None


def load_namespace(config: GenerationConfig, base_dir: str | Path) -> Namespace:
    """Load the Type Model referenced by the config (relative to `base_dir`)"""
    schema_path = Path(config.schema_path)
    if not schema_path.is_absolute():
        schema_path = Path(base_dir) / schema_path
    if config.parser:
        return load_schema_with_parser(config.parser, schema_path)
    return load_schema(schema_path)


class GenerationPipeline:
    """Generate every configured target

    Targets are independent: each gets its own visitor instance and Context.
    A failing target is reported and the run continues with the next one
    unless `fail_fast` is set.

    Args:
        config: Validated config
        namespace: Type Model shared read-only by all targets
        base_dir: Directory target paths and file module references are relative to
        loader: Module loader (shared cache); created when omitted
        jobs: Worker threads (1 = sequential); defaults to config.jobs
        fail_fast: Stop after the first failed target; defaults to config.fail_fast
        dry_run: Build outputs without writing files or running commands
        only: Restrict the run to these target paths
        cancel_event: Set to stop writes and commands of in-flight targets
    """

    def __init__(
        self,
        config: GenerationConfig,
        namespace: Namespace,
        base_dir: str | Path | None = None,
        loader: ModuleLoader | None = None,
        jobs: int | None = None,
        fail_fast: bool | None = None,
        dry_run: bool = False,
        only: Iterable[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.config = config
        self.namespace = namespace
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.loader = loader or ModuleLoader(self.base_dir)
        self.jobs = max(1, jobs if jobs is not None else config.jobs)
        self.fail_fast = config.fail_fast if fail_fast is None else fail_fast
        self.dry_run = dry_run
        self.only = list(only) if only else None
        self.cancel_event = cancel_event or threading.Event()
        self._stop_event = threading.Event()
        self._cwd_locks: dict[str, threading.Lock] = {}
        self._cwd_locks_guard = threading.Lock()

    @classmethod
    def from_config_file(cls, config_path: str | Path, **kwargs) -> "GenerationPipeline":  # noqa: ANN003
        """Load config and schema, then build a pipeline rooted at the config directory"""
        config_path = Path(config_path)
        config = load_config(config_path)
        base_dir = config_path.resolve().parent
        namespace = load_namespace(config, base_dir)
        return cls(config, namespace, base_dir=base_dir, **kwargs)

    def selected_targets(self) -> list[tuple[str, TargetSpec]]:
        """Targets to run, in declaration order

        Raises:
            ConfigInvalid: `only` names a path that is not configured
        """
        targets = list(self.config.generates.items())
        if self.only is None:
            return targets
        wanted = {os.path.normpath(path) for path in self.only}
        known = {os.path.normpath(path) for path, _ in targets}
        unknown = sorted(wanted - known)
        if unknown:
            raise ConfigInvalid(f"Unknown target(s): {', '.join(unknown)}")
        return [(path, spec) for path, spec in targets if os.path.normpath(path) in wanted]

    def destination(self, path: str) -> Path:
        destination = Path(path)
        if not destination.is_absolute():
            destination = self.base_dir / destination
        return destination

    # ==================== run ====================

    def run(self) -> GenerationReport:
        """Generate all selected targets and return the aggregate report"""
        targets = self.selected_targets()
        logger.info(f"Generating {len(targets)} target(s) from namespace '{self.namespace.name}'")

        if self.jobs > 1 and len(targets) > 1:
            results = self._run_parallel(targets)
        else:
            results = self._run_sequential(targets)

        report = GenerationReport(results=results, cancelled=self.cancel_event.is_set())
        counts = ", ".join(f"{count} {status}" for status, count in report.counts().items())
        logger.info(f"Finished: {counts}")
        return report

    def _run_sequential(self, targets: list[tuple[str, TargetSpec]]) -> list[TargetResult]:
        results: list[TargetResult] = []
        for path, spec in targets:
            try:
                results.append(self.run_target(path, spec))
            except KeyboardInterrupt:
                logger.warning("Interrupted; remaining targets will not be written")
                self.cancel_event.set()
                results.append(TargetResult(path, TargetStatus.CANCELLED, GenerationCancelled("interrupted", path)))
        return results

    def _run_parallel(self, targets: list[tuple[str, TargetSpec]]) -> list[TargetResult]:
        executor = ThreadPoolExecutor(max_workers=self.jobs, thread_name_prefix="schemagen")
        futures = [executor.submit(self.run_target, path, spec) for path, spec in targets]
        results: list[TargetResult] = []
        try:
            for future in futures:
                results.append(future.result())
        except KeyboardInterrupt:
            logger.warning("Interrupted; in-flight targets will not be written")
            self.cancel_event.set()
            executor.shutdown(wait=True, cancel_futures=True)
            for (path, _), future in list(zip(targets, futures))[len(results) :]:
                if future.done() and not future.cancelled() and future.exception() is None:
                    results.append(future.result())
                else:
                    results.append(
                        TargetResult(path, TargetStatus.CANCELLED, GenerationCancelled("interrupted", path))
                    )
        finally:
            executor.shutdown(wait=True)
        return results

    # ==================== single target ====================

    def run_target(self, path: str, spec: TargetSpec) -> TargetResult:
        """Load, traverse, write and run commands for one target

        Target-scoped errors are captured in the returned TargetResult.
        """
        if self._stop_event.is_set():
            return TargetResult(path, TargetStatus.NOT_RUN)
        if self.cancel_event.is_set():
            return TargetResult(path, TargetStatus.CANCELLED, GenerationCancelled("run cancelled", path))

        destination = self.destination(path)
        if spec.if_not_exists and destination.exists():
            logger.info(f"Skipped {path} (exists, ifNotExists)")
            return TargetResult(path, TargetStatus.SKIPPED)

        result = TargetResult(path, TargetStatus.FAILED)
        try:
            output = self.build_output(path, spec)
            self._check_cancelled(path)
            result.status = self._write(path, destination, output)
            if not self.dry_run:
                self._run_commands(path, spec.run_after, result)
        except GenerationCancelled as exc:
            result.status = TargetStatus.CANCELLED
            result.error = exc
            logger.warning(str(exc))
        except TargetError as exc:
            result.status = TargetStatus.FAILED
            result.error = exc if exc.target else exc.for_target(path)
            logger.error(str(result.error))
        except SchemagenError as exc:
            result.status = TargetStatus.FAILED
            result.error = exc
            logger.error(f"[{path}] {exc}")

        if result.status is TargetStatus.FAILED and self.fail_fast:
            self._stop_event.set()
        return result

    def build_output(self, path: str, spec: TargetSpec) -> str:
        """Resolve the visitor and run one traversal; side-effect free"""
        factory = self.loader.load(spec.module, spec.export_name)
        visitor = factory.create()
        context = Context(self.namespace, config=merge_config(self.config.config, spec.config), target=path)
        return TraversalEngine(visitor, context).run()

    def _check_cancelled(self, path: str) -> None:
        if self.cancel_event.is_set():
            raise GenerationCancelled("run cancelled before write", path)

    def _write(self, path: str, destination: Path, output: str) -> TargetStatus:
        existing = _read_existing(destination)
        if existing == output.encode("utf-8"):
            logger.info(f"Unchanged {path}")
            return TargetStatus.UNCHANGED
        if self.dry_run:
            logger.info(f"Would write {path} ({len(output)} chars)")
            return TargetStatus.WOULD_WRITE
        try:
            write_atomic(destination, output)
        except OSError as exc:
            raise FileWriteError(f"Cannot write {destination}: {exc}", target=path, path=str(destination)) from exc
        logger.info(f"Generated {path}")
        return TargetStatus.GENERATED

    # ==================== commands ====================

    def _cwd_lock(self, cwd: str | None) -> threading.Lock:
        key = str(Path(cwd).resolve()) if cwd else str(Path.cwd().resolve())
        with self._cwd_locks_guard:
            return self._cwd_locks.setdefault(key, threading.Lock())

    def _run_commands(self, path: str, commands: list[CommandSpec], result: TargetResult) -> None:
        for command in commands:
            self._check_cancelled(path)
            with self._cwd_lock(command.cwd):
                run_command(command, path)
            result.commands_run.append(command.command)


def run_command(command: CommandSpec, target: str = "") -> subprocess.CompletedProcess[str]:
    """Run one shell command

    Raises:
        CommandExecutionError: Command could not be started or exited non-zero
    """
    logger.info(f"Running: {command.command}" + (f" (in {command.cwd})" if command.cwd else ""))
    try:
        proc = subprocess.run(command.command, shell=True, cwd=command.cwd, capture_output=True, text=True)  # noqa: S602
    except OSError as exc:
        raise CommandExecutionError(
            f"Cannot run '{command.command}': {exc}", target=target or None, command=command.command
        ) from exc

    if proc.stdout.strip():
        logger.debug(proc.stdout.rstrip())
    if proc.returncode != 0:
        stderr = proc.stderr.strip()
        message = f"Command '{command.command}' exited with code {proc.returncode}"
        if stderr:
            message += f": {stderr}"
        raise CommandExecutionError(
            message, target=target or None, command=command.command, exit_code=proc.returncode, stderr=stderr
        )
    return proc


def generate(config_path: str | Path, **kwargs) -> GenerationReport:  # noqa: ANN003
    """Load `config_path` and generate every target

    Generator modules are unloaded afterwards unless the caller passed its own `loader`.
    """
    pipeline = GenerationPipeline.from_config_file(config_path, **kwargs)
    try:
        return pipeline.run()
    finally:
        if kwargs.get("loader") is None:
            pipeline.loader.unload()
