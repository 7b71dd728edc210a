"""
Generator module loading

Resolves a generator module reference plus an export name into a cached
VisitorFactory. Two reference forms are accepted:

- a path to a ``.py`` file or a package directory (relative paths are
  resolved against the config directory). The generator directory is mounted
  as a private package under ``_schemagen_generators`` so its relative imports
  and sibling modules resolve from that directory without touching top-level
  ``sys.modules`` names. Sibling ``.tmpl`` files are imported as raw text.
- a dotted import path (``pkg.generators.ts``) resolved with importlib.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.abc
import importlib.machinery
import importlib.util
import inspect
import sys
import threading
import types
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from schemagen.errors import ModuleLoadError, VisitorExportMissing
from schemagen.gen_logging import get_logger
from schemagen.visitor import discover_hooks

logger = get_logger(__name__)

TEXT_RESOURCE_SUFFIX = ".tmpl"
PRIVATE_PACKAGE = "_schemagen_generators"


class TextResource(types.ModuleType):
    """Module object standing in for a raw-text resource file

    ``from . import page`` on a sibling ``page.tmpl`` binds one of these;
    ``page.text`` (or ``str(page)``) is the unparsed file content.
    """

    text: str = ""

    def __str__(self) -> str:
        return self.text


class _TextResourceLoader(importlib.abc.Loader):
    def __init__(self, path: Path) -> None:
        self.path = path

    def create_module(self, spec: importlib.machinery.ModuleSpec) -> types.ModuleType:
        return TextResource(spec.name)

    def exec_module(self, module: types.ModuleType) -> None:
        module.text = self.path.read_text(encoding="utf-8")
        module.__file__ = str(self.path)


class _DirectoryPackageLoader(importlib.abc.Loader):
    """Loader for a generator directory without an ``__init__.py``"""

    def create_module(self, spec: importlib.machinery.ModuleSpec) -> None:
        return None

    def exec_module(self, module: types.ModuleType) -> None:
        return None


class _GeneratorFinder(importlib.abc.MetaPathFinder):
    """Maps private package prefixes to generator directories"""

    def __init__(self) -> None:
        self._roots: dict[str, Path] = {}
        self._lock = threading.Lock()

    def mount(self, directory: Path) -> str:
        digest = hashlib.sha1(str(directory).encode("utf-8")).hexdigest()[:12]
        prefix = f"{PRIVATE_PACKAGE}.g{digest}"
        with self._lock:
            self._roots[prefix] = directory
        return prefix

    def _root_for(self, fullname: str) -> tuple[str, Path] | None:
        with self._lock:
            for prefix, root in self._roots.items():
                if fullname == prefix or fullname.startswith(prefix + "."):
                    return prefix, root
        return None

    def find_spec(
        self,
        fullname: str,
        path: Any = None,  # noqa: ANN401
        target: types.ModuleType | None = None,
    ) -> importlib.machinery.ModuleSpec | None:
        if fullname == PRIVATE_PACKAGE:
            return importlib.machinery.ModuleSpec(fullname, _DirectoryPackageLoader(), is_package=True)

        found = self._root_for(fullname)
        if found is None:
            return None
        prefix, root = found

        relative = fullname[len(prefix) + 1 :].split(".") if fullname != prefix else []
        base = root.joinpath(*relative)

        if base.is_dir():
            init_file = base / "__init__.py"
            if init_file.exists():
                return importlib.util.spec_from_file_location(
                    fullname, init_file, submodule_search_locations=[str(base)]
                )
            spec = importlib.machinery.ModuleSpec(fullname, _DirectoryPackageLoader(), is_package=True)
            spec.submodule_search_locations = [str(base)]
            return spec

        source_file = base.with_name(base.name + ".py")
        if source_file.exists():
            return importlib.util.spec_from_file_location(fullname, source_file)

        text_file = base.with_name(base.name + TEXT_RESOURCE_SUFFIX)
        if text_file.exists():
            return importlib.machinery.ModuleSpec(fullname, _TextResourceLoader(text_file), origin=str(text_file))

        return None


_FINDER = _GeneratorFinder()
_FINDER_LOCK = threading.Lock()


def _install_finder() -> None:
    with _FINDER_LOCK:
        if _FINDER not in sys.meta_path:
            sys.meta_path.insert(0, _FINDER)


@dataclass(frozen=True)
class VisitorFactory:
    """Loaded generator export; `create()` yields a fresh visitor per target"""

    reference: str
    export_name: str
    factory: Callable[[], Any]
    hooks: tuple[str, ...]

    def create(self) -> Any:  # noqa: ANN401
        try:
            instance = self.factory()
        except Exception as exc:
            raise VisitorExportMissing(
                f"Export '{self.export_name}' of {self.reference} could not be instantiated: {exc}"
            ) from exc
        if instance is None:
            raise VisitorExportMissing(f"Export '{self.export_name}' of {self.reference} returned None")
        # Class exports are checked once at load time
        if not inspect.isclass(self.factory) and not discover_hooks(instance):
            logger.warning(f"Visitor {self.reference}:{self.export_name} implements no recognised hooks")
        return instance


def is_file_reference(reference: str) -> bool:
    return (
        reference.endswith(".py")
        or reference.startswith(".")
        or "/" in reference
        or "\\" in reference
        or Path(reference).is_absolute()
    )


class ModuleLoader:
    """Resolve and cache generator exports

    Cache is keyed by (module reference, export name) and is safe for
    concurrent population: the first requester loads, the others wait for
    its result. Failures are cached as well.

    Attributes:
        base_dir: Directory relative file references are resolved against
        load_count: Number of uncached load attempts performed
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.load_count = 0
        self._lock = threading.Lock()
        self._cache: dict[tuple[str, str], Future[VisitorFactory]] = {}
        self._mounted: set[str] = set()

    def unload(self) -> None:
        """Forget cached factories and drop mounted generator modules from sys.modules

        The next load (from this or a fresh loader) re-executes generator files.
        """
        with self._lock:
            self._cache.clear()
            prefixes = tuple(self._mounted)
            self._mounted.clear()
        for name in [name for name in sys.modules if name.startswith(prefixes)]:
            sys.modules.pop(name, None)
        logger.debug(f"Unloaded {len(prefixes)} generator package(s)")

    def load(self, reference: str, export_name: str) -> VisitorFactory:
        """Return the VisitorFactory for (reference, export_name)

        Raises:
            ModuleLoadError: Reference cannot be resolved or executed
            VisitorExportMissing: Export absent or not instantiable
        """
        key = (reference, export_name)
        with self._lock:
            future = self._cache.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._cache[key] = future
                self.load_count += 1

        if not owner:
            logger.debug(f"Module cache hit: {reference}:{export_name}")
            return future.result()

        try:
            factory = self._load_uncached(reference, export_name)
        except BaseException as exc:
            future.set_exception(exc)
            if not isinstance(exc, Exception):
                with self._lock:
                    self._cache.pop(key, None)
            raise
        future.set_result(factory)
        return factory

    def _load_uncached(self, reference: str, export_name: str) -> VisitorFactory:
        if not reference:
            raise ModuleLoadError("Empty module reference")

        module = self._import_module(reference)

        if not hasattr(module, export_name):
            raise VisitorExportMissing(f"Module {reference} has no export '{export_name}'")
        export = getattr(module, export_name)
        if not callable(export):
            raise VisitorExportMissing(
                f"Export '{export_name}' of {reference} is a {type(export).__name__}, expected a class or factory"
            )

        hooks = discover_hooks(export) if inspect.isclass(export) else ()
        if inspect.isclass(export) and not hooks:
            logger.warning(f"Visitor {reference}:{export_name} implements no recognised hooks")
        logger.debug(f"Loaded visitor {reference}:{export_name} (hooks: {', '.join(hooks) or '-'})")
        return VisitorFactory(reference=reference, export_name=export_name, factory=export, hooks=hooks)

    def _import_module(self, reference: str) -> types.ModuleType:
        if is_file_reference(reference):
            return self._import_file(reference)
        try:
            return importlib.import_module(reference)
        except ModuleNotFoundError as exc:
            # Bare file names without a path separator ("gen.py" is handled above)
            candidate = self.base_dir / reference
            if candidate.is_dir():
                return self._import_file(reference)
            raise ModuleLoadError(f"Cannot import {reference}: {exc}") from exc
        except Exception as exc:
            raise ModuleLoadError(f"Error while importing {reference}: {exc}") from exc

    def _import_file(self, reference: str) -> types.ModuleType:
        path = Path(reference)
        if not path.is_absolute():
            path = self.base_dir / path
        path = path.resolve()

        if not path.exists():
            raise ModuleLoadError(f"Generator module not found: {path}")

        if path.is_dir():
            directory, module_suffix = path, ""
        elif path.suffix == ".py":
            directory, module_suffix = path.parent, "." + path.stem
        else:
            raise ModuleLoadError(f"Generator module must be a .py file or a package directory: {path}")

        _install_finder()
        prefix = _FINDER.mount(directory)
        with self._lock:
            self._mounted.add(prefix)
        module_name = prefix + module_suffix
        try:
            return importlib.import_module(module_name)
        except Exception as exc:
            raise ModuleLoadError(f"Error while executing {path}: {exc}") from exc
