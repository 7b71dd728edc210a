"""
Tests for generator module loading
"""

import sys
import threading
import time

import pytest

from schemagen.errors import ModuleLoadError, VisitorExportMissing
from schemagen.module_loader import PRIVATE_PACKAGE, ModuleLoader, TextResource, is_file_reference


@pytest.mark.parametrize(
    "reference, expected",
    [
        ("./gen.py", True),
        ("generators/gen.py", True),
        ("gen.py", True),
        ("/abs/gen", True),
        ("../shared", True),
        ("pkg.generators.ts", False),
        ("gen", False),
    ],
)
def test_is_file_reference(reference, expected):
    assert is_file_reference(reference) is expected


class TestFileReferences:
    """Relative/absolute .py files and directories"""

    def test_relative_file_resolves_against_base_dir(self, tmp_path, write_file):
        write_file("generators/gen.py", "class Gen:\n    def after(self, ctx):\n        return 'x'\n")

        factory = ModuleLoader(tmp_path).load("./generators/gen.py", "Gen")

        assert factory.export_name == "Gen"
        assert factory.hooks == ("after",)
        assert type(factory.create()).__module__.startswith(PRIVATE_PACKAGE + ".")

    def test_absolute_file(self, tmp_path, write_file):
        path = write_file("gen.py", "class Gen:\n    def before(self, ctx):\n        pass\n")
        factory = ModuleLoader("/").load(str(path), "Gen")
        assert factory.hooks == ("before",)

    def test_does_not_pollute_top_level_modules(self, tmp_path, write_file):
        write_file("generators/helpers.py", "VALUE = 'private'\n")
        write_file(
            "generators/gen.py",
            """
            from . import helpers


            class Gen:
                def after(self, ctx):
                    return helpers.VALUE
            """,
        )

        ModuleLoader(tmp_path).load("generators/gen.py", "Gen")

        assert "helpers" not in sys.modules
        assert "gen" not in sys.modules

    def test_relative_imports_and_text_resources(self, tmp_path, write_file):
        write_file("generators/page.tmpl", "<h1>{title}</h1>\n")
        write_file("generators/util/__init__.py", "def shout(text):\n    return text.upper()\n")
        write_file(
            "generators/gen.py",
            """
            from . import page
            from .util import shout


            class Gen:
                def after(self, ctx):
                    return shout(str(page).format(title="hi"))
            """,
        )

        factory = ModuleLoader(tmp_path).load("./generators/gen.py", "Gen")
        module = sys.modules[type(factory.create()).__module__]

        assert isinstance(module.page, TextResource)
        assert module.page.text == "<h1>{title}</h1>\n"
        assert factory.create().after(None) == "<H1>HI</H1>\n"

    def test_text_resource_is_not_executed(self, tmp_path, write_file):
        write_file("generators/raw.tmpl", "import this_does_not_exist\n")
        write_file("generators/gen.py", "from . import raw\n\nclass Gen:\n    pass\n")

        factory = ModuleLoader(tmp_path).load("./generators/gen.py", "Gen")
        assert factory.export_name == "Gen"

    def test_package_directory(self, tmp_path, write_file):
        write_file("mygen/__init__.py", "from .visitor import Gen\n")
        write_file("mygen/visitor.py", "class Gen:\n    def field(self, ctx):\n        pass\n")

        factory = ModuleLoader(tmp_path).load("./mygen", "Gen")
        assert factory.hooks == ("field",)

    def test_bare_directory_name(self, tmp_path, write_file):
        write_file("mygen/__init__.py", "class Gen:\n    def field(self, ctx):\n        pass\n")
        factory = ModuleLoader(tmp_path).load("mygen", "Gen")
        assert factory.hooks == ("field",)

    def test_sibling_generators_share_helpers(self, tmp_path, write_file):
        write_file("generators/helpers.py", "COUNT = []\nCOUNT.append(1)\n")
        write_file("generators/a.py", "from . import helpers\n\nclass A:\n    pass\n")
        write_file("generators/b.py", "from . import helpers\n\nclass B:\n    pass\n")

        loader = ModuleLoader(tmp_path)
        loader.load("./generators/a.py", "A")
        loader.load("./generators/b.py", "B")

        helpers = [module for name, module in sys.modules.items() if name.endswith(".helpers") and name.startswith(PRIVATE_PACKAGE)]
        assert len(helpers) == 1
        assert helpers[0].COUNT == [1]


class TestDottedReferences:
    """importlibで解決するモジュールパス"""

    @pytest.fixture
    def dotted_package(self, tmp_path, write_file, monkeypatch):
        write_file("site_gens/__init__.py", "")
        write_file("site_gens/ts.py", "def make():\n    return Visitor()\n\nclass Visitor:\n    def after(self, ctx):\n        return 'ok'\n")
        monkeypatch.syspath_prepend(str(tmp_path))
        yield "site_gens.ts"
        for name in ["site_gens", "site_gens.ts"]:
            sys.modules.pop(name, None)

    def test_class_export(self, dotted_package):
        factory = ModuleLoader().load(dotted_package, "Visitor")
        assert factory.create().after(None) == "ok"

    def test_factory_function_export(self, dotted_package):
        factory = ModuleLoader().load(dotted_package, "make")
        assert factory.hooks == ()
        assert factory.create().after(None) == "ok"

    def test_unknown_module(self, tmp_path):
        with pytest.raises(ModuleLoadError, match="Cannot import no_such_generator_pkg"):
            ModuleLoader(tmp_path).load("no_such_generator_pkg", "Gen")


class TestLoadErrors:
    """解決・実行・エクスポートのエラー"""

    def test_missing_file(self, tmp_path):
        with pytest.raises(ModuleLoadError, match="not found"):
            ModuleLoader(tmp_path).load("./missing.py", "Gen")

    def test_wrong_suffix(self, tmp_path, write_file):
        write_file("gen.txt", "class Gen: pass\n")
        with pytest.raises(ModuleLoadError, match=".py file or a package directory"):
            ModuleLoader(tmp_path).load("./gen.txt", "Gen")

    def test_module_raises_on_import(self, tmp_path, write_file):
        write_file("gen.py", "raise RuntimeError('import time failure')\n")
        with pytest.raises(ModuleLoadError, match="import time failure"):
            ModuleLoader(tmp_path).load("./gen.py", "Gen")

    def test_syntax_error(self, tmp_path, write_file):
        write_file("gen.py", "class Gen(\n")
        with pytest.raises(ModuleLoadError):
            ModuleLoader(tmp_path).load("./gen.py", "Gen")

    def test_missing_export(self, tmp_path, write_file):
        write_file("gen.py", "class Other:\n    pass\n")
        with pytest.raises(VisitorExportMissing, match="has no export 'Gen'"):
            ModuleLoader(tmp_path).load("./gen.py", "Gen")

    def test_non_callable_export(self, tmp_path, write_file):
        write_file("gen.py", "Gen = 42\n")
        with pytest.raises(VisitorExportMissing, match="expected a class or factory"):
            ModuleLoader(tmp_path).load("./gen.py", "Gen")

    def test_constructor_failure(self, tmp_path, write_file):
        write_file("gen.py", "class Gen:\n    def __init__(self):\n        raise ValueError('nope')\n")
        factory = ModuleLoader(tmp_path).load("./gen.py", "Gen")
        with pytest.raises(VisitorExportMissing, match="could not be instantiated: nope"):
            factory.create()

    def test_factory_returning_none(self, tmp_path, write_file):
        write_file("gen.py", "def make():\n    return None\n")
        factory = ModuleLoader(tmp_path).load("./gen.py", "make")
        with pytest.raises(VisitorExportMissing, match="returned None"):
            factory.create()

    def test_zero_hook_class_warns(self, tmp_path, write_file, caplog):
        write_file("gen.py", "class Gen:\n    def helper(self):\n        pass\n")

        factory = ModuleLoader(tmp_path).load("./gen.py", "Gen")

        assert factory.hooks == ()
        assert any("implements no recognised hooks" in record.getMessage() for record in caplog.records)

    def test_zero_hook_factory_warns_on_create(self, tmp_path, write_file, caplog):
        write_file("gen.py", "def make():\n    return object()\n")
        factory = ModuleLoader(tmp_path).load("./gen.py", "make")
        assert not [record for record in caplog.records if record.levelname == "WARNING"]

        factory.create()

        assert any("./gen.py:make implements no recognised hooks" in record.getMessage() for record in caplog.records)

    def test_factory_with_hooks_does_not_warn(self, tmp_path, write_file, caplog):
        write_file("gen.py", "class Gen:\n    def after(self, ctx):\n        pass\n\ndef make():\n    return Gen()\n")

        ModuleLoader(tmp_path).load("./gen.py", "make").create()

        assert not [record for record in caplog.records if record.levelname == "WARNING"]


class TestCache:
    """(参照, エクスポート名) キーのキャッシュ"""

    def test_unload_drops_modules_and_cache(self, tmp_path, write_file):
        write_file("gen.py", "class Gen:\n    def after(self, ctx):\n        pass\n")
        loader = ModuleLoader(tmp_path)
        module_name = loader.load("./gen.py", "Gen").factory.__module__
        assert module_name in sys.modules

        loader.unload()

        assert module_name not in sys.modules
        loader.load("./gen.py", "Gen")
        assert loader.load_count == 2

    def test_repeated_loads_hit_cache(self, tmp_path, write_file):
        write_file("gen.py", "class Gen:\n    def after(self, ctx):\n        pass\n")
        loader = ModuleLoader(tmp_path)

        first = loader.load("./gen.py", "Gen")
        second = loader.load("./gen.py", "Gen")

        assert first is second
        assert loader.load_count == 1

    def test_each_create_returns_new_instance(self, tmp_path, write_file):
        write_file("gen.py", "class Gen:\n    def after(self, ctx):\n        pass\n")
        factory = ModuleLoader(tmp_path).load("./gen.py", "Gen")
        assert factory.create() is not factory.create()

    def test_different_exports_are_separate_entries(self, tmp_path, write_file):
        write_file("gen.py", "class A:\n    def after(self, ctx):\n        pass\n\nclass B(A):\n    pass\n")
        loader = ModuleLoader(tmp_path)

        assert loader.load("./gen.py", "A").export_name == "A"
        assert loader.load("./gen.py", "B").export_name == "B"
        assert loader.load_count == 2

    def test_failures_are_cached(self, tmp_path, write_file):
        write_file("gen.py", "class Other:\n    pass\n")
        loader = ModuleLoader(tmp_path)

        with pytest.raises(VisitorExportMissing):
            loader.load("./gen.py", "Gen")
        write_file("gen.py", "class Gen:\n    pass\n")
        with pytest.raises(VisitorExportMissing):
            loader.load("./gen.py", "Gen")

        assert loader.load_count == 1

    def test_concurrent_loads_execute_module_once(self, tmp_path, write_file):
        write_file("counter.py", "CALLS = []\n")
        write_file(
            "gen.py",
            """
            import time

            from . import counter

            counter.CALLS.append(1)
            time.sleep(0.2)


            class Gen:
                def after(self, ctx):
                    pass
            """,
        )
        loader = ModuleLoader(tmp_path)
        results = []

        def worker():
            results.append(loader.load("./gen.py", "Gen"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        started = time.monotonic()
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert len(results) == 8
        assert all(result is results[0] for result in results)
        assert loader.load_count == 1
        counter = sys.modules[results[0].factory.__module__.rsplit(".", 1)[0] + ".counter"]
        assert counter.CALLS == [1]
        assert time.monotonic() - started < 5
