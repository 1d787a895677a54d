"""Tests for the two execution modes of the injector."""

import importlib
import sys
import uuid

import pytest

from conftest import build_zip
from depinject.errors import InjectionFailed
from depinject.injector import AppendingContext, IsolatedContext, inject
from depinject.models import ArtifactStage, Coordinate, ExecutionMode, InjectionTarget, LocalArtifact


def _unique(prefix):
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def _archive(tmp_path, package, entries):
    path = tmp_path / f"{package}.zip"
    path.write_bytes(build_zip({f"{package}/{name}": body for name, body in entries.items()}))
    return LocalArtifact(Coordinate("g", package, "1"), path, "h", ArtifactStage.VERIFIED)


@pytest.fixture
def clean_import_state():
    path_before = list(sys.path)
    modules_before = set(sys.modules)
    meta_before = list(sys.meta_path)
    yield
    sys.path[:] = path_before
    sys.meta_path[:] = meta_before
    for name in set(sys.modules) - modules_before:
        del sys.modules[name]
    importlib.invalidate_caches()


@pytest.mark.usefixtures("clean_import_state")
class TestAppendingMode:
    """Test archives appended to the host's sys.path."""

    def test_modules_importable_by_host(self, tmp_path):
        """Test appended modules are importable immediately."""
        package = _unique("dpi_append")
        artifact = _archive(tmp_path, package, {"__init__.py": "VALUE = 41\n"})

        context = inject(InjectionTarget((artifact,), ExecutionMode.APPENDING, "app"))

        assert isinstance(context, AppendingContext)
        assert str(artifact.path) in sys.path
        assert importlib.import_module(package).VALUE == 41

    def test_run_entry_point(self, tmp_path):
        """Test module:function entry points are called with arguments."""
        package = _unique("dpi_append")
        artifact = _archive(tmp_path, package, {
            "__init__.py": "",
            "cli.py": "def main(*args):\n    return ['ran', *args]\n",
        })

        context = inject(InjectionTarget((artifact,), ExecutionMode.APPENDING))

        assert context.run(f"{package}.cli:main", "x") == ["ran", "x"]

    def test_invalid_archive_leaves_sys_path_unchanged(self, tmp_path):
        """Test nothing is appended when any archive is unusable."""
        good = _archive(tmp_path, _unique("dpi_good"), {"__init__.py": ""})
        bad_path = tmp_path / "bad.zip"
        bad_path.write_bytes(b"not a zip")
        bad = LocalArtifact(Coordinate("g", "bad", "1"), bad_path, "h")
        before = list(sys.path)

        with pytest.raises(InjectionFailed):
            inject(InjectionTarget((good, bad), ExecutionMode.APPENDING))

        assert sys.path == before


@pytest.mark.usefixtures("clean_import_state")
class TestIsolatedMode:
    """Test private module registries."""

    def test_modules_invisible_to_host(self, tmp_path):
        """Test isolated modules never leak into the host import system."""
        package = _unique("dpi_iso")
        artifact = _archive(tmp_path, package, {"__init__.py": "VALUE = 7\n", "sub.py": "X = 1\n"})

        context = inject(InjectionTarget((artifact,), ExecutionMode.ISOLATED, "iso"))
        module = context.load(f"{package}.sub")

        assert isinstance(context, IsolatedContext)
        assert module.X == 1
        assert package not in sys.modules
        assert f"{package}.sub" in context.modules
        assert str(artifact.path) not in sys.path
        with pytest.raises(ModuleNotFoundError):
            importlib.import_module(package)

    def test_host_module_shadowed_only_while_active(self, tmp_path):
        """Test a host module of the same name is restored after activation."""
        package = _unique("dpi_shadow")
        host_dir = tmp_path / "host"
        (host_dir / package).mkdir(parents=True)
        (host_dir / package / "__init__.py").write_text("ORIGIN = 'host'\n")
        sys.path.insert(0, str(host_dir))
        host_module = importlib.import_module(package)
        artifact = _archive(tmp_path, package, {"__init__.py": "ORIGIN = 'context'\n"})

        context = inject(InjectionTarget((artifact,), ExecutionMode.ISOLATED))
        with context.activated():
            assert importlib.import_module(package).ORIGIN == "context"

        assert sys.modules[package] is host_module
        assert context.modules[package].ORIGIN == "context"

    def test_loaded_modules_are_reused(self, tmp_path):
        """Test a context keeps its module registry between loads."""
        package = _unique("dpi_iso")
        artifact = _archive(tmp_path, package, {"__init__.py": "import uuid\nTOKEN = uuid.uuid4().hex\n"})
        context = inject(InjectionTarget((artifact,), ExecutionMode.ISOLATED))

        assert context.load(package).TOKEN == context.load(package).TOKEN

    def test_run_entry_point(self, tmp_path):
        """Test entry points run inside the context."""
        package = _unique("dpi_iso")
        artifact = _archive(tmp_path, package, {
            "__init__.py": "",
            "app.py": "from . import helper\n\ndef main(name):\n    return helper.greet(name)\n",
            "helper.py": "def greet(name):\n    return 'hello ' + name\n",
        })
        context = inject(InjectionTarget((artifact,), ExecutionMode.ISOLATED))

        assert context.run(f"{package}.app:main", "world") == "hello world"
        assert f"{package}.helper" not in sys.modules

    def test_invalid_archive_raises(self, tmp_path):
        """Test unusable archives fail construction."""
        bad_path = tmp_path / "bad.zip"
        bad_path.write_bytes(b"not a zip")
        meta_before = list(sys.meta_path)

        with pytest.raises(InjectionFailed):
            inject(InjectionTarget((LocalArtifact(Coordinate("g", "b", "1"), bad_path, "h"),),
                                   ExecutionMode.ISOLATED))

        assert sys.meta_path == meta_before
