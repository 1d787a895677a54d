"""End-to-end pipeline tests against an in-memory repository."""

import hashlib
import importlib
import sys
import uuid
from unittest.mock import patch

import pytest

from conftest import FakeHttp, build_zip, make_dependency
from depinject.config import Settings
from depinject.errors import ResolutionFailed, VerificationFailed
from depinject.injector import IsolatedContext
from depinject.models import ArtifactStage, ExecutionMode, InjectionTarget, Relocation
from depinject.pipeline import Pipeline, describe, load

BASE = "https://repo.example/maven2/"
URL = BASE + "org/example/demo/1.0/demo-1.0.zip"


@pytest.fixture
def package():
    name = f"dpi_pipe_{uuid.uuid4().hex[:8]}"
    yield name
    for module in [m for m in sys.modules if m.split(".")[0].startswith("dpi_")]:
        del sys.modules[module]
    importlib.invalidate_caches()


def _repository(package, checksum=True):
    payload = build_zip({
        f"{package}/__init__.py": f"from {package} import util\nNAME = '{package}.util'\n",
        f"{package}/util.py": "def answer():\n    return 42\n",
    })
    files = {URL: payload}
    if checksum:
        files[URL + ".sha1"] = hashlib.sha1(payload).hexdigest().encode()
    return FakeHttp(files), payload


def _settings(tmp_path, **kwargs):
    return Settings(storage_root=tmp_path / "store", max_workers=2, **kwargs)


class TestPipeline:
    """Test the full resolve, download, verify, relocate and inject flow."""

    def test_isolated_run_with_relocation(self, tmp_path, package):
        """Test relocated code is loadable in an isolated context only."""
        http, _ = _repository(package)
        vendor = f"dpi_vendor_{uuid.uuid4().hex[:8]}"
        dependency = make_dependency(relocations=(Relocation(package, f"{vendor}.{package}"),))

        with Pipeline(_settings(tmp_path, mode=ExecutionMode.ISOLATED), http=http) as pipeline:
            context = pipeline.run([dependency])

        assert isinstance(context, IsolatedContext)
        module = context.load(f"{vendor}.{package}")
        assert module.NAME == f"{vendor}.{package}.util"
        assert module.util.answer() == 42
        assert vendor not in sys.modules

    def test_target_carries_mode_and_name(self, tmp_path, package):
        """Test the injector receives the prepared artifacts and settings."""
        http, _ = _repository(package)
        targets = []
        settings = _settings(tmp_path, mode="isolated", application_name="myapp")

        Pipeline(settings, http=http, injector=targets.append).run([make_dependency()])

        (target,) = targets
        assert isinstance(target, InjectionTarget)
        assert target.mode is ExecutionMode.ISOLATED
        assert target.name == "myapp"
        assert target.artifacts[0].stage is ArtifactStage.VERIFIED

    def test_repeat_run_makes_no_network_calls(self, tmp_path, package):
        """Test every stage is served from cache on a second run."""
        http, _ = _repository(package)
        dependency = make_dependency(relocations=(Relocation(package, f"dpi_v.{package}"),))
        pipeline = Pipeline(_settings(tmp_path), http=http)
        first = pipeline.prepare([dependency])
        calls = len(http.calls)

        second = pipeline.prepare([dependency])

        assert len(http.calls) == calls
        assert describe(first) == describe(second)

    def test_corrupt_cached_download_is_fetched_again(self, tmp_path, package, caplog):
        """Test a cached file failing verification is replaced once."""
        http, payload = _repository(package)
        dependency = make_dependency()
        first = Pipeline(_settings(tmp_path), http=http).prepare([dependency])
        first[0].artifact.path.write_bytes(b"corrupted")

        with caplog.at_level("WARNING"):
            (prepared,) = Pipeline(_settings(tmp_path), http=http).prepare([dependency])

        assert prepared.artifact.path.read_bytes() == payload
        assert http.urls("DOWNLOAD") == [URL, URL]
        assert "failed verification" in caplog.text

    def test_checksum_mismatch_is_fatal(self, tmp_path, package):
        """Test a fresh download with the wrong checksum stops the run."""
        http, _ = _repository(package)
        http.files[URL + ".sha1"] = b"0" * 40

        with pytest.raises(VerificationFailed):
            Pipeline(_settings(tmp_path), http=http).prepare([make_dependency()])

        assert http.urls("DOWNLOAD") == [URL]

    def test_reject_policy_without_checksum(self, tmp_path, package):
        """Test unverifiable artifacts are refused under the reject policy."""
        http, _ = _repository(package, checksum=False)

        with pytest.raises(VerificationFailed):
            Pipeline(_settings(tmp_path, unverified_policy="reject"), http=http).prepare([make_dependency()])

    def test_reject_policy_holds_on_repeat(self, tmp_path, package):
        """Test a refused artifact is refused again on the next run."""
        http, _ = _repository(package, checksum=False)
        settings = _settings(tmp_path, unverified_policy="reject")

        for _ in range(2):
            with pytest.raises(VerificationFailed):
                Pipeline(settings, http=http).prepare([make_dependency()])

    def test_unresolvable_dependency(self, tmp_path):
        """Test resolution failures surface before any download."""
        http = FakeHttp()

        with pytest.raises(ResolutionFailed):
            Pipeline(_settings(tmp_path), http=http).prepare([make_dependency()])

        assert http.urls("DOWNLOAD") == []

    def test_empty_dependency_set(self, tmp_path):
        """Test nothing to do yields nothing."""
        assert Pipeline(_settings(tmp_path), http=FakeHttp()).prepare([]) == []

    def test_describe(self, tmp_path, package):
        """Test the JSON summary of prepared artifacts."""
        http, payload = _repository(package)

        (entry,) = describe(Pipeline(_settings(tmp_path), http=http).prepare([make_dependency()]))

        assert entry["coordinate"] == "org.example:demo:1.0"
        assert entry["url"] == URL
        assert entry["repository"] == "example"
        assert entry["sha256"] == hashlib.sha256(payload).hexdigest()
        assert entry["stage"] == "verified"


class TestLoad:
    """Test the one-call convenience entry point."""

    def test_appending_load(self, tmp_path, package):
        """Test load() makes the modules importable by host code."""
        http, _ = _repository(package)
        path_before = list(sys.path)

        try:
            with patch("depinject.pipeline.HttpClient", return_value=http):
                load([make_dependency()], _settings(tmp_path))
            assert importlib.import_module(f"{package}.util").answer() == 42
        finally:
            sys.path[:] = path_before
