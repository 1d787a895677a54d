"""Shared fixtures: an in-memory repository and archive builders."""

import io
import zipfile
from pathlib import Path

import pytest
import requests

from depinject.models import Coordinate, Dependency, Repository

FIXED_TIME = (2020, 1, 1, 0, 0, 0)


class FakeHttp:
    """Stands in for HttpClient; serves bytes from a dict and records every call."""

    def __init__(self, files=None):
        self.files = dict(files or {})
        self.calls = []

    def ping(self, url):
        self.calls.append(("HEAD", url))
        return url in self.files

    def get_text(self, url):
        self.calls.append(("GET", url))
        data = self.files.get(url)
        return None if data is None else data.decode("utf-8")

    def download(self, url, destination):
        self.calls.append(("DOWNLOAD", url))
        if url not in self.files:
            raise requests.HTTPError(f"404 for {url}")
        Path(destination).write_bytes(self.files[url])

    def close(self):
        pass

    def urls(self, method=None):
        return [url for m, url in self.calls if method is None or m == method]


def build_zip(entries, comment=b""):
    """Zip bytes for ``{name: bytes|str}`` with fixed timestamps."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.comment = comment
        for name, data in entries.items():
            if isinstance(data, str):
                data = data.encode("utf-8")
            archive.writestr(zipfile.ZipInfo(name, date_time=FIXED_TIME), data)
    return buffer.getvalue()


def read_zip(path):
    with zipfile.ZipFile(path) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


def make_dependency(text="org.example:demo:1.0", base="https://repo.example/maven2/", **kwargs):
    repositories = kwargs.pop("repositories", (Repository("example", base),))
    return Dependency(coordinate=Coordinate.parse(text), repositories=repositories, **kwargs)


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def storage(tmp_path):
    return tmp_path / "store"
