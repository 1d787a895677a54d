"""Deterministic on-disk layout under the storage root.

    <root>/downloads/<group path>/<artifact>/<version>/<file>
    <root>/checksums/<group path>/<artifact>/<version>/<file>.<algorithm>
    <root>/relocated/<digest of content and rules>/<file>

The layout is stable across runs; it is what makes every stage cacheable.
"""
from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Iterable

from .constants import Constants
from .models import Dependency, Relocation


class StorageLayout:
    def __init__(self, root: Path):
        self.root = Path(root).expanduser()

    def download_path(self, dependency: Dependency) -> Path:
        coordinate = dependency.coordinate
        return self.root.joinpath(
            Constants.DOWNLOADS_DIR,
            *coordinate.path_segments(),
            coordinate.file_name(dependency.extension),
        )

    def checksum_path(self, dependency: Dependency, algorithm: str) -> Path:
        coordinate = dependency.coordinate
        return self.root.joinpath(
            Constants.CHECKSUMS_DIR,
            *coordinate.path_segments(),
            f"{coordinate.file_name(dependency.extension)}.{algorithm}",
        )

    def relocated_path(self, file_name: str, content_hash: str,
                       relocations: Iterable[Relocation]) -> Path:
        return self.root.joinpath(
            Constants.RELOCATED_DIR,
            relocation_key(content_hash, relocations),
            file_name,
        )


def relocation_key(content_hash: str, relocations: Iterable[Relocation]) -> str:
    """Digest of the input content hash and the ordered rule set."""
    rules = [
        [r.pattern, r.replacement, list(r.includes), list(r.excludes)]
        for r in relocations
    ]
    payload = json.dumps({"content": content_hash, "rules": rules}, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:32]
