"""Relocation helper: produce a namespace-rewritten copy of an archive."""
from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import List, Sequence

from ..common.fileio import atomic_path, file_digest
from ..common.logging_utils import Timer, extra_context, is_debug_enabled
from ..errors import RelocationFailed
from ..models import ArtifactStage, LocalArtifact, Relocation
from ..storage import StorageLayout
from .meta import ArchiveEntry, DistInfoMediator
from .rewriter import RewriteError, SourceRewriter

logger = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".py", ".pyi")


def _is_bytecode(name: str) -> bool:
    return name.endswith((".pyc", ".pyo")) or "__pycache__/" in name


class ArchiveRelocator:
    """Rewrites an archive once per (content, rule set) and caches the result.

    The output path is derived from the input content hash and the ordered
    rules, so a second request for the same relocation finds the file and
    does no rewriting. Output is only placed once fully written.
    """

    def __init__(self, layout: StorageLayout, mediator: DistInfoMediator):
        self._layout = layout
        self._mediator = mediator

    def relocate(self, artifact: LocalArtifact, relocations: Sequence[Relocation]) -> LocalArtifact:
        """Relocate an artifact.

        Args:
            artifact: Verified artifact; its file is never modified.
            relocations: Rules in declaration order.

        Returns:
            ``artifact`` itself when there are no rules, otherwise a new
            LocalArtifact at the RELOCATED stage.

        Raises:
            RelocationFailed: If the archive is malformed or an entry cannot
                be rewritten.
        """
        if not relocations:
            return artifact
        output = self._layout.relocated_path(artifact.path.name, artifact.content_hash, relocations)
        if output.exists():
            logger.debug("Relocation cache hit for %s", artifact.coordinate)
            return self._artifact(artifact, output)

        logger.info("Relocating %s (%d rules)", artifact.coordinate, len(relocations))
        rewriter = SourceRewriter(relocations)
        try:
            with Timer() as t, atomic_path(output) as tmp:
                self._rewrite(artifact.path, tmp, rewriter)
        except RelocationFailed as exc:
            exc.coordinate = exc.coordinate or artifact.coordinate
            raise
        except RewriteError as exc:
            raise RelocationFailed(f"cannot relocate {artifact.coordinate}: {exc}", artifact.coordinate) from exc
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, UnicodeDecodeError,
                RuntimeError, NotImplementedError) as exc:
            raise RelocationFailed(
                f"malformed archive for {artifact.coordinate}: {exc}", artifact.coordinate
            ) from exc
        if is_debug_enabled(logger):
            logger.debug(
                "Relocation written",
                extra=extra_context(
                    event="relocate",
                    component="relocator",
                    outcome="success",
                    duration_ms=t.duration_ms(),
                    target=str(output),
                ),
            )
        return self._artifact(artifact, output)

    def _rewrite(self, source: Path, destination: Path, rewriter: SourceRewriter) -> None:
        with zipfile.ZipFile(source) as archive:
            corrupt = archive.testzip()
            if corrupt is not None:
                raise RelocationFailed(f"corrupt entry {corrupt} in {source.name}")
            entries: List[ArchiveEntry] = []
            seen = set()
            for info in archive.infolist():
                if _is_bytecode(info.filename):
                    logger.debug("Dropping stale bytecode %s", info.filename)
                    continue
                data = archive.read(info)
                name = rewriter.relocate_path(info.filename)
                if info.filename.endswith(SOURCE_SUFFIXES):
                    try:
                        data = rewriter.rewrite_source(data)
                    except RewriteError as exc:
                        raise RewriteError(f"{info.filename}: {exc}") from exc
                if name in seen:
                    raise RelocationFailed(f"relocation maps two entries onto {name}")
                seen.add(name)
                entries.append(ArchiveEntry(info, name, data))
            comment = archive.comment

        entries = self._mediator.mediate(entries, rewriter)
        with zipfile.ZipFile(destination, "w") as out:
            out.comment = comment
            for entry in entries:
                info = zipfile.ZipInfo(entry.name, date_time=entry.info.date_time)
                info.compress_type = entry.info.compress_type
                info.external_attr = entry.info.external_attr
                info.create_system = entry.info.create_system
                out.writestr(info, entry.data)

    @staticmethod
    def _artifact(artifact: LocalArtifact, path: Path) -> LocalArtifact:
        return LocalArtifact(artifact.coordinate, path, file_digest(path), ArtifactStage.RELOCATED)
