"""Metadata mediation for relocated wheels.

Renaming and rewriting entries invalidates ``*.dist-info`` bookkeeping:
RECORD hashes and paths, signatures over RECORD, ``top_level.txt`` and
``entry_points.txt``. The mediator brings those back in line with the
rewritten entries and records the applied relocations in METADATA, merging
with whatever headers are already there.
"""
from __future__ import annotations

import base64
import csv
import hashlib
import io
import logging
import zipfile
from dataclasses import dataclass
from typing import Dict, List

from .rewriter import SourceRewriter

logger = logging.getLogger(__name__)

SIGNATURE_FILES = ("RECORD.jws", "RECORD.p7s")
RELOCATION_HEADER = "Relocated-Namespace"


@dataclass
class ArchiveEntry:
    """One archive member on its way to the output archive."""

    info: zipfile.ZipInfo
    name: str
    data: bytes

    @property
    def is_dir(self) -> bool:
        return self.name.endswith("/")


def _dist_info_dir(name: str) -> str:
    head = name.split("/", 1)[0]
    return head if head.endswith(".dist-info") else ""


class DistInfoMediator:
    def mediate(self, entries: List[ArchiveEntry], rewriter: SourceRewriter) -> List[ArchiveEntry]:
        """Patch dist-info metadata of the rewritten entries.

        Args:
            entries: Entries after renaming and source rewriting, in archive order.
            rewriter: Rewriter carrying the applied relocation rules.

        Returns:
            The entries with metadata files patched and signatures removed.
            Archives without a dist-info directory pass through untouched.
        """
        dist_infos = {_dist_info_dir(e.name) for e in entries} - {""}
        if not dist_infos:
            return entries

        patched: List[ArchiveEntry] = []
        for entry in entries:
            base = _dist_info_dir(entry.name)
            leaf = entry.name[len(base) + 1:] if base else ""
            if base and leaf in SIGNATURE_FILES:
                logger.info("Dropping signature %s invalidated by relocation", entry.name)
                continue
            if base and leaf == "top_level.txt":
                entry.data = self._top_level(entry.data, rewriter)
            elif base and leaf == "entry_points.txt":
                entry.data = self._entry_points(entry.data, rewriter)
            elif base and leaf == "METADATA":
                entry.data = self._metadata(entry.data, rewriter)
            patched.append(entry)

        for base in dist_infos:
            self._record(patched, base)
        return patched

    @staticmethod
    def _top_level(data: bytes, rewriter: SourceRewriter) -> bytes:
        names: List[str] = []
        for line in data.decode("utf-8").splitlines():
            name = line.strip()
            if not name:
                continue
            top = (rewriter.relocate_name(name) or name).split(".", 1)[0]
            if top not in names:
                names.append(top)
        return "".join(f"{n}\n" for n in names).encode("utf-8")

    @staticmethod
    def _entry_points(data: bytes, rewriter: SourceRewriter) -> bytes:
        lines = []
        for line in data.decode("utf-8").splitlines():
            key, sep, value = line.partition("=")
            if sep and not line.lstrip().startswith(("[", "#", ";")):
                target = value.strip()
                module, colon, rest = target.partition(":")
                relocated = rewriter.relocate_name(module.strip())
                if relocated is not None:
                    line = f"{key.rstrip()} = {relocated}{colon}{rest}"
            lines.append(line)
        return ("\n".join(lines) + "\n").encode("utf-8")

    @staticmethod
    def _metadata(data: bytes, rewriter: SourceRewriter) -> bytes:
        text = data.decode("utf-8")
        head, sep, body = text.partition("\n\n")
        header_lines = head.splitlines()
        present = {
            line.split(":", 1)[1].strip()
            for line in header_lines
            if line.lower().startswith(RELOCATION_HEADER.lower() + ":")
        }
        for rule in rewriter.relocations:
            value = f"{rule.pattern} -> {rule.replacement}"
            if value not in present:
                header_lines.append(f"{RELOCATION_HEADER}: {value}")
                present.add(value)
        return ("\n".join(header_lines) + "\n" + (sep[1:] + body if sep else "")).encode("utf-8")

    @staticmethod
    def _record(entries: List[ArchiveEntry], base: str) -> None:
        record_name = f"{base}/RECORD"
        if not any(entry.name == record_name for entry in entries):
            info = zipfile.ZipInfo(record_name, date_time=(1980, 1, 1, 0, 0, 0))
            info.compress_type = zipfile.ZIP_DEFLATED
            entries.append(ArchiveEntry(info, record_name, b""))
        rows = []
        for entry in entries:
            if entry.is_dir:
                continue
            if entry.name == record_name:
                rows.append([record_name, "", ""])
                continue
            digest = base64.urlsafe_b64encode(hashlib.sha256(entry.data).digest()).rstrip(b"=")
            rows.append([entry.name, f"sha256={digest.decode('ascii')}", str(len(entry.data))])
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerows(rows)
        data = buffer.getvalue().encode("utf-8")
        for entry in entries:
            if entry.name == record_name:
                entry.data = data


def metadata_headers(data: bytes) -> Dict[str, List[str]]:
    """Header name -> values of a METADATA document (repeated headers kept)."""
    headers: Dict[str, List[str]] = {}
    head = data.decode("utf-8").split("\n\n", 1)[0]
    for line in head.splitlines():
        if ":" in line and not line.startswith((" ", "\t")):
            name, value = line.split(":", 1)
            headers.setdefault(name.strip(), []).append(value.strip())
    return headers
