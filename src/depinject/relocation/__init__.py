"""Archive relocation: source rewriting, path renaming and metadata mediation."""

from .meta import ArchiveEntry, DistInfoMediator, metadata_headers
from .relocator import ArchiveRelocator
from .rewriter import RewriteError, SourceRewriter

__all__ = [
    "ArchiveEntry",
    "ArchiveRelocator",
    "DistInfoMediator",
    "RewriteError",
    "SourceRewriter",
    "metadata_headers",
]
