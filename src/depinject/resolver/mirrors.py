"""Mirror selection: which base URLs to try for a repository, in order."""
from __future__ import annotations

from typing import List, Protocol

from ..models import Repository


class MirrorSelector(Protocol):
    def select(self, repository: Repository) -> List[str]: ...


class SimpleMirrorSelector:
    """Primary URL first, then mirrors in configured order, duplicates dropped."""

    def select(self, repository: Repository) -> List[str]:
        candidates: List[str] = []
        for url in (repository.url, *repository.mirrors):
            if url not in candidates:
                candidates.append(url)
        return candidates
