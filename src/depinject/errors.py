"""Error taxonomy for the dependency pipeline.

Every stage raises exactly one of these. They are terminal for the coordinate
they name; the pipeline does not try to continue with a partial set.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from .models import Coordinate


class DepInjectError(Exception):
    """Base error for depinject failures."""

    def __init__(self, message: str, coordinate: Optional[Coordinate] = None):
        super().__init__(message)
        self.coordinate = coordinate


class ResolutionFailed(DepInjectError):
    """No reachable repository or mirror served one or more coordinates."""

    def __init__(self, coordinates: Iterable[Coordinate]):
        self.coordinates: Tuple[Coordinate, ...] = tuple(coordinates)
        names = ", ".join(str(c) for c in self.coordinates)
        super().__init__(
            f"unable to resolve {names}",
            self.coordinates[0] if len(self.coordinates) == 1 else None,
        )


class DownloadFailed(DepInjectError):
    """Network or IO error while fetching an artifact."""


class VerificationFailed(DepInjectError):
    """Artifact checksum did not match, or an unverifiable artifact was rejected."""


class RelocationFailed(DepInjectError):
    """Archive was malformed or an entry could not be rewritten."""


class InjectionFailed(DepInjectError):
    """The import system refused to construct or extend a loading context."""


class DescriptorError(DepInjectError, ValueError):
    """A dependency descriptor file could not be understood."""
