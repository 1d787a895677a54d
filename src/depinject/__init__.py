"""depinject: runtime dependency resolution, verification, relocation and loading."""

from .config import Settings, load_settings
from .descriptor import load_descriptor
from .errors import (
    DepInjectError,
    DescriptorError,
    DownloadFailed,
    InjectionFailed,
    RelocationFailed,
    ResolutionFailed,
    VerificationFailed,
)
from .injector import AppendingContext, IsolatedContext, inject
from .models import (
    Coordinate,
    Dependency,
    ExecutionMode,
    InjectionTarget,
    LocalArtifact,
    Relocation,
    Repository,
    ResolutionResult,
)
from .pipeline import Pipeline, PreparedArtifact, load

__version__ = "0.1.0"

__all__ = [
    "AppendingContext",
    "Coordinate",
    "DepInjectError",
    "Dependency",
    "DescriptorError",
    "DownloadFailed",
    "ExecutionMode",
    "InjectionFailed",
    "InjectionTarget",
    "IsolatedContext",
    "LocalArtifact",
    "Pipeline",
    "PreparedArtifact",
    "Relocation",
    "RelocationFailed",
    "Repository",
    "ResolutionFailed",
    "ResolutionResult",
    "Settings",
    "VerificationFailed",
    "inject",
    "load",
    "load_descriptor",
    "load_settings",
]
