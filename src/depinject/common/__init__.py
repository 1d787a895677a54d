"""Shared helpers: HTTP access, logging, file IO."""

from .fileio import atomic_path, file_digest, write_text_atomic
from .http_client import HttpClient

__all__ = ["HttpClient", "atomic_path", "file_digest", "write_text_atomic"]
