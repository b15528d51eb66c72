"""Host adapters the exporter reads the graph through."""

from .base import BaseHost
from .http_api import LogseqAPIHost
from .snapshot import SnapshotHost

__all__ = ["BaseHost", "LogseqAPIHost", "SnapshotHost"]
