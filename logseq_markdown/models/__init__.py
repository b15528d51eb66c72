"""Data models for the Markdown exporter."""

from .canonical import Block, Page
from .entities import AssetInfo, AssetMatch
from .options import DEFAULT_OPTIONS, ExportOptions, ExportResult

__all__ = [
    "Block",
    "Page",
    "AssetInfo",
    "AssetMatch",
    "DEFAULT_OPTIONS",
    "ExportOptions",
    "ExportResult",
]
