"""
Logseq Markdown: exports Logseq pages as clean, portable Markdown.

Resolves page links, block references and attachments into plain Markdown
and turns page properties into YAML frontmatter.
"""

__version__ = "0.1.0"
__author__ = "Logseq Markdown Project"

# Import main components
from .exceptions import ExportError, NoActivePageError, HostError
from .models import Block, Page, AssetInfo, ExportOptions, ExportResult
from .host import BaseHost, LogseqAPIHost, SnapshotHost
from .exporter import MarkdownExporter

__all__ = [
    "ExportError",
    "NoActivePageError",
    "HostError",
    "Block",
    "Page",
    "AssetInfo",
    "ExportOptions",
    "ExportResult",
    "BaseHost",
    "LogseqAPIHost",
    "SnapshotHost",
    "MarkdownExporter"
]
