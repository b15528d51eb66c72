"""Export engine: asset detection, reference resolution, frontmatter and block formatting."""

from .assets import AssetDetector
from .references import ReferenceResolver
from .frontmatter import FrontmatterGenerator
from .formatter import BlockFormatter
from .exporter import MarkdownExporter

__all__ = ["AssetDetector", "ReferenceResolver", "FrontmatterGenerator", "BlockFormatter", "MarkdownExporter"]
