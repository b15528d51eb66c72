"""
Block tree formatting.

Walks a block tree depth-first and renders each block as a paragraph,
heading, list item, quote or fenced code block.
"""

import asyncio
import logging
from typing import Set

from ..models import Block, ExportOptions
from ..utils import clean_logseq_syntax, is_property_only_block
from .assets import AssetDetector
from .references import ReferenceResolver


class BlockFormatter:
    """
    Renders block trees to Markdown.

    Keeps the set of block identifiers already emitted in the current export,
    so a block reachable through several paths (or through a cycle) is
    rendered once.
    """

    def __init__(self, resolver: ReferenceResolver, assets: AssetDetector):
        """
        Initialize the formatter.

        Args:
            resolver: Reference resolver for block content
            assets: Asset detector for blocks that are attachments themselves
        """
        self.resolver = resolver
        self.assets = assets
        self.processed: Set[str] = set()

    def reset(self) -> None:
        self.processed.clear()

    async def format(self, block: Block, depth: int, options: ExportOptions) -> str:
        """
        Render ``block`` and its descendants.

        Args:
            block: Block to render
            depth: Nesting depth, 0 at the top of the export
            options: Export options

        Returns:
            Markdown fragment (empty when the block was already emitted)
        """
        if block is None:
            return ""

        if block.uuid:
            if block.uuid in self.processed:
                return ""
            self.processed.add(block.uuid)

        asset_path = options.asset_path

        if block.uuid:
            match = await self.assets.detect(block.uuid)
            if match:
                link = self.assets.link(block.uuid, match, asset_path)
                return link + "\n\n" + await self._format_children(block, self._child_depth(depth, options), options)

        raw = block.content or ""
        if is_property_only_block(raw):
            return await self._format_children(block, self._child_depth(depth, options), options)

        display_type = block.display_type

        if display_type == "code":
            fence = f"```{block.code_language}\n{raw}\n```\n\n" if raw.strip() else ""
            return fence + await self._format_children(block, self._child_depth(depth, options), options)

        content = await self._prepare_content(raw, options)

        if display_type == "quote":
            quote = "\n".join(f"> {line}" for line in content.split("\n")) + "\n\n" if content else ""
            return quote + await self._format_children(block, depth + 1, options)

        heading_level = block.heading_level
        if heading_level is not None and options.debug:
            logging.debug(f"Block with heading level {heading_level}: {raw[:40]}")

        if heading_level is not None and content and options.flatten_nested:
            heading = "#" * heading_level + " " + content
            return heading + "\n\n" + await self._format_children(block, depth, options)

        if options.flatten_nested or depth == 0:
            paragraph = f"{content}\n\n" if content else ""
            return paragraph + await self._format_children(block, self._child_depth(depth, options), options)

        indent = "  " * (depth - 1)
        item = ""
        if content:
            lines = content.split("\n")
            item = f"{indent}- {lines[0]}\n" + "".join(f"{indent}  {line}\n" for line in lines[1:])
        return item + await self._format_children(block, depth + 1, options)

    async def _prepare_content(self, raw: str, options: ExportOptions) -> str:
        content = raw
        if options.preserve_block_refs:
            content = await self.resolver.resolve_references(content, options.asset_path)
        if options.remove_logseq_syntax:
            content = clean_logseq_syntax(content, include_tags=options.include_tags)
        content = self.assets.track_relative_links(content, options.asset_path)
        return content.strip()

    @staticmethod
    def _child_depth(depth: int, options: ExportOptions) -> int:
        """Flattened children stay at the parent's depth; list children go one level deeper."""
        return depth if options.flatten_nested else depth + 1

    async def _format_children(self, block: Block, child_depth: int, options: ExportOptions) -> str:
        """Render children concurrently, joined in document order."""
        if not block.children:
            return ""

        results = await asyncio.gather(
            *(self.format(child, child_depth, options) for child in block.children)
        )
        return "".join(results)
