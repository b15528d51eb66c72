"""
Export orchestration.

Fetches the page (or focused block) and its block tree from the host,
resets the per-export state, builds frontmatter and title, pre-warms the
reference cache and hands the tree to the block formatter.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Union

from ..exceptions import NoActivePageError
from ..host import BaseHost
from ..host.base import PageId
from ..models import AssetInfo, Block, DEFAULT_OPTIONS, ExportOptions, ExportResult, Page
from ..utils import clean_logseq_syntax, lookup, post_process_markdown
from .assets import AssetDetector
from .formatter import BlockFormatter
from .frontmatter import FrontmatterGenerator
from .references import ReferenceResolver

OptionsLike = Union[ExportOptions, Mapping[str, Any], None]


class MarkdownExporter:
    """
    Exports Logseq pages to Markdown.

    One instance owns one set of per-export state (resolution cache,
    processed-block set, attachment registry). The state is reset at the
    start of every export, so overlapping exports need separate instances.
    """

    def __init__(self, host: BaseHost,
                 tag_properties: Iterable[str] = ("tags", "blogTags"),
                 system_properties: Iterable[str] = ("block/tags", "block/alias")):
        """
        Initialize the exporter.

        Args:
            host: Host adapter to read the graph from
            tag_properties: Property labels merged into the frontmatter ``tags`` list
            system_properties: System property keys allowed into the frontmatter
        """
        self.host = host
        self.assets = AssetDetector(host)
        self.resolver = ReferenceResolver(host, self.assets)
        self.frontmatter = FrontmatterGenerator(host, self.assets, tag_properties, system_properties)
        self.formatter = BlockFormatter(self.resolver, self.assets)

    @property
    def referenced_assets(self) -> Dict[str, AssetInfo]:
        """Attachments registered by the last export, keyed by identifier."""
        return self.assets.assets

    @property
    def graph_path(self) -> str:
        return self.assets.graph_path

    async def export_current_page(self, options: OptionsLike = None) -> str:
        """
        Export the page open in Logseq, or the focused block's children when zoomed in.

        Args:
            options: Export options (defaults when omitted)

        Returns:
            The Markdown document

        Raises:
            NoActivePageError: If nothing is open
        """
        entity = await self.host.get_current_page()
        if not entity:
            raise NoActivePageError()
        return await self._export_entity(entity, _coerce_options(options))

    async def export_page(self, page_id: PageId, options: OptionsLike = None) -> str:
        """
        Export a page by name, identifier or numeric id.

        Raises:
            NoActivePageError: If the page does not exist
        """
        entity = await self.host.get_page(page_id)
        if not entity:
            logging.warning(f"Page not found: {page_id}")
            raise NoActivePageError()
        return await self._export_entity(entity, _coerce_options(options))

    async def export(self, options: OptionsLike = None, page_id: Optional[PageId] = None) -> ExportResult:
        """Export and bundle the Markdown with the attachment registry and graph path."""
        if page_id is None:
            markdown = await self.export_current_page(options)
        else:
            markdown = await self.export_page(page_id, options)
        return ExportResult(
            markdown=markdown,
            assets=dict(self.referenced_assets),
            graph_path=self.graph_path,
        )

    async def export_query_results(self, query: str) -> str:
        """
        Render the rows of a Datalog query as a Markdown document.

        Rows carrying block content are written as cleaned text, anything
        else as indented JSON. Query failures propagate.
        """
        rows = await self.host.run_query(query)
        markdown = "# Query Results\n\n"

        if not rows:
            return markdown + "_No results found for the query._\n"

        for row in rows:
            item = row[0] if isinstance(row, (list, tuple)) and len(row) == 1 else row
            content = lookup(item, "block/content")
            if isinstance(content, str):
                markdown += clean_logseq_syntax(content) + "\n\n"
            elif isinstance(item, (Mapping, list, tuple)):
                markdown += json.dumps(item, indent=2, default=str) + "\n\n"

        return markdown

    async def _export_entity(self, entity: Mapping[str, Any], options: ExportOptions) -> str:
        root = Page.from_entity(entity)
        await self._reset(options)

        if options.debug:
            logging.debug(f"Starting export with options: {options.model_dump()}")

        if root.is_block:
            logging.info(f"Exporting focused block {root.uuid}")
            page = await self._owning_page(root)
            blocks = await self._focused_children(root)
        else:
            logging.info(f"Exporting page: {root.name or root.uuid}")
            page = root
            tree = await self.host.get_page_blocks_tree(root.uuid or root.name)
            blocks = [Block.from_entity(item) for item in tree or [] if isinstance(item, Mapping)]

        frontmatter = ""
        body = ""
        if page is not None:
            if options.include_properties:
                frontmatter = await self.frontmatter.generate(page, options.asset_path)
            if options.include_page_name and page.name:
                body = f"# {page.name}\n\n"

        if blocks:
            logging.info(f"Formatting {len(blocks)} top-level blocks")
            if options.preserve_block_refs:
                await self.resolver.prewarm(blocks, options.asset_path)

            property_values = _property_values(page) if page is not None else set()
            for block in blocks:
                content = block.content.strip()
                if content and content in property_values:
                    logging.debug(f"Skipping property value block: {content!r}")
                    continue
                body += await self.formatter.format(block, 0, options)

        markdown = post_process_markdown(body)
        if frontmatter:
            markdown = f"{frontmatter}\n{markdown}" if markdown else frontmatter.rstrip("\n")

        logging.info(f"Export finished with {len(self.referenced_assets)} assets registered")
        return markdown

    async def _reset(self, options: ExportOptions) -> None:
        graph_path = ""
        try:
            graph = await self.host.get_current_graph()
            graph_path = str(lookup(graph, "path") or "")
        except Exception as e:
            logging.warning(f"Could not read the current graph: {e}")

        self.assets.reset(graph_path)
        self.resolver.reset(options)
        self.frontmatter.reset()
        self.formatter.reset()

    async def _owning_page(self, block: Page) -> Optional[Page]:
        page_id = block.parent_page_id
        if page_id is None:
            return None
        try:
            entity = await self.host.get_page(page_id)
            if isinstance(entity, Mapping):
                return Page.from_entity(entity)
        except Exception as e:
            logging.warning(f"Could not fetch the page owning block {block.uuid}: {e}")
        return None

    async def _focused_children(self, block: Page) -> List[Block]:
        entity = await self.host.get_block(block.uuid, include_children=True)
        if not isinstance(entity, Mapping):
            return []
        return Block.from_entity(entity).children


def _coerce_options(options: OptionsLike) -> ExportOptions:
    if options is None:
        return DEFAULT_OPTIONS
    if isinstance(options, ExportOptions):
        return options
    return ExportOptions(**options)


def _property_values(page: Page) -> Set[str]:
    """Text of every string property value; blocks holding exactly that text only carry the value."""
    values: Set[str] = set()
    for value in page.properties.values():
        items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
        values.update(item.strip() for item in items if isinstance(item, str))
    return values
