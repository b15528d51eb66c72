"""
YAML frontmatter generation.

Turns a page's property bag into frontmatter. Property keys are internal
idents that are mapped to their human labels through the database; values
may be page links, attachment identifiers or numeric references into the
graph, and are dereferenced before being written out.
"""

import asyncio
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .. import queries
from ..host import BaseHost
from ..models import AssetMatch, Page
from ..utils import format_yaml, is_user_property, is_uuid, lookup, slugify, unique
from .assets import AssetDetector

LINK_VALUE_PATTERN = re.compile(r"^\[\[(.+)\]\]$")


class FrontmatterGenerator:
    """
    Builds the frontmatter block for a page.

    The property-definition mapping is queried once per export and kept
    until ``reset`` is called.
    """

    def __init__(self, host: BaseHost, assets: AssetDetector,
                 tag_properties: Iterable[str] = ("tags", "blogTags"),
                 system_properties: Iterable[str] = ("block/tags", "block/alias")):
        """
        Initialize the frontmatter generator.

        Args:
            host: Host adapter used for page fetches and metadata queries
            assets: Asset detector shared with the rest of the export
            tag_properties: Property labels merged into the ``tags`` list
            system_properties: System property keys allowed into the frontmatter
        """
        self.host = host
        self.assets = assets
        self.tag_labels = {label.lower() for label in tag_properties}
        self.system_properties = {key.lstrip(":") for key in system_properties}
        self._definitions: Optional[Dict[str, str]] = None

    def reset(self) -> None:
        self._definitions = None

    async def generate(self, page: Page, asset_path: str) -> str:
        """
        Generate frontmatter for ``page``.

        Args:
            page: The page being exported
            asset_path: Export directory prefix for attachments

        Returns:
            The YAML block including its ``---`` fences, or an empty string
        """
        try:
            entity = await self._refetch(page)
            data: Dict[str, Any] = {}

            if entity.name:
                data["title"] = entity.name
                data["slug"] = slugify(entity.name)

            labels = dict(await self._property_definitions())
            labels.update(await self._page_property_labels(entity.uuid or page.uuid))

            mapped = []
            for key, value in entity.properties.items():
                if not self._is_exported_key(key):
                    continue
                label = labels.get(key) or labels.get(f":{key}") or labels.get(key.lstrip(":"))
                if not label:
                    logging.debug(f"Skipping unmapped property: {key}")
                    continue
                mapped.append((key, label, value))

            tags: List[Any] = []
            for key, label, value in mapped:
                if label.lower() in self.tag_labels and value is not None:
                    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
                    for item in _ordered(items):
                        resolved = await self.resolve_value(item, asset_path)
                        if resolved is not None:
                            tags.append(resolved)
            if tags:
                data["tags"] = unique(tags)

            for key, label, value in mapped:
                if value is None or label.lower() in self.tag_labels:
                    continue
                if label in data and label != "title":
                    continue
                resolved = await self.resolve_value(value, asset_path)
                if resolved is not None:
                    data[label] = resolved

            return format_yaml(data) if data else ""

        except Exception as e:
            logging.error(f"Error generating frontmatter: {e}")
            return ""

    async def _refetch(self, page: Page) -> Page:
        if not page.uuid:
            return page
        try:
            entity = await self.host.get_page(page.uuid)
            if isinstance(entity, Mapping):
                fetched = Page.from_entity(entity)
                if not fetched.name:
                    fetched.name = page.name
                return fetched
        except Exception as e:
            logging.debug(f"Could not re-fetch page {page.uuid}: {e}")
        return page

    def _is_exported_key(self, key: str) -> bool:
        return is_user_property(key) or key.lstrip(":") in self.system_properties

    async def _property_definitions(self) -> Dict[str, str]:
        if self._definitions is None:
            self._definitions = await self._label_query(queries.property_definitions())
        return self._definitions

    async def _page_property_labels(self, page_uuid: Optional[str]) -> Dict[str, str]:
        if not page_uuid:
            return {}
        return await self._label_query(queries.page_user_properties(page_uuid))

    async def _label_query(self, query: str) -> Dict[str, str]:
        """Run an ident/title query and index every title by both ident spellings."""
        labels: Dict[str, str] = {}
        try:
            rows = await self.host.run_query(query)
        except Exception as e:
            logging.debug(f"Could not query property definitions: {e}")
            return labels

        for row in rows or []:
            if len(row) < 2 or not isinstance(row[1], str):
                continue
            ident = str(row[0]).lstrip(":")
            labels[ident] = row[1]
            labels[f":{ident}"] = row[1]
        return labels

    async def resolve_value(self, value: Any, asset_path: str) -> Any:
        """
        Dereference one property value.

        Values that no strategy can resolve are returned unchanged.

        Args:
            value: Raw property value
            asset_path: Export directory prefix for attachments

        Returns:
            A YAML-serializable value
        """
        if value is None or isinstance(value, bool):
            return value

        if isinstance(value, str):
            return await self._resolve_string(value, asset_path)

        if isinstance(value, int):
            resolved = await self.assets.resolve_db_reference(value, asset_path)
            return resolved if resolved is not None else value

        if isinstance(value, Mapping):
            db_id = lookup(value, "db/id")
            if isinstance(db_id, int) and not isinstance(db_id, bool):
                resolved = await self.assets.resolve_db_reference(db_id, asset_path)
                return resolved if resolved is not None else value
            return value

        if isinstance(value, (list, tuple, set, frozenset)):
            return list(await asyncio.gather(
                *(self.resolve_value(item, asset_path) for item in _ordered(value))
            ))

        return value

    async def _resolve_string(self, value: str, asset_path: str) -> str:
        trimmed = value.strip()

        link = LINK_VALUE_PATTERN.match(trimmed)
        if link:
            inner = link.group(1)
            if is_uuid(inner):
                path = await self._asset_path_for(inner, asset_path)
                if path:
                    return path
            return inner

        if is_uuid(trimmed):
            path = await self._asset_path_for(trimmed, asset_path)
            if path:
                return path

        if trimmed and "\n" not in trimmed:
            found = await self.assets.find_by_title(trimmed)
            if found:
                uuid, file_type = found
                match = AssetMatch(type=file_type, entity={"title": trimmed})
                return self.assets.register(uuid, match, asset_path).export_path

        return value

    async def _asset_path_for(self, uuid: str, asset_path: str) -> Optional[str]:
        match = await self.assets.detect(uuid)
        if not match:
            return None
        return self.assets.register(uuid, match, asset_path).export_path


def _ordered(items: Any) -> List[Any]:
    """Lists keep their order; set-like collections are sorted for a stable output."""
    if isinstance(items, (set, frozenset)):
        return sorted(items, key=str)
    return list(items)
