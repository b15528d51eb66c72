"""
Attachment detection and tracking.

Decides whether an identifier names a binary attachment and keeps the
per-export registry of every attachment the Markdown links to.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, Mapping, Optional, Tuple

from .. import queries
from ..host import BaseHost
from ..models import AssetInfo, AssetMatch
from ..utils import (
    ASSET_FILE_PATTERN,
    ASSET_TYPE_KEY,
    RELATIVE_ASSET_PATTERN,
    asset_export_path,
    extract_uuid,
    format_asset_link,
    lookup,
    normalize_asset_dir,
)


class AssetDetector:
    """
    Finds attachments through the host and records them in ``assets``.

    The registry is keyed by identifier and must be reset at the start of
    every export.
    """

    def __init__(self, host: BaseHost):
        """
        Initialize the asset detector.

        Args:
            host: Host adapter used for queries and entity lookups
        """
        self.host = host
        self.graph_path = ""
        self.assets: Dict[str, AssetInfo] = OrderedDict()

    def reset(self, graph_path: str = "") -> None:
        self.graph_path = graph_path
        self.assets.clear()

    async def detect(self, uuid: str) -> Optional[AssetMatch]:
        """
        Check whether ``uuid`` is an attachment.

        Tries a structured query first, then fetches the identifier as a page
        and inspects its properties. Any host failure counts as "not found".

        Args:
            uuid: Identifier to check

        Returns:
            AssetMatch with file type and entity, or None
        """
        try:
            rows = await self.host.run_query(queries.asset_by_uuid(uuid))
            if rows and len(rows[0]) >= 2 and isinstance(rows[0][0], str):
                entity = rows[0][1] if isinstance(rows[0][1], Mapping) else {}
                return AssetMatch(type=rows[0][0], entity=dict(entity))
        except Exception as e:
            logging.debug(f"Asset query failed for {uuid}: {e}")

        try:
            page = await self.host.get_page(uuid)
            if page:
                file_type = await self._find_asset_type(page)
                if file_type:
                    return AssetMatch(type=file_type, entity=dict(page))
        except Exception as e:
            logging.debug(f"Asset page lookup failed for {uuid}: {e}")

        return None

    async def _find_asset_type(self, entity: Mapping[str, Any]) -> Optional[str]:
        properties = lookup(entity, "properties")
        for source in (entity, properties):
            value = lookup(source, ASSET_TYPE_KEY)
            if isinstance(value, str) and value:
                return value

        uuid = extract_uuid(lookup(entity, "uuid") or lookup(entity, "block/uuid"))
        if not uuid:
            return None

        try:
            rows = await self.host.run_query(queries.asset_type_by_namespace(uuid))
            if rows and rows[0] and isinstance(rows[0][0], str):
                return rows[0][0]
        except Exception as e:
            logging.debug(f"Asset type query failed for {uuid}: {e}")

        return None

    async def find_by_title(self, title: str) -> Optional[Tuple[str, str]]:
        """
        Look up an attachment by its title.

        Returns:
            Tuple of (uuid, file type), or None
        """
        try:
            rows = await self.host.run_query(queries.asset_by_title(title))
            if rows and len(rows[0]) >= 2:
                uuid = extract_uuid(rows[0][0])
                file_type = rows[0][1]
                if uuid and file_type:
                    return str(uuid), str(file_type)
        except Exception as e:
            logging.debug(f"Asset title lookup failed for {title!r}: {e}")

        return None

    async def resolve_db_reference(self, db_id: int, asset_path: str) -> Optional[str]:
        """
        Dereference an internal numeric id.

        Attachments resolve to their export path (and are registered);
        anything else resolves to its title, name or content.

        Returns:
            The resolved text, or None when the entity is unknown
        """
        try:
            rows = await self.host.run_query(queries.entity_by_db_id(db_id))
        except Exception as e:
            logging.debug(f"Reference lookup failed for db id {db_id}: {e}")
            return None

        if not rows or not rows[0] or not isinstance(rows[0][0], Mapping):
            return None

        entity = rows[0][0]
        uuid = extract_uuid(lookup(entity, "block/uuid") or lookup(entity, "uuid"))
        file_type = lookup(entity, ASSET_TYPE_KEY)
        if uuid and isinstance(file_type, str) and file_type:
            info = self.register(uuid, AssetMatch(type=file_type, entity=dict(entity)), asset_path)
            return info.export_path

        for key in ("block/title", "title", "block/name", "name", "block/content", "content"):
            text = lookup(entity, key)
            if isinstance(text, str) and text:
                return text

        return None

    def register(self, uuid: str, match: AssetMatch, asset_path: str) -> AssetInfo:
        """Record an attachment, replacing any entry created from a bare relative link."""
        info = AssetInfo(
            uuid=uuid,
            title=match.title_for(uuid),
            type=match.type,
            source_path=f"{self.graph_path}/assets/{uuid}.{match.type}",
            export_path=asset_export_path(uuid, match.type, asset_path),
        )
        self.assets[uuid] = info
        return info

    def link(self, uuid: str, match: AssetMatch, asset_path: str) -> str:
        """Register an attachment and return its Markdown link."""
        info = self.register(uuid, match, asset_path)
        return format_asset_link(info.title, info.export_path, info.type)

    def track_relative_links(self, content: str, asset_path: str) -> str:
        """
        Rewrite ``../assets/`` links to the export asset directory.

        Attachments named by identifier are registered unless a richer entry
        for the same identifier already exists.
        """
        prefix = normalize_asset_dir(asset_path)

        def replace(match) -> str:
            bang, title, file_name = match.group(1) or "", match.group(2), match.group(3)
            found = ASSET_FILE_PATTERN.search(file_name)
            if found:
                uuid, ext = found.group(1), found.group(2)
                if uuid not in self.assets:
                    self.assets[uuid] = AssetInfo(
                        uuid=uuid,
                        title=title or f"asset-{uuid[:8]}",
                        type=ext,
                        source_path=f"{self.graph_path}/assets/{uuid}.{ext}",
                        export_path=f"{prefix}{uuid}.{ext}",
                    )
            return f"{bang}[{title}]({prefix}{file_name})"

        return RELATIVE_ASSET_PATTERN.sub(replace, content)
