"""
Snapshot host for the exporter.

Serves pages, blocks, attachments and property definitions from an
in-memory snapshot of a graph instead of a running Logseq instance. The
snapshot can be built in code (tests) or loaded from a JSON or EDN file
(offline exports).

Snapshot layout::

    {
      "graph": {"path": "/graphs/notes"},
      "current": "<page or block uuid>",
      "pages": [{"uuid": ..., "name": ..., "db/id": 1, "properties": {...},
                 "blocks": [{"uuid": ..., "content": ..., "children": [...]}]}],
      "assets": [{"uuid": ..., "title": ..., "type": "png", "db/id": 2}],
      "properties": [{"ident": "user.property/author", "title": "author"}],
      "entities": [{"db/id": 3, "title": "Some entity"}],
      "queries": {"<query text>": [[...row...]]}
    }
"""

import collections.abc
import copy
import json
import logging
import re
import uuid as uuid_lib
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set

import edn_format

from ..exceptions import HostError
from ..utils import ASSET_TYPE_KEY, extract_uuid, lookup
from .base import BaseHost, PageId

UUID_LITERAL = re.compile(r'#uuid "([a-f0-9-]+)"', re.IGNORECASE)
TITLE_LITERAL = re.compile(r':block/title ("(?:[^"\\]|\\.)*")')
GROUND_LITERAL = re.compile(r"\(ground (-?\d+)\)")


class SnapshotHost(BaseHost):
    """
    Host adapter answering every lookup from a graph snapshot.

    Every call is recorded in ``calls`` (method name to list of argument
    tuples) and messages passed to ``show_message`` are kept in
    ``messages``. Method names added to ``failing_methods`` raise
    ``HostError`` when called.
    """

    def __init__(self, snapshot: Optional[Mapping[str, Any]] = None):
        """
        Initialize the snapshot host.

        Args:
            snapshot: Graph snapshot in the layout described in the module docstring
        """
        snapshot = snapshot or {}
        self.graph = snapshot.get("graph")
        self.current = snapshot.get("current")
        self.pages: List[Dict[str, Any]] = [dict(page) for page in snapshot.get("pages", [])]
        self.assets: List[Dict[str, Any]] = [dict(asset) for asset in snapshot.get("assets", [])]
        self.property_defs: List[Dict[str, Any]] = list(snapshot.get("properties", []))
        self.entities: List[Dict[str, Any]] = list(snapshot.get("entities", []))
        self.queries: Dict[str, List[List[Any]]] = dict(snapshot.get("queries", {}))

        self.calls: Dict[str, List[tuple]] = defaultdict(list)
        self.messages: List[tuple] = []
        self.failing_methods: Set[str] = set()

        self._blocks: Dict[str, Dict[str, Any]] = {}
        self._block_pages: Dict[str, Dict[str, Any]] = {}
        for page in self.pages:
            self._index_blocks(page.get("blocks", []), page)

        logging.debug(f"Snapshot host loaded {len(self.pages)} pages and {len(self.assets)} assets")

    @classmethod
    def from_file(cls, path: str) -> "SnapshotHost":
        """
        Load a snapshot from a ``.json`` or ``.edn`` file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file type is not supported
        """
        snapshot_path = Path(path)
        with open(snapshot_path, "r", encoding="utf-8") as f:
            content = f.read()

        if snapshot_path.suffix == ".json":
            data = json.loads(content)
        elif snapshot_path.suffix == ".edn":
            data = _from_edn(edn_format.loads(content))
        else:
            raise ValueError(f"Unsupported snapshot format: {snapshot_path.suffix}")

        logging.info(f"Loaded graph snapshot from {snapshot_path}")
        return cls(data)

    def _index_blocks(self, blocks: List[Dict[str, Any]], page: Dict[str, Any],
                      seen: Optional[Set[int]] = None) -> None:
        seen = seen if seen is not None else set()
        for block in blocks:
            if not isinstance(block, Mapping) or id(block) in seen:
                continue
            seen.add(id(block))
            block_uuid = extract_uuid(block.get("uuid"))
            if block_uuid:
                self._blocks[block_uuid.lower()] = block
                self._block_pages[block_uuid.lower()] = page
            self._index_blocks(block.get("children", []), page, seen)

    def _record(self, method: str, *args: Any) -> None:
        self.calls[method].append(args)
        if method in self.failing_methods:
            raise HostError(method, "simulated failure")

    def call_count(self, method: str) -> int:
        return len(self.calls.get(method, []))

    # Entity lookups

    def _find_page(self, page_id: PageId) -> Optional[Dict[str, Any]]:
        for page in self.pages + self.assets:
            if isinstance(page_id, int) and not isinstance(page_id, bool):
                if page.get("db/id") == page_id:
                    return page
                continue
            key = str(page_id).lower()
            if str(page.get("uuid", "")).lower() == key:
                return page
            if page in self.pages and str(page.get("name", "")).lower() == key:
                return page
        return None

    def _page_entity(self, page: Dict[str, Any]) -> Dict[str, Any]:
        entity = {k: copy.deepcopy(v) for k, v in page.items() if k != "blocks"}
        if page in self.assets and page.get("type"):
            entity[ASSET_TYPE_KEY] = page["type"]
        return entity

    def _block_entity(self, block: Dict[str, Any], include_children: bool) -> Dict[str, Any]:
        entity = copy.deepcopy(dict(block)) if include_children else dict(block)
        if not include_children:
            entity["children"] = [
                ["uuid", extract_uuid(child.get("uuid"))]
                for child in block.get("children", []) if isinstance(child, Mapping)
            ]
        page = self._block_pages.get(str(extract_uuid(block.get("uuid"))).lower())
        if page is not None and "page" not in entity:
            entity["page"] = {"id": page.get("db/id"), "uuid": page.get("uuid")}
        return entity

    async def get_current_page(self) -> Optional[Dict[str, Any]]:
        self._record("get_current_page")
        if not self.current:
            return None
        page = self._find_page(self.current)
        if page is not None:
            return self._page_entity(page)
        block = self._blocks.get(str(self.current).lower())
        return self._block_entity(block, include_children=False) if block else None

    async def get_page(self, page_id: PageId) -> Optional[Dict[str, Any]]:
        self._record("get_page", page_id)
        page = self._find_page(page_id)
        return self._page_entity(page) if page is not None else None

    async def get_block(self, uuid: str, include_children: bool = False) -> Optional[Dict[str, Any]]:
        self._record("get_block", uuid, include_children)
        block = self._blocks.get(str(uuid).lower())
        return self._block_entity(block, include_children) if block else None

    async def get_page_blocks_tree(self, page_id: PageId) -> List[Dict[str, Any]]:
        self._record("get_page_blocks_tree", page_id)
        page = self._find_page(page_id)
        if page is None:
            return []
        return list(page.get("blocks", []))

    async def get_current_graph(self) -> Optional[Dict[str, Any]]:
        self._record("get_current_graph")
        return dict(self.graph) if self.graph else None

    async def show_message(self, message: str, severity: str = "success") -> None:
        self._record("show_message", message, severity)
        self.messages.append((message, severity))

    # Queries

    async def run_query(self, query: str) -> List[List[Any]]:
        self._record("run_query", query)

        if query in self.queries:
            return copy.deepcopy(self.queries[query])

        if ":find ?ident ?title" in query:
            return [[d["ident"], d["title"]] for d in self.property_defs]

        if ":find ?prop-key ?prop-title" in query:
            return self._page_property_labels(_match(UUID_LITERAL, query))

        if "(ground " in query:
            return self._pull_db_id(int(_match(GROUND_LITERAL, query)))

        if ":find ?uuid ?type" in query:
            title = json.loads(_match(TITLE_LITERAL, query))
            return [
                [{"$uuid": asset["uuid"]}, asset["type"]]
                for asset in self.assets if asset.get("title") == title
            ]

        if "(namespace ?prop)" in query:
            asset = self._asset_entity(_match(UUID_LITERAL, query))
            return [[asset[ASSET_TYPE_KEY]]] if asset else []

        if ":find ?type (pull ?e [*])" in query:
            asset = self._asset_entity(_match(UUID_LITERAL, query))
            return [[asset[ASSET_TYPE_KEY], asset]] if asset else []

        logging.debug(f"Snapshot host has no answer for query: {query}")
        return []

    def _asset_entity(self, uuid: Optional[str]) -> Optional[Dict[str, Any]]:
        if not uuid:
            return None
        for asset in self.assets:
            if str(asset.get("uuid", "")).lower() == uuid.lower():
                return self._pull(asset)
        for page in self.pages:
            if str(page.get("uuid", "")).lower() == uuid.lower() and lookup(page, ASSET_TYPE_KEY):
                return self._pull(page)
        return None

    def _pull(self, entity: Mapping[str, Any]) -> Dict[str, Any]:
        """Shape an entity the way a ``(pull ?e [*])`` result looks."""
        pulled: Dict[str, Any] = {}
        if "db/id" in entity:
            pulled["db/id"] = entity["db/id"]
        if entity.get("uuid"):
            pulled["block/uuid"] = entity["uuid"]
        for source, target in (("title", "block/title"), ("name", "block/name"), ("content", "block/content")):
            if entity.get(source):
                pulled[target] = entity[source]
        asset_type = entity.get("type") if entity in self.assets else lookup(entity, ASSET_TYPE_KEY)
        if asset_type:
            pulled[ASSET_TYPE_KEY] = asset_type
        return pulled

    def _pull_db_id(self, db_id: int) -> List[List[Any]]:
        candidates = self.assets + self.pages + self.property_defs + self.entities + list(self._blocks.values())
        for entity in candidates:
            if entity.get("db/id") == db_id:
                return [[self._pull(entity)]]
        return []

    def _page_property_labels(self, page_uuid: Optional[str]) -> List[List[Any]]:
        page = self._find_page(page_uuid) if page_uuid else None
        if page is None:
            return []
        keys = {str(key).lstrip(":") for key in (page.get("properties") or {})}
        return [
            [d["ident"], d["title"]] for d in self.property_defs
            if str(d["ident"]).lstrip(":") in keys and str(d["ident"]).lstrip(":").startswith("user.property/")
        ]


def _match(pattern: "re.Pattern", query: str) -> Optional[str]:
    found = pattern.search(query)
    return found.group(1) if found else None


def _from_edn(value: Any) -> Any:
    """Convert parsed EDN into plain JSON-like Python values."""
    if isinstance(value, edn_format.Keyword):
        return value.name
    if isinstance(value, uuid_lib.UUID):
        return str(value)
    if isinstance(value, collections.abc.Mapping):
        return {_from_edn(k): _from_edn(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)) or (
        isinstance(value, collections.abc.Sequence) and not isinstance(value, str)
    ):
        return [_from_edn(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return [_from_edn(item) for item in value]
    return value
