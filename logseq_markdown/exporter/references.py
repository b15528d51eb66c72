"""
Reference resolution.

Rewrites ``[[uuid]]`` page references, ``((uuid))`` block references and
bare identifiers into readable text, trying attachments, then pages, then
blocks. Results are cached for the lifetime of one export.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from ..host import BaseHost
from ..models import AssetMatch, Block, DEFAULT_OPTIONS, ExportOptions
from ..utils import (
    BLOCK_REF_PATTERN,
    PAGE_REF_PATTERN,
    PLAIN_UUID_PATTERN,
    asset_export_path,
    clean_logseq_syntax,
    format_asset_link,
    lookup,
)
from .assets import AssetDetector

# Block content found through a reference is itself resolved this many levels deep
MAX_NESTED_DEPTH = 1


class ReferenceResolver:
    """
    Resolves identifier references embedded in block text.

    Owns the resolution cache. Successful resolutions are cached; identifiers
    that every strategy failed on are remembered too, so neither costs a
    second round of host calls within the same export.

    Looking an identifier up never touches the attachment registry. An
    attachment is registered only when ``resolve_references`` writes its
    link into exported text, directly or inside transcluded block content.
    """

    def __init__(self, host: BaseHost, assets: AssetDetector):
        """
        Initialize the resolver.

        Args:
            host: Host adapter used for page and block lookups
            assets: Asset detector shared with the rest of the export
        """
        self.host = host
        self.assets = assets
        self.options: ExportOptions = DEFAULT_OPTIONS
        self.cache: Dict[str, str] = {}
        self._unresolved: Set[str] = set()
        self._pending: Dict[str, asyncio.Future] = {}
        self._asset_matches: Dict[str, Tuple[str, AssetMatch]] = {}
        self._transcluded: Dict[str, List[str]] = {}

    def reset(self, options: ExportOptions) -> None:
        self.options = options
        self.cache.clear()
        self._unresolved.clear()
        self._pending.clear()
        self._asset_matches.clear()
        self._transcluded.clear()

    def _trace(self, message: str) -> None:
        if self.options.debug:
            logging.debug(message)

    async def resolve_references(self, text: str, asset_path: str, depth: int = 0) -> str:
        """
        Replace every recognised reference in ``text``.

        Unresolved ``[[uuid]]`` and bare identifiers are left as written;
        an unresolved ``((uuid))`` becomes a visible placeholder. At depth 0
        every attachment whose link ends up in the text is registered.

        Args:
            text: Block content
            asset_path: Export directory prefix for attachments
            depth: Nesting level, 0 for content that is being exported directly

        Returns:
            The rewritten text
        """
        used: Set[str] = set()

        async def resolve(uuid: str) -> Optional[str]:
            resolved = await self.resolve_uuid(uuid, asset_path, depth)
            if resolved is not None:
                used.add(uuid.lower())
            return resolved

        async def page_ref(match: re.Match) -> str:
            resolved = await resolve(match.group(1))
            return resolved if resolved is not None else match.group(0)

        async def block_ref(match: re.Match) -> str:
            uuid = match.group(1)
            resolved = await resolve(uuid)
            return resolved if resolved is not None else f"[Unresolved: {uuid[:8]}...]"

        async def plain_uuid(match: re.Match) -> str:
            resolved = await resolve(match.group(1))
            return resolved if resolved is not None else match.group(0)

        result = await replace_async(text, PAGE_REF_PATTERN, page_ref)
        result = await replace_async(result, BLOCK_REF_PATTERN, block_ref)
        if self.options.resolve_plain_uuids is not False:
            result = await replace_async(result, PLAIN_UUID_PATTERN, plain_uuid)

        if depth == 0:
            for uuid in self._mentioned_identifiers(text):
                if uuid.lower() in used:
                    self._register_used(uuid.lower(), asset_path)
        return result

    def _register_used(self, key: str, asset_path: str) -> None:
        for candidate in [key] + self._transcluded.get(key, []):
            found = self._asset_matches.get(candidate)
            if found:
                self.assets.register(found[0], found[1], asset_path)

    async def resolve_uuid(self, uuid: str, asset_path: str, depth: int = 0) -> Optional[str]:
        """
        Resolve one identifier to display text.

        Tries, in order: the cache, the asset detector, a page lookup and a
        block lookup. Concurrent requests for the same identifier share one
        lookup.

        Returns:
            The resolved text, or None when nothing matched
        """
        key = uuid.lower()
        if key in self.cache:
            return self.cache[key]
        if key in self._unresolved:
            return None

        # Results from nested lookups are shallower, so they are neither cached nor shared
        if depth >= MAX_NESTED_DEPTH:
            return await self._lookup(uuid, asset_path, depth)

        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._lookup(uuid, asset_path, depth))
            self._pending[key] = pending
        try:
            return await asyncio.shield(pending)
        finally:
            if pending.done():
                self._pending.pop(key, None)

    async def _lookup(self, uuid: str, asset_path: str, depth: int) -> Optional[str]:
        key = uuid.lower()
        cacheable = depth < MAX_NESTED_DEPTH

        match = await self.assets.detect(uuid)
        if match:
            self._asset_matches[key] = (uuid, match)
            link = format_asset_link(
                match.title_for(uuid), asset_export_path(uuid, match.type, asset_path), match.type
            )
            self._trace(f"Resolved {uuid} as asset: {link}")
            self.cache[key] = link
            return link

        try:
            page = await self.host.get_page(uuid)
            name = (lookup(page, "originalName") or lookup(page, "name")) if page else None
            if name:
                self._trace(f"Resolved {uuid} as page: {name}")
                self.cache[key] = str(name)
                return str(name)
        except Exception as e:
            logging.debug(f"Page lookup failed for {uuid}: {e}")

        try:
            block = await self.host.get_block(uuid, include_children=False)
            content = (lookup(block, "content") or lookup(block, "title")) if block else None
            if content:
                if depth < MAX_NESTED_DEPTH:
                    self._transcluded[key] = [found.lower() for found in self._mentioned_identifiers(str(content))]
                    content = await self.resolve_references(str(content), asset_path, depth + 1)
                content = clean_logseq_syntax(str(content), include_tags=False)
                self._trace(f"Resolved {uuid} as block: {content[:40]}")
                if cacheable:
                    self.cache[key] = content
                return content
        except Exception as e:
            logging.debug(f"Block lookup failed for {uuid}: {e}")

        self._trace(f"Could not resolve {uuid}")
        if cacheable:
            self._unresolved.add(key)
        return None

    async def prewarm(self, blocks: List[Block], asset_path: str) -> None:
        """
        Resolve every identifier mentioned anywhere in ``blocks`` ahead of formatting.

        The walk is cycle-safe; identifiers are resolved concurrently and land
        in the cache. Nothing is registered as an attachment here.
        """
        identifiers: Dict[str, str] = {}
        seen_blocks: Set[int] = set()
        stack = list(reversed(blocks))

        while stack:
            block = stack.pop()
            if id(block) in seen_blocks:
                continue
            seen_blocks.add(id(block))
            for uuid in self._mentioned_identifiers(block.content):
                identifiers.setdefault(uuid.lower(), uuid)
            stack.extend(reversed(block.children))

        if identifiers:
            self._trace(f"Pre-warming {len(identifiers)} references")
            await asyncio.gather(*(self.resolve_uuid(uuid, asset_path) for uuid in identifiers.values()))

    def _mentioned_identifiers(self, content: str) -> List[str]:
        if not content:
            return []
        found = [m.group(1) for m in PAGE_REF_PATTERN.finditer(content)]
        found += [m.group(1) for m in BLOCK_REF_PATTERN.finditer(content)]
        if self.options.resolve_plain_uuids is not False:
            found += [m.group(1) for m in PLAIN_UUID_PATTERN.finditer(content)]
        return found


async def replace_async(text: str, pattern: re.Pattern,
                        replacer: Callable[[re.Match], Awaitable[str]]) -> str:
    """
    ``re.sub`` with an async replacement function.

    All replacements are computed concurrently against the original text,
    then spliced in from the last match to the first so earlier offsets stay valid.
    """
    matches = list(pattern.finditer(text))
    if not matches:
        return text

    replacements = await asyncio.gather(*(replacer(m) for m in matches))

    result = text
    for m, replacement in zip(reversed(matches), reversed(replacements)):
        result = result[:m.start()] + replacement + result[m.end():]
    return result
