"""
Unit tests for reference resolution and asset detection.
"""

import logging
import unittest

from logseq_markdown.exporter import AssetDetector, ReferenceResolver
from logseq_markdown.exporter.references import replace_async
from logseq_markdown.models import AssetMatch, Block, DEFAULT_OPTIONS, ExportOptions
from logseq_markdown.utils import PAGE_REF_PATTERN

from tests.graph_fixtures import (
    ASSET_UUID,
    MISSING_UUID,
    REF_UUID,
    TARGET_BLOCK_UUID,
    block,
    image_asset,
    make_host,
    referenced_page,
)


def graph_with_target_block(content: str, **kwargs):
    target = block(9, content)
    target["uuid"] = TARGET_BLOCK_UUID
    return make_host(blocks=[target], **kwargs)


class ResolverTestCase(unittest.IsolatedAsyncioTestCase):
    """Builds a resolver over a snapshot host."""

    def build(self, host, options: ExportOptions = DEFAULT_OPTIONS) -> ReferenceResolver:
        self.host = host
        self.assets = AssetDetector(host)
        self.assets.reset("/graphs/notes")
        resolver = ReferenceResolver(host, self.assets)
        resolver.reset(options)
        return resolver


class TestResolveUuid(ResolverTestCase):
    """Test the attachment > page > block fallback chain."""

    async def test_page_reference(self):
        resolver = self.build(make_host(pages=[referenced_page()]))
        self.assertEqual(await resolver.resolve_uuid(REF_UUID, "assets/"), "Referenced Page")

    async def test_second_resolution_uses_cache(self):
        """Resolving the same identifier twice costs no further host calls."""
        resolver = self.build(make_host(pages=[referenced_page()]))

        first = await resolver.resolve_uuid(REF_UUID, "assets/")
        calls_after_first = {method: len(args) for method, args in self.host.calls.items()}
        second = await resolver.resolve_uuid(REF_UUID, "assets/")
        calls_after_second = {method: len(args) for method, args in self.host.calls.items()}

        self.assertEqual(first, second)
        self.assertEqual(calls_after_first, calls_after_second)

    async def test_cache_is_case_insensitive(self):
        resolver = self.build(make_host(pages=[referenced_page()]))
        await resolver.resolve_uuid(REF_UUID, "assets/")
        page_calls = self.host.call_count("get_page")

        await resolver.resolve_uuid(REF_UUID.upper(), "assets/")

        self.assertEqual(self.host.call_count("get_page"), page_calls)

    async def test_attachment_wins_over_page_and_block(self):
        """An identifier that is an attachment, a page and a block resolves to the attachment."""
        target = block(9, "Block Z")
        target["uuid"] = ASSET_UUID
        host = make_host(
            blocks=[target],
            pages=[referenced_page(name="Page Z", uuid=ASSET_UUID)],
            assets=[image_asset(title="Doc", file_type="pdf")],
        )
        resolver = self.build(host)

        result = await resolver.resolve_uuid(ASSET_UUID, "assets/")

        self.assertEqual(result, f"[Doc](assets/{ASSET_UUID}.pdf)")

    async def test_page_wins_over_block(self):
        host = graph_with_target_block("Block text", pages=[referenced_page(uuid=TARGET_BLOCK_UUID)])
        resolver = self.build(host)
        self.assertEqual(await resolver.resolve_uuid(TARGET_BLOCK_UUID, "assets/"), "Referenced Page")

    async def test_block_content_is_resolved_one_level(self):
        host = graph_with_target_block(f"TODO See [[{REF_UUID}]]", pages=[referenced_page()])
        resolver = self.build(host)
        self.assertEqual(await resolver.resolve_uuid(TARGET_BLOCK_UUID, "assets/"), "See Referenced Page")

    async def test_unresolved_returns_none_and_is_remembered(self):
        resolver = self.build(make_host())

        self.assertIsNone(await resolver.resolve_uuid(MISSING_UUID, "assets/"))
        calls = self.host.call_count("get_block")
        self.assertIsNone(await resolver.resolve_uuid(MISSING_UUID, "assets/"))

        self.assertEqual(self.host.call_count("get_block"), calls)

    async def test_host_failures_fall_through(self):
        """A failing strategy counts as "not found" and the chain continues."""
        host = graph_with_target_block("Still here")
        host.failing_methods.update({"run_query", "get_page"})
        resolver = self.build(host)

        self.assertEqual(await resolver.resolve_uuid(TARGET_BLOCK_UUID, "assets/"), "Still here")

    async def test_reset_clears_cache(self):
        resolver = self.build(make_host(pages=[referenced_page()]))
        await resolver.resolve_uuid(REF_UUID, "assets/")

        resolver.reset(DEFAULT_OPTIONS)

        self.assertEqual(resolver.cache, {})


class TestResolveReferences(ResolverTestCase):
    """Test rewriting of the three reference syntaxes."""

    async def test_page_link_is_replaced(self):
        resolver = self.build(make_host(pages=[referenced_page()]))
        result = await resolver.resolve_references(f"[[{REF_UUID}]]", "assets/")
        self.assertEqual(result, "Referenced Page")
        self.assertNotIn("[[", result)

    async def test_unresolved_page_link_is_kept(self):
        resolver = self.build(make_host())
        text = f"see [[{MISSING_UUID}]]"
        self.assertEqual(await resolver.resolve_references(text, "assets/"), text)

    async def test_unresolved_block_ref_gets_placeholder(self):
        resolver = self.build(make_host())
        result = await resolver.resolve_references(f"see (({MISSING_UUID}))", "assets/")
        self.assertEqual(result, "see [Unresolved: 33333333...]")

    async def test_block_ref_is_transcluded(self):
        resolver = self.build(graph_with_target_block("Transcluded text"))
        result = await resolver.resolve_references(f"> (({TARGET_BLOCK_UUID}))", "assets/")
        self.assertEqual(result, "> Transcluded text")

    async def test_attachment_reference_uses_asset_path(self):
        resolver = self.build(make_host(assets=[image_asset()]))
        result = await resolver.resolve_references(f"Look: [[{ASSET_UUID}]]", "images/")
        self.assertEqual(result, f"Look: ![My Image](images/{ASSET_UUID}.png)")
        self.assertEqual(self.assets.assets[ASSET_UUID].source_path, f"/graphs/notes/assets/{ASSET_UUID}.png")

    async def test_plain_uuid_is_resolved(self):
        resolver = self.build(make_host(pages=[referenced_page()]))
        result = await resolver.resolve_references(f"mentions {REF_UUID} inline", "assets/")
        self.assertEqual(result, "mentions Referenced Page inline")

    async def test_plain_uuid_boundary_is_respected(self):
        resolver = self.build(make_host(pages=[referenced_page()]))
        for prefix in ("/", "-", "_"):
            text = f"file{prefix}{REF_UUID}"
            self.assertEqual(await resolver.resolve_references(text, "assets/"), text, prefix)

    async def test_plain_uuids_can_be_disabled(self):
        options = ExportOptions(resolve_plain_uuids=False)
        resolver = self.build(make_host(pages=[referenced_page()]), options)
        text = f"mentions {REF_UUID}"
        self.assertEqual(await resolver.resolve_references(text, "assets/"), text)

    async def test_several_references_in_one_pass(self):
        resolver = self.build(make_host(pages=[referenced_page()]))
        text = f"[[{REF_UUID}]] and [[{MISSING_UUID}]] and [[{REF_UUID}]]"
        result = await resolver.resolve_references(text, "assets/")
        self.assertEqual(result, f"Referenced Page and [[{MISSING_UUID}]] and Referenced Page")

    async def test_prewarm_fills_cache(self):
        resolver = self.build(make_host(pages=[referenced_page()]))
        tree = Block.from_entity(block(1, "top", [block(2, f"child [[{REF_UUID}]]")]))

        await resolver.prewarm([tree], "assets/")

        self.assertEqual(resolver.cache[REF_UUID], "Referenced Page")

    async def test_prewarm_does_not_register_attachments(self):
        resolver = self.build(make_host(assets=[image_asset()]))
        tree = Block.from_entity(block(1, f"cover:: [[{ASSET_UUID}]]"))

        await resolver.prewarm([tree], "assets/")

        self.assertIn(ASSET_UUID, resolver.cache)
        self.assertEqual(self.assets.assets, {})

        await resolver.resolve_references(f"[[{ASSET_UUID}]]", "assets/")
        self.assertEqual(list(self.assets.assets), [ASSET_UUID])

    async def test_transcluded_attachment_is_registered_when_used(self):
        host = graph_with_target_block(f"Figure [[{ASSET_UUID}]]", assets=[image_asset()])
        resolver = self.build(host)

        await resolver.resolve_uuid(TARGET_BLOCK_UUID, "assets/")
        self.assertEqual(self.assets.assets, {})

        result = await resolver.resolve_references(f"(({TARGET_BLOCK_UUID}))", "assets/")

        self.assertEqual(result, f"Figure ![My Image](assets/{ASSET_UUID}.png)")
        self.assertEqual(list(self.assets.assets), [ASSET_UUID])

    async def test_debug_option_traces_resolutions(self):
        resolver = self.build(make_host(pages=[referenced_page()]), ExportOptions(debug=True))

        with self.assertLogs(level="DEBUG") as logs:
            await resolver.resolve_uuid(REF_UUID, "assets/")
            await resolver.resolve_uuid(MISSING_UUID, "assets/")

        self.assertTrue(any(f"Resolved {REF_UUID} as page: Referenced Page" in line for line in logs.output))
        self.assertTrue(any(f"Could not resolve {MISSING_UUID}" in line for line in logs.output))

    async def test_resolutions_are_not_traced_without_debug(self):
        resolver = self.build(make_host(pages=[referenced_page()]))

        with self.assertLogs(level="DEBUG") as logs:
            logging.debug("marker")
            await resolver.resolve_uuid(REF_UUID, "assets/")

        self.assertFalse(any("Resolved" in line for line in logs.output))


class TestAssetDetector(unittest.IsolatedAsyncioTestCase):
    """Test attachment detection strategies."""

    async def test_detect_by_query(self):
        detector = AssetDetector(make_host(assets=[image_asset()]))
        match = await detector.detect(ASSET_UUID)
        self.assertEqual(match.type, "png")
        self.assertEqual(match.title_for(ASSET_UUID), "My Image")

    async def test_detect_falls_back_to_entity_properties(self):
        page = referenced_page(name="scan", uuid=ASSET_UUID)
        page["properties"] = {"logseq.property.asset/type": "pdf"}
        host = make_host(pages=[page])
        host.failing_methods.add("run_query")
        detector = AssetDetector(host)

        match = await detector.detect(ASSET_UUID)

        self.assertEqual(match.type, "pdf")
        self.assertEqual(match.title_for(ASSET_UUID), "scan")

    async def test_not_an_asset(self):
        detector = AssetDetector(make_host(pages=[referenced_page()]))
        self.assertIsNone(await detector.detect(REF_UUID))

    async def test_title_fallback(self):
        detector = AssetDetector(make_host())
        detector.reset("/g")
        info = detector.register(ASSET_UUID, AssetMatch(type="bin"), "files")

        self.assertEqual(info.title, "asset-22222222")
        self.assertEqual(info.export_path, f"files/{ASSET_UUID}.bin")
        self.assertEqual(info.source_path, f"/g/assets/{ASSET_UUID}.bin")

    async def test_find_by_title(self):
        detector = AssetDetector(make_host(assets=[image_asset(title='Quote "Me"')]))
        self.assertEqual(await detector.find_by_title('Quote "Me"'), (ASSET_UUID, "png"))
        self.assertIsNone(await detector.find_by_title("Nothing"))

    async def test_resolve_db_reference(self):
        host = make_host(assets=[image_asset()], pages=[referenced_page()])
        detector = AssetDetector(host)
        self.assertEqual(await detector.resolve_db_reference(42, "assets/"), f"assets/{ASSET_UUID}.png")
        self.assertIn(ASSET_UUID, detector.assets)
        self.assertEqual(await detector.resolve_db_reference(10, "assets/"), "Referenced Page")
        self.assertIsNone(await detector.resolve_db_reference(999, "assets/"))


class TestReplaceAsync(unittest.IsolatedAsyncioTestCase):
    """Test async batch substitution."""

    async def test_replacements_keep_offsets(self):
        async def shout(match):
            return match.group(1).upper() * 3

        text = f"a [[{REF_UUID}]] b [[{ASSET_UUID}]] c"
        result = await replace_async(text, PAGE_REF_PATTERN, shout)

        self.assertEqual(result, f"a {REF_UUID.upper() * 3} b {ASSET_UUID.upper() * 3} c")


if __name__ == "__main__":
    unittest.main()
