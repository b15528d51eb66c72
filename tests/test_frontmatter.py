"""
Unit tests for frontmatter generation.
"""

import unittest

from logseq_markdown.exporter import AssetDetector, FrontmatterGenerator
from logseq_markdown.models import Page

from tests.graph_fixtures import ASSET_UUID, PAGE_UUID, image_asset, make_host, referenced_page

PROPERTY_DEFS = [
    {"ident": "user.property/author-x1", "title": "author"},
    {"ident": "user.property/tags-x2", "title": "tags"},
    {"ident": "user.property/blogTags-x3", "title": "blogTags"},
    {"ident": "user.property/cover-x4", "title": "cover"},
    {"ident": "user.property/title-x5", "title": "title"},
    {"ident": "user.property/related-x6", "title": "related"},
    {"ident": "user.property/draft-x7", "title": "draft"},
    {"ident": "logseq.property/hidden", "title": "hidden"},
]


class TestFrontmatterGenerator(unittest.IsolatedAsyncioTestCase):
    """Test property mapping, tag merging and value resolution."""

    def build(self, properties, **kwargs):
        self.host = make_host(properties=properties, property_defs=PROPERTY_DEFS, **kwargs)
        self.assets = AssetDetector(self.host)
        self.assets.reset("/graphs/notes")
        return FrontmatterGenerator(self.host, self.assets)

    async def generate(self, generator, name="Test Page"):
        return await generator.generate(Page(uuid=PAGE_UUID, name=name), "assets/")

    async def test_title_and_slug_from_name(self):
        generator = self.build({}, name="My Great Page!")
        result = await self.generate(generator, name="My Great Page!")
        self.assertEqual(result, "---\ntitle: My Great Page!\nslug: my-great-page\n---\n")

    async def test_tag_merge_keeps_first_appearance(self):
        generator = self.build({
            "user.property/tags-x2": ["a", "b"],
            "user.property/blogTags-x3": ["b", "c"],
        })

        result = await self.generate(generator)

        self.assertIn("tags:\n  - a\n  - b\n  - c\n", result)
        self.assertEqual(result.count("  - b"), 1)
        self.assertNotIn("blogTags", result)

    async def test_tag_dedup_is_case_sensitive(self):
        generator = self.build({
            "user.property/tags-x2": ["Idea"],
            "user.property/blogTags-x3": ["idea"],
        })
        self.assertIn("tags:\n  - Idea\n  - idea\n", await self.generate(generator))

    async def test_full_document(self):
        generator = self.build(
            {
                "user.property/author-x1": "[[Jane Doe]]",
                "user.property/tags-x2": ["a", "b"],
                "user.property/blogTags-x3": ["b", "c"],
                "logseq.property/hidden": "secret",
                "user.property/cover-x4": 42,
                "user.property/unmapped-x9": "skipped",
            },
            assets=[image_asset()],
        )

        result = await self.generate(generator)

        self.assertEqual(
            result,
            "---\n"
            "title: Test Page\n"
            "slug: test-page\n"
            "tags:\n  - a\n  - b\n  - c\n"
            "author: Jane Doe\n"
            f"cover: assets/{ASSET_UUID}.png\n"
            "---\n",
        )
        self.assertIn(ASSET_UUID, self.assets.assets)

    async def test_title_property_overrides_name(self):
        generator = self.build({"user.property/title-x5": "Custom Title"})
        result = await self.generate(generator)
        self.assertIn("title: Custom Title\n", result)
        self.assertIn("slug: test-page\n", result)

    async def test_db_reference_falls_back_to_title(self):
        generator = self.build({"user.property/related-x6": [{"db/id": 10}, 999]}, pages=[referenced_page()])
        result = await self.generate(generator)
        self.assertIn("related:\n  - Referenced Page\n  - 999\n", result)

    async def test_uuid_value_resolves_to_asset_path(self):
        generator = self.build({"user.property/cover-x4": ASSET_UUID}, assets=[image_asset()])
        self.assertIn(f"cover: assets/{ASSET_UUID}.png\n", await self.generate(generator))

    async def test_linked_uuid_value_resolves_to_asset_path(self):
        generator = self.build({"user.property/cover-x4": f"[[{ASSET_UUID}]]"}, assets=[image_asset()])
        self.assertIn(f"cover: assets/{ASSET_UUID}.png\n", await self.generate(generator))

    async def test_asset_title_value_resolves_to_asset_path(self):
        generator = self.build({"user.property/cover-x4": "My Image"}, assets=[image_asset()])
        self.assertIn(f"cover: assets/{ASSET_UUID}.png\n", await self.generate(generator))

    async def test_scalars_are_kept(self):
        generator = self.build({"user.property/draft-x7": False, "user.property/author-x1": "Plain"})
        result = await self.generate(generator)
        self.assertIn("draft: false\n", result)
        self.assertIn("author: Plain\n", result)

    async def test_set_values_become_sorted_lists(self):
        generator = self.build({"user.property/related-x6": {"zeta", "alpha"}})
        self.assertIn("related:\n  - alpha\n  - zeta\n", await self.generate(generator))

    async def test_none_values_are_skipped(self):
        generator = self.build({"user.property/author-x1": None})
        self.assertNotIn("author", await self.generate(generator))

    async def test_metadata_query_failure_degrades(self):
        generator = self.build({"user.property/author-x1": "Jane"})
        self.host.failing_methods.add("run_query")

        result = await self.generate(generator)

        self.assertEqual(result, "---\ntitle: Test Page\nslug: test-page\n---\n")

    async def test_refetch_failure_uses_supplied_page(self):
        generator = self.build({})
        self.host.failing_methods.add("get_page")

        page = Page(uuid=PAGE_UUID, name="Supplied", properties={"user.property/author-x1": "Jane"})
        result = await generator.generate(page, "assets/")

        self.assertIn("title: Supplied\n", result)
        self.assertIn("author: Jane\n", result)

    async def test_definitions_are_queried_once_per_export(self):
        generator = self.build({"user.property/author-x1": "Jane"})

        await self.generate(generator)
        await self.generate(generator)
        queries = [args[0] for args in self.host.calls["run_query"] if ":find ?ident ?title" in args[0]]
        self.assertEqual(len(queries), 1)

        generator.reset()
        await self.generate(generator)
        queries = [args[0] for args in self.host.calls["run_query"] if ":find ?ident ?title" in args[0]]
        self.assertEqual(len(queries), 2)

    async def test_empty_page_without_name(self):
        generator = self.build({})
        self.host.failing_methods.add("get_page")
        self.assertEqual(await generator.generate(Page(uuid=PAGE_UUID), "assets/"), "")


if __name__ == "__main__":
    unittest.main()
