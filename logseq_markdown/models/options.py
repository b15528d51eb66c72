"""
Export options and results.
"""

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .entities import AssetInfo


class ExportOptions(BaseModel):
    """
    Immutable export configuration.

    Accepts both snake_case field names and the camelCase names used by the
    plugin settings, e.g. ``ExportOptions(assetPath="images/")``.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    include_tags: bool = Field(False, description="Keep #hashtags in the output")
    include_properties: bool = Field(False, description="Emit YAML frontmatter from page properties")
    preserve_block_refs: bool = Field(True, description="Resolve embedded identifier references")
    flatten_nested: bool = Field(True, description="Emit children as paragraphs instead of nested list items")
    remove_logseq_syntax: bool = Field(True, description="Strip task keywords, priorities, macros and link brackets")
    resolve_plain_uuids: bool = Field(True, description="Also resolve bare identifiers found in text")
    include_page_name: bool = Field(True, description="Emit the page title as an H1")
    asset_path: str = Field("assets/", description="Directory prefix for exported attachments")
    debug: bool = Field(False, description="Trace every resolution step")


DEFAULT_OPTIONS = ExportOptions()


class ExportResult(BaseModel):
    """
    Everything one export produced.
    """

    markdown: str = Field(
        ...,
        description="The final Markdown document"
    )

    assets: Dict[str, AssetInfo] = Field(
        default_factory=dict,
        description="Registered attachments keyed by identifier"
    )

    graph_path: str = Field(
        "",
        description="Root directory of the exported graph"
    )
