"""
Attachment models for the exporter.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field

TITLE_KEYS = ("title", "block/title", ":block/title", "name")


class AssetMatch(BaseModel):
    """
    A positive answer from the asset detector: the file type plus the entity it was read from.
    """

    type: str = Field(
        ...,
        description="File-type extension, e.g. 'png' or 'pdf'"
    )

    entity: Dict[str, Any] = Field(
        default_factory=dict,
        description="The matched host entity, used for title extraction"
    )

    def title_for(self, uuid: str) -> str:
        """
        Pick a display title from the entity, falling back to ``asset-<first 8 chars>``.
        """
        for key in TITLE_KEYS:
            value = self.entity.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
        return f"asset-{uuid[:8]}"


class AssetInfo(BaseModel):
    """
    A registered attachment. At most one exists per identifier per export.
    """

    uuid: str = Field(
        ...,
        description="Attachment identifier"
    )

    title: str = Field(
        ...,
        description="Display title used as link text"
    )

    type: str = Field(
        ...,
        description="File-type extension"
    )

    source_path: str = Field(
        ...,
        description="Location of the file inside the graph directory"
    )

    export_path: str = Field(
        ...,
        description="Location of the file relative to the exported Markdown"
    )

    @property
    def file_name(self) -> str:
        return f"{self.uuid}.{self.type}"

