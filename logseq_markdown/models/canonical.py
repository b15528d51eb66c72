"""
Canonical document models for the exporter.

The host returns blocks and pages as loosely shaped dictionaries whose keys
differ between Logseq versions. These models keep the few fields the
exporter relies on and the raw attribute bag for everything else.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from ..utils import (
    CODE_LANG_KEYS,
    DISPLAY_TYPE_KEYS,
    HEADING_KEYS,
    extract_uuid,
    keyword_name,
    lookup,
    probe,
)


class Block(BaseModel):
    """
    A node of the document tree.

    ``children`` may be rebuilt or shared by callers; the formatter guards
    against the same block being reached twice, so the tree is not assumed
    to be acyclic.
    """

    uuid: Optional[str] = Field(
        None,
        description="The block identifier"
    )

    content: str = Field(
        "",
        description="Raw block text, possibly multi-line"
    )

    children: List["Block"] = Field(
        default_factory=list,
        description="Ordered child blocks"
    )

    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        description="Every other attribute returned by the host, keyed as the host spelled it"
    )

    @classmethod
    def from_entity(cls, entity: Mapping[str, Any], _ancestors: Optional[frozenset] = None) -> "Block":
        """
        Build a block tree from a host entity.

        Child entries that are only references are dropped, and so is a child
        that is one of its own ancestors.
        """
        ancestors = (_ancestors or frozenset()) | {id(entity)}
        content = lookup(entity, "content") or lookup(entity, "block/content") or ""
        if not content and not lookup(entity, "name"):
            content = lookup(entity, "title") or lookup(entity, "block/title") or ""

        children = []
        for child in lookup(entity, "children", None) or []:
            if isinstance(child, Mapping) and id(child) not in ancestors:
                children.append(cls.from_entity(child, ancestors))

        attributes = {
            key: value for key, value in entity.items()
            if key not in ("children", ":children", "content", "uuid", ":block/uuid")
        }

        return cls(
            uuid=extract_uuid(lookup(entity, "uuid") or lookup(entity, "block/uuid")),
            content=str(content) if not isinstance(content, str) else content,
            children=children,
            attributes=attributes,
        )

    def _attribute_sources(self) -> List[Optional[Mapping[str, Any]]]:
        # Depending on the host version the flags live on the block or in one of its property bags
        return [self.attributes, lookup(self.attributes, "properties"), lookup(self.attributes, "block/properties")]

    @property
    def heading_level(self) -> Optional[int]:
        """Heading level 1-6, or ``None`` when absent or not a usable integer."""
        level = probe(self._attribute_sources(), HEADING_KEYS)
        if isinstance(level, bool) or not isinstance(level, int):
            return None
        return level if 1 <= level <= 6 else None

    @property
    def display_type(self) -> Optional[str]:
        return keyword_name(probe(self._attribute_sources(), DISPLAY_TYPE_KEYS))

    @property
    def code_language(self) -> str:
        lang = probe(self._attribute_sources(), CODE_LANG_KEYS)
        return str(lang).strip() if isinstance(lang, str) else ""


class Page(BaseModel):
    """
    The export root.

    Also used for a focused block: ``parent_page`` is then set to the
    owning page reference and ``is_block`` is true.
    """

    uuid: Optional[str] = Field(
        None,
        description="The page identifier"
    )

    name: Optional[str] = Field(
        None,
        description="Display name of the page"
    )

    properties: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw property bag keyed by namespaced property idents"
    )

    parent_page: Optional[Any] = Field(
        None,
        description="Reference to the owning page when this entity is a block"
    )

    @classmethod
    def from_entity(cls, entity: Mapping[str, Any]) -> "Page":
        name = (
            lookup(entity, "originalName")
            or lookup(entity, "original-name")
            or lookup(entity, "name")
            or lookup(entity, "block/name")
            or lookup(entity, "title")
        )
        properties = lookup(entity, "properties") or lookup(entity, "block/properties") or {}
        page_ref = lookup(entity, "page") or lookup(entity, "block/page")

        return cls(
            uuid=extract_uuid(lookup(entity, "uuid") or lookup(entity, "block/uuid")),
            name=str(name) if name else None,
            properties=dict(properties) if isinstance(properties, Mapping) else {},
            parent_page=page_ref,
        )

    @property
    def is_block(self) -> bool:
        return self.parent_page is not None

    @property
    def parent_page_id(self) -> Optional[Any]:
        """The owning page as something ``get_page`` accepts: a db id, a uuid or a name."""
        ref = self.parent_page
        if isinstance(ref, Mapping):
            return (
                lookup(ref, "id")
                or lookup(ref, "db/id")
                or extract_uuid(lookup(ref, "uuid"))
                or lookup(ref, "name")
            )
        return ref


# Enable forward references for self-referencing model
Block.model_rebuild()
