"""
Helper utilities for the Markdown exporter.

Pure functions shared by the formatter, the reference resolver and the
frontmatter generator: identifier detection, Logseq syntax cleanup,
Markdown post-processing and YAML emission.
"""

import json
import re
from typing import Any, Iterable, Mapping, Optional

import yaml

UUID_RE = r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}"

UUID_PATTERN = re.compile(rf"^{UUID_RE}$", re.IGNORECASE)
PAGE_REF_PATTERN = re.compile(rf"\[\[({UUID_RE})\]\]", re.IGNORECASE)
BLOCK_REF_PATTERN = re.compile(rf"\(\(({UUID_RE})\)\)", re.IGNORECASE)
# Bare identifiers directly after a path separator, slug hyphen or underscore are left alone
PLAIN_UUID_PATTERN = re.compile(rf"(?<![/\-_])\b({UUID_RE})\b", re.IGNORECASE)
ANY_UUID_PATTERN = re.compile(UUID_RE, re.IGNORECASE)

PROPERTY_LINE_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9-_]*::\s*.+$")
RELATIVE_ASSET_PATTERN = re.compile(r"(!)?\[([^\]]*)\]\(\.\./assets/([^)]+)\)")
ASSET_FILE_PATTERN = re.compile(rf"({UUID_RE})\.(\w+)", re.IGNORECASE)

IMAGE_TYPES = {"png", "jpg", "jpeg", "gif", "svg", "webp", "bmp"}

USER_NAMESPACES = ("user.property", "user")

HEADING_KEYS = ("logseq.property/heading", ":logseq.property/heading", "heading")
DISPLAY_TYPE_KEYS = ("logseq.property.node/display-type", ":logseq.property.node/display-type")
CODE_LANG_KEYS = ("logseq.property.code/lang", ":logseq.property.code/lang")
ASSET_TYPE_KEY = "logseq.property.asset/type"

FENCE_SPLIT = re.compile(r"(^```[^\n]*\n.*?^```[ \t]*$)", re.MULTILINE | re.DOTALL)


def extract_uuid(value: Any) -> Optional[str]:
    """Return the identifier string from either a plain string or a ``{"$uuid": ...}`` wrapper."""
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        inner = value.get("$uuid") or value.get("uuid")
        return str(inner) if inner else None
    return str(value)


def is_uuid(text: Any) -> bool:
    return isinstance(text, str) and bool(UUID_PATTERN.match(text))


def is_property_only_block(content: str) -> bool:
    """Check whether every non-blank line of ``content`` is a ``key:: value`` declaration."""
    if not content or not content.strip():
        return False
    return all(
        not line.strip() or PROPERTY_LINE_PATTERN.match(line.strip())
        for line in content.split("\n")
    )


def clean_logseq_syntax(content: str, include_tags: bool = False) -> str:
    """
    Strip Logseq-specific markup from block content.

    Removes property lines, query/renderer/embed macros, task keywords,
    priority markers and redundant page-link brackets. Hashtags are removed
    as well unless ``include_tags`` is set.
    """
    result = re.sub(r"^[a-zA-Z-_]+::\s*.+$", "", content, flags=re.MULTILINE)
    result = re.sub(r"\{\{(query|renderer|embed)[^}]*\}\}", "", result)
    result = re.sub(r"^(TODO|DOING|NOW|LATER|DONE|WAITING|CANCELLED)\s+", "", result, flags=re.MULTILINE)
    result = re.sub(r"\b(NOW)\s+", "", result)
    result = re.sub(r"\[#[A-Z]\]\s*", "", result)
    result = re.sub(r"\[\[+([^\]]+)\]\]+", r"\1", result)

    if not include_tags:
        result = re.sub(r"#[^\s#\[\]{}(),.!?;:'\"]+", "", result)

    return re.sub(r"\n{3,}", "\n\n", result).strip()


def normalize_asset_dir(asset_path: str) -> str:
    """Make sure the asset directory prefix ends with a slash."""
    return asset_path if asset_path.endswith("/") else f"{asset_path}/"


def asset_export_path(uuid: str, file_type: str, asset_path: str) -> str:
    return f"{normalize_asset_dir(asset_path)}{uuid}.{file_type}"


def is_image_type(file_type: str) -> bool:
    return file_type.lower() in IMAGE_TYPES


def format_asset_link(title: str, export_path: str, file_type: str) -> str:
    """Render an attachment as Markdown, using image syntax for image file types."""
    prefix = "!" if is_image_type(file_type) else ""
    return f"{prefix}[{title}]({export_path})"


def _normalize_prose(markdown: str) -> str:
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    markdown = re.sub(r"([^\n])\n(#{1,6}\s)", r"\1\n\n\2", markdown)
    markdown = re.sub(r"(#{1,6}\s[^\n]+)\n([^\n])", r"\1\n\n\2", markdown)
    markdown = re.sub(r"\n\n-\s", "\n- ", markdown)
    return re.sub(r"^-\s*$", "", markdown, flags=re.MULTILINE)


def post_process_markdown(markdown: str) -> str:
    """
    Normalize whitespace in the assembled document.

    Collapses runs of blank lines, gives headings breathing room, glues list
    items to the paragraph above and drops empty bullets. Fenced code blocks
    are passed through untouched.
    """
    parts = FENCE_SPLIT.split(markdown)
    processed = [
        part if index % 2 else _normalize_prose(part)
        for index, part in enumerate(parts)
    ]
    return "".join(processed).strip()


def format_yaml(data: Mapping[str, Any]) -> str:
    """
    Emit a frontmatter block.

    Lists become ``key:`` followed by ``  - item`` lines, multi-line strings
    use a literal block, every other value is written as ``key: value``.
    """
    lines = ["---"]

    for key, value in data.items():
        if isinstance(value, (list, tuple)):
            lines.append(f"{key}:")
            lines.extend(f"  - {_yaml_scalar(item)}" for item in value)
        elif isinstance(value, str) and "\n" in value:
            lines.append(f"{key}: |")
            lines.extend(f"  {line}" for line in value.split("\n"))
        else:
            lines.append(f"{key}: {_yaml_scalar(value)}")

    lines.append("---")
    return "\n".join(lines) + "\n"


def _yaml_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, str) and not _is_plain_scalar(value):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _is_plain_scalar(text: str) -> bool:
    """Check whether ``text`` reads back from YAML as the same string when written unquoted."""
    try:
        return yaml.safe_load(text) == text
    except yaml.YAMLError:
        return False


def slugify(name: str) -> str:
    """Lowercase, collapse whitespace runs to single hyphens and drop everything outside ``[a-z0-9-]``."""
    slug = re.sub(r"\s+", "-", name.lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


def safe_filename(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "-", name, flags=re.IGNORECASE)


def property_namespace(key: str) -> str:
    return key.split("/")[0].lstrip(":")


def is_user_property(key: str) -> bool:
    return property_namespace(key) in USER_NAMESPACES


def probe(sources: Iterable[Optional[Mapping[str, Any]]], keys: Iterable[str]) -> Any:
    """
    Return the first value found for any of ``keys`` across ``sources``.

    Sources are checked in order and, inside each source, keys are checked
    in order. ``None`` values count as absent.
    """
    keys = tuple(keys)
    for source in sources:
        if not isinstance(source, Mapping):
            continue
        for key in keys:
            value = source.get(key)
            if value is not None:
                return value
    return None


def keyword_name(value: Any) -> Optional[str]:
    """Turn ``":quote"``, ``"quote"`` or an EDN keyword into ``"quote"``."""
    if value is None:
        return None
    text = str(value).strip()
    return text.lstrip(":") or None


def unique(items: Iterable[Any]) -> list:
    """Deduplicate while keeping order of first appearance."""
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def lookup(data: Any, key: str, default: Any = None) -> Any:
    """
    Read ``key`` from an entity that may spell it ``key`` or ``:key``.

    Logseq returns the same attribute as ``block/title``, ``:block/title`` or
    ``title`` depending on which API produced the entity.
    """
    if not isinstance(data, Mapping):
        return default
    for candidate in (key, f":{key}"):
        if candidate in data and data[candidate] is not None:
            return data[candidate]
    return default

