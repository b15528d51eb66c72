"""
Datalog queries sent to the Logseq database.

Literal values are encoded with edn_format so a title containing quotes or
a malformed identifier can never produce a broken query string; a malformed
identifier raises ``ValueError`` here instead.
"""

import uuid as uuid_lib

import edn_format

from .utils import ASSET_TYPE_KEY

ASSET_TYPE_ATTR = f":{ASSET_TYPE_KEY}"


def _uuid_literal(uuid: str) -> str:
    return edn_format.dumps(uuid_lib.UUID(str(uuid)))


def _string_literal(text: str) -> str:
    return edn_format.dumps(str(text))


def _int_literal(value: int) -> str:
    return edn_format.dumps(int(value))


def asset_by_uuid(uuid: str) -> str:
    """Attachment type plus the full entity for an identifier."""
    return (
        "[:find ?type (pull ?e [*])"
        " :where"
        f" [?e :block/uuid {_uuid_literal(uuid)}]"
        f" [?e {ASSET_TYPE_ATTR} ?type]]"
    )


def asset_type_by_namespace(uuid: str) -> str:
    """Attachment type found by scanning the entity's ``logseq.property.asset`` attributes."""
    return (
        "[:find ?type"
        " :where"
        f" [?e :block/uuid {_uuid_literal(uuid)}]"
        " [?e ?prop ?type]"
        " [(namespace ?prop) ?ns]"
        ' [(= ?ns "logseq.property.asset")]'
        ' [(name ?prop) "type"]]'
    )


def asset_by_title(title: str) -> str:
    return (
        "[:find ?uuid ?type"
        " :where"
        f" [?e :block/title {_string_literal(title)}]"
        " [?e :block/uuid ?uuid]"
        f" [?e {ASSET_TYPE_ATTR} ?type]]"
    )


def entity_by_db_id(db_id: int) -> str:
    """Pull every attribute of the entity behind an internal numeric reference."""
    return (
        "[:find (pull ?e [*])"
        " :where"
        f" [(ground {_int_literal(db_id)}) ?e]]"
    )


def property_definitions() -> str:
    """Every entity carrying both an ident and a title: the property-key to label mapping."""
    return (
        "[:find ?ident ?title"
        " :where"
        " [?e :db/ident ?ident]"
        " [?e :block/title ?title]]"
    )


def page_user_properties(page_uuid: str) -> str:
    """Labels of the user properties set on one page."""
    return (
        "[:find ?prop-key ?prop-title"
        " :where"
        f" [?page :block/uuid {_uuid_literal(page_uuid)}]"
        " [?page ?prop-key ?v]"
        " [(namespace ?prop-key) ?ns]"
        ' [(= ?ns "user.property")]'
        " [?prop-entity :db/ident ?prop-key]"
        " [?prop-entity :block/title ?prop-title]]"
    )
