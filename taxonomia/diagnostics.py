# -*- coding: utf-8 -*-
"""
Standalone dataset checks. Nothing here is enforced by the loader: a dataset
with duplicate ids or dangling references still decodes, and the store only
fails when a duplicate collides on a primary key.
"""
from __future__ import annotations
from typing import Any, Dict, List, Set

from jsonschema import Draft202012Validator

from .hazo.format import get_ids, get_records, get_str
from .model import Dataset

_PHOTO = {
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "url": {"anyOf": [{"type": "string"}, {"type": "array", "items": {"type": "string"}}]},
        "label": {"anyOf": [{"type": "string"}, {"type": "array", "items": {"type": "string"}}]},
    },
}

_ID_LIST = {"type": "array", "items": {"type": "string"}}

_ITEM_PROPERTIES: Dict[str, Any] = {
    "id": {"type": "string", "minLength": 1},
    "parentId": {"type": "string"},
    "name": {"type": "string"},
    "nameEN": {"type": "string"},
    "nameCN": {"type": "string"},
    "vernacularName": {"type": "string"},
    "detail": {"type": "string"},
    "children": _ID_LIST,
    "photos": {"type": "array", "items": _PHOTO},
}

# Shape of a Hazo document (kept local, loose on purpose: unknown keys allowed)
HAZO_SCHEMA: Dict[str, Any] = {
    "title": "Hazo dataset",
    "type": "object",
    "properties": {
        "id": {"type": "string"},
        "taxons": {"type": "array", "items": {
            "type": "object",
            "required": ["id"],
            "properties": {
                **_ITEM_PROPERTIES,
                "author": {"type": "string"},
                "descriptions": {"type": "array", "items": {
                    "type": "object",
                    "properties": {"descriptorId": {"type": "string"}, "statesIds": _ID_LIST},
                }},
                "bookInfobyids": {"type": "object", "additionalProperties": {
                    "type": "object",
                    "properties": {
                        "fasc": {"type": "string"},
                        "page": {"type": ["string", "integer"]},
                        "detail": {"type": "string"},
                    },
                }},
                "extra": {"type": "object"},
            },
        }},
        "characters": {"type": "array", "items": {
            "type": "object",
            "required": ["id"],
            "properties": {
                **_ITEM_PROPERTIES,
                "inherentstateid": {"type": "string"},
                "states": _ID_LIST,
                "requiredStatesIds": _ID_LIST,
                "inapplicablestatesids": _ID_LIST,
            },
        }},
        "states": {"type": "array", "items": {
            "type": "object",
            "required": ["id"],
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "name": {"type": "string"},
                "nameEN": {"type": "string"},
                "nameCN": {"type": "string"},
                "description": {"type": "string"},
                "color": {"type": "string"},
                "photos": {"type": "array", "items": _PHOTO},
            },
        }},
        "books": {"type": "array"},
        "extraFields": {"type": "array"},
        "dictionaryEntries": {"type": "object"},
    },
}

def find_duplicate_ids(ds: Dataset) -> Dict[str, List[str]]:
    """{id: [kind, kind, ...]} for every id used more than once across
    taxa, characters and owned states."""
    seen: Dict[str, List[str]] = {}
    for kind, id_ in ds.all_ids():
        seen.setdefault(id_, []).append(kind)
    return {id_: kinds for id_, kinds in seen.items() if len(kinds) > 1}

def find_record_duplicate_ids(doc: Any) -> Dict[str, List[str]]:
    """Like find_duplicate_ids, over the raw records.

    Decoding keeps one entry per id and kind, so two taxon records (or two
    state records) with the same id only show up here.
    """
    seen: Dict[str, List[str]] = {}
    if isinstance(doc, dict):
        for key, kind in (("taxons", "taxon"), ("characters", "character"), ("states", "state")):
            for rec in get_records(doc, key):
                seen.setdefault(get_str(rec, "id"), []).append(kind)
    return {id_: kinds for id_, kinds in seen.items() if len(kinds) > 1}

def collect_duplicate_ids(doc: Any, ds: Dataset) -> Dict[str, List[str]]:
    """Record-level duplicates, plus states claimed by several characters."""
    found = find_record_duplicate_ids(doc)
    for id_, kinds in find_duplicate_ids(ds).items():
        found.setdefault(id_, kinds)
    return found

def _dangling(kind: str, records: List[Dict[str, Any]], known: Set[str], states: Set[str]) -> List[str]:
    warnings: List[str] = []
    for rec in records:
        rid = get_str(rec, "id")
        pid = get_str(rec, "parentId")
        if pid and pid not in known:
            warnings.append(f"{kind} {rid}: unknown parentId '{pid}' (attached to root)")
        for cid in get_ids(rec, "children"):
            if cid not in known:
                warnings.append(f"{kind} {rid}: unknown child '{cid}'")
        for key in ("states", "requiredStatesIds", "inapplicablestatesids"):
            for sid in get_ids(rec, key):
                if sid not in states:
                    warnings.append(f"{kind} {rid}: unknown state '{sid}' in {key} (dropped)")
        inherent = get_str(rec, "inherentstateid")
        if inherent and inherent not in states:
            warnings.append(f"{kind} {rid}: unknown inherent state '{inherent}'")
        for desc in get_records(rec, "descriptions"):
            for sid in get_ids(desc, "statesIds"):
                if sid not in states:
                    warnings.append(f"{kind} {rid}: unknown state '{sid}' in descriptions (dropped)")
    return warnings

def lint_document(doc: Any) -> List[str]:
    """Shape errors and dangling references, as human-readable messages."""
    warnings: List[str] = []
    validator = Draft202012Validator(HAZO_SCHEMA)
    for err in sorted(validator.iter_errors(doc), key=lambda e: [str(p) for p in e.absolute_path]):
        loc = "/".join(str(p) for p in err.absolute_path) or "<root>"
        warnings.append(f"{loc}: {err.message}")
    if not isinstance(doc, dict):
        return warnings

    states = {get_str(s, "id") for s in get_records(doc, "states")}
    taxa = get_records(doc, "taxons")
    chars = get_records(doc, "characters")
    warnings.extend(_dangling("taxon", taxa, {get_str(t, "id") for t in taxa}, states))
    char_ids = {get_str(c, "id") for c in chars}
    warnings.extend(_dangling("character", chars, char_ids, states))
    for taxon in taxa:
        for desc in get_records(taxon, "descriptions"):
            did = get_str(desc, "descriptorId")
            if did and did not in char_ids:
                warnings.append(f"taxon {get_str(taxon, 'id')}: unknown descriptor '{did}'")
    return warnings
