# -*- coding: utf-8 -*-
"""
Hazo interchange document: field names and tolerant readers.

The document is three flat lists (states, characters, taxa) cross-linked by
id, plus auxiliary books / extraFields / dictionaryEntries.
"""
from __future__ import annotations
from typing import Any, Dict, List

# Legacy flat taxon fields folded into (and unfolded from) the extension map
LEGACY_TAXON_FIELDS = (
    "vernacularName2",
    "name2",
    "meaning",
    "herbariumpicture",
    "website",
    "noHerbier",
    "fasc",
    "page",
)

# Language slots fed by dedicated item fields
ITEM_NAME_FIELDS = {
    "nameEN": "EN",
    "nameCN": "CN",
    "vernacularName": "NV",
}

class HazoFormatError(ValueError):
    """The document is not a JSON object at all."""

def string_or_array(value: Any) -> str:
    """Producers emit either "x" or ["x"]; take the first string."""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0]
    return ""

def get_str(obj: Dict[str, Any], key: str) -> str:
    v = obj.get(key)
    if v is None:
        return ""
    return v if isinstance(v, str) else str(v)

def get_list(obj: Dict[str, Any], key: str) -> List[Any]:
    v = obj.get(key)
    return v if isinstance(v, list) else []

def get_dict(obj: Dict[str, Any], key: str) -> Dict[str, Any]:
    v = obj.get(key)
    return v if isinstance(v, dict) else {}

def get_records(obj: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    """List of objects under `key`; non-object entries are ignored."""
    return [r for r in get_list(obj, key) if isinstance(r, dict)]

def get_ids(obj: Dict[str, Any], key: str) -> List[str]:
    return [i for i in get_list(obj, key) if isinstance(i, str)]
