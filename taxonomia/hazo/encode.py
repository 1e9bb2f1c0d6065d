# -*- coding: utf-8 -*-
"""
Dataset -> Hazo document.

Items are emitted in pre-order from the synthetic roots so that every record
carries its parentId and ordered children; records unreachable from a root
follow, parentless.
"""
from __future__ import annotations
import json
from typing import Any, Dict, IO, Iterator, List, Optional, Tuple

from ..model import (
    Character, Dataset, DictionaryEntry, Hierarchy, Picture, State, Taxon,
)
from .format import ITEM_NAME_FIELDS, LEGACY_TAXON_FIELDS

def encode_pictures(pics: List[Picture]) -> List[Dict[str, Any]]:
    return [{"id": p.id, "url": p.source, "label": p.legend} for p in pics]

def encode_item(h: Hierarchy, parent_id: str) -> Dict[str, Any]:
    item: Dict[str, Any] = {"id": h.id}
    if parent_id:
        item["parentId"] = parent_id
    item["name"] = h.name.scientific
    for key, lang in ITEM_NAME_FIELDS.items():
        item[key] = h.name.override(lang)
    item["detail"] = h.description
    item["children"] = [c.id for c in h.children]
    item["photos"] = encode_pictures(h.pictures)
    return item

def encode_state(state: State) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "id": state.id,
        "name": state.name.scientific,
        "nameEN": state.name.override("EN"),
        "nameCN": state.name.override("CN"),
        "photos": encode_pictures(state.pictures),
        "description": state.description,
    }
    if state.color:
        out["color"] = state.color
    return out

def _walk(root: Hierarchy, by_id: Dict[str, Any]) -> Iterator[Tuple[Any, str]]:
    """(record, parent id) in pre-order, then the unreachable leftovers."""
    seen = set()

    def visit(h: Hierarchy, parent_id: str) -> Iterator[Tuple[Any, str]]:
        rec = by_id.get(h.id)
        if rec is not None and h.id not in seen:
            seen.add(h.id)
            yield rec, parent_id
        for child in h.children:
            yield from visit(child, h.id if rec is not None else parent_id)

    for child in root.children:
        yield from visit(child, "")
    for rid, rec in by_id.items():
        if rid not in seen:
            yield rec, ""

def encode_taxon(taxon: Taxon, parent_id: str, owner_by_state: Dict[str, str]) -> Dict[str, Any]:
    item = encode_item(taxon.hierarchy, parent_id)

    groups: Dict[str, List[str]] = {}
    for sid in taxon.state_ids:
        groups.setdefault(owner_by_state.get(sid, ""), []).append(sid)
    item["descriptions"] = [{"descriptorId": cid, "statesIds": sids} for cid, sids in groups.items()]
    item["author"] = taxon.author

    extras = {k: v.value for k, v in taxon.extra_info.items()}
    for key in LEGACY_TAXON_FIELDS:
        if key in extras:
            item[key] = extras.pop(key)
    if taxon.references:
        item["bookInfobyids"] = {
            ref.book_id: {"fasc": ref.fasc, "page": str(ref.page) if ref.page else "", "detail": ref.detail}
            for ref in taxon.references
        }
    if extras:
        item["extra"] = extras
    return item

def encode_character(ch: Character, parent_id: str) -> Dict[str, Any]:
    item = encode_item(ch.hierarchy, parent_id)
    item["inherentstateid"] = ch.inherent_state_id or ""
    item["states"] = list(ch.state_ids)
    item["requiredStatesIds"] = list(ch.required_state_ids)
    item["inapplicablestatesids"] = list(ch.inapplicable_state_ids)
    return item

def _encode_dictionary(entries: List[DictionaryEntry]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for e in entries:
        raw: Dict[str, Any] = {"id": int(e.id) if e.id.isdigit() else e.id}
        for lang in ("CN", "EN", "FR"):
            raw[f"name{lang}"] = e.name.override(lang)
            raw[f"def{lang}"] = e.definition.override(lang)
        raw["url"] = e.url
        out[e.id] = raw
    return out

def encode_dataset(ds: Dataset) -> Dict[str, Any]:
    states: List[Dict[str, Any]] = []
    emitted = set()
    for ch, _ in _walk(ds.characters_root, ds.characters_by_id):
        for state in ds.states_of(ch.state_ids):
            if state.id not in emitted:
                emitted.add(state.id)
                states.append(encode_state(state))
    for sid, state in ds.states_by_id.items():
        if sid not in emitted:
            states.append(encode_state(state))

    owner_by_state = ds.owner_by_state_id()
    return {
        "id": ds.id,
        "taxons": [encode_taxon(t, pid, owner_by_state) for t, pid in _walk(ds.taxa_root, ds.taxa_by_id)],
        "characters": [encode_character(c, pid) for c, pid in _walk(ds.characters_root, ds.characters_by_id)],
        "states": states,
        "books": [{"id": b.id, "label": b.title} for b in ds.books],
        "extraFields": [
            {"std": f.is_standard, "id": f.id, "label": f.label, "icon": f.icon}
            for f in ds.extra_fields
        ],
        "dictionaryEntries": _encode_dictionary(ds.dictionary_entries),
    }

def write_hazo(ds: Dataset, stream: Optional[IO[str]] = None) -> str:
    """Serialize `ds`; also writes to `stream` when given."""
    text = json.dumps(encode_dataset(ds), ensure_ascii=False)
    if stream is not None:
        stream.write(text)
    return text
