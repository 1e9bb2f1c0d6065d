# -*- coding: utf-8 -*-
"""
Hazo document -> Dataset.

Decoding is lenient by contract: only a document that is not JSON (or not a
JSON object) fails. Dangling ids are dropped, dangling parents attach to the
synthetic root.
"""
from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Callable, Dict, IO, List, Optional, Union

from ..logging import log
from ..model import (
    Book, BookReference, Character, Dataset, DictionaryEntry, ExtraField,
    ExtraValue, Hierarchy, MultilangText, Picture, State, Taxon,
)
from .format import (
    ITEM_NAME_FIELDS, LEGACY_TAXON_FIELDS, HazoFormatError,
    get_dict, get_ids, get_list, get_records, get_str, string_or_array,
)

def decode_pictures(photos: List[Any]) -> List[Picture]:
    pics: List[Picture] = []
    for photo in photos:
        if not isinstance(photo, dict):
            continue
        pics.append(Picture(
            id=get_str(photo, "id"),
            source=string_or_array(photo.get("url")),
            legend=string_or_array(photo.get("label")),
        ))
    return pics

def decode_hierarchy(rec: Dict[str, Any]) -> Hierarchy:
    name = MultilangText(get_str(rec, "name"), {})
    for key, lang in ITEM_NAME_FIELDS.items():
        text = get_str(rec, key)
        if text:
            name.set(lang, text)
    return Hierarchy(
        id=get_str(rec, "id"),
        name=name,
        description=get_str(rec, "detail"),
        pictures=decode_pictures(get_list(rec, "photos")),
    )

def decode_states_by_ids(records: List[Dict[str, Any]]) -> Dict[str, State]:
    states: Dict[str, State] = {}
    for rec in records:
        name = MultilangText(get_str(rec, "name"), {})
        for key, lang in (("nameCN", "CN"), ("nameEN", "EN"), ("name", "FR")):
            text = get_str(rec, key)
            if text:
                name.set(lang, text)
        state = State(
            id=get_str(rec, "id"),
            name=name,
            description=get_str(rec, "description"),
            pictures=decode_pictures(get_list(rec, "photos")),
            color=get_str(rec, "color"),
        )
        states[state.id] = state
    return states

def decode_characters_by_ids(records: List[Dict[str, Any]], states: Dict[str, State]) -> Dict[str, Character]:
    def known(ids: List[str]) -> List[str]:
        return [sid for sid in ids if sid in states]

    characters: Dict[str, Character] = {}
    for rec in records:
        inherent = get_str(rec, "inherentstateid")
        ch = Character(
            hierarchy=decode_hierarchy(rec),
            inherent_state_id=inherent if inherent in states else None,
            state_ids=known(get_ids(rec, "states")),
            inapplicable_state_ids=known(get_ids(rec, "inapplicablestatesids")),
            required_state_ids=known(get_ids(rec, "requiredStatesIds")),
        )
        characters[ch.id] = ch
    return characters

def _parse_page(raw: Any) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return 0

def decode_taxa_by_ids(records: List[Dict[str, Any]], states: Dict[str, State]) -> Dict[str, Taxon]:
    taxa: Dict[str, Taxon] = {}
    for rec in records:
        state_ids: List[str] = []
        for desc in get_records(rec, "descriptions"):
            for sid in get_ids(desc, "statesIds"):
                if sid in states and sid not in state_ids:
                    state_ids.append(sid)

        refs = [
            BookReference(
                book_id=str(book_id),
                page=_parse_page(info.get("page")),
                fasc=get_str(info, "fasc"),
                detail=get_str(info, "detail"),
            )
            for book_id, info in get_dict(rec, "bookInfobyids").items()
            if isinstance(info, dict)
        ]

        extras: Dict[str, ExtraValue] = {}
        for key, raw in get_dict(rec, "extra").items():
            if raw is not None:
                extras[key] = ExtraValue.of(raw)
        for key in LEGACY_TAXON_FIELDS:
            raw = rec.get(key)
            if raw is None:
                continue
            value = ExtraValue.of(raw)
            if not value.is_empty():
                extras[key] = value

        taxon = Taxon(
            hierarchy=decode_hierarchy(rec),
            author=get_str(rec, "author"),
            state_ids=state_ids,
            references=refs,
            extra_info=extras,
        )
        taxa[taxon.id] = taxon
    return taxa

def _resolve_parents(records: List[Dict[str, Any]], known: Dict[str, Any]) -> Dict[str, str]:
    """child id -> parent id, from `parentId` first, then `children` lists."""
    parent_of: Dict[str, str] = {}
    for rec in records:
        rid = get_str(rec, "id")
        for child_id in get_ids(rec, "children"):
            if child_id in known and child_id != rid:
                parent_of.setdefault(child_id, rid)
    for rec in records:
        rid = get_str(rec, "id")
        pid = get_str(rec, "parentId")
        if pid in known and pid != rid:
            parent_of[rid] = pid
    # a cycle would leave its members unreachable from the root; detach one member
    for nid in list(parent_of):
        if nid not in parent_of:
            continue
        seen = {nid}
        cur = parent_of.get(nid)
        while cur is not None:
            if cur == nid:
                del parent_of[nid]
                break
            if cur in seen:
                # leads into a cycle it is not part of
                break
            seen.add(cur)
            cur = parent_of.get(cur)
    return parent_of

def _wire(records: List[Dict[str, Any]], nodes: Dict[str, Any],
          attach: Callable[[Any, Optional[Hierarchy]], None]) -> None:
    parent_of = _resolve_parents(records, nodes)
    listed: Dict[str, List[str]] = {}
    for rec in records:
        listed.setdefault(get_str(rec, "id"), get_ids(rec, "children"))

    placed = set()

    def place(nid: str, parent: Optional[Hierarchy]) -> None:
        if nid in placed:
            return
        placed.add(nid)
        attach(nodes[nid], parent)

    # siblings follow the parent's `children` order, then document order
    for rec in records:
        pid = get_str(rec, "id")
        if pid not in nodes:
            continue
        for child_id in listed.get(pid, []):
            if parent_of.get(child_id) == pid:
                place(child_id, nodes[pid].hierarchy)
    for rec in records:
        nid = get_str(rec, "id")
        if nid not in nodes:
            continue
        pid = parent_of.get(nid)
        place(nid, nodes[pid].hierarchy if pid is not None else None)

def _decode_dictionary(entries: Dict[str, Any]) -> List[DictionaryEntry]:
    out: List[DictionaryEntry] = []
    for key, raw in entries.items():
        if not isinstance(raw, dict):
            continue
        name = MultilangText("", {})
        definition = MultilangText("", {})
        for lang in ("CN", "EN", "FR"):
            if get_str(raw, f"name{lang}"):
                name.set(lang, get_str(raw, f"name{lang}"))
            if get_str(raw, f"def{lang}"):
                definition.set(lang, get_str(raw, f"def{lang}"))
        out.append(DictionaryEntry(
            id=get_str(raw, "id") or str(key),
            url=get_str(raw, "url"),
            name=name,
            definition=definition,
        ))
    return out

def decode_document(doc: Any) -> Dataset:
    if not isinstance(doc, dict):
        raise HazoFormatError(f"expected a JSON object, got {type(doc).__name__}")

    ds = Dataset(get_str(doc, "id"))
    state_records = get_records(doc, "states")
    char_records = get_records(doc, "characters")
    taxon_records = get_records(doc, "taxons")

    # 1) states lookup, 2) characters, 3) taxa
    ds.states_by_id = decode_states_by_ids(state_records)
    characters = decode_characters_by_ids(char_records, ds.states_by_id)
    taxa = decode_taxa_by_ids(taxon_records, ds.states_by_id)

    # 4) wiring
    _wire(char_records, characters, ds.add_character_below)
    _wire(taxon_records, taxa, ds.add_taxon_below)

    ds.books = [Book(get_str(b, "id"), get_str(b, "label")) for b in get_records(doc, "books")]
    ds.extra_fields = [
        ExtraField(id=get_str(f, "id"), label=get_str(f, "label"),
                   icon=get_str(f, "icon"), is_standard=bool(f.get("std")))
        for f in get_records(doc, "extraFields")
    ]
    ds.dictionary_entries = _decode_dictionary(get_dict(doc, "dictionaryEntries"))

    log().debug(f"decoded {len(ds.taxa_by_id)} taxa, {len(ds.characters_by_id)} characters, "
                f"{len(ds.states_by_id)} states")
    return ds

def read_hazo(source: Union[str, bytes, IO[str]]) -> Dataset:
    """Decode a Hazo document from text, bytes or a readable stream."""
    data = source.read() if hasattr(source, "read") else source
    try:
        doc = json.loads(data)
    except json.JSONDecodeError as e:
        raise HazoFormatError(f"invalid Hazo document: {e}") from e
    return decode_document(doc)

def load_hazo(path: Path) -> Dataset:
    return read_hazo(Path(path).read_text(encoding="utf-8"))
