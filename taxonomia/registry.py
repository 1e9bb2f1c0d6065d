"""
DatasetRegistry: bulk loading into, and identification queries over, the
relational store.

Loading walks each tree in pre-order inside one exclusive transaction per
tree. Every node's closure rows are derived from its parent's, which is why a
parent must always be written before its children.
"""
from __future__ import annotations
import sqlite3
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .db import Operation, placeholders, query_all
from .logging import log
from .model import (
    CHARACTERS_ROOT_ID, Character, Dataset, Hierarchy, MultilangText, Picture, State, Taxon,
)

QUERY_INSERT_ITEM = "INSERT INTO Items (id, seq, name, description) VALUES (?, ?, ?, ?)"
QUERY_INSERT_NAME = "INSERT INTO ItemNames (item, lang, text) VALUES (?, ?, ?)"
QUERY_INSERT_PICTURE = "INSERT INTO ItemPictures (id, item, ref, url, label) VALUES (?, ?, ?, ?, ?)"
# Every ancestor of the parent becomes an ancestor of the node, one step
# further away; plus the node's own self row.
QUERY_INSERT_HIERARCHIES = """
    INSERT INTO Hierarchies (ancestor, descendant, length)
    SELECT ancestor, ?, length + 1 FROM Hierarchies WHERE descendant = ?
    UNION ALL
    SELECT ?, ?, 0
"""

@dataclass
class LoadStats:
    items: int = 0
    states: int = 0
    pictures: int = 0
    synthesized: List[str] = field(default_factory=list)

class _TreeLoad:
    """State of one tree walk: the open transaction and its sequence counter."""

    def __init__(self, op: Operation, next_picture_id: int):
        self.op = op
        self.seq = 0
        self.next_picture_id = next_picture_id
        self.stats = LoadStats()

    def next_seq(self) -> int:
        self.seq += 1
        return self.seq

    def insert_bare_item(self, id: str, name: MultilangText, description: str,
                         pictures: Sequence[Picture]) -> None:
        self.op.execute(QUERY_INSERT_ITEM, (id, self.next_seq(), name.scientific, description))
        for lang, text in (name.names_by_lang or {}).items():
            self.op.execute(QUERY_INSERT_NAME, (id, lang, text))
        for pic in pictures:
            self.op.execute(QUERY_INSERT_PICTURE, (self.next_picture_id, id, pic.id, pic.source, pic.legend))
            self.next_picture_id += 1
            self.stats.pictures += 1
        self.stats.items += 1

    def insert_node(self, h: Hierarchy, parent: Optional[Hierarchy]) -> None:
        self.insert_bare_item(h.id, h.name, h.description, h.pictures)
        # a root has no parent rows to copy; NULL matches no descendant
        parent_id = parent.id if parent is not None else None
        self.op.execute(QUERY_INSERT_HIERARCHIES, (h.id, parent_id, h.id, h.id))

class DatasetRegistry:
    def __init__(self, con: sqlite3.Connection):
        self.con = con

    # --- bulk load -----------------------------------------------------------

    def _next_picture_id(self) -> int:
        row = query_all(self.con, "SELECT COALESCE(MAX(id), 0) FROM ItemPictures")[0]
        return row[0] + 1

    def _insert_characters(self, ds: Dataset, load: _TreeLoad, ch: Character,
                           parent: Optional[Hierarchy]) -> None:
        op = load.op
        load.insert_node(ch.hierarchy, parent)
        op.execute("INSERT INTO Characters (item) VALUES (?)", (ch.id,))
        for state in ds.states_of(ch.state_ids):
            load.insert_bare_item(state.id, state.name, state.description, state.pictures)
            op.execute("INSERT INTO States (item, character, color) VALUES (?, ?, ?)",
                       (state.id, ch.id, state.color))
            load.stats.states += 1
        for child in ch.children:
            sub = ds.characters_by_id.get(child.id)
            if sub is None:
                # dangling structural edge: keep the node, without character data
                sub = Character(child)
                load.stats.synthesized.append(child.id)
            self._insert_characters(ds, load, sub, ch.hierarchy)
        for sid in ch.required_state_ids:
            op.execute("INSERT INTO CharacterRequiredStates (character, state) VALUES (?, ?)", (ch.id, sid))

    def _insert_taxa(self, ds: Dataset, load: _TreeLoad, taxon: Taxon,
                     parent: Optional[Hierarchy]) -> None:
        op = load.op
        load.insert_node(taxon.hierarchy, parent)
        op.execute("INSERT INTO Taxons (item, author) VALUES (?, ?)", (taxon.id, taxon.author))
        for sid in taxon.state_ids:
            op.execute("INSERT INTO TaxonStates (taxon, state) VALUES (?, ?)", (taxon.id, sid))
        for child in taxon.children:
            sub = ds.taxa_by_id.get(child.id)
            if sub is None:
                sub = Taxon(child)
                load.stats.synthesized.append(child.id)
            self._insert_taxa(ds, load, sub, taxon.hierarchy)

    def insert_characters(self, ds: Dataset) -> LoadStats:
        with Operation(self.con) as op:
            load = _TreeLoad(op, self._next_picture_id())
            self._insert_characters(ds, load, Character(ds.characters_root), None)
        log().info(f"characters: {load.stats.items} items ({load.stats.states} states, "
                   f"{load.stats.pictures} pictures)")
        return load.stats

    def insert_taxa(self, ds: Dataset) -> LoadStats:
        with Operation(self.con) as op:
            load = _TreeLoad(op, self._next_picture_id())
            self._insert_taxa(ds, load, Taxon(ds.taxa_root), None)
        log().info(f"taxa: {load.stats.items} items ({load.stats.pictures} pictures)")
        return load.stats

    def insert_dataset(self, ds: Dataset) -> Tuple[LoadStats, LoadStats]:
        """Load the character tree then the taxon tree, each all-or-nothing.

        A failure in the taxon tree leaves the committed character tree in place.
        """
        chars = self.insert_characters(ds)
        taxa = self.insert_taxa(ds)
        synthesized = chars.synthesized + taxa.synthesized
        if synthesized:
            log().warning(f"synthesized empty records for {len(synthesized)} dangling children: "
                          f"{', '.join(synthesized[:10])}")
        return chars, taxa

    # --- queries -------------------------------------------------------------

    def _names_by_item(self, ids: Iterable[str]) -> Dict[str, Dict[str, str]]:
        ids = list(ids)
        out: Dict[str, Dict[str, str]] = {}
        if not ids:
            return out
        rows = query_all(self.con,
                         f"SELECT item, lang, text FROM ItemNames WHERE item IN ({placeholders(len(ids))})",
                         ids)
        for row in rows:
            out.setdefault(row["item"], {})[row["lang"]] = row["text"]
        return out

    def get_taxa_having_states(self, state_ids: Sequence[str]) -> List[Taxon]:
        """Taxa described by every one of `state_ids` (extra states allowed)."""
        wanted = list(dict.fromkeys(state_ids))
        rows = query_all(self.con, f"""
            SELECT Taxon.id, Taxon.name, Taxon.description, Taxons.author
            FROM Items Taxon
            INNER JOIN Taxons ON Taxons.item = Taxon.id
            INNER JOIN TaxonStates ON TaxonStates.taxon = Taxon.id
            WHERE TaxonStates.state IN ({placeholders(len(wanted))})
            GROUP BY Taxon.id
            HAVING COUNT(TaxonStates.state) = ?
            ORDER BY Taxon.seq
        """, wanted + [len(wanted)])
        names = self._names_by_item(row["id"] for row in rows)
        return [
            Taxon(
                hierarchy=Hierarchy(row["id"], MultilangText(row["name"], names.get(row["id"], {})),
                                    row["description"]),
                author=row["author"],
            )
            for row in rows
        ]

    def get_all_characters_except(self, character_ids: Sequence[str]
                                  ) -> Tuple[List[Character], Dict[str, Character]]:
        """Characters with their states, state names and pictures.

        Returns the top-level characters (direct children of the characters
        root) and every returned character by id, children wired.
        """
        excluded = list(character_ids)
        exclusion = f"AND Character.id NOT IN ({placeholders(len(excluded))})" if excluded else ""
        rows = query_all(self.con, f"""
            SELECT Character.id AS char_id, Character.name AS char_name,
                   Hierarchies.ancestor AS parent_id,
                   State.id AS state_id, State.name AS state_name,
                   State.description AS state_description, States.color AS color,
                   StateName.lang AS lang, StateName.text AS lang_text,
                   StatePicture.id AS pic_id, StatePicture.ref AS pic_ref,
                   StatePicture.url AS pic_url, StatePicture.label AS pic_label
            FROM Items Character
            INNER JOIN Characters ON Characters.item = Character.id
            INNER JOIN Hierarchies ON Hierarchies.descendant = Character.id AND Hierarchies.length = 1
            LEFT JOIN States ON States.character = Character.id
            LEFT JOIN Items State ON State.id = States.item
            LEFT JOIN ItemNames StateName ON StateName.item = State.id
            LEFT JOIN ItemPictures StatePicture ON StatePicture.item = State.id
            WHERE 1 = 1 {exclusion}
            ORDER BY Character.seq, State.seq, StatePicture.id, StateName.lang
        """, excluded)

        top_level: List[Character] = []
        by_id: Dict[str, Character] = {}
        children_ids: Dict[str, List[str]] = {}
        last_char: Optional[Character] = None
        last_state: Optional[State] = None
        last_pic_id: Optional[int] = None

        for row in rows:
            if last_char is None or last_char.id != row["char_id"]:
                last_char = Character(Hierarchy(row["char_id"], MultilangText(row["char_name"], {})))
                by_id[last_char.id] = last_char
                children_ids.setdefault(row["parent_id"], []).append(last_char.id)
                if row["parent_id"] == CHARACTERS_ROOT_ID:
                    top_level.append(last_char)
                last_state = None
            if row["state_id"] is None:
                continue
            if last_state is None or last_state.id != row["state_id"]:
                last_state = State(
                    id=row["state_id"],
                    name=MultilangText(row["state_name"], {}),
                    description=row["state_description"],
                    color=row["color"],
                )
                last_char.states.append(last_state)
                last_char.state_ids.append(last_state.id)
                last_pic_id = None
            if row["lang"] is not None:
                last_state.name.set(row["lang"], row["lang_text"])
            # join fan-out repeats each picture once per name row
            if row["pic_id"] is not None and row["pic_id"] != last_pic_id:
                last_state.pictures.append(
                    Picture(row["pic_ref"] or str(row["pic_id"]), row["pic_url"], row["pic_label"]))
                last_pic_id = row["pic_id"]

        names = self._names_by_item(by_id)
        for cid, ch in by_id.items():
            ch.name.names_by_lang = names.get(cid, {})
        for parent_id, ids in children_ids.items():
            parent = by_id.get(parent_id)
            if parent is not None:
                parent.children.extend(by_id[i].hierarchy for i in ids)
        return top_level, by_id

    def get_characters_from_ids(self, character_ids: Sequence[str],
                                state_ids: Sequence[str]) -> List[Character]:
        """The given characters restricted to the given states."""
        char_ids = list(character_ids)
        wanted = list(state_ids)
        rows = query_all(self.con, f"""
            SELECT Character.id AS char_id, Character.name AS char_name,
                   State.id AS state_id, State.name AS state_name,
                   State.description AS state_description, States.color AS color
            FROM Items Character
            INNER JOIN States ON States.character = Character.id
            INNER JOIN Items State ON State.id = States.item
            WHERE Character.id IN ({placeholders(len(char_ids))})
              AND State.id IN ({placeholders(len(wanted))})
            ORDER BY Character.seq, State.seq
        """, char_ids + wanted)

        characters: List[Character] = []
        last_char: Optional[Character] = None
        for row in rows:
            if last_char is None or last_char.id != row["char_id"]:
                last_char = Character(Hierarchy(row["char_id"], MultilangText(row["char_name"], {})))
                characters.append(last_char)
            if not last_char.states or last_char.states[-1].id != row["state_id"]:
                last_char.states.append(State(
                    id=row["state_id"],
                    name=MultilangText(row["state_name"], {}),
                    description=row["state_description"],
                    color=row["color"],
                ))
                last_char.state_ids.append(row["state_id"])

        names = self._names_by_item([c.id for c in characters] +
                                    [s.id for c in characters for s in c.states])
        for ch in characters:
            ch.name.names_by_lang = names.get(ch.id, {})
            for state in ch.states:
                state.name.names_by_lang = names.get(state.id, {})
        return characters

    # --- picture cache -------------------------------------------------------

    def picture_urls(self) -> List[str]:
        rows = query_all(self.con, "SELECT DISTINCT url FROM ItemPictures WHERE url != '' ORDER BY url")
        return [row["url"] for row in rows]

    def store_cached_images(self, blobs: Dict[str, bytes]) -> None:
        with Operation(self.con) as op:
            for url, data in blobs.items():
                op.execute("INSERT OR REPLACE INTO PictureCache (src, data) VALUES (?, ?)",
                           (url, sqlite3.Binary(data)))

    def get_cached_image(self, url: str) -> Optional[bytes]:
        rows = query_all(self.con, "SELECT data FROM PictureCache WHERE src = ?", (url,))
        return bytes(rows[0]["data"]) if rows else None
