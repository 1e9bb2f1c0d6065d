"""
Domain model for identification datasets.

Two trees share one Hierarchy shape: the taxa tree and the characters tree.
States live in a single arena on the Dataset; characters and taxa reference
them by id so a state can be owned by one character and still be assigned to
many taxa (or required by unrelated characters).
"""
from __future__ import annotations
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

TAXA_ROOT_ID = "t0"
CHARACTERS_ROOT_ID = "c0"

@dataclass(frozen=True)
class Lang:
    code: str
    label: str

STANDARD_LANGS: List[Lang] = [
    Lang("NS", "Scientific"),
    Lang("NV", "Vernacular"),
    Lang("CN", "Chinese"),
    Lang("EN", "English"),
    Lang("FR", "French"),
]

@dataclass(eq=False)
class MultilangText:
    scientific: str = ""
    names_by_lang: Optional[Dict[str, str]] = field(default_factory=dict)

    def text(self, lang: str) -> str:
        """Name in `lang`, falling back to the scientific name."""
        if self.names_by_lang and lang in self.names_by_lang:
            return self.names_by_lang[lang]
        return self.scientific

    def override(self, lang: str) -> str:
        """Explicit override only ('' when absent)."""
        return (self.names_by_lang or {}).get(lang, "")

    def set(self, lang: str, text: str) -> None:
        if self.names_by_lang is None:
            self.names_by_lang = {}
        self.names_by_lang[lang] = text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultilangText):
            return NotImplemented
        # None and {} are the same "no overrides"
        return (self.scientific == other.scientific
                and (self.names_by_lang or {}) == (other.names_by_lang or {}))

@dataclass
class Picture:
    id: str
    source: str = ""
    legend: str = ""

@dataclass(eq=False)
class Hierarchy:
    id: str
    name: MultilangText = field(default_factory=MultilangText)
    description: str = ""
    pictures: List[Picture] = field(default_factory=list)
    children: List["Hierarchy"] = field(default_factory=list)

    def get_in(self, path: Iterable[int]) -> "Hierarchy":
        it = self
        for index in path:
            it = it.children[index]
        return it

    def walk(self) -> Iterator["Hierarchy"]:
        """Pre-order, self first."""
        yield self
        for child in self.children:
            yield from child.walk()

@dataclass
class State:
    id: str
    name: MultilangText = field(default_factory=MultilangText)
    description: str = ""
    pictures: List[Picture] = field(default_factory=list)
    color: str = ""

@dataclass
class BookReference:
    book_id: str = ""
    page: int = 0
    fasc: str = ""
    detail: str = ""

class ExtraKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"

@dataclass(frozen=True)
class ExtraValue:
    """Tagged value of the legacy taxon extension map."""
    kind: ExtraKind
    value: Any

    @staticmethod
    def of(raw: Any) -> "ExtraValue":
        # bool before number: bool is an int subclass
        if isinstance(raw, bool):
            return ExtraValue(ExtraKind.BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            return ExtraValue(ExtraKind.NUMBER, raw)
        if isinstance(raw, str):
            return ExtraValue(ExtraKind.TEXT, raw)
        return ExtraValue(ExtraKind.TEXT, json.dumps(raw, ensure_ascii=False))

    def is_empty(self) -> bool:
        if self.kind is ExtraKind.TEXT:
            return self.value == ""
        if self.kind is ExtraKind.NUMBER:
            return self.value == 0
        return False

@dataclass(eq=False)
class Taxon:
    hierarchy: Hierarchy
    author: str = ""
    state_ids: List[str] = field(default_factory=list)
    references: List[BookReference] = field(default_factory=list)
    extra_info: Dict[str, ExtraValue] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.hierarchy.id

    @property
    def name(self) -> MultilangText:
        return self.hierarchy.name

    @property
    def children(self) -> List[Hierarchy]:
        return self.hierarchy.children

@dataclass(eq=False)
class Character:
    hierarchy: Hierarchy
    inherent_state_id: Optional[str] = None
    state_ids: List[str] = field(default_factory=list)
    inapplicable_state_ids: List[str] = field(default_factory=list)
    required_state_ids: List[str] = field(default_factory=list)
    # filled by the query engine; the dataset keeps states in its arena
    states: List[State] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.hierarchy.id

    @property
    def name(self) -> MultilangText:
        return self.hierarchy.name

    @property
    def children(self) -> List[Hierarchy]:
        return self.hierarchy.children

@dataclass
class DictionaryEntry:
    id: str
    url: str = ""
    name: MultilangText = field(default_factory=MultilangText)
    definition: MultilangText = field(default_factory=MultilangText)

@dataclass
class ExtraField:
    id: str
    label: str = ""
    icon: str = ""
    is_standard: bool = False

@dataclass
class Book:
    id: str
    title: str = ""

def generate_new_id(prefix: str, size: int, has: Callable[[str], bool]) -> str:
    index = size + 1
    new_id = f"{prefix}{index}"
    while has(new_id):
        index += 1
        new_id = f"{prefix}{index}"
    return new_id

class Dataset:
    """Aggregate root: the two trees, their id indexes and the state arena."""

    def __init__(self, id: str = ""):
        self.id = id
        self.taxa_root = Hierarchy(TAXA_ROOT_ID, MultilangText("Taxons"))
        self.characters_root = Hierarchy(CHARACTERS_ROOT_ID, MultilangText("Characters"))
        self.taxa_by_id: Dict[str, Taxon] = {}
        self.characters_by_id: Dict[str, Character] = {}
        self.states_by_id: Dict[str, State] = {}
        self.dictionary_entries: List[DictionaryEntry] = []
        self.extra_fields: List[ExtraField] = []
        self.books: List[Book] = []

    # --- lookups -------------------------------------------------------------

    def has_id(self, id: str) -> bool:
        return id in self.taxa_by_id or id in self.characters_by_id or id in self.states_by_id

    def state(self, id: Optional[str]) -> Optional[State]:
        if id is None:
            return None
        return self.states_by_id.get(id)

    def states_of(self, ids: Iterable[str]) -> List[State]:
        return [self.states_by_id[i] for i in ids if i in self.states_by_id]

    def all_ids(self) -> Iterator[Tuple[str, str]]:
        """(kind, id) for every taxon, character and owned state.

        Owned states are listed once per owning character, so a state id
        claimed by two characters shows up twice.
        """
        for tid in self.taxa_by_id:
            yield "taxon", tid
        for cid, ch in self.characters_by_id.items():
            yield "character", cid
            for sid in ch.state_ids:
                yield "state", sid

    # --- builders ------------------------------------------------------------

    def add_taxon_below(self, taxon: Taxon, parent: Optional[Hierarchy] = None) -> None:
        self.taxa_by_id[taxon.id] = taxon
        (parent or self.taxa_root).children.append(taxon.hierarchy)

    def add_character_below(self, character: Character, parent: Optional[Hierarchy] = None) -> None:
        self.characters_by_id[character.id] = character
        (parent or self.characters_root).children.append(character.hierarchy)

    def create_taxon(self, path: List[int], *, id: Optional[str] = None,
                     name: Optional[MultilangText] = None, description: str = "",
                     author: str = "", state_ids: Optional[List[str]] = None,
                     references: Optional[List[BookReference]] = None,
                     extra_info: Optional[Dict[str, ExtraValue]] = None) -> List[int]:
        """Create a taxon under the node at `path`; returns the new node's path."""
        new_id = id or generate_new_id("t", len(self.taxa_by_id), self.has_id)
        hierarchy = Hierarchy(new_id, name or MultilangText(), description)
        taxon = Taxon(
            hierarchy=hierarchy,
            author=author,
            state_ids=list(state_ids or []),
            references=list(references or []),
            extra_info=dict(extra_info or {}),
        )
        parent = self.taxa_root.get_in(path)
        self.add_taxon_below(taxon, parent)
        return list(path) + [len(parent.children) - 1]

    def create_character(self, path: List[int], name: Optional[MultilangText] = None,
                         *, id: Optional[str] = None) -> List[int]:
        new_id = id or generate_new_id("c", len(self.characters_by_id), self.has_id)
        character = Character(Hierarchy(new_id, name or MultilangText()))
        parent = self.characters_root.get_in(path)
        self.add_character_below(character, parent)
        return list(path) + [len(parent.children) - 1]

    def add_state(self, character_id: str, state: State) -> State:
        """Register `state` in the arena as owned by `character_id`."""
        owner = self.characters_by_id[character_id]
        if not state.id:
            state.id = generate_new_id("s", len(self.states_by_id), self.has_id)
        self.states_by_id[state.id] = state
        owner.state_ids.append(state.id)
        return state

    def owner_by_state_id(self) -> Dict[str, str]:
        owners: Dict[str, str] = {}
        for cid, ch in self.characters_by_id.items():
            for sid in ch.state_ids:
                owners.setdefault(sid, cid)
        return owners
