# -*- coding: utf-8 -*-
"""
taxonomia: identification datasets (Hazo import/export, SQLite store,
state-based taxon identification).
"""

from .model import (
    Book, BookReference, Character, Dataset, DictionaryEntry, ExtraField,
    ExtraKind, ExtraValue, Hierarchy, Lang, MultilangText, Picture, State, Taxon,
    STANDARD_LANGS,
)
from .hazo import HazoFormatError, read_hazo, load_hazo, write_hazo
from .db import DatabaseError, open_db, initialize
from .registry import DatasetRegistry

__all__ = [
    "Book", "BookReference", "Character", "Dataset", "DictionaryEntry", "ExtraField",
    "ExtraKind", "ExtraValue", "Hierarchy", "Lang", "MultilangText", "Picture", "State", "Taxon",
    "STANDARD_LANGS",
    "HazoFormatError", "read_hazo", "load_hazo", "write_hazo",
    "DatabaseError", "open_db", "initialize",
    "DatasetRegistry",
]
