from __future__ import annotations
import sqlite3
from pathlib import Path
from typing import Any, List, Sequence, Union

from .logging import log
from .model import STANDARD_LANGS

DDL = """
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS Items (
  id TEXT NOT NULL PRIMARY KEY,
  seq INTEGER NOT NULL DEFAULT 0,        -- visit order within its tree, for sibling display
  name TEXT NOT NULL,                    -- scientific name
  description TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS Languages (
  code TEXT NOT NULL PRIMARY KEY,
  label TEXT NOT NULL
);

-- Per-language name overrides
CREATE TABLE IF NOT EXISTS ItemNames (
  item TEXT NOT NULL REFERENCES Items(id),
  lang TEXT NOT NULL,
  text TEXT NOT NULL,
  PRIMARY KEY (item, lang)
);

CREATE TABLE IF NOT EXISTS ItemPictures (
  id INTEGER NOT NULL PRIMARY KEY,       -- insertion order is display order
  item TEXT NOT NULL REFERENCES Items(id),
  ref TEXT NOT NULL DEFAULT '',         -- picture id from the interchange document
  url TEXT NOT NULL,
  label TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_item_pictures_item ON ItemPictures(item);

CREATE TABLE IF NOT EXISTS PictureCache (
  src TEXT NOT NULL PRIMARY KEY,
  data BLOB NOT NULL
);

-- Transitive closure, self rows included (length 0). Append-only.
CREATE TABLE IF NOT EXISTS Hierarchies (
  ancestor TEXT NOT NULL REFERENCES Items(id),
  descendant TEXT NOT NULL REFERENCES Items(id),
  length INTEGER NOT NULL DEFAULT 0,
  PRIMARY KEY (ancestor, descendant)
);
CREATE INDEX IF NOT EXISTS idx_hierarchies_descendant ON Hierarchies(descendant);

CREATE TABLE IF NOT EXISTS Characters (
  item TEXT NOT NULL PRIMARY KEY REFERENCES Items(id)
);

CREATE TABLE IF NOT EXISTS States (
  item TEXT NOT NULL PRIMARY KEY REFERENCES Items(id),
  character TEXT NOT NULL REFERENCES Characters(item),
  color TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_states_character ON States(character);

CREATE TABLE IF NOT EXISTS Taxons (
  item TEXT NOT NULL PRIMARY KEY REFERENCES Items(id),
  author TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS TaxonStates (
  taxon TEXT NOT NULL,
  state TEXT NOT NULL,
  PRIMARY KEY (taxon, state)
);
CREATE INDEX IF NOT EXISTS idx_taxon_states_state ON TaxonStates(state);

CREATE TABLE IF NOT EXISTS CharacterRequiredStates (
  character TEXT NOT NULL,
  state TEXT NOT NULL,
  PRIMARY KEY (character, state)
);
"""

class DatabaseError(Exception):
    """Database operation error."""
    pass

def open_db(path: Union[str, Path]) -> sqlite3.Connection:
    """Open a connection with explicit transaction control."""
    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys=ON")
    return con

def create_tables(con: sqlite3.Connection) -> None:
    try:
        con.executescript(DDL)
    except sqlite3.Error as e:
        raise DatabaseError(f"Cannot create tables: {e}") from e

def insert_standard_content(con: sqlite3.Connection) -> None:
    with Operation(con) as op:
        for lang in STANDARD_LANGS:
            op.execute("INSERT OR IGNORE INTO Languages (code, label) VALUES (?, ?)", (lang.code, lang.label))

def initialize(con: sqlite3.Connection) -> None:
    create_tables(con)
    insert_standard_content(con)

def placeholders(n: int) -> str:
    return ",".join("?" * n)

def query_all(con: sqlite3.Connection, query: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
    try:
        return con.execute(query, tuple(params)).fetchall()
    except sqlite3.Error as e:
        raise DatabaseError(f"Query failed: {e}") from e

class Operation:
    """One exclusive transaction.

    Statements run in order; the first failure propagates out of the `with`
    block, so nothing after it runs. On exit the transaction is committed, or
    rolled back and the first error re-raised as DatabaseError.
    """

    def __init__(self, con: sqlite3.Connection):
        self.con = con

    def __enter__(self) -> "Operation":
        try:
            self.con.execute("BEGIN EXCLUSIVE")
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot begin transaction: {e}") from e
        return self

    def execute(self, query: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        return self.con.execute(query, tuple(params))

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.con.rollback()
            log().debug(f"rolled back: {exc_val}")
            if isinstance(exc_val, sqlite3.Error):
                raise DatabaseError(str(exc_val)) from exc_val
            return False
        try:
            self.con.commit()
        except sqlite3.Error as e:
            self.con.rollback()
            raise DatabaseError(f"Commit failed: {e}") from e
        return False
