#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
taxonomia CLI

Usage:
  python -m taxonomia init
  python -m taxonomia import dataset.hazo.json
  python -m taxonomia check dataset.hazo.json
  python -m taxonomia normalize dataset.hazo.json --out clean.hazo.json
  python -m taxonomia cache
  python -m taxonomia lschar
  python -m taxonomia identify
"""
from __future__ import annotations
import argparse, json, sys, time
from pathlib import Path
from typing import Dict, List, Optional

from rich.text import Text

from .config import Config
from .db import DatabaseError, initialize, open_db
from .diagnostics import collect_duplicate_ids, lint_document
from .hazo import HazoFormatError, load_hazo, read_hazo, write_hazo
from .identification import IdentificationSession
from .io import write_text
from .logging import console, log, setup_logger
from .model import Character
from .pictures import refresh_picture_cache
from .registry import DatasetRegistry

def print_success(message: str, duration_ms: Optional[float] = None):
    if duration_ms is not None:
        console().print(Text(f"  ✓ {message} in {duration_ms:.0f}ms", style="green"))
    else:
        console().print(Text(f"  ✓ {message}", style="green"))

def print_error(message: str):
    console().print(Text(f"  ❌ {message}", style="red bold"))

def print_warning(message: str):
    console().print(Text(f"  ⚠️ {message}", style="yellow"))

def cmd_init(cfg: Config, args) -> int:
    con = open_db(cfg.db_path)
    try:
        initialize(con)
    finally:
        con.close()
    print_success(f"initialized {cfg.db_path}")
    return 0

def cmd_import(cfg: Config, args) -> int:
    path = Path(args.dataset or cfg.dataset_path)
    start = time.time()
    text = path.read_text(encoding="utf-8")
    ds = read_hazo(text)
    for id_, kinds in collect_duplicate_ids(json.loads(text), ds).items():
        print_warning(f"duplicate id {id_!r} used by {', '.join(kinds)}")
    con = open_db(cfg.db_path)
    try:
        chars, taxa = DatasetRegistry(con).insert_dataset(ds)
    finally:
        con.close()
    print_success(f"imported {chars.items} character items and {taxa.items} taxon items from {path}",
                  (time.time() - start) * 1000)
    return 0

def cmd_check(cfg: Config, args) -> int:
    path = Path(args.dataset or cfg.dataset_path)
    text = path.read_text(encoding="utf-8")
    ds = read_hazo(text)
    doc = json.loads(text)
    problems = lint_document(doc)
    for msg in problems:
        print_warning(msg)
    duplicates = collect_duplicate_ids(doc, ds)
    for id_, kinds in duplicates.items():
        print_warning(f"duplicate id {id_!r} used by {', '.join(kinds)}")
    if not problems and not duplicates:
        print_success(f"{path}: no issues")
    # diagnostics never fail the run
    return 0

def cmd_normalize(cfg: Config, args) -> int:
    ds = load_hazo(Path(args.dataset))
    text = write_hazo(ds)
    if args.out:
        write_text(Path(args.out), text)
        print_success(f"wrote {args.out}")
    else:
        sys.stdout.write(text + "\n")
    return 0

def cmd_cache(cfg: Config, args) -> int:
    con = open_db(cfg.db_path)
    try:
        report = refresh_picture_cache(DatasetRegistry(con), workers=cfg.fetch_workers,
                                       timeout=cfg.fetch_timeout)
    finally:
        con.close()
    for url, err in report.failed.items():
        print_warning(f"{url}: {err}")
    print_success(f"cached {len(report.fetched)} pictures")
    return 0

def _display_character(by_id: Dict[str, Character], ch: Character, indentation: str) -> None:
    console().print(f"{indentation} {ch.id} {ch.name.scientific}", markup=False)
    for state in ch.states:
        console().print(f"{indentation} - {state.id} {state.name.scientific}", markup=False)
    for item in ch.children:
        child = by_id.get(item.id)
        if child is not None:
            _display_character(by_id, child, indentation + indentation)

def cmd_lschar(cfg: Config, args) -> int:
    con = open_db(cfg.db_path)
    try:
        top_level, by_id = DatasetRegistry(con).get_all_characters_except([])
    finally:
        con.close()
    for ch in top_level:
        _display_character(by_id, ch, " |")
    return 0

def _ask(prompt_states: List[str]) -> Optional[int]:
    raw = input("> ").strip()
    try:
        index = int(raw)
    except ValueError:
        print_error("Wrong input")
        return None
    if not 0 < index <= len(prompt_states):
        print_error(f"Index out of bounds {index}")
        return None
    return index - 1

def cmd_identify(cfg: Config, args) -> int:
    con = open_db(cfg.db_path)
    registry = DatasetRegistry(con)
    session = IdentificationSession()
    try:
        characters, _ = registry.get_all_characters_except([])
        for ch in characters:
            if not ch.states:
                continue
            console().print(f"How is {ch.name.scientific}?", markup=False)
            for i, state in enumerate(ch.states, 1):
                console().print(f"{i} - {state.name.scientific}", markup=False)
            index = _ask(ch.state_ids)
            if index is None:
                session.skip(ch.id)
                continue
            session.answer(ch.id, ch.state_ids[index])
            taxa = session.view(registry).taxa
            if not taxa:
                console().print("there are no results")
                return 0
            console().print("results:")
            for taxon in taxa:
                console().print(f"  {taxon.name.scientific}", markup=False)
    finally:
        con.close()
    return 0

COMMANDS = {
    "init": cmd_init,
    "import": cmd_import,
    "check": cmd_check,
    "normalize": cmd_normalize,
    "cache": cmd_cache,
    "lschar": cmd_lschar,
    "identify": cmd_identify,
}

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="taxonomia", description="Identification dataset tools")
    ap.add_argument("--db", dest="db_path", help="SQLite database (default: $TAXONOMIA_DB_PATH or db.sq3)")
    ap.add_argument("--verbose", action="store_true")
    sub = ap.add_subparsers(dest="cmd", required=True)

    sub.add_parser("init", help="Create tables and standard languages")
    imp = sub.add_parser("import", help="Load a Hazo document into the database")
    imp.add_argument("dataset", nargs="?", help="Hazo JSON file (default: $TAXONOMIA_DATASET)")
    chk = sub.add_parser("check", help="Lint a Hazo document and report duplicate ids")
    chk.add_argument("dataset", nargs="?")
    norm = sub.add_parser("normalize", help="Decode and re-encode a Hazo document")
    norm.add_argument("dataset")
    norm.add_argument("--out", help="Output file (default: stdout)")
    sub.add_parser("cache", help="Download every picture into the picture cache")
    sub.add_parser("lschar", help="List the character tree")
    sub.add_parser("identify", help="Interactive identification")
    return ap

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(args.verbose)
    cfg = Config.from_env()
    if args.db_path:
        cfg.db_path = Path(args.db_path)
    log().debug(f"config: {cfg.as_dict()}")
    try:
        return COMMANDS[args.cmd](cfg, args)
    except (HazoFormatError, DatabaseError, OSError) as e:
        print_error(f"{args.cmd} failed: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
