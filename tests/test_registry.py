import pytest

from taxonomia.db import DatabaseError, Operation, query_all
from taxonomia.hazo import read_hazo
from taxonomia.model import Character, Dataset, Hierarchy, MultilangText, Taxon

def count(con, table):
    return query_all(con, f"SELECT COUNT(*) FROM {table}")[0][0]

def closure(con, descendant):
    rows = query_all(con, "SELECT ancestor, length FROM Hierarchies WHERE descendant = ? ORDER BY length",
                     (descendant,))
    return [(r["ancestor"], r["length"]) for r in rows]

def test_initialize_is_idempotent(con):
    from taxonomia.db import initialize
    initialize(con)
    assert count(con, "Languages") == 5

def test_load_counts(loaded_registry, con):
    assert count(con, "Characters") == 5   # c0 + 4
    assert count(con, "States") == 5
    assert count(con, "Taxons") == 5       # t0 + 4
    assert count(con, "TaxonStates") == 2 + 4 + 1
    assert count(con, "CharacterRequiredStates") == 1
    assert count(con, "ItemPictures") == 3 + 1 + 2

def test_closure_rows(loaded_registry, con):
    assert closure(con, "c3") == [("c3", 0), ("c2", 1), ("c0", 2)]
    assert closure(con, "t2") == [("t2", 0), ("t1", 1), ("t0", 2)]
    assert closure(con, "t4") == [("t4", 0), ("t0", 1)]
    assert closure(con, "t0") == [("t0", 0)]
    # states are items but not tree nodes
    assert closure(con, "s1") == []

def test_load_stats(registry, sample_dataset):
    chars, taxa = registry.insert_dataset(sample_dataset)
    assert chars.items == 5 + 5
    assert chars.states == 5
    assert chars.pictures == 3 + 1
    assert taxa.items == 5
    assert taxa.pictures == 2
    assert chars.synthesized == [] and taxa.synthesized == []

def test_names_are_stored(loaded_registry, con):
    rows = query_all(con, "SELECT lang, text FROM ItemNames WHERE item = 's1' ORDER BY lang")
    assert [(r["lang"], r["text"]) for r in rows] == [("CN", "红"), ("EN", "Red"), ("FR", "Rouge")]

@pytest.mark.parametrize("states,expected", [
    (["s1", "s3"], ["t2", "t3"]),
    (["s1"], ["t2", "t3", "t4"]),
    (["s1", "s2"], ["t3"]),
    (["s1", "s1", "s2"], ["t3"]),
    (["s2", "s4"], []),
    ([], []),
])
def test_taxa_having_states(loaded_registry, states, expected):
    taxa = loaded_registry.get_taxa_having_states(states)
    assert [t.id for t in taxa] == expected

def test_taxa_having_states_carries_names(loaded_registry):
    rosa = loaded_registry.get_taxa_having_states(["s1", "s3"])[0]
    assert rosa.name.scientific == "Rosa"
    assert rosa.name.text("CN") == "蔷薇属"
    assert rosa.author == "L."

def test_all_characters(loaded_registry):
    top_level, by_id = loaded_registry.get_all_characters_except([])
    assert [c.id for c in top_level] == ["c1", "c2", "c4"]
    assert set(by_id) == {"c1", "c2", "c3", "c4"}
    assert [h.id for h in by_id["c2"].children] == ["c3"]
    assert by_id["c2"].states == []
    assert by_id["c1"].name.text("EN") == "Flower color"

    c1 = by_id["c1"]
    assert [s.id for s in c1.states] == ["s1", "s2"]
    red = c1.states[0]
    assert red.name.text("EN") == "Red"
    assert red.color == "#f00"
    # one picture per stored row despite the three name rows
    assert [p.source for p in red.pictures] == ["http://pics.test/red.jpg", "http://pics.test/red2.jpg"]
    assert red.pictures[1].legend == "second red"
    # document picture ids survive the store
    assert [p.id for p in red.pictures] == ["p1", "p2"]

def test_all_characters_except(loaded_registry):
    top_level, by_id = loaded_registry.get_all_characters_except(["c1", "c3"])
    assert [c.id for c in top_level] == ["c2", "c4"]
    assert "c3" not in by_id
    assert by_id["c2"].children == []

def test_characters_from_ids(loaded_registry):
    chars = loaded_registry.get_characters_from_ids(["c1", "c3"], ["s1", "s3", "s5"])
    assert [c.id for c in chars] == ["c1", "c3"]
    assert [s.id for s in chars[0].states] == ["s1"]
    assert chars[0].states[0].name.text("CN") == "红"
    assert [s.id for s in chars[1].states] == ["s3"]
    assert loaded_registry.get_characters_from_ids([], []) == []

def test_taxon_failure_keeps_committed_characters(registry, con):
    ds = read_hazo('''{
        "states": [{"id": "s1", "name": "Red"}],
        "characters": [{"id": "c1", "name": "Color", "states": ["s1"]}],
        "taxons": [{"id": "t1", "name": "ok"}, {"id": "s1", "name": "clashes with a state"}]
    }''')
    with pytest.raises(DatabaseError):
        registry.insert_dataset(ds)
    assert count(con, "Characters") == 2
    assert count(con, "States") == 1
    assert count(con, "Taxons") == 0
    assert query_all(con, "SELECT id FROM Items WHERE id IN ('t0', 't1')") == []

def test_character_failure_rolls_back_whole_tree(registry, con):
    ds = read_hazo('''{
        "states": [{"id": "s1"}],
        "characters": [{"id": "c1", "states": ["s1"]}, {"id": "c2", "states": ["s1"]}]
    }''')
    with pytest.raises(DatabaseError):
        registry.insert_characters(ds)
    assert count(con, "Items") == 0
    assert count(con, "Hierarchies") == 0

def test_dangling_children_are_synthesized(registry, con):
    ds = Dataset()
    ds.add_taxon_below(Taxon(Hierarchy("t1", MultilangText("known"))))
    ds.taxa_by_id["t1"].children.append(Hierarchy("ghost", MultilangText("ghost")))
    ds.add_character_below(Character(Hierarchy("c1")))
    ds.characters_root.children.append(Hierarchy("c9"))

    chars, taxa = registry.insert_dataset(ds)
    assert chars.synthesized == ["c9"]
    assert taxa.synthesized == ["ghost"]
    assert closure(con, "ghost") == [("ghost", 0), ("t1", 1), ("t0", 2)]
    assert query_all(con, "SELECT author FROM Taxons WHERE item = 'ghost'")[0]["author"] == ""

def test_operation_rolls_back_on_error(con):
    with pytest.raises(DatabaseError):
        with Operation(con) as op:
            op.execute("INSERT INTO Languages (code, label) VALUES ('LA', 'Latin')")
            op.execute("INSERT INTO Languages (code, label) VALUES ('LA', 'again')")
    assert query_all(con, "SELECT * FROM Languages WHERE code = 'LA'") == []

def test_picture_cache_roundtrip(loaded_registry):
    assert loaded_registry.picture_urls() == [
        "http://pics.test/flower.jpg", "http://pics.test/hairy.jpg", "http://pics.test/red.jpg",
        "http://pics.test/red2.jpg", "http://pics.test/rosa.jpg", "http://pics.test/rosa2.jpg",
    ]
    assert loaded_registry.get_cached_image("http://pics.test/red.jpg") is None
    loaded_registry.store_cached_images({"http://pics.test/red.jpg": b"\x89PNG"})
    loaded_registry.store_cached_images({"http://pics.test/red.jpg": b"GIF8"})
    assert loaded_registry.get_cached_image("http://pics.test/red.jpg") == b"GIF8"

def test_root_closure_ignores_item_with_empty_id(registry, con):
    ds = read_hazo('{"characters": [{"name": "no id"}], "taxons": [{"id": "t1", "name": "a"}]}')
    registry.insert_dataset(ds)
    assert closure(con, "t0") == [("t0", 0)]
    assert closure(con, "t1") == [("t1", 0), ("t0", 1)]
    assert closure(con, "") == [("", 0), ("c0", 1)]
