import pytest

from taxonomia.model import (
    BookReference, Character, Dataset, ExtraKind, ExtraValue, Hierarchy,
    MultilangText, State, generate_new_id,
)

def test_multilang_text_falls_back_to_scientific():
    name = MultilangText("Rosa", {"CN": "蔷薇属"})
    assert name.text("CN") == "蔷薇属"
    assert name.text("EN") == "Rosa"
    assert name.override("EN") == ""

def test_multilang_text_set_and_equality():
    a = MultilangText("Rosa", None)
    assert a == MultilangText("Rosa", {})
    a.set("FR", "Rosier")
    assert a.names_by_lang == {"FR": "Rosier"}
    assert a != MultilangText("Rosa", {})

def test_extra_value_tags():
    assert ExtraValue.of(True).kind is ExtraKind.BOOLEAN
    assert ExtraValue.of(3).kind is ExtraKind.NUMBER
    assert ExtraValue.of(2.5).kind is ExtraKind.NUMBER
    assert ExtraValue.of("x").kind is ExtraKind.TEXT
    nested = ExtraValue.of({"a": 1})
    assert nested.kind is ExtraKind.TEXT and nested.value == '{"a": 1}'
    assert ExtraValue.of("").is_empty()
    assert ExtraValue.of(0).is_empty()
    assert not ExtraValue.of(False).is_empty()

def test_generate_new_id_skips_taken():
    taken = {"t3", "t4"}
    assert generate_new_id("t", 2, taken.__contains__) == "t5"
    assert generate_new_id("c", 0, taken.__contains__) == "c1"

def test_create_taxon_returns_path_and_registers():
    ds = Dataset()
    top = ds.create_taxon([], name=MultilangText("Rosaceae"))
    assert top == [0]
    child = ds.create_taxon(top, name=MultilangText("Rosa"), author="L.",
                            references=[BookReference("b1", 12)])
    assert child == [0, 0]
    second = ds.create_taxon(top, id="prunus")
    assert second == [0, 1]

    node = ds.taxa_root.get_in(child)
    taxon = ds.taxa_by_id[node.id]
    assert taxon.name.scientific == "Rosa"
    assert taxon.author == "L."
    assert taxon.references[0].page == 12
    assert ds.taxa_root.get_in(second).id == "prunus"
    assert [h.id for h in ds.taxa_root.walk()] == ["t0", "t1", "t2", "prunus"]

def test_generated_ids_avoid_other_kinds():
    ds = Dataset()
    ds.add_character_below(Character(Hierarchy("t1")))
    path = ds.create_taxon([])
    assert ds.taxa_root.get_in(path).id == "t2"

def test_create_character_and_states():
    ds = Dataset()
    path = ds.create_character([], MultilangText("Leaves"))
    sub = ds.create_character(path, MultilangText("Leaf shape"))
    ch = ds.characters_by_id[ds.characters_root.get_in(sub).id]
    state = ds.add_state(ch.id, State("", MultilangText("Simple")))
    assert state.id == "s1"
    assert ch.state_ids == ["s1"]
    assert ds.states_of(["s1", "nope"]) == [state]
    assert ds.owner_by_state_id() == {"s1": ch.id}
    assert ds.state(None) is None

def test_all_ids_lists_each_owner_claim():
    ds = Dataset()
    ds.add_character_below(Character(Hierarchy("c1"), state_ids=["s1"]))
    ds.add_character_below(Character(Hierarchy("c2"), state_ids=["s1"]))
    ids = list(ds.all_ids())
    assert ids.count(("state", "s1")) == 2
    assert ("character", "c1") in ids

def test_get_in_out_of_range_raises():
    ds = Dataset()
    ds.create_taxon([])
    with pytest.raises(IndexError):
        ds.taxa_root.get_in([0, 3])

def test_add_state_to_unknown_character_leaves_arena_untouched():
    ds = Dataset()
    with pytest.raises(KeyError):
        ds.add_state("nope", State("s9"))
    assert ds.states_by_id == {}
