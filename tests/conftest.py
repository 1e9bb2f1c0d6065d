"""Pytest configuration and fixtures for taxonomia tests"""
import json
from pathlib import Path
import pytest

from taxonomia.db import initialize, open_db
from taxonomia.hazo import read_hazo
from taxonomia.registry import DatasetRegistry

SAMPLE_DOC = {
    "id": "ds1",
    "states": [
        {"id": "s1", "name": "Rouge", "nameEN": "Red", "nameCN": "红", "color": "#f00",
         "photos": [
             {"id": "p1", "url": ["http://pics.test/red.jpg"], "label": "red"},
             {"id": "p2", "url": "http://pics.test/red2.jpg", "label": ["second red"]},
         ]},
        {"id": "s2", "name": "Bleu", "nameEN": "Blue"},
        {"id": "s3", "name": "Simple"},
        {"id": "s4", "name": "Composée", "nameEN": "Compound"},
        {"id": "s5", "name": "Poilue", "photos": [{"id": "p3", "url": "http://pics.test/hairy.jpg", "label": ""}]},
    ],
    "characters": [
        {"id": "c1", "name": "Couleur de la fleur", "nameEN": "Flower color", "states": ["s1", "s2"],
         "photos": [{"id": "p6", "url": "http://pics.test/flower.jpg", "label": "flower"}]},
        {"id": "c2", "name": "Feuilles", "children": ["c3"]},
        {"id": "c3", "parentId": "c2", "name": "Forme de la feuille", "states": ["s3", "s4"],
         "requiredStatesIds": ["s1"], "inapplicablestatesids": ["s2"], "inherentstateid": "s3"},
        {"id": "c4", "name": "Pilosité", "states": ["s5"]},
    ],
    "taxons": [
        {"id": "t1", "name": "Rosaceae", "children": ["t2", "t3"]},
        {"id": "t2", "parentId": "t1", "name": "Rosa", "nameCN": "蔷薇属", "author": "L.",
         "descriptions": [{"descriptorId": "c1", "statesIds": ["s1"]},
                          {"descriptorId": "c3", "statesIds": ["s3"]}],
         "photos": [
             {"id": "p4", "url": ["http://pics.test/rosa.jpg"], "label": ["Rosa canina"]},
             {"id": "p5", "url": "http://pics.test/rosa2.jpg", "label": "hip"},
         ],
         "website": "http://rosa.test", "page": "12",
         "bookInfobyids": {"b1": {"fasc": "2", "page": "34", "detail": "fig. 3"}}},
        {"id": "t3", "parentId": "t1", "name": "Prunus",
         "descriptions": [{"descriptorId": "c1", "statesIds": ["s1", "s2"]},
                          {"descriptorId": "c3", "statesIds": ["s3"]},
                          {"descriptorId": "c4", "statesIds": ["s5"]}]},
        {"id": "t4", "parentId": "missing", "name": "Malus",
         "descriptions": [{"descriptorId": "c1", "statesIds": ["s1"]}]},
    ],
    "books": [{"id": "b1", "label": "Flora"}],
}

@pytest.fixture
def sample_doc():
    return json.loads(json.dumps(SAMPLE_DOC))

@pytest.fixture
def sample_dataset(sample_doc):
    return read_hazo(json.dumps(sample_doc))

@pytest.fixture
def sample_file(tmp_path, sample_doc) -> Path:
    p = tmp_path / "dataset.hazo.json"
    p.write_text(json.dumps(sample_doc, ensure_ascii=False), encoding="utf-8")
    return p

@pytest.fixture
def con():
    """In-memory database with tables and standard languages"""
    c = open_db(":memory:")
    initialize(c)
    yield c
    c.close()

@pytest.fixture
def registry(con):
    return DatasetRegistry(con)

@pytest.fixture
def loaded_registry(registry, sample_dataset):
    registry.insert_dataset(sample_dataset)
    return registry
