from schema import DictionaryEntry
from src.dictionary import DictionaryStore
from src.lookup import (
    atc_category_name,
    get_atc_categories,
    get_medicine_by_slug,
    get_medicines_by_category,
    search_medicines,
)


def test_search_is_lenient(store):
    results = search_medicines(store, "paracetmol")
    assert results[0].slug == "paracetamol-500"
    assert 0.7 <= results[0].confidence <= 1.0


def test_search_by_alternate_name(store):
    results = search_medicines(store, "Brufen")
    assert results[0].slug == "ibuprofen"
    assert results[0].alternate_names == ["Brufen"]


def test_search_no_results(store):
    assert search_medicines(store, "zzzzqqq") == []


def test_get_by_slug(store):
    info = get_medicine_by_slug(store, "amoxicillin")
    assert info.name == "Amoxicillin"
    assert info.atc == "J01CA04"
    assert info.atc_category == "Antiinfectives for systemic use"
    assert info.model_dump(by_alias=True)["atcCategory"] == "Antiinfectives for systemic use"
    assert get_medicine_by_slug(store, "nope") is None


def test_categories():
    categories = get_atc_categories()
    assert len(categories) == 14
    assert categories[0].code == "A"


def test_by_category(store):
    slugs = [m.slug for m in get_medicines_by_category(store, "n")]
    assert slugs == ["paracetamol-500", "nervous-system", "analgesics"]
    assert len(get_medicines_by_category(store, "N", limit=1)) == 1


def test_category_name():
    assert atc_category_name("N02BE01") == "Nervous system"
    assert atc_category_name(None) is None
    assert atc_category_name("X99") is None


def test_search_matches_slug():
    store = DictionaryStore(entries=[
        DictionaryEntry(slug="co-amoxiclav", canonical="Amoxicillin and beta-lactamase inhibitor", atc="J01CR02"),
    ])
    results = search_medicines(store, "co-amoxiclav")
    assert [r.slug for r in results] == ["co-amoxiclav"]
    assert results[0].confidence == 0.95
