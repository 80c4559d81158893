# src/lookup.py
"""
Medicine lookup over the shared dictionary: free-text search, by slug,
and by ATC category. Search is lenient here, unlike scan matching,
because the query is typed by a user rather than read off a label.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from rapidfuzz import fuzz

from schema import DictionaryEntry
from src.dictionary import DictionaryStore

SEARCH_MAX_DISTANCE = 0.3
# Slugs rank below canonical and alternate names
SLUG_PENALTY = 0.05


class ATCCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    level: int = 1


class MedicineInfo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    slug: str
    name: str
    alternate_names: List[str] = Field(default_factory=list, alias="alternateNames")
    atc: Optional[str] = None
    atc_category: Optional[str] = Field(default=None, alias="atcCategory")
    confidence: Optional[float] = None


# ATC level 1: anatomical main groups
ATC_MAIN_GROUPS = [
    ATCCategory(code="A", name="Alimentary tract and metabolism"),
    ATCCategory(code="B", name="Blood and blood forming organs"),
    ATCCategory(code="C", name="Cardiovascular system"),
    ATCCategory(code="D", name="Dermatologicals"),
    ATCCategory(code="G", name="Genito-urinary system and sex hormones"),
    ATCCategory(code="H", name="Systemic hormonal preparations"),
    ATCCategory(code="J", name="Antiinfectives for systemic use"),
    ATCCategory(code="L", name="Antineoplastic and immunomodulating agents"),
    ATCCategory(code="M", name="Musculo-skeletal system"),
    ATCCategory(code="N", name="Nervous system"),
    ATCCategory(code="P", name="Antiparasitic products"),
    ATCCategory(code="R", name="Respiratory system"),
    ATCCategory(code="S", name="Sensory organs"),
    ATCCategory(code="V", name="Various"),
]


def atc_category_name(atc: Optional[str]) -> Optional[str]:
    if not atc:
        return None
    for group in ATC_MAIN_GROUPS:
        if atc.upper().startswith(group.code):
            return group.name
    return None


def _to_info(entry: DictionaryEntry, confidence: Optional[float] = None) -> MedicineInfo:
    return MedicineInfo(
        slug=entry.slug,
        name=entry.canonical_name,
        alternate_names=[n for n in entry.alternate_names if n != entry.canonical_name],
        atc=entry.classification_code,
        atc_category=atc_category_name(entry.classification_code),
        confidence=confidence,
    )


def search_medicines(store: DictionaryStore, query: str, limit: int = 20) -> List[MedicineInfo]:
    hits = store.search(
        query,
        max_distance=SEARCH_MAX_DISTANCE,
        limit=limit,
        scorer=fuzz.WRatio,
        slug_penalty=SLUG_PENALTY,
    )
    return [_to_info(hit.entry, round(1.0 - hit.distance, 3)) for hit in hits]


def get_medicine_by_slug(store: DictionaryStore, slug: str) -> Optional[MedicineInfo]:
    entry = store.load().get(slug)
    return _to_info(entry) if entry else None


def get_atc_categories() -> List[ATCCategory]:
    return list(ATC_MAIN_GROUPS)


def get_medicines_by_category(store: DictionaryStore, atc_prefix: str, limit: int = 50) -> List[MedicineInfo]:
    prefix = atc_prefix.upper()
    matches = [
        e for e in store.load().entries
        if e.classification_code and e.classification_code.upper().startswith(prefix)
    ]
    return [_to_info(e) for e in matches[:limit]]
