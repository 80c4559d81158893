# src/entity_extraction.py
"""
Dictionary-based drug detection over normalized OCR text.

Packaging text is dense with non-drug words, so matching is precision
first: stop words and short tokens are dropped, only near-exact dictionary
hits are accepted, and broad therapeutic categories are rejected.
"""

import logging
from typing import Dict, List, Optional

from schema import DrugMatch
from src.dictionary import DictionaryIndex
from src.normalization import ngrams

logger = logging.getLogger(__name__)

# Common words found on medicine packaging that never name a drug
STOPWORDS = {
    # General label text
    "tablet", "tablets", "capsule", "capsules", "syrup", "injection", "cream", "gel",
    "ointment", "drops", "solution", "suspension", "powder", "patch", "spray",
    # Dosage & usage
    "dosage", "dose", "daily", "twice", "thrice", "times", "before", "after", "meals",
    "morning", "evening", "night", "hours", "days", "weeks", "months", "oral", "topical",
    # Warnings & instructions
    "warning", "warnings", "caution", "keep", "away", "children", "store", "cool", "dry",
    "place", "protect", "light", "moisture", "shake", "well", "use",
    "consult", "doctor", "physician", "pharmacist", "pregnant", "nursing", "allergic",
    "side", "effects", "discontinue", "occurs", "seek", "medical", "advice", "immediately",
    # Manufacturing
    "manufactured", "marketed", "distributed", "india", "limited", "pvt", "ltd",
    "batch", "mfg", "exp", "date", "price", "mrp", "inclusive", "taxes", "pack",
    # Common non-drug words
    "each", "film", "coated", "contains", "active", "inactive", "ingredients",
    "excipients", "listed", "below", "schedule", "prescription", "only", "medicine",
    "drug", "pharmaceutical", "formulation", "composition", "strength", "storage",
    "this", "that", "with", "from", "have", "been", "will", "would", "could", "should",
    "take", "taken", "taking", "used", "using", "treatment", "treat", "therapy",
    # Units
    "mg", "mcg", "ml", "gm", "kg", "iu", "unit", "units",
}


class DrugMatcher:
    def __init__(
        self,
        min_token_length: int = 5,
        max_distance: float = 0.1,
        min_confidence: float = 0.85,
        min_atc_length: int = 5,
        stopwords=None,
    ):
        self.min_token_length = min_token_length
        self.max_distance = max_distance
        self.min_confidence = min_confidence
        self.min_atc_length = min_atc_length
        self.stopwords = frozenset(stopwords if stopwords is not None else STOPWORDS)

    def is_candidate_token(self, token: str) -> bool:
        return len(token) >= self.min_token_length and token not in self.stopwords

    def candidates(self, normalized_text: str) -> List[str]:
        """
        Unigrams that survive filtering, then bigrams and trigrams over the
        unfiltered token sequence so that names containing a stop word stay
        intact. An n-gram is kept only if one of its tokens survives.
        """
        tokens = normalized_text.split()
        phrases = [t for t in tokens if self.is_candidate_token(t)]

        for n in (2, 3):
            for phrase in ngrams(tokens, n):
                if any(self.is_candidate_token(t) for t in phrase.split()):
                    phrases.append(phrase)

        # de-duplicate, keep first occurrence order
        return list(dict.fromkeys(phrases))

    def is_category(self, atc: Optional[str]) -> bool:
        # Full ATC codes look like N02BE01; "N" or "N02" are categories
        return not atc or len(atc) < self.min_atc_length

    def detect(self, normalized_text: str, index: Optional[DictionaryIndex]) -> List[DrugMatch]:
        """Return drug matches for `normalized_text`, best confidence first."""
        if not index or not normalized_text:
            return []

        phrases = self.candidates(normalized_text)
        results: Dict[str, DrugMatch] = {}

        for phrase in phrases:
            hits = index.search(phrase, max_distance=self.max_distance, limit=1)
            if not hits:
                continue
            best = hits[0]

            confidence = round(1.0 - best.distance, 3)
            if confidence < self.min_confidence:
                continue

            atc = best.entry.classification_code
            if self.is_category(atc):
                continue

            # Categories never enter the map, so on a tie the kept match
            # already carries a full code
            existing = results.get(best.entry.slug)
            if existing is None or confidence > existing.confidence:
                results[best.entry.slug] = DrugMatch(
                    slug=best.entry.slug,
                    name=best.entry.canonical_name,
                    confidence=confidence,
                    classification_code=atc,
                )

        detected = sorted(results.values(), key=lambda m: (-m.confidence, m.slug))
        logger.info("Drug detection: %d candidates -> %d drugs found", len(phrases), len(detected))
        return detected
