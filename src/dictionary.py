# src/dictionary.py
"""
Controlled vocabulary of known substances and its fuzzy-search index.

The store fetches the vocabulary once per process and hands out a
read-only DictionaryIndex shared by every scan.
"""

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import requests
from pydantic import ValidationError
from rapidfuzz import fuzz, process, utils

from schema import DictionaryEntry

logger = logging.getLogger(__name__)

# Canonical names outrank alternate names at equal similarity
ALTERNATE_NAME_PENALTY = 0.02


class DictionaryLoadError(RuntimeError):
    """The vocabulary could not be fetched or parsed."""


@dataclass(frozen=True)
class SearchHit:
    entry: DictionaryEntry
    distance: float      # 0 = perfect match, 1 = unrelated
    matched_name: str


class DictionaryIndex:
    """Read-only fuzzy index over canonical and alternate names."""

    def __init__(self, entries: Iterable[DictionaryEntry]):
        self._entries: Tuple[DictionaryEntry, ...] = tuple(entries)
        self._by_slug: Dict[str, DictionaryEntry] = {}
        self._choices: List[str] = []
        self._owners: List[Tuple[int, float]] = []  # (entry index, distance penalty)
        self._slugs: List[str] = [entry.slug for entry in self._entries]

        for idx, entry in enumerate(self._entries):
            self._by_slug.setdefault(entry.slug, entry)
            self._choices.append(entry.canonical_name)
            self._owners.append((idx, 0.0))
            for name in entry.alternate_names:
                if name and name != entry.canonical_name:
                    self._choices.append(name)
                    self._owners.append((idx, ALTERNATE_NAME_PENALTY))

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def entries(self) -> Tuple[DictionaryEntry, ...]:
        return self._entries

    def get(self, slug: str) -> Optional[DictionaryEntry]:
        return self._by_slug.get(slug)

    def search(
        self,
        phrase: str,
        max_distance: float = 0.1,
        limit: int = 5,
        scorer: Callable = fuzz.ratio,
        slug_penalty: Optional[float] = None,
    ) -> List[SearchHit]:
        """
        Rank entries by distance to `phrase`, best first, at most one hit
        per entry. Hits further than `max_distance` are dropped.

        Slugs are only searched when `slug_penalty` is given, and their
        hits carry that penalty.
        """
        if not phrase or not self._choices:
            return []

        cutoff = max(0.0, (1.0 - max_distance) * 100)
        sources = [(self._choices, lambda i: self._owners[i])]
        if slug_penalty is not None:
            sources.append((self._slugs, lambda i: (i, slug_penalty)))

        best: Dict[int, SearchHit] = {}
        for choices, owner in sources:
            matches = process.extract(
                phrase,
                choices,
                scorer=scorer,
                processor=utils.default_process,
                score_cutoff=cutoff,
                limit=None,
            )
            for name, score, choice_idx in matches:
                entry_idx, penalty = owner(choice_idx)
                distance = min(1.0, 1.0 - score / 100.0 + penalty)
                if distance > max_distance:
                    continue
                current = best.get(entry_idx)
                if current is None or distance < current.distance:
                    best[entry_idx] = SearchHit(self._entries[entry_idx], distance, name)

        # Stable on dictionary order for equal distances
        ranked = sorted(best.items(), key=lambda item: (item[1].distance, item[0]))
        return [hit for _, hit in ranked[:limit]]


def parse_entries(payload) -> List[DictionaryEntry]:
    if not isinstance(payload, list):
        raise DictionaryLoadError(f"expected a list of entries, got {type(payload).__name__}")

    entries = []
    skipped = 0
    for item in payload:
        try:
            entries.append(DictionaryEntry.model_validate(item))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.warning("Skipped %d malformed dictionary entries", skipped)
    return entries


class DictionaryStore:
    """
    Lazily loads the vocabulary once, guarded against concurrent first
    callers. A failed load yields an empty index. Callers that were
    waiting on that attempt share its outcome; the next call after it
    fetches again.
    """

    def __init__(
        self,
        source_url: Optional[str] = None,
        source_path: Optional[str] = None,
        timeout: float = 10.0,
        entries: Optional[Iterable[DictionaryEntry]] = None,
    ):
        if entries is None and not source_url and not source_path:
            raise ValueError("DictionaryStore needs a source_url, a source_path or entries")
        self.source_url = source_url
        self.source_path = source_path
        self.timeout = timeout
        self._index: Optional[DictionaryIndex] = DictionaryIndex(entries) if entries is not None else None
        self._failures = 0
        self._lock = threading.Lock()

    @classmethod
    def from_entries(cls, entries: Iterable[DictionaryEntry]) -> "DictionaryStore":
        return cls(entries=entries)

    @property
    def loaded(self) -> bool:
        return self._index is not None

    def load(self) -> DictionaryIndex:
        index = self._index
        if index is not None:
            return index

        failures = self._failures
        with self._lock:
            if self._index is not None:
                return self._index
            if self._failures != failures:
                # an attempt failed while this caller was waiting
                return DictionaryIndex([])
            try:
                entries = parse_entries(self._fetch())
            except DictionaryLoadError as e:
                self._failures += 1
                logger.error("Error loading dictionary: %s", e)
                return DictionaryIndex([])

            self._index = DictionaryIndex(entries)
            logger.info("Dictionary loaded successfully: %d items", len(self._index))
            return self._index

    def search(self, phrase: str, **kwargs) -> List[SearchHit]:
        return self.load().search(phrase, **kwargs)

    def _fetch(self):
        if self.source_path:
            logger.info("Reading dictionary from %s", self.source_path)
            try:
                return json.loads(Path(self.source_path).read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                raise DictionaryLoadError(f"cannot read {self.source_path}: {e}") from e

        logger.info("Fetching dictionary from %s", self.source_url)
        try:
            r = requests.get(self.source_url, timeout=self.timeout)
            r.raise_for_status()
            return r.json()
        except (requests.RequestException, OSError, ValueError) as e:
            raise DictionaryLoadError(f"failed to fetch dictionary: {e}") from e
