"""
Shared fixtures: a small dictionary, a scripted OCR engine and encoded
test images. Nothing here touches the network or a real OCR binary.
"""

import os
import sys

import cv2
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from schema import DictionaryEntry
from src.dictionary import DictionaryIndex, DictionaryStore
from src.ocr import OCREngine, OCREngineError


SAMPLE_DICTIONARY = [
    {"slug": "paracetamol-500", "canonical": "Paracetamol", "names": ["Acetaminophen"], "atc": "N02BE01"},
    {"slug": "ibuprofen", "canonical": "Ibuprofen", "names": ["Brufen"], "atc": "M01AE01"},
    {"slug": "amoxicillin", "canonical": "Amoxicillin", "names": ["Amoxycillin"], "atc": "J01CA04"},
    {"slug": "ascorbic-acid", "canonical": "Ascorbic Acid", "names": ["Vitamin C"], "atc": "A11GA01"},
    {"slug": "nervous-system", "canonical": "Nervous System", "names": ["Neurological"], "atc": "N"},
    {"slug": "analgesics", "canonical": "Analgesics", "names": [], "atc": "N02"},
    {"slug": "cetirizine", "canonical": "Cetirizine", "names": [], "atc": None},
]


class ScriptedEngine(OCREngine):
    """
    Returns canned (text, confidence) reads in call order. An Exception
    instance in the script is raised instead.
    """

    name = "scripted"

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0

    def read(self, image):
        if self.calls >= len(self.script):
            raise OCREngineError("script exhausted")
        item = self.script[self.calls]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def sample_entries():
    return [DictionaryEntry.model_validate(item) for item in SAMPLE_DICTIONARY]


@pytest.fixture
def index(sample_entries):
    return DictionaryIndex(sample_entries)


@pytest.fixture
def store(sample_entries):
    return DictionaryStore.from_entries(sample_entries)


@pytest.fixture
def label_image():
    """A white label with dark text, BGR."""
    img = np.full((120, 360, 3), 255, dtype=np.uint8)
    cv2.putText(img, "PARACETAMOL 500", (10, 70), cv2.FONT_HERSHEY_SIMPLEX, 1.0, (0, 0, 0), 2)
    return img


@pytest.fixture
def png_bytes(label_image):
    ok, buf = cv2.imencode(".png", label_image)
    assert ok
    return buf.tobytes()
