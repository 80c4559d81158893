# src/normalization.py
"""
Text cleanup between OCR and drug matching.

clean()     -> human-readable text stored on the scan record
normalize() -> canonical lowercase token stream fed to the matcher
"""

import re

# Characters OCR engines commonly emit in place of letters/punctuation
OCR_CONFUSIONS = {
    "|": "I",
    "¦": "I",
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
    "—": "-",
    "–": "-",
    "ﬁ": "fi",
    "ﬂ": "fl",
}

# Dosage-form words that never name a substance
DOSAGE_FORM_TOKENS = {
    "tab", "tabs", "tablet", "tablets",
    "cap", "caps", "capsule", "capsules",
    "syrup", "injection", "inj", "cream", "gel", "ointment",
    "drops", "suspension", "powder", "sachet", "sachets",
}

_CONFUSION_RE = re.compile("|".join(re.escape(c) for c in OCR_CONFUSIONS))
_WHITESPACE_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_DIGIT_LETTER_RE = re.compile(r"(?<=[0-9])(?=[a-z])")


def clean(raw: str) -> str:
    if not raw:
        return ""
    text = _CONFUSION_RE.sub(lambda m: OCR_CONFUSIONS[m.group()], raw)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize(text: str) -> str:
    """
    Lowercase, strip punctuation, split "500mg" into "500 mg" and drop
    dosage-form words. normalize(normalize(x)) == normalize(x).
    """
    if not text:
        return ""
    text = _NON_ALNUM_RE.sub(" ", text.lower())
    text = _DIGIT_LETTER_RE.sub(" ", text)
    return " ".join(t for t in text.split() if t not in DOSAGE_FORM_TOKENS)


def tokenize(text: str, min_length: int = 1):
    return [t for t in normalize(text).split() if len(t) >= min_length]


def ngrams(tokens, n: int):
    return [" ".join(tokens[i:i + n]) for i in range(len(tokens) - n + 1)]
