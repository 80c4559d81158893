# src/ensemble.py
"""
OCR ensemble: run several preprocessing strategies through one OCR engine
and keep the best read.

Strategies run sequentially in priority order. The engine instance is
shared and not re-entrant, and a confident early read must short-circuit
the remaining, more destructive strategies.
"""

import logging
import re
import threading
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from schema import OCRAttempt, OCRCandidate, OCRResult
from src.ocr import OCREngine
from src.vision.preprocessing import DEFAULT_ORDER, STRATEGIES, PreprocessKind, upscale_small

logger = logging.getLogger(__name__)

# Dosage forms, units and regulatory abbreviations seen on packaging
PHARMA_TERMS = {
    "tablet", "tablets", "tab", "capsule", "capsules", "cap", "syrup",
    "injection", "suspension", "ointment", "cream", "drops", "sachet",
    "mg", "mcg", "ml", "gm", "iu", "w/w", "w/v",
    "ip", "bp", "usp", "rx", "otc", "mfg", "exp", "batch", "lot", "mrp",
    "composition", "contains", "each", "dosage", "schedule",
}


_DIGIT_LETTER_RE = re.compile(r"(?<=[0-9])(?=[a-z])")


class EnsembleState(Enum):
    NO_RESULT = "no_result"
    HAS_RESULT = "has_result"
    ACCEPTED = "accepted"


def _term_tokens(text: str) -> List[str]:
    # "500mg" -> "500 mg", "I.P." -> "ip"; "w/w" keeps its slash
    text = _DIGIT_LETTER_RE.sub(" ", text.lower())
    return [t.replace(".", "").strip(",:;()[]") for t in text.split()]


def term_bonus(text: str, per_term: float = 5.0, cap: float = 20.0) -> float:
    """Bonus for each pharmaceutical term found in `text`, capped."""
    hits = sum(1 for token in _term_tokens(text) if token in PHARMA_TERMS)
    return min(cap, hits * per_term)


def adjust_confidence(candidate: OCRCandidate, per_term: float = 5.0, cap: float = 20.0) -> float:
    score = candidate.raw_confidence + term_bonus(candidate.text, per_term, cap)
    return max(0.0, min(100.0, score))


class OCREnsemble:
    def __init__(
        self,
        engine: OCREngine,
        strategies: Optional[Sequence[PreprocessKind]] = None,
        transforms: Optional[Dict[PreprocessKind, Callable[[np.ndarray], np.ndarray]]] = None,
        early_exit_confidence: float = 85.0,
        term_bonus: float = 5.0,
        term_bonus_cap: float = 20.0,
    ):
        self.engine = engine
        self.strategies: List[PreprocessKind] = list(strategies or DEFAULT_ORDER)
        self.transforms = dict(transforms or STRATEGIES)
        self.early_exit_confidence = early_exit_confidence
        self.term_bonus = term_bonus
        self.term_bonus_cap = term_bonus_cap
        self._engine_lock = threading.Lock()

    def recognize(self, image: np.ndarray, deadline: Optional[float] = None) -> OCRResult:
        """
        Return the best (text, confidence) across strategies.

        `deadline` is a time.monotonic() timestamp; once it passes, no new
        strategy is started and the best read so far is returned. Never
        raises for a decoded image: when every strategy fails the result
        is empty text with confidence 0.
        """
        state = EnsembleState.NO_RESULT
        best: Optional[OCRCandidate] = None
        best_score = 0.0
        attempts: List[OCRAttempt] = []

        if image is not None and image.size:
            image = upscale_small(image)

        for kind in self.strategies:
            if state is EnsembleState.ACCEPTED:
                break
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("OCR deadline reached, skipping remaining strategies from %s", kind.value)
                break

            candidate = self._attempt(kind, image, attempts)
            if candidate is None:
                continue

            score = adjust_confidence(candidate, self.term_bonus, self.term_bonus_cap)
            attempts.append(OCRAttempt(strategy=kind.value, confidence=score))
            logger.debug("Strategy %s: confidence %.1f (raw %.1f)", kind.value, score, candidate.raw_confidence)

            if best is None or score > best_score:
                best, best_score = candidate, score
                state = EnsembleState.HAS_RESULT

            if best_score > self.early_exit_confidence:
                state = EnsembleState.ACCEPTED

        if best is None:
            logger.info("No text found by any of %d strategies", len(attempts))
            return OCRResult(text="", confidence=0.0, strategy=None, attempts=attempts)

        logger.info(
            "Using %s result (confidence %.1f, %d/%d strategies tried)",
            best.strategy,
            best_score,
            len(attempts),
            len(self.strategies),
        )
        return OCRResult(
            text=best.text,
            confidence=round(best_score, 2),
            strategy=best.strategy,
            attempts=attempts,
        )

    def _attempt(self, kind: PreprocessKind, image: np.ndarray, attempts: List[OCRAttempt]) -> Optional[OCRCandidate]:
        try:
            processed = self.transforms[kind](image)
            with self._engine_lock:
                text, raw_confidence = self.engine.read(processed)
        except Exception as e:
            logger.warning("Strategy %s failed: %s", kind.value, e)
            logger.debug("Strategy %s traceback", kind.value, exc_info=True)
            attempts.append(OCRAttempt(strategy=kind.value, failed=True, error=str(e)))
            return None

        text = (text or "").strip()
        if not text:
            attempts.append(OCRAttempt(strategy=kind.value, confidence=0.0))
            return None

        return OCRCandidate(
            text=text,
            raw_confidence=max(0.0, min(100.0, float(raw_confidence))),
            strategy=kind.value,
        )
