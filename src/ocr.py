# src/ocr.py
import logging
import numpy as np
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import pytesseract

from src.config import DEFAULT_CHAR_WHITELIST, Settings

logger = logging.getLogger(__name__)


class OCREngineError(RuntimeError):
    """The OCR engine could not read an image."""


class OCREngine(ABC):
    """
    Converts image pixels to text. Implementations are not assumed to be
    re-entrant; callers serialize access to a shared instance.
    """

    name = "ocr"

    @abstractmethod
    def read(self, image: np.ndarray) -> Tuple[str, float]:
        """
        Return (text, confidence) with confidence on a 0-100 scale.
        Raises OCREngineError on failure.
        """
        raise NotImplementedError


def apply_whitelist(text: str, whitelist: str) -> str:
    """Drop characters outside the whitelist, keeping line breaks."""
    if not whitelist:
        return text
    allowed = set(whitelist) | {"\n"}
    return "".join(ch for ch in text if ch in allowed)


# -------------------------------------------------
# TESSERACT
# -------------------------------------------------

class TesseractEngine(OCREngine):
    name = "tesseract"

    def __init__(
        self,
        lang: str = "eng",
        psm: int = 11,
        whitelist: str = DEFAULT_CHAR_WHITELIST,
        tesseract_cmd: Optional[str] = None,
    ):
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.lang = lang
        self.psm = psm
        self.whitelist = whitelist

    @property
    def config(self) -> str:
        config = f"--oem 3 --psm {self.psm} -c preserve_interword_spaces=1"
        if self.whitelist:
            # Tesseract's config parser splits on whitespace
            config += f" -c tessedit_char_whitelist={self.whitelist.replace(' ', '')}"
        return config

    def read(self, image: np.ndarray) -> Tuple[str, float]:
        try:
            data = pytesseract.image_to_data(
                image,
                lang=self.lang,
                config=self.config,
                output_type=pytesseract.Output.DICT,
            )
        except Exception as e:
            raise OCREngineError(f"tesseract failed: {e}") from e

        return _parse_tesseract_data(data)


def _parse_tesseract_data(data: dict) -> Tuple[str, float]:
    lines: List[List[str]] = []
    confidences: List[float] = []
    last_key = None

    for i, word in enumerate(data.get("text", [])):
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, ValueError, TypeError):
            conf = -1.0
        word = (word or "").strip()
        if conf < 0 or not word:
            continue

        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        if key != last_key:
            lines.append([])
            last_key = key
        lines[-1].append(word)
        confidences.append(conf)

    text = "\n".join(" ".join(words) for words in lines)
    confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return text, max(0.0, min(100.0, confidence))


# -------------------------------------------------
# PADDLEOCR
# -------------------------------------------------

class PaddleOCREngine(OCREngine):
    """
    PaddleOCR adapter. Paddle has no character whitelist option, so the
    whitelist is applied to its output instead.
    """

    name = "paddle"

    def __init__(self, lang: str = "en", whitelist: str = DEFAULT_CHAR_WHITELIST):
        from paddleocr import PaddleOCR

        logging.getLogger("ppocr").setLevel(logging.ERROR)
        self.whitelist = whitelist
        self._ocr = PaddleOCR(
            use_angle_cls=True,
            lang=lang,
            det_db_thresh=0.1,
            det_db_box_thresh=0.3,
            show_log=False,
        )

    def read(self, image: np.ndarray) -> Tuple[str, float]:
        try:
            result = self._ocr.ocr(image, cls=True)
        except Exception as e:
            raise OCREngineError(f"paddleocr failed: {e}") from e

        text, confidence = _parse_paddle_result(result)
        return apply_whitelist(text, self.whitelist), confidence


def _parse_paddle_result(result) -> Tuple[str, float]:
    lines = []
    confidences = []

    if result and result[0]:
        for line in result[0]:
            # line = [bbox, (text, confidence)]
            lines.append(line[1][0])
            confidences.append(float(line[1][1]))

    confidence = 100.0 * sum(confidences) / len(confidences) if confidences else 0.0
    return "\n".join(lines), max(0.0, min(100.0, confidence))


def build_engine(settings: Settings) -> OCREngine:
    if settings.ocr_engine == "paddle":
        # Paddle uses its own language codes
        lang = "en" if settings.ocr_lang == "eng" else settings.ocr_lang
        return PaddleOCREngine(lang=lang, whitelist=settings.ocr_char_whitelist)

    return TesseractEngine(
        lang=settings.ocr_lang,
        psm=settings.ocr_psm,
        whitelist=settings.ocr_char_whitelist,
        tesseract_cmd=settings.tesseract_cmd,
    )
