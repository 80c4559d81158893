# src/pipeline.py
"""
Scan pipeline: image buffer -> OCR ensemble -> normalization -> drug
matching -> ScanResult -> repository.

For any decodable image the pipeline returns a ScanResult; OCR, dictionary
and persistence failures degrade the result instead of raising.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

import numpy as np

from schema import ImageInfo, ScanRaw, ScanResult
from src.config import Settings
from src.dictionary import DictionaryStore
from src.ensemble import OCREnsemble
from src.entity_extraction import DrugMatcher
from src.normalization import clean, normalize
from src.ocr import build_engine
from src.repository import JsonFileScanRepository, ScanRepository
from src.vision.preprocessing import decode_image

logger = logging.getLogger(__name__)


class InvalidImageError(ValueError):
    """The buffer is empty or not a decodable image."""


class ScanPipeline:
    def __init__(
        self,
        ensemble: OCREnsemble,
        dictionary: DictionaryStore,
        matcher: Optional[DrugMatcher] = None,
        repository: Optional[ScanRepository] = None,
        scan_timeout: Optional[float] = 30.0,
    ):
        self.ensemble = ensemble
        self.dictionary = dictionary
        self.matcher = matcher or DrugMatcher()
        self.repository = repository
        self.scan_timeout = scan_timeout

    def process_scan(self, image_buffer: bytes, filename: Optional[str] = None, save: bool = True) -> ScanResult:
        if not image_buffer:
            raise InvalidImageError("missing image data")

        image = decode_image(image_buffer)
        if image is None:
            raise InvalidImageError(f"could not decode image {filename or ''}".strip())

        deadline = time.monotonic() + self.scan_timeout if self.scan_timeout else None
        logger.info("Processing scan %s (%d bytes)", filename or "<upload>", len(image_buffer))

        ocr = self.ensemble.recognize(image, deadline=deadline)
        text = clean(ocr.text)
        normalized = normalize(text)

        drugs = self.matcher.detect(normalized, self.dictionary.load())

        result = ScanResult(
            id=str(uuid4()),
            extracted_text=text,
            confidence=ocr.confidence,
            created_at=datetime.now(timezone.utc),
            detected_drugs=drugs,
            raw=ScanRaw(ocr=ocr, image=_image_info(image, image_buffer, filename)),
        )
        logger.info(
            "Scan %s: %d chars, confidence %.1f, %d drug(s)",
            result.id,
            len(text),
            result.confidence,
            len(drugs),
        )

        if save and self.repository is not None:
            try:
                self.repository.save(result)
            except Exception:
                logger.error("Failed to persist scan %s", result.id, exc_info=True)

        return result


def _image_info(image: np.ndarray, buffer: bytes, filename: Optional[str]) -> ImageInfo:
    h, w = image.shape[:2]
    suffix = Path(filename).suffix.lstrip(".").lower() if filename else ""
    return ImageInfo(
        width=int(w),
        height=int(h),
        format=suffix or None,
        size_bytes=len(buffer),
        filename=filename,
    )


def build_pipeline(settings: Settings, repository: Optional[ScanRepository] = None) -> ScanPipeline:
    ensemble = OCREnsemble(
        build_engine(settings),
        early_exit_confidence=settings.early_exit_confidence,
        term_bonus=settings.term_bonus,
        term_bonus_cap=settings.term_bonus_cap,
    )
    dictionary = DictionaryStore(
        source_url=settings.dictionary_url,
        source_path=settings.dictionary_path,
        timeout=settings.dictionary_timeout,
    )
    matcher = DrugMatcher(
        min_token_length=settings.min_token_length,
        max_distance=settings.match_max_distance,
        min_confidence=settings.min_match_confidence,
        min_atc_length=settings.min_atc_length,
    )
    if repository is None:
        repository = JsonFileScanRepository(settings.scan_db_path)

    return ScanPipeline(
        ensemble,
        dictionary,
        matcher=matcher,
        repository=repository,
        scan_timeout=settings.scan_timeout_seconds,
    )
