# src/config.py
"""
Pipeline configuration, sourced from environment variables.
A local .env file is loaded first if present; real environment values win.
"""

import os
import logging
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_DICTIONARY_URL = "https://yashasvi9199.github.io/PharmaScan-Dictionary/dictionary.bundle.json"

# Letters, digits, common punctuation and unit symbols found on packaging
DEFAULT_CHAR_WHITELIST = (
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"
    " .,:;-/()%+&µ"
)


class Settings(BaseModel):
    # Dictionary
    dictionary_url: str = DEFAULT_DICTIONARY_URL
    dictionary_path: Optional[str] = None
    dictionary_timeout: float = Field(default=10.0, gt=0)

    # OCR
    ocr_engine: str = Field(default="tesseract", pattern="^(tesseract|paddle)$")
    ocr_lang: str = "eng"
    tesseract_cmd: Optional[str] = None
    ocr_psm: int = Field(default=11, ge=0, le=13)
    ocr_char_whitelist: str = DEFAULT_CHAR_WHITELIST
    early_exit_confidence: float = Field(default=85.0, ge=0, le=100)
    term_bonus: float = Field(default=5.0, ge=0)
    term_bonus_cap: float = Field(default=20.0, ge=0)
    scan_timeout_seconds: float = Field(default=30.0, gt=0)

    # Matching
    min_token_length: int = Field(default=5, ge=1)
    match_max_distance: float = Field(default=0.1, ge=0, le=1)
    min_match_confidence: float = Field(default=0.85, ge=0, le=1)
    min_atc_length: int = Field(default=5, ge=1)

    # Persistence / app
    scan_db_path: str = "scan-db.json"
    log_level: str = "INFO"


# env var -> Settings field
_ENV_KEYS = {
    "DICTIONARY_URL": "dictionary_url",
    "DICTIONARY_PATH": "dictionary_path",
    "DICTIONARY_TIMEOUT": "dictionary_timeout",
    "OCR_ENGINE": "ocr_engine",
    "OCR_LANG": "ocr_lang",
    "TESSERACT_CMD": "tesseract_cmd",
    "OCR_PSM": "ocr_psm",
    "OCR_CHAR_WHITELIST": "ocr_char_whitelist",
    "OCR_EARLY_EXIT_CONFIDENCE": "early_exit_confidence",
    "OCR_TERM_BONUS": "term_bonus",
    "OCR_TERM_BONUS_CAP": "term_bonus_cap",
    "SCAN_TIMEOUT_SECONDS": "scan_timeout_seconds",
    "MATCH_MIN_TOKEN_LENGTH": "min_token_length",
    "MATCH_MAX_DISTANCE": "match_max_distance",
    "MATCH_MIN_CONFIDENCE": "min_match_confidence",
    "MATCH_MIN_ATC_LENGTH": "min_atc_length",
    "SCAN_DB_PATH": "scan_db_path",
    "LOG_LEVEL": "log_level",
}


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Empty variables are treated as unset. Raises ValueError naming the
    offending variable(s) when a value does not validate.
    """
    load_dotenv(dotenv_path=env_file)

    values = {}
    for env_key, field in _ENV_KEYS.items():
        raw = os.getenv(env_key)
        if raw is not None and raw.strip():
            values[field] = raw.strip()

    try:
        settings = Settings(**values)
    except ValidationError as exc:
        by_field = {v: k for k, v in _ENV_KEYS.items()}
        bad = sorted({by_field.get(str(err["loc"][0]), str(err["loc"][0])) for err in exc.errors()})
        raise ValueError(f"Invalid configuration for: {', '.join(bad)}") from exc

    logger.debug(
        "Settings loaded (engine=%s, psm=%s, dictionary=%s)",
        settings.ocr_engine,
        settings.ocr_psm,
        settings.dictionary_path or settings.dictionary_url,
    )
    return settings
