import logging
import os

import pytest

from src.config import DEFAULT_DICTIONARY_URL, load_settings
from src.log_config import setup_logging

ENV_KEYS = [
    "DICTIONARY_URL", "DICTIONARY_PATH", "OCR_ENGINE", "OCR_PSM",
    "OCR_EARLY_EXIT_CONFIDENCE", "MATCH_MIN_CONFIDENCE", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # keep any developer .env out of the tests
    monkeypatch.chdir(tmp_path)


def test_defaults():
    settings = load_settings()
    assert settings.dictionary_url == DEFAULT_DICTIONARY_URL
    assert settings.ocr_engine == "tesseract"
    assert settings.ocr_psm == 11
    assert settings.early_exit_confidence == 85.0
    assert settings.min_match_confidence == 0.85
    assert settings.min_atc_length == 5


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("OCR_ENGINE", "paddle")
    monkeypatch.setenv("OCR_PSM", "6")
    monkeypatch.setenv("MATCH_MIN_CONFIDENCE", "0.9")
    settings = load_settings()
    assert settings.ocr_engine == "paddle"
    assert settings.ocr_psm == 6
    assert settings.min_match_confidence == 0.9


def test_blank_values_ignored(monkeypatch):
    monkeypatch.setenv("OCR_PSM", "   ")
    assert load_settings().ocr_psm == 11


def test_dotenv_file(tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text("DICTIONARY_PATH=/data/dictionary.json\n", encoding="utf-8")
    try:
        assert load_settings(str(env_file)).dictionary_path == "/data/dictionary.json"
    finally:
        os.environ.pop("DICTIONARY_PATH", None)


@pytest.mark.parametrize("key,value", [
    ("OCR_ENGINE", "easyocr"),
    ("OCR_PSM", "42"),
    ("OCR_EARLY_EXIT_CONFIDENCE", "150"),
    ("MATCH_MIN_CONFIDENCE", "high"),
])
def test_invalid_values_name_the_variable(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(ValueError, match=key):
        load_settings()


def test_setup_logging_accepts_names():
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
    setup_logging("not-a-level")
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("ppocr").level == logging.ERROR
