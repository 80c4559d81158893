#!/usr/bin/env python3
"""
PharmaScan pipeline CLI
Image → OCR ensemble → Normalization → Drug matching → JSON Output
"""

import sys
import json
import logging
import argparse
from pathlib import Path

from src.config import load_settings
from src.dictionary import DictionaryStore
from src.history import get_history
from src.log_config import setup_logging
from src.lookup import search_medicines
from src.pipeline import InvalidImageError, build_pipeline
from src.repository import JsonFileScanRepository

logger = logging.getLogger(__name__)


def run_scan(image_path: str, settings, save: bool = True, output_json: bool = True) -> int:
    path = Path(image_path)
    try:
        buffer = path.read_bytes()
    except OSError as e:
        logger.error("Cannot read %s: %s", path, e)
        return 1

    pipeline = build_pipeline(settings)
    try:
        result = pipeline.process_scan(buffer, path.name, save=save)
    except InvalidImageError as e:
        logger.error("Invalid image: %s", e)
        return 1

    if output_json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        for drug in result.detected_drugs:
            print(f"{drug.name:30s} {drug.classification_code or '-':10s} {drug.confidence:.3f}")
    return 0


def run_search(query: str, settings) -> int:
    store = DictionaryStore(
        source_url=settings.dictionary_url,
        source_path=settings.dictionary_path,
        timeout=settings.dictionary_timeout,
    )
    results = search_medicines(store, query)
    print(json.dumps([r.model_dump(by_alias=True) for r in results], indent=2))
    return 0


def run_history(settings) -> int:
    repo = JsonFileScanRepository(settings.scan_db_path)
    print(json.dumps([r.to_dict() for r in get_history(repo)], indent=2))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Extract pharmaceutical substances from a medicine package photo",
        epilog="Example: python main.py images/strip.jpeg",
    )
    parser.add_argument("image", nargs="?", help="Path to the medicine package/strip image")
    parser.add_argument("--no-json", action="store_true", help="Print a short table instead of JSON")
    parser.add_argument("--no-save", action="store_true", help="Do not store the scan in the history file")
    parser.add_argument("--search", metavar="QUERY", help="Search the medicine dictionary instead of scanning")
    parser.add_argument("--history", action="store_true", help="List stored scans, most recent first")

    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ValueError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    setup_logging(settings.log_level)

    if args.search:
        return run_search(args.search, settings)
    if args.history:
        return run_history(settings)
    if not args.image:
        parser.print_help()
        return 1

    return run_scan(args.image, settings, save=not args.no_save, output_json=not args.no_json)


if __name__ == "__main__":
    sys.exit(main())
