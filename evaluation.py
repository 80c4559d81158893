#!/usr/bin/env python3
"""
Scores stored scan results against hand-labelled ground truth.

Both sides use the ScanResult JSON shape:
  {"extractedText": "...", "detectedDrugs": [{"slug": "..."}, ...]}

Text is scored by Character Error Rate, CER = (S + D + I) / N over the
ground-truth length N. Drugs are scored by precision, recall and F1 of
their slugs.
"""

import json
import logging
import argparse
from collections import Counter
from pathlib import Path
from typing import Dict, Iterable, Set, Tuple
from rapidfuzz.distance import Levenshtein

logger = logging.getLogger(__name__)

_OP_KEYS = {"replace": "S", "delete": "D", "insert": "I"}


def calculate_cer(predicted: str, ground_truth: str) -> Tuple[float, Dict]:
    """Return (CER, {"S", "D", "I", "N"}) for `predicted` against `ground_truth`."""
    counts = Counter(_OP_KEYS[op.tag] for op in Levenshtein.editops(predicted, ground_truth))
    details = {key: counts[key] for key in ("S", "D", "I")}
    details["N"] = len(ground_truth)

    if not ground_truth:
        return (1.0 if predicted else 0.0), details
    return sum(counts.values()) / len(ground_truth), details


def _slugs(drugs: Iterable) -> Set[str]:
    slugs = set()
    for d in drugs or []:
        slug = d.get("slug") if isinstance(d, dict) else d
        if slug:
            slugs.add(str(slug))
    return slugs


def calculate_drug_scores(predicted_drugs, ground_truth_drugs) -> Dict:
    """Precision / recall / F1 of detected drug slugs."""
    pred = _slugs(predicted_drugs)
    gt = _slugs(ground_truth_drugs)
    tp = len(pred & gt)

    precision = tp / len(pred) if pred else (1.0 if not gt else 0.0)
    recall = tp / len(gt) if gt else 1.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0

    return {
        "precision": round(precision, 4),
        "recall": round(recall, 4),
        "f1": round(f1, 4),
        "missed": sorted(gt - pred),
        "spurious": sorted(pred - gt),
    }


def evaluate_single(prediction_json: Dict, ground_truth_json: Dict) -> Dict:
    cer, cer_details = calculate_cer(
        prediction_json.get("extractedText", "") or "",
        ground_truth_json.get("extractedText", "") or "",
    )
    return {
        "cer": {"value": round(cer, 4), "details": cer_details},
        "drugs": calculate_drug_scores(
            prediction_json.get("detectedDrugs", []),
            ground_truth_json.get("detectedDrugs", []),
        ),
    }


def _load_json(path) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def evaluate_batch(predictions_dir: Path, ground_truth_file: Path) -> Dict:
    """
    Score every labelled image that has a stored prediction.

    `ground_truth_file` maps image names to labelled results; each
    prediction is read from <predictions_dir>/<image stem>_prediction.json.
    Images without a prediction are skipped with a warning.
    """
    results = {}
    for image_name, truth in _load_json(ground_truth_file).items():
        pred_file = Path(predictions_dir) / f"{Path(image_name).stem}_prediction.json"
        if not pred_file.exists():
            logger.warning("Prediction not found for %s", image_name)
            continue
        results[image_name] = evaluate_single(_load_json(pred_file), truth)

    count = len(results)

    def average(metric) -> float:
        return round(sum(metric(r) for r in results.values()) / count, 4) if count else 0.0

    return {
        "total_samples": count,
        "average_cer": average(lambda r: r["cer"]["value"]),
        "average_drug_f1": average(lambda r: r["drugs"]["f1"]),
        "individual_results": results,
    }


def _run_single(args) -> Dict:
    return evaluate_single(_load_json(args.prediction), _load_json(args.ground_truth))


def _run_batch(args) -> Dict:
    return evaluate_batch(Path(args.predictions_dir), Path(args.ground_truth_file))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Score scan results against ground truth")
    subparsers = parser.add_subparsers(dest="mode")

    single = subparsers.add_parser("single", help="Score one scan result")
    single.add_argument("--prediction", "-p", required=True, help="ScanResult JSON")
    single.add_argument("--ground-truth", "-g", required=True, help="Labelled JSON for the same image")
    single.set_defaults(run=_run_single)

    batch = subparsers.add_parser("batch", help="Score a directory of scan results")
    batch.add_argument("--predictions-dir", "-p", required=True, help="Holds <image stem>_prediction.json files")
    batch.add_argument("--ground-truth-file", "-g", required=True, help="JSON object keyed by image name")
    batch.set_defaults(run=_run_batch)

    args = parser.parse_args(argv)
    if not args.mode:
        parser.print_help()
        return 1

    print(json.dumps(args.run(args), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
