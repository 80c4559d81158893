import json

import pytest

from evaluation import calculate_cer, calculate_drug_scores, evaluate_batch, evaluate_single, main


def test_cer_counts_edit_operations():
    cer, details = calculate_cer("Paracetam0l", "Paracetamol")
    assert details["S"] == 1
    assert cer == pytest.approx(1 / 11)


def test_cer_empty_ground_truth():
    assert calculate_cer("", "")[0] == 0.0
    assert calculate_cer("noise", "")[0] == 1.0


def test_drug_scores():
    scores = calculate_drug_scores(
        [{"slug": "paracetamol-500"}, {"slug": "ibuprofen"}],
        [{"slug": "paracetamol-500"}, {"slug": "caffeine"}],
    )
    assert scores["precision"] == 0.5
    assert scores["recall"] == 0.5
    assert scores["missed"] == ["caffeine"]
    assert scores["spurious"] == ["ibuprofen"]


def test_drug_scores_nothing_expected_nothing_found():
    scores = calculate_drug_scores([], [])
    assert scores["precision"] == 1.0
    assert scores["f1"] == 1.0


def test_evaluate_batch(tmp_path):
    gt = {"strip1.jpeg": {"extractedText": "Ibuprofen 400", "detectedDrugs": [{"slug": "ibuprofen"}]}}
    (tmp_path / "gt.json").write_text(json.dumps(gt), encoding="utf-8")
    pred_dir = tmp_path / "preds"
    pred_dir.mkdir()
    (pred_dir / "strip1_prediction.json").write_text(json.dumps(gt["strip1.jpeg"]), encoding="utf-8")

    summary = evaluate_batch(pred_dir, tmp_path / "gt.json")
    assert summary["total_samples"] == 1
    assert summary["average_cer"] == 0.0
    assert summary["average_drug_f1"] == 1.0


def test_evaluate_single_on_scan_result_shape():
    prediction = {"extractedText": "Amoxicilin", "detectedDrugs": []}
    result = evaluate_single(prediction, {"extractedText": "Amoxicillin", "detectedDrugs": [{"slug": "amoxicillin"}]})
    assert result["cer"]["details"]["I"] == 1
    assert result["drugs"]["recall"] == 0.0


def test_batch_skips_missing_predictions(tmp_path, caplog):
    gt = {"strip2.jpeg": {"extractedText": "Cetirizine", "detectedDrugs": []}}
    (tmp_path / "gt.json").write_text(json.dumps(gt), encoding="utf-8")

    summary = evaluate_batch(tmp_path, tmp_path / "gt.json")
    assert summary["total_samples"] == 0
    assert summary["average_cer"] == 0.0
    assert "Prediction not found for strip2.jpeg" in caplog.text


def test_cli_single(tmp_path, capsys):
    scan = {"extractedText": "Ibuprofen", "detectedDrugs": [{"slug": "ibuprofen"}]}
    (tmp_path / "pred.json").write_text(json.dumps(scan), encoding="utf-8")
    (tmp_path / "gt.json").write_text(json.dumps(scan), encoding="utf-8")

    assert main(["single", "-p", str(tmp_path / "pred.json"), "-g", str(tmp_path / "gt.json")]) == 0
    result = json.loads(capsys.readouterr().out)
    assert result["cer"]["value"] == 0.0
    assert result["drugs"]["f1"] == 1.0


def test_cli_without_mode():
    assert main([]) == 1
