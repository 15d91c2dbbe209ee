import json

import pandas as pd
from click.testing import CliRunner

from dapipe.__main__ import cli


def test_cache_clear(tmp_path, monkeypatch):
    monkeypatch.setenv("DAPIPE_CACHE_DIR", str(tmp_path))
    (tmp_path / "csv_a-0123456789ab.joblib").write_bytes(b"")
    (tmp_path / "csv_b-0123456789ab.joblib").write_bytes(b"")
    (tmp_path / "notes.txt").write_text("keep me")
    result = CliRunner().invoke(cli, ["cache", "clear"])
    assert result.exit_code == 0
    assert "Removed 2 cached artifacts" in result.output
    assert (tmp_path / "notes.txt").exists()


def test_classify(tmp_path, monkeypatch):
    monkeypatch.setenv("DAPIPE_CACHE_DIR", str(tmp_path / "cache"))
    frame = pd.DataFrame({
        "duration": list(range(10)) + list(range(100, 110)),
        "class": ["good"] * 10 + ["bad"] * 10,
    })
    frame.to_csv(tmp_path / "credit.csv", index=False)
    config = tmp_path / "credit.json"
    config.write_text(json.dumps({
        "data": "credit.csv",
        "label_column": "class",
        "methods": ["tree"],
        "param_grids": {"decision_tree": {"max_depth": [1, 2]}},
        "cv_folds": 2,
        "cv_repeats": 1,
    }))
    result = CliRunner().invoke(cli, ["-q", "classify", "--config", str(config), "--no-progress"])
    assert result.exit_code == 0, result.output
    assert "decision_tree with default hyperparameters" in result.output
    assert (tmp_path / "cache").is_dir()


def test_scrape_output(tmp_path):
    (tmp_path / "page.html").write_text('<ul><li class="x">one</li><li class="x">two</li></ul>')
    config = tmp_path / "scrape.json"
    config.write_text(json.dumps({"url": "page.html", "row_selector": "li.x", "fields": {"text": ""}}))
    output = tmp_path / "rows.csv"
    result = CliRunner().invoke(cli, ["scrape", "--config", str(config), "--output", str(output)])
    assert result.exit_code == 0, result.output
    assert pd.read_csv(output)["text"].tolist() == ["one", "two"]


def test_pipeline_error_exits_with_1(tmp_path):
    config = tmp_path / "credit.json"
    config.write_text(json.dumps({"data": "missing.csv", "label_column": "class"}))
    result = CliRunner().invoke(cli, ["classify", "--config", str(config), "--no-cache"])
    assert result.exit_code == 1


def test_bad_config_exits_with_1(tmp_path):
    config = tmp_path / "scrape.json"
    config.write_text(json.dumps({"link": "http://example.com"}))
    result = CliRunner().invoke(cli, ["scrape", "--config", str(config)])
    assert result.exit_code == 1
    result = CliRunner().invoke(cli, ["scrape", "--config", str(tmp_path / "missing.json")])
    assert result.exit_code == 1


def test_verbose_and_quiet_are_exclusive():
    result = CliRunner().invoke(cli, ["-v", "-q", "cache", "clear"])
    assert result.exit_code != 0
