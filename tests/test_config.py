"""Tests for configuration loading."""

import pytest

from ledger_recon.config import ReconConfig, generate_default_config, load_config
from ledger_recon.utils.exceptions import ConfigurationError


def test_defaults_without_file():
    config = load_config(None)

    assert config.matching.mode == "fuzzy"
    assert config.matching.amount_tolerance == 0.01
    assert config.matching.date_window_days == 2
    assert config.pdf.unknown_issuer_strategy == "most_transactions"
    assert config.config_file_path is None


def test_user_values_merge_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "matching:\n"
        "  mode: strict\n"
        "  date_window_days: 5\n"
        "output:\n"
        "  sheets:\n"
        "    parsing_issues:\n"
        "      enabled: false\n",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.matching.mode == "strict"
    assert config.matching.date_window_days == 5
    assert config.matching.min_similarity == 0.55
    assert config.output.sheets.parsing_issues.enabled is False
    assert config.output.sheets.parsing_issues.name == "Parsing Issues"
    assert config.config_file_path == str(path)


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("matching: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_config(path)


def test_invalid_values(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("matching:\n  mode: sideways\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid configuration"):
        load_config(path)


def test_non_mapping_root(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_config(path)


def test_generated_config_round_trips(tmp_path):
    path = tmp_path / "nested" / "config.yaml"

    generate_default_config(path)
    loaded = load_config(path)

    assert path.read_text(encoding="utf-8").startswith("# Ledger vs. bank statement")
    assert loaded.model_dump(exclude={"config_file_path"}) == ReconConfig().model_dump(
        exclude={"config_file_path"}
    )
