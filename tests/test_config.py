"""Tests for the TOML configuration layer."""

import toml

from droog import config_manager
from droog.config_manager import (
    DEFAULT_CONFIG,
    DuplicateThresholds,
    load_config,
    load_embedding_config,
    load_thresholds,
    save_config,
    structural_parsing_enabled,
)
from droog.extractor import Fallback, default_strategy


def test_defaults_without_file():
    assert not config_manager.CONFIG_FILE.exists()
    assert load_config() == DEFAULT_CONFIG
    assert load_thresholds() == DuplicateThresholds()
    assert load_embedding_config()["model"] == "char-hash"
    assert structural_parsing_enabled()


def test_save_merges_sections():
    assert save_config("duplicates", {"report_threshold": 0.6})
    assert save_config("embeddings", {"model": "token-hash"})

    on_disk = toml.load(config_manager.CONFIG_FILE)
    assert on_disk == {
        "duplicates": {"report_threshold": 0.6},
        "embeddings": {"model": "token-hash"},
    }
    thresholds = load_thresholds()
    assert thresholds.report == 0.6
    assert thresholds.exact == DuplicateThresholds().exact


def test_unknown_sections_are_kept():
    save_config("custom", {"key": "value"})
    assert load_config()["custom"] == {"key": "value"}


def test_corrupt_file_falls_back_to_defaults():
    config_manager.CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    config_manager.CONFIG_FILE.write_text("[duplicates\nreport_threshold = ")
    assert load_thresholds() == DuplicateThresholds()


def test_structural_parsing_can_be_disabled():
    save_config("parser", {"structural": False})
    assert not structural_parsing_enabled()

    strategy = default_strategy()

    assert isinstance(strategy, Fallback)
    assert "disabled" in strategy.reason
