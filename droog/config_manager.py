"""Configuration manager for Droog using TOML files."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict

import toml

from .config import (
    CONFIG_FILE,
    DEFAULT_BODY_OVERLAP_THRESHOLD,
    DEFAULT_CROSS_REPO_THRESHOLD,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_EXACT_THRESHOLD,
    DEFAULT_LOGIC_CAP,
    DEFAULT_REPORT_THRESHOLD,
)

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "embeddings": {
        "model": DEFAULT_EMBEDDING_MODEL,
    },
    "duplicates": {
        "report_threshold": DEFAULT_REPORT_THRESHOLD,
        "exact_threshold": DEFAULT_EXACT_THRESHOLD,
        "cross_repo_threshold": DEFAULT_CROSS_REPO_THRESHOLD,
        "logic_cap": DEFAULT_LOGIC_CAP,
        "body_overlap_threshold": DEFAULT_BODY_OVERLAP_THRESHOLD,
    },
    "parser": {
        "structural": True,
    },
}


@dataclass(frozen=True)
class DuplicateThresholds:
    """Similarity cut-offs used by the duplicate detector."""

    report: float = DEFAULT_REPORT_THRESHOLD
    exact: float = DEFAULT_EXACT_THRESHOLD
    cross_repo: float = DEFAULT_CROSS_REPO_THRESHOLD
    logic_cap: float = DEFAULT_LOGIC_CAP
    body_overlap: float = DEFAULT_BODY_OVERLAP_THRESHOLD


def load_full_config() -> Dict[str, Any]:
    """Load the raw TOML config (all sections), or ``{}`` when missing."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Could not read %s, using defaults: %s", CONFIG_FILE, exc)
        return {}


def load_config() -> Dict[str, Dict[str, Any]]:
    """Load configuration with every known section merged over its defaults."""
    merged = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in load_full_config().items():
        if isinstance(values, dict):
            merged.setdefault(section, {}).update(values)
    return merged


def save_config(section: str, values: Dict[str, Any]) -> bool:
    """Write *values* into ``[section]``, preserving other sections.

    Returns:
        True if saved successfully, False otherwise
    """
    config = load_full_config()
    config.setdefault(section, {}).update(values)
    try:
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            toml.dump(config, f)
        return True
    except OSError as exc:
        logger.warning("Could not write %s: %s", CONFIG_FILE, exc)
        return False


def load_embedding_config() -> Dict[str, Any]:
    """Return the ``[embeddings]`` section."""
    return load_config()["embeddings"]


def load_thresholds() -> DuplicateThresholds:
    """Build :class:`DuplicateThresholds` from the ``[duplicates]`` section."""
    section = load_config()["duplicates"]
    return DuplicateThresholds(
        report=float(section["report_threshold"]),
        exact=float(section["exact_threshold"]),
        cross_repo=float(section["cross_repo_threshold"]),
        logic_cap=float(section["logic_cap"]),
        body_overlap=float(section["body_overlap_threshold"]),
    )


def structural_parsing_enabled() -> bool:
    """Whether the ``[parser]`` section allows the tree-sitter tier."""
    return bool(load_config()["parser"].get("structural", True))
