"""Configuration paths and defaults for Droog."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("DROOG_HOME", str(Path.home() / ".droog"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
MODEL_CACHE_DIR = BASE_DIR / "models"

# Snapshot written by ``droog index`` when no output path is given
DEFAULT_INDEX_FILE = ".droog-index.json"

DEFAULT_EMBEDDING_MODEL = "char-hash"

# Regex-tier estimate for bodies whose end cannot be located
ESTIMATED_BODY_LINES = 10

DEFAULT_REPORT_THRESHOLD = 0.8
DEFAULT_EXACT_THRESHOLD = 0.95
DEFAULT_CROSS_REPO_THRESHOLD = 0.75
DEFAULT_LOGIC_CAP = 0.94
DEFAULT_BODY_OVERLAP_THRESHOLD = 0.7
