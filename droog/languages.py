"""Language detection and path classification."""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Dict, Optional, Set

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".java": "java",
    ".py": "python",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".go": "go",
    ".rs": "rust",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".c": "cpp",
    ".h": "cpp",
    ".cs": "csharp",
    ".kt": "kotlin",
    ".swift": "swift",
    ".rb": "ruby",
    ".php": "php",
    ".scala": "scala",
}

# Recognised for same-language checks only; never extracted
_SCRIPT_LANGUAGES: Dict[str, str] = {
    ".ps1": "powershell",
    ".sh": "shell",
}

FALLBACK_LANGUAGE = "java"

SOURCE_EXTENSIONS: Set[str] = set(LANGUAGE_MAP) | {
    ".clj", ".hs", ".ml", ".fs",
}

SKIP_DIRS: Set[str] = {
    ".venv", "venv", "__pycache__", "node_modules", ".git",
    "site-packages", ".tox", ".pytest_cache", "build", "dist",
    "target", ".mypy_cache", ".ruff_cache", "htmlcov", ".eggs",
    ".droog", "vendor",
}

_NON_SOURCE_RE = re.compile(
    r"(\.md|\.txt|\.json|\.ya?ml|\.xml|\.properties|\.ps1|\.sh|\.bat|\.cmd|\.lock"
    r"|\.min\.(js|css))$",
    re.IGNORECASE,
)

_TEST_DIR_NAMES = {"test", "tests", "spec", "specs", "__tests__", "testing"}
_TEST_NAME_RES = (
    re.compile(r"^test[_-]", re.IGNORECASE),
    re.compile(r"[_.-](test|tests|spec)\.[^.]+$", re.IGNORECASE),
    re.compile(r"^Test[A-Z_]"),
    re.compile(r"[a-z0-9](Test|Tests|Spec|IT)\.[^.]+$"),
)


def detect_language(file_path: str, content: Optional[str] = None) -> str:
    """Map *file_path* to a language tag.

    Only the extension is consulted; *content* is accepted for callers that
    have it but does not influence the result. Unknown extensions map to
    :data:`FALLBACK_LANGUAGE`.
    """
    return LANGUAGE_MAP.get(PurePath(file_path).suffix.lower(), FALLBACK_LANGUAGE)


def known_language(file_path: str) -> Optional[str]:
    """Strict lookup: the language tag, or ``None`` when unrecognised."""
    suffix = PurePath(file_path).suffix.lower()
    return LANGUAGE_MAP.get(suffix) or _SCRIPT_LANGUAGES.get(suffix)


def is_same_language(file_a: str, file_b: str) -> bool:
    """True when both files share a language, or either one is unrecognised."""
    lang_a = known_language(file_a)
    lang_b = known_language(file_b)
    if lang_a is None or lang_b is None:
        return True
    return lang_a == lang_b


def is_source_file(file_path: str) -> bool:
    if _NON_SOURCE_RE.search(file_path):
        return False
    return PurePath(file_path).suffix.lower() in SOURCE_EXTENSIONS


def is_test_file(file_path: str) -> bool:
    path = PurePath(file_path.replace("\\", "/"))
    if any(part.lower() in _TEST_DIR_NAMES for part in path.parts[:-1]):
        return True
    return any(pattern.search(path.name) for pattern in _TEST_NAME_RES)


def path_context(file_path: str) -> str:
    """Classify a path as ``test``, ``service``, ``controller`` or ``production``."""
    if is_test_file(file_path):
        return "test"
    lowered = file_path.lower()
    if "service" in lowered:
        return "service"
    if "controller" in lowered:
        return "controller"
    return "production"


def should_skip_path(file_path: str) -> bool:
    """True for paths inside vendored, cache or build directories."""
    return any(part in SKIP_DIRS for part in PurePath(file_path).parts)
