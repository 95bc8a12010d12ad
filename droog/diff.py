"""Unified-diff helpers for scoping extraction to the changed parts of a file."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from .models import Symbol

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


@dataclass
class Hunk:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: List[str] = field(default_factory=list)

    def added_lines(self) -> List[Tuple[int, str]]:
        """``(new-file line number, text)`` for every ``+`` line."""
        added: List[Tuple[int, str]] = []
        line_no = self.new_start
        for line in self.lines:
            if line.startswith("+"):
                added.append((line_no, line[1:]))
                line_no += 1
            elif line.startswith("-") or line.startswith("\\"):
                continue
            else:
                line_no += 1
        return added


def _count(group: Optional[str]) -> int:
    return int(group) if group is not None else 1


def _classify(patch: str) -> Iterator[Tuple[str, str, Optional["re.Match[str]"]]]:
    """Yield ``(kind, line, hunk_match)`` for every line of *patch*.

    *kind* is ``hunk``, ``header`` or ``body``. ``+++``/``---`` lines are
    file headers only once the current hunk's line counts are used up, so
    an added ``++i;`` or a removed ``-- note`` stays content. Outside a hunk
    any other line counts as body.
    """
    old_left = new_left = 0
    for line in (patch or "").split("\n"):
        match = _HUNK_RE.match(line)
        if match:
            old_left, new_left = _count(match.group(2)), _count(match.group(4))
            yield "hunk", line, match
        elif line.startswith(("diff ", "index ")):
            old_left = new_left = 0
            yield "header", line, None
        elif old_left > 0 or new_left > 0:
            if line.startswith("+"):
                new_left -= 1
            elif line.startswith("-"):
                old_left -= 1
            elif not line.startswith("\\"):
                old_left -= 1
                new_left -= 1
            yield "body", line, None
        elif line.startswith(("+++", "---")):
            yield "header", line, None
        else:
            yield "body", line, None


def parse_patch(patch: str) -> List[Hunk]:
    """Split a unified diff into hunks; file headers and junk are ignored."""
    hunks: List[Hunk] = []
    current: Optional[Hunk] = None
    for kind, line, match in _classify(patch):
        if match is not None:
            old_start, old_count, new_start, new_count = match.groups()
            current = Hunk(
                old_start=int(old_start),
                old_count=_count(old_count),
                new_start=int(new_start),
                new_count=_count(new_count),
            )
            hunks.append(current)
        elif kind == "body" and current is not None:
            current.lines.append(line)
    return hunks


def split_patch(patch: str) -> Dict[str, str]:
    """Split a multi-file diff into per-file patches keyed by the new path.

    Deleted files (``+++ /dev/null``) are left out.
    """
    sections: Dict[str, List[str]] = {}
    current: Optional[List[str]] = None
    for kind, line, _match in _classify(patch):
        if kind == "header":
            if line.startswith("+++ "):
                target = line[4:].split("\t")[0].strip()
                if target == "/dev/null":
                    current = None
                    continue
                if target.startswith("b/"):
                    target = target[2:]
                current = sections.setdefault(target, [])
        elif current is not None:
            current.append(line)
    return {path: "\n".join(lines) for path, lines in sections.items()}


def extract_added_code(patch: str) -> Optional[str]:
    """Concatenate the added lines of *patch*, or ``None`` when there are none."""
    code_lines = [
        line[1:]
        for kind, line, _match in _classify(patch)
        if kind == "body" and line.startswith("+")
    ]
    return "\n".join(code_lines) if code_lines else None


def added_line_numbers(patch: str) -> Set[int]:
    """New-file line numbers introduced by *patch*."""
    return {number for hunk in parse_patch(patch) for number, _ in hunk.added_lines()}


def symbols_touching_lines(symbols: Sequence[Symbol], lines: Iterable[int]) -> List[Symbol]:
    """Symbols whose line span contains at least one of *lines*."""
    wanted = sorted(set(lines))
    return [
        symbol for symbol in symbols
        if any(symbol.start_line <= line <= symbol.end_line for line in wanted)
    ]
