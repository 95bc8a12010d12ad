"""Pattern-based extraction tier.

Always available and language-agnostic enough to serve as the fallback for
every file the structural tier cannot handle. Results are approximate: body
ends come from a balanced-brace scan (or indentation for Python) and fall back
to a fixed estimate when the scan fails.
"""

from __future__ import annotations

import bisect
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from .config import ESTIMATED_BODY_LINES
from .models import CALLABLE_KINDS, CallEdge, Parameter, Symbol, render_signature

logger = logging.getLogger(__name__)

# Longest parameter list the balanced scan will walk
MAX_PARAMETER_CHARS = 4000


# ===================================================================
# Source helpers
# ===================================================================

class LineIndex:
    """Offset -> 1-based line lookup for one source string."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.lines = source.split("\n")
        self._starts = [0]
        for match in re.finditer("\n", source):
            self._starts.append(match.end())

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    def line_of(self, offset: int) -> int:
        """1 + number of newlines before *offset*."""
        return bisect.bisect_right(self._starts, offset)

    def text(self, start_line: int, end_line: int) -> str:
        return "\n".join(self.lines[start_line - 1:end_line])

    def estimate_end(self, start_line: int) -> int:
        return max(start_line, min(start_line + ESTIMATED_BODY_LINES, self.total_lines))


def _find_closing(
    source: str,
    open_index: int,
    open_char: str,
    close_char: str,
    char_literals: bool = True,
    c_comments: bool = True,
    limit: Optional[int] = None,
) -> Optional[int]:
    depth = 0
    i = open_index
    n = len(source) if limit is None else min(len(source), open_index + limit)
    quotes = "\"'`" if char_literals else "\"`"
    while i < n:
        ch = source[i]
        if ch in quotes:
            i += 1
            while i < n and source[i] != ch:
                if source[i] == "\\":
                    i += 1
                elif source[i] == "\n" and ch != "`":
                    break
                i += 1
        elif c_comments and source.startswith("//", i):
            newline = source.find("\n", i)
            i = n if newline == -1 else newline
        elif c_comments and source.startswith("/*", i):
            close = source.find("*/", i + 2)
            i = n if close == -1 else close + 1
        elif ch == open_char:
            depth += 1
        elif ch == close_char:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def find_block_end(source: str, open_index: int, char_literals: bool = True) -> Optional[int]:
    """Index of the ``}`` closing the ``{`` at *open_index*, or ``None``.

    String literals and comments are skipped. With *char_literals* off, a
    single quote is ordinary text (Rust lifetimes).
    """
    return _find_closing(source, open_index, "{", "}", char_literals)


def find_paren_end(
    source: str,
    open_index: int,
    char_literals: bool = True,
    c_comments: bool = True,
) -> Optional[int]:
    """Index of the ``)`` closing the ``(`` at *open_index*, or ``None``.

    With *c_comments* off, ``//`` and ``/*`` are ordinary text (Python floor
    division). Parameter lists longer than a few thousand characters are
    treated as unbalanced.
    """
    return _find_closing(
        source, open_index, "(", ")", char_literals, c_comments, MAX_PARAMETER_CHARS,
    )


def python_block_end(lines: Sequence[str], header_line: int, body_line: int) -> int:
    """Last line of the indented block opened on *header_line*.

    *body_line* is the first line after the header's closing colon. The block
    ends at the last non-blank line before the first non-blank, non-comment
    line indented at or below the header.
    """
    header = lines[header_line - 1]
    indent = len(header) - len(header.lstrip())
    end = header_line
    for number in range(body_line, len(lines) + 1):
        stripped = lines[number - 1].strip()
        if not stripped:
            continue
        current = len(lines[number - 1]) - len(lines[number - 1].lstrip())
        if current <= indent and not stripped.startswith("#"):
            break
        end = number
    return max(end, header_line)


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on *separator* outside of ``<>``, ``()``, ``[]`` and ``{}``."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text:
        if ch in "<([{":
            depth += 1
        elif ch in ">)]}" and depth > 0:
            depth -= 1
        if ch == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p.strip() for p in parts if p.strip()]


_ANNOTATION_RE = re.compile(r"@[\w.]+(?:\([^)]*\))?\s*")


def parse_parameters(text: str, style: str = "type_first") -> List[Parameter]:
    """Parse a raw parameter list.

    Styles:
        ``type_first``: ``Type name`` (Java, C#, C++); last token is the name.
        ``name_colon``: ``name: Type = default`` (Python, TypeScript, Rust).
        ``name_first``: ``name Type`` with Go's shared trailing types.
    """
    parts = split_top_level(" ".join(text.split()))
    if style == "name_first":
        return _parse_go_parameters(parts)

    params: List[Parameter] = []
    for part in parts:
        if style == "name_colon":
            head, _, _default = part.partition("=")
            name, _, type_text = head.partition(":")
            name = name.strip().rstrip("?")
            if name.startswith("mut "):
                name = name[4:].strip()
            params.append(Parameter(name=name, type=type_text.strip()))
        else:
            cleaned = _ANNOTATION_RE.sub("", part)
            tokens = [t for t in cleaned.split() if t != "final"]
            if not tokens:
                continue
            params.append(Parameter(name=tokens[-1], type=" ".join(tokens[:-1])))
    return params


def _parse_go_parameters(parts: List[str]) -> List[Parameter]:
    named = any(len(part.split(None, 1)) == 2 for part in parts)
    params: List[Parameter] = []
    shared_type = ""
    for part in reversed(parts):
        tokens = part.split(None, 1)
        if len(tokens) == 2:
            shared_type = tokens[1]
            params.append(Parameter(name=tokens[0], type=tokens[1]))
        elif named:
            params.append(Parameter(name=tokens[0], type=shared_type))
        else:
            params.append(Parameter(name="", type=tokens[0]))
    params.reverse()
    return params


# ===================================================================
# Extractors
# ===================================================================

class RegexExtractor(ABC):
    """Extracts symbols from one language with regular expressions."""

    language: str = ""

    @abstractmethod
    def extract(self, source: str, file_path: str) -> List[Symbol]:
        ...

    def _brace_span(
        self,
        index: LineIndex,
        start_offset: int,
        search_from: int,
        char_literals: bool = True,
    ) -> Tuple[int, int, str]:
        """``(start_line, end_line, raw_code)`` for a brace-delimited body."""
        source = index.source
        start_line = index.line_of(start_offset)
        open_index = source.find("{", search_from)
        semicolon = source.find(";", search_from)
        if open_index != -1 and (semicolon == -1 or open_index < semicolon):
            close = find_block_end(source, open_index, char_literals)
            if close is not None:
                return start_line, index.line_of(close), source[start_offset:close + 1]
        elif semicolon != -1:
            # Declaration without a body (abstract, interface, forward)
            return start_line, index.line_of(semicolon), source[start_offset:semicolon + 1]
        end_line = index.estimate_end(start_line)
        return start_line, end_line, index.text(start_line, end_line)

    @staticmethod
    def _parameter_list(
        source: str,
        open_paren: int,
        tail_re: "re.Pattern[str]",
        char_literals: bool = True,
        c_comments: bool = True,
    ) -> Optional[Tuple[str, "re.Match[str]"]]:
        """``(raw_params, tail_match)`` for the list opening at *open_paren*.

        *tail_re* must match right after the closing parenthesis, otherwise
        the declaration is rejected.
        """
        close = find_paren_end(source, open_paren, char_literals, c_comments)
        if close is None:
            return None
        tail = tail_re.match(source, close + 1)
        if tail is None:
            return None
        return source[open_paren + 1:close], tail


_JAVA_NOT_A_TYPE = {
    "return", "new", "throw", "else", "case", "yield", "class", "interface",
    "enum", "record", "package", "import", "goto", "assert",
    # modifiers can be mistaken for a return type when no type follows
    "public", "private", "protected", "static", "final", "abstract",
    "synchronized", "native", "default",
}
_CONTROL_KEYWORDS = {
    "if", "for", "while", "switch", "catch", "synchronized", "return", "new",
    "try", "do", "else", "function", "elif", "with", "super", "this", "throw",
    "typeof", "await", "yield", "sizeof", "match", "loop", "assert", "print",
    "not", "and", "or", "in", "is", "lambda", "except", "def", "class",
}


class JavaRegexExtractor(RegexExtractor):
    """Java (and the default for languages without a dedicated extractor)."""

    language = "java"

    _CLASS_RE = re.compile(
        r"^[ \t]*(?:@\w+(?:\([^)]*\))?\s+)*"
        r"((?:(?:public|private|protected|static|final|abstract|sealed|non-sealed)\s+)*)"
        r"(?:class|interface|enum|record)\s+(\w+)",
        re.MULTILINE,
    )
    _METHOD_RE = re.compile(
        r"^[ \t]*(?:@\w+(?:\([^)]*\))?\s+)*"
        r"((?:(?:public|private|protected|static|final|abstract|synchronized"
        r"|native|default|strictfp|override|virtual|async)\s+)*)"
        r"(?:<[^<>()]*>\s+)?"
        r"(?:([\w.$]+(?:<[^()]*?>)?(?:\[\])*)\s+)?"
        r"(\w+)\s*\(",
        re.MULTILINE,
    )
    _METHOD_TAIL_RE = re.compile(r"\s*(?:throws\s+[\w.,\s]+?)?\s*([{;])")

    def extract(self, source: str, file_path: str) -> List[Symbol]:
        index = LineIndex(source)
        symbols: List[Symbol] = []
        class_names = set()

        for match in self._CLASS_RE.finditer(source):
            modifiers, name = match.group(1).split(), match.group(2)
            class_names.add(name)
            start, end, raw = self._brace_span(index, match.start(), match.end())
            symbols.append(Symbol(
                name=name,
                kind="class",
                file=file_path,
                start_line=start,
                end_line=end,
                signature=f"class {name}",
                visibility=_visibility(modifiers, "package"),  # type: ignore[arg-type]
                is_static="static" in modifiers,
                raw_code=raw,
            ))

        for match in self._METHOD_RE.finditer(source):
            modifiers = match.group(1).split()
            return_type, name = match.group(2, 3)
            if name in _CONTROL_KEYWORDS or (return_type and return_type in _JAVA_NOT_A_TYPE):
                continue
            found = self._parameter_list(source, match.end() - 1, self._METHOD_TAIL_RE)
            if found is None:
                continue
            raw_params, tail = found
            terminator = tail.group(1)
            if return_type is None:
                # Only constructors may omit the return type
                if name not in class_names or terminator != "{":
                    continue
                kind = "constructor"
            else:
                kind = "method"
            params = tuple(parse_parameters(raw_params, "type_first"))
            start, end, raw = self._brace_span(index, match.start(), tail.start(1))
            symbols.append(Symbol(
                name=name,
                kind=kind,  # type: ignore[arg-type]
                file=file_path,
                start_line=start,
                end_line=end,
                signature=render_signature(name, params, return_type),
                return_type=return_type,
                parameters=params,
                visibility=_visibility(modifiers, "package"),  # type: ignore[arg-type]
                is_static="static" in modifiers,
                raw_code=raw,
            ))
        return symbols


class PythonRegexExtractor(RegexExtractor):
    language = "python"

    _CLASS_RE = re.compile(r"^([ \t]*)class\s+(\w+)[ \t]*(\()?", re.MULTILINE)
    _COLON_RE = re.compile(r"\s*:")
    _DEF_RE = re.compile(r"^([ \t]*)(?:async\s+)?def\s+(\w+)\s*\(", re.MULTILINE)
    _DEF_TAIL_RE = re.compile(r"\s*(?:->\s*([^:\n]+?))?\s*:")

    def extract(self, source: str, file_path: str) -> List[Symbol]:
        index = LineIndex(source)
        lines = index.lines
        symbols: List[Symbol] = []
        # (start_line, end_line, indent, is_class)
        blocks: List[Tuple[int, int, int, bool]] = []

        for match in self._CLASS_RE.finditer(source):
            if match.group(3):
                found = self._parameter_list(
                    source, match.end() - 1, self._COLON_RE, c_comments=False,
                )
                header = found[1] if found else None
            else:
                header = self._COLON_RE.match(source, match.end())
            if header is None:
                continue
            start = index.line_of(match.start())
            end = python_block_end(lines, start, index.line_of(header.end()) + 1)
            blocks.append((start, end, len(match.group(1)), True))
            symbols.append(Symbol(
                name=match.group(2),
                kind="class",
                file=file_path,
                start_line=start,
                end_line=end,
                signature=f"class {match.group(2)}",
                visibility=_python_visibility(match.group(2)),  # type: ignore[arg-type]
                raw_code=index.text(start, end),
            ))

        defs = []
        for match in self._DEF_RE.finditer(source):
            found = self._parameter_list(
                source, match.end() - 1, self._DEF_TAIL_RE, c_comments=False,
            )
            if found is None:
                continue
            raw_params, tail = found
            start = index.line_of(match.start())
            end = python_block_end(lines, start, index.line_of(tail.end()) + 1)
            blocks.append((start, end, len(match.group(1)), False))
            defs.append((match, raw_params, tail.group(1), start, end))

        for match, raw_params, return_type, start, end in defs:
            indent, name = match.group(1, 2)
            kind = self._kind(blocks, start, len(indent), name)
            params = parse_parameters(raw_params, "name_colon")
            if params and params[0].name in ("self", "cls") and kind != "function":
                params = params[1:]
            return_type = return_type.strip() if return_type else None
            if kind == "constructor":
                return_type = None
            previous = lines[start - 2].strip() if start >= 2 else ""
            symbols.append(Symbol(
                name=name,
                kind=kind,  # type: ignore[arg-type]
                file=file_path,
                start_line=start,
                end_line=end,
                signature=render_signature(name, params, return_type),
                return_type=return_type,
                parameters=tuple(params),
                visibility=_python_visibility(name),  # type: ignore[arg-type]
                is_static=previous == "@staticmethod",
                raw_code=index.text(start, end),
            ))
        return symbols

    @staticmethod
    def _kind(blocks: List[Tuple[int, int, int, bool]], line: int, indent: int, name: str) -> str:
        enclosing = [
            b for b in blocks
            if b[0] < line <= b[1] and b[2] < indent
        ]
        if not enclosing:
            return "function"
        innermost = max(enclosing, key=lambda b: b[0])
        if not innermost[3]:
            return "function"
        return "constructor" if name == "__init__" else "method"


class JavaScriptRegexExtractor(RegexExtractor):
    """JavaScript and TypeScript."""

    _CLASS_RE = re.compile(
        r"^[ \t]*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?(?:class|interface)\s+(\w+)",
        re.MULTILINE,
    )
    _FUNCTION_RE = re.compile(
        r"^[ \t]*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(\w+)\s*"
        r"(?:<[^>]*>)?\s*\(",
        re.MULTILINE,
    )
    _FUNCTION_TAIL_RE = re.compile(r"\s*(?::\s*([^{]+?))?\s*(\{)")
    _ARROW_RE = re.compile(
        r"^[ \t]*(?:export\s+)?(?:const|let|var)\s+(\w+)\s*(?::[^=\n]+)?=\s*(?:async\s+)?"
        r"(?:(function)\s*\*?\s*\(|\(|(\w+)\s*=>)",
        re.MULTILINE,
    )
    _FUNCTION_EXPR_TAIL_RE = re.compile(r"\s*(?::\s*([^{\n]+?))?\s*(\{)?")
    _ARROW_TAIL_RE = re.compile(r"\s*(?::\s*([^=\n]+?))?\s*=>\s*(\{)?")
    _OPEN_BRACE_RE = re.compile(r"\s*(\{)?")
    _METHOD_RE = re.compile(
        r"^[ \t]+((?:(?:public|private|protected|static|async|readonly|override|get|set)\s+)*)"
        r"(#?\w+)\s*(?:<[^>]*>)?\s*\(",
        re.MULTILINE,
    )
    _METHOD_TAIL_RE = re.compile(r"\s*(?::\s*([^{;\n]+?))?\s*(\{)")

    def __init__(self, language: str = "javascript") -> None:
        self.language = language

    def extract(self, source: str, file_path: str) -> List[Symbol]:
        index = LineIndex(source)
        symbols: List[Symbol] = []
        class_spans: List[Tuple[int, int]] = []

        for match in self._CLASS_RE.finditer(source):
            start, end, raw = self._brace_span(index, match.start(), match.end())
            class_spans.append((start, end))
            symbols.append(self._symbol(file_path, match.group(1), "class", start, end, raw))

        for match in self._FUNCTION_RE.finditer(source):
            found = self._parameter_list(source, match.end() - 1, self._FUNCTION_TAIL_RE)
            if found is None:
                continue
            raw_params, tail = found
            start, end, raw = self._brace_span(index, match.start(), tail.start(2))
            symbols.append(self._callable(
                file_path, (match.group(1), raw_params, tail.group(1)), "function", start, end, raw,
            ))

        for match in self._ARROW_RE.finditer(source):
            name, is_function_expr, single_param = match.group(1, 2, 3)
            if single_param:
                raw_params, return_type = single_param, None
                tail = self._OPEN_BRACE_RE.match(source, match.end())
                brace = tail.start(1) if tail.group(1) else None
            else:
                tail_re = self._FUNCTION_EXPR_TAIL_RE if is_function_expr else self._ARROW_TAIL_RE
                found = self._parameter_list(source, match.end() - 1, tail_re)
                if found is None:
                    continue
                raw_params, tail = found
                return_type = tail.group(1)
                brace = tail.start(2) if tail.group(2) else None
            if brace is not None:
                start, end, raw = self._brace_span(index, match.start(), brace)
            else:
                # Expression body: the rest of the declaration's line
                start = index.line_of(match.start())
                newline = source.find("\n", tail.end())
                stop = newline if newline != -1 else len(source)
                end = index.line_of(stop)
                raw = source[match.start():stop]
            symbols.append(self._callable(
                file_path, (name, raw_params, return_type), "function", start, end, raw,
            ))

        for match in self._METHOD_RE.finditer(source):
            modifiers, name = match.group(1).split(), match.group(2)
            line = index.line_of(match.start())
            if name in _CONTROL_KEYWORDS or not any(s < line <= e for s, e in class_spans):
                continue
            found = self._parameter_list(source, match.end() - 1, self._METHOD_TAIL_RE)
            if found is None:
                continue
            raw_params, tail = found
            kind = "constructor" if name == "constructor" else "method"
            start, end, raw = self._brace_span(index, match.start(), tail.start(2))
            visibility = _visibility(modifiers, "public")
            if name.startswith("#"):
                name, visibility = name[1:], "private"
            symbols.append(self._callable(
                file_path, (name, raw_params, tail.group(1)), kind, start, end, raw,
                visibility=visibility, is_static="static" in modifiers,
            ))
        return symbols

    def _symbol(self, file_path: str, name: str, kind: str, start: int, end: int, raw: str) -> Symbol:
        return Symbol(
            name=name,
            kind=kind,  # type: ignore[arg-type]
            file=file_path,
            start_line=start,
            end_line=end,
            signature=f"class {name}",
            raw_code=raw,
        )

    def _callable(
        self,
        file_path: str,
        groups: Tuple[str, str, Optional[str]],
        kind: str,
        start: int,
        end: int,
        raw: str,
        visibility: str = "public",
        is_static: bool = False,
    ) -> Symbol:
        name, raw_params, return_type = groups
        params = tuple(parse_parameters(raw_params, "name_colon"))
        return_type = return_type.strip() if return_type and kind != "constructor" else None
        return Symbol(
            name=name,
            kind=kind,  # type: ignore[arg-type]
            file=file_path,
            start_line=start,
            end_line=end,
            signature=render_signature(name, params, return_type),
            return_type=return_type,
            parameters=params,
            visibility=visibility,  # type: ignore[arg-type]
            is_static=is_static,
            raw_code=raw,
        )


class GoRegexExtractor(RegexExtractor):
    language = "go"

    _FUNC_RE = re.compile(
        r"^func\s+(?:\(\s*(?:\w+\s+)?\*?(\w+)(?:\[[^\]]*\])?\s*\)\s*)?(\w+)\s*"
        r"(?:\[[^\]]*\])?\s*\(",
        re.MULTILINE,
    )
    _FUNC_TAIL_RE = re.compile(r"\s*([^{\n]*)\{")
    _TYPE_RE = re.compile(r"^type\s+(\w+)\s+(?:struct|interface)\b", re.MULTILINE)

    def extract(self, source: str, file_path: str) -> List[Symbol]:
        index = LineIndex(source)
        symbols: List[Symbol] = []

        for match in self._FUNC_RE.finditer(source):
            receiver, name = match.group(1, 2)
            found = self._parameter_list(source, match.end() - 1, self._FUNC_TAIL_RE)
            if found is None:
                continue
            raw_params, tail = found
            params = tuple(parse_parameters(raw_params, "name_first"))
            return_type = tail.group(1).strip() or None
            start, end, raw = self._brace_span(index, match.start(), tail.end() - 1)
            symbols.append(Symbol(
                name=name,
                kind="method" if receiver else "function",
                file=file_path,
                start_line=start,
                end_line=end,
                signature=render_signature(name, params, return_type),
                return_type=return_type,
                parameters=params,
                visibility=_go_visibility(name),  # type: ignore[arg-type]
                raw_code=raw,
            ))

        for match in self._TYPE_RE.finditer(source):
            start, end, raw = self._brace_span(index, match.start(), match.end())
            symbols.append(Symbol(
                name=match.group(1),
                kind="class",
                file=file_path,
                start_line=start,
                end_line=end,
                signature=f"type {match.group(1)}",
                visibility=_go_visibility(match.group(1)),  # type: ignore[arg-type]
                raw_code=raw,
            ))
        return symbols


class RustRegexExtractor(RegexExtractor):
    language = "rust"

    _FN_RE = re.compile(
        r"^[ \t]*(pub(?:\([^)]*\))?\s+)?(?:(?:async|const|unsafe|extern\s+\"[^\"]*\")\s+)*"
        r"fn\s+(\w+)\s*(?:<[^>]*>)?\s*\(",
        re.MULTILINE,
    )
    _FN_TAIL_RE = re.compile(r"\s*(?:->\s*([^{;\n]+?))?\s*(?:where[^{;]*)?[{;]")
    _TYPE_RE = re.compile(
        r"^[ \t]*(pub(?:\([^)]*\))?\s+)?(struct|enum|trait)\s+(\w+)",
        re.MULTILINE,
    )
    _IMPL_RE = re.compile(r"^[ \t]*impl\b[^{;]*\{", re.MULTILINE)
    _SELF_PARAMS = {"self", "&self", "&mut self", "mut self"}

    def extract(self, source: str, file_path: str) -> List[Symbol]:
        index = LineIndex(source)
        symbols: List[Symbol] = []
        impl_spans = []
        for match in self._IMPL_RE.finditer(source):
            close = find_block_end(source, match.end() - 1, char_literals=False)
            if close is not None:
                impl_spans.append((match.end(), close))

        for match in self._FN_RE.finditer(source):
            pub, name = match.group(1, 2)
            found = self._parameter_list(
                source, match.end() - 1, self._FN_TAIL_RE, char_literals=False,
            )
            if found is None:
                continue
            raw_params, tail = found
            return_type = tail.group(1)
            parts = split_top_level(raw_params)
            params = tuple(parse_parameters(
                ", ".join(p for p in parts if p not in self._SELF_PARAMS), "name_colon",
            ))
            return_type = return_type.strip() if return_type else None
            in_impl = any(s <= match.start() <= e for s, e in impl_spans)
            start, end, raw = self._brace_span(
                index, match.start(), tail.end() - 1, char_literals=False,
            )
            symbols.append(Symbol(
                name=name,
                kind="method" if in_impl else "function",
                file=file_path,
                start_line=start,
                end_line=end,
                signature=render_signature(name, params, return_type),
                return_type=return_type,
                parameters=params,
                visibility="public" if pub else "private",
                is_static=in_impl and not any(p in self._SELF_PARAMS for p in parts),
                raw_code=raw,
            ))

        for match in self._TYPE_RE.finditer(source):
            pub, keyword, name = match.group(1, 2, 3)
            start, end, raw = self._brace_span(
                index, match.start(), match.end(), char_literals=False,
            )
            symbols.append(Symbol(
                name=name,
                kind="class",
                file=file_path,
                start_line=start,
                end_line=end,
                signature=f"{keyword} {name}",
                visibility="public" if pub else "private",
                raw_code=raw,
            ))
        return symbols


def _visibility(modifiers: Sequence[str], default: str) -> str:
    for modifier in modifiers:
        if modifier in ("public", "private", "protected"):
            return modifier
    return default


def _python_visibility(name: str) -> str:
    if name.startswith("_") and not (name.startswith("__") and name.endswith("__")):
        return "private"
    return "public"


def _go_visibility(name: str) -> str:
    return "public" if name[:1].isupper() else "private"


REGEX_EXTRACTORS: Dict[str, RegexExtractor] = {
    "java": JavaRegexExtractor(),
    "python": PythonRegexExtractor(),
    "javascript": JavaScriptRegexExtractor("javascript"),
    "typescript": JavaScriptRegexExtractor("typescript"),
    "go": GoRegexExtractor(),
    "rust": RustRegexExtractor(),
}


def get_regex_extractor(language: str) -> RegexExtractor:
    """Extractor for *language*; the Java extractor serves everything else."""
    return REGEX_EXTRACTORS.get(language, REGEX_EXTRACTORS["java"])


# ===================================================================
# Calls
# ===================================================================

_CALL_RE = re.compile(r"\b([A-Za-z_]\w*)\s*\(")
_CALLER_KINDS = CALLABLE_KINDS + ("constructor",)


def extract_calls_regex(symbols: Sequence[Symbol], file_path: Optional[str] = None) -> List[CallEdge]:
    """Find ``identifier(`` occurrences inside each callable's own body.

    Constructors are scanned as callers but never become callees. No scoping
    is attempted: any occurrence naming another known method or function
    produces an edge.
    """
    known = {s.name for s in symbols if s.kind in CALLABLE_KINDS}
    edges: List[CallEdge] = []
    for symbol in symbols:
        if symbol.kind not in _CALLER_KINDS or not symbol.raw_code:
            continue
        body = symbol.raw_code
        for match in _CALL_RE.finditer(body):
            callee = match.group(1)
            if callee == symbol.name or callee in _CONTROL_KEYWORDS or callee not in known:
                continue
            edges.append(CallEdge(
                caller=symbol.name,
                callee=callee,
                file=file_path or symbol.file,
                line=symbol.start_line + body.count("\n", 0, match.start()),
            ))
    return edges
