"""Core data models shared by extraction, indexing and duplicate detection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

SymbolKind = Literal["class", "method", "function", "constructor", "field"]
Visibility = Literal["public", "private", "protected", "package"]
MatchType = Literal["exact", "similar", "pattern"]

CALLABLE_KINDS = ("method", "function")

# Caller recorded for invocations outside any callable declaration
MODULE_CALLER = "<module>"


@dataclass(frozen=True)
class Parameter:
    name: str
    type: str = ""


@dataclass(frozen=True)
class Symbol:
    """One declared program element extracted from a file."""

    name: str
    kind: SymbolKind
    file: str
    start_line: int
    end_line: int
    signature: str = ""
    return_type: Optional[str] = None
    parameters: Tuple[Parameter, ...] = ()
    visibility: Visibility = "public"
    is_static: bool = False
    raw_code: str = ""

    @property
    def key(self) -> str:
        """Identity used by vector stores (overloads differ by start line)."""
        return f"{self.file}:{self.name}:{self.kind}:{self.start_line}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "file": self.file,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "signature": self.signature,
            "return_type": self.return_type,
            "parameters": [{"name": p.name, "type": p.type} for p in self.parameters],
            "visibility": self.visibility,
            "is_static": self.is_static,
            "raw_code": self.raw_code,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Symbol":
        return cls(
            name=payload["name"],
            kind=payload["kind"],
            file=payload["file"],
            start_line=int(payload["start_line"]),
            end_line=int(payload["end_line"]),
            signature=payload.get("signature", ""),
            return_type=payload.get("return_type"),
            parameters=tuple(
                Parameter(name=p["name"], type=p.get("type", ""))
                for p in payload.get("parameters", [])
            ),
            visibility=payload.get("visibility", "public"),
            is_static=bool(payload.get("is_static", False)),
            raw_code=payload.get("raw_code", ""),
        )


@dataclass(frozen=True)
class CallEdge:
    caller: str
    callee: str
    file: str
    line: int

    def to_dict(self) -> Dict[str, Any]:
        return {"caller": self.caller, "callee": self.callee, "file": self.file, "line": self.line}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "CallEdge":
        return cls(
            caller=payload["caller"],
            callee=payload["callee"],
            file=payload["file"],
            line=int(payload["line"]),
        )


@dataclass
class ParsedFile:
    file_path: str
    language: str
    symbols: List[Symbol] = field(default_factory=list)
    strategy: Literal["structural", "regex"] = "regex"


@dataclass
class CodeIndex:
    """Aggregate of every indexed symbol and call edge.

    ``symbol_map`` only keeps the most recently indexed symbol of a name.
    """

    symbols: List[Symbol] = field(default_factory=list)
    call_graph: List[CallEdge] = field(default_factory=list)
    file_map: Dict[str, List[Symbol]] = field(default_factory=dict)
    symbol_map: Dict[str, Symbol] = field(default_factory=dict)

    def copy(self) -> "CodeIndex":
        return CodeIndex(
            symbols=list(self.symbols),
            call_graph=list(self.call_graph),
            file_map={path: list(syms) for path, syms in self.file_map.items()},
            symbol_map=dict(self.symbol_map),
        )


@dataclass
class Embedding:
    symbol: Symbol
    vector: List[float]
    model_key: str = "char-hash"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol.to_dict(),
            "vector": list(self.vector),
            "model_key": self.model_key,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Embedding":
        return cls(
            symbol=Symbol.from_dict(payload["symbol"]),
            vector=[float(v) for v in payload["vector"]],
            model_key=payload.get("model_key", "char-hash"),
        )


@dataclass
class DuplicateMatch:
    symbol1: Symbol
    symbol2: Symbol
    similarity: float
    type: MatchType
    reason: str


def render_signature(
    name: str,
    parameters: Sequence[Parameter],
    return_type: Optional[str] = None,
) -> str:
    """Render ``"<return> <name>(<type> <name>, ...)"`` omitting empty parts."""
    params = ", ".join(f"{p.type} {p.name}".strip() for p in parameters)
    head = f"{return_type} {name}" if return_type else name
    return f"{head}({params})"
