"""Symbol and call extraction facade.

The extraction tier is an explicit strategy value chosen once:
``Structural(engine)`` when tree-sitter grammars loaded, ``Fallback(reason)``
otherwise. Both ``extract`` and ``extract_calls`` never raise; any failure
degrades to the regex tier, and a failing regex tier yields nothing.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from .config_manager import structural_parsing_enabled
from .languages import detect_language
from .models import CallEdge, ParsedFile, Symbol
from .parser import ParserEngine, try_init_parser_engine
from .regex_extractors import extract_calls_regex, get_regex_extractor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Structural:
    engine: ParserEngine


@dataclass(frozen=True)
class Fallback:
    reason: str


ExtractionStrategy = Union[Structural, Fallback]

_default_strategy: Optional[ExtractionStrategy] = None
_strategy_lock = threading.Lock()


def default_strategy() -> ExtractionStrategy:
    """Process-wide strategy; parser initialisation is attempted only once."""
    global _default_strategy
    with _strategy_lock:
        if _default_strategy is None:
            if not structural_parsing_enabled():
                _default_strategy = Fallback("structural parsing disabled in config")
            else:
                init = try_init_parser_engine()
                if init.engine is not None:
                    _default_strategy = Structural(init.engine)
                else:
                    logger.warning(
                        "Structural parsing unavailable, using regex extraction: %s",
                        init.error,
                    )
                    _default_strategy = Fallback(init.error or "parser unavailable")
        return _default_strategy


def reset_default_strategy() -> None:
    """Forget the cached strategy so the next call re-initialises."""
    global _default_strategy
    with _strategy_lock:
        _default_strategy = None


class SymbolExtractor:
    """Extracts symbols and call edges from a single source file."""

    def __init__(self, strategy: Optional[ExtractionStrategy] = None) -> None:
        self.strategy = strategy if strategy is not None else default_strategy()

    @property
    def structural(self) -> bool:
        return isinstance(self.strategy, Structural)

    def _engine_for(self, language: str) -> Optional[ParserEngine]:
        if isinstance(self.strategy, Structural) and self.strategy.engine.supports_language(language):
            return self.strategy.engine
        return None

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------

    def extract(self, source: str, file_path: str) -> ParsedFile:
        source = _as_text(source)
        language = detect_language(file_path, source)
        engine = self._engine_for(language)
        if engine is not None:
            try:
                symbols, had_errors = engine.extract_symbols(source, file_path, language)
                if symbols or not had_errors:
                    return ParsedFile(file_path, language, symbols, "structural")
                logger.debug("Damaged syntax tree without symbols for %s, using regex tier", file_path)
            except Exception as exc:
                logger.debug("Structural extraction failed for %s: %s", file_path, exc)
        return self._extract_regex(source, file_path, language)

    def extract_regex(self, source: str, file_path: str) -> ParsedFile:
        """Run only the regex tier, whatever the strategy."""
        source = _as_text(source)
        return self._extract_regex(source, file_path, detect_language(file_path, source))

    def _extract_regex(self, source: str, file_path: str, language: str) -> ParsedFile:
        try:
            symbols = get_regex_extractor(language).extract(source, file_path)
        except Exception as exc:
            logger.warning("Regex extraction failed for %s: %s", file_path, exc)
            symbols = []
        return ParsedFile(file_path, language, symbols, "regex")

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def extract_calls(
        self,
        source: str,
        symbols: Sequence[Symbol],
        file_path: Optional[str] = None,
    ) -> List[CallEdge]:
        """Call edges whose callee names one of *symbols*' methods or functions."""
        source = _as_text(source)
        if not symbols:
            return []
        path = file_path or symbols[0].file
        language = detect_language(path)
        engine = self._engine_for(language)
        if engine is not None:
            try:
                return engine.extract_calls(source, symbols, path, language)
            except Exception as exc:
                logger.debug("Structural call extraction failed for %s: %s", path, exc)
        try:
            return extract_calls_regex(symbols, file_path)
        except Exception as exc:
            logger.warning("Call extraction failed for %s: %s", path, exc)
            return []


def _as_text(source: Union[str, bytes, None]) -> str:
    if source is None:
        return ""
    if isinstance(source, bytes):
        return source.decode("utf-8", errors="replace")
    return source
