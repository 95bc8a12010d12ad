"""Embedding generation for extracted symbols.

Supported models (configure via ``[embeddings] model`` in ``config.toml``):

========== ====================================== ====== ==============================
Key        Backend                                Dim    Notes
========== ====================================== ====== ==============================
char-hash  (none)                                 128    Default, character trigrams
token-hash (none)                                 256    Identifier tokens, blake2b
minilm     sentence-transformers/all-MiniLM-L6-v2 384    Tiny and fast
jina-code  jinaai/jina-embeddings-v2-base-code    768    Code-aware
bge-base   BAAI/bge-base-en-v1.5                  768    General purpose
========== ====================================== ====== ==============================

Transformer models need the ``embeddings`` extra (``torch`` + ``transformers``)
and are cached in ``~/.droog/models``. Without them the factory falls back to
``char-hash``. Vectors from different models are never comparable.
"""

from __future__ import annotations

import logging
import math
import re
from hashlib import blake2b
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .config import DEFAULT_EMBEDDING_MODEL, MODEL_CACHE_DIR
from .models import Embedding, Symbol

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_WHITESPACE_RE = re.compile(r"\s+")

SNIPPET_CHARS = 200


# ===================================================================
# Model Registry
# ===================================================================

EMBEDDING_MODELS: Dict[str, Dict[str, Any]] = {
    "char-hash": {
        "name": "Character Hash",
        "hf_id": None,
        "dim": 128,
        "pooling": None,
        "trust_remote_code": False,
    },
    "token-hash": {
        "name": "Token Hash",
        "hf_id": None,
        "dim": 256,
        "pooling": None,
        "trust_remote_code": False,
    },
    "minilm": {
        "name": "MiniLM L6 v2",
        "hf_id": "sentence-transformers/all-MiniLM-L6-v2",
        "dim": 384,
        "max_tokens": 256,
        "pooling": "mean",
        "trust_remote_code": False,
    },
    "jina-code": {
        "name": "Jina Embeddings v2 Code",
        "hf_id": "jinaai/jina-embeddings-v2-base-code",
        "dim": 768,
        "max_tokens": 8192,
        "pooling": "mean",
        "trust_remote_code": True,
    },
    "bge-base": {
        "name": "BGE Base EN v1.5",
        "hf_id": "BAAI/bge-base-en-v1.5",
        "dim": 768,
        "max_tokens": 512,
        "pooling": "cls",
        "trust_remote_code": False,
    },
}


# ===================================================================
# Hash models (no ML dependencies)
# ===================================================================

class CharHashEmbeddingModel:
    """Deterministic character-trigram hashing.

    Each trigram is folded with a polynomial string hash into one of ``dim``
    buckets. Texts sharing most of their characters in the same order land
    close together, which is what duplicate detection needs from a model
    that has no notion of semantics.
    """

    model_key = "char-hash"

    def __init__(self, dim: int = 128) -> None:
        self.dim = dim

    def embed_text(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        if not text:
            return vec
        padded = f"  {text}"
        for i in range(len(padded) - 2):
            h = 0
            for ch in padded[i:i + 3]:
                h = (h * 31 + ord(ch)) % 2**32
            vec[h % self.dim] += 1.0
        return _l2_normalize(vec)

    def embed_many(self, texts: Iterable[str]) -> List[List[float]]:
        return [self.embed_text(text) for text in texts]

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return self.embed_many(texts)


class TokenHashEmbeddingModel:
    """Deterministic identifier-token hashing with blake2b."""

    model_key = "token-hash"

    def __init__(self, dim: int = 256) -> None:
        self.dim = dim

    def embed_text(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        tokens = _TOKEN_RE.findall(text.lower())
        if not tokens:
            return vec
        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dim
            sign = 1.0 if (digest[4] & 1) == 0 else -1.0
            vec[idx] += sign
        return _l2_normalize(vec)

    def embed_many(self, texts: Iterable[str]) -> List[List[float]]:
        return [self.embed_text(text) for text in texts]

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return self.embed_many(texts)


# ===================================================================
# TransformerEmbedder
# ===================================================================

class TransformerEmbedder:
    """Local HuggingFace encoder with mean or ``[CLS]`` pooling.

    Weights download on first use into the model cache directory.
    """

    def __init__(
        self,
        model_key: str,
        cache_dir: Optional[Path] = None,
        device: str = "cpu",
    ) -> None:
        spec = EMBEDDING_MODELS.get(model_key)
        if spec is None or spec["hf_id"] is None:
            raise ValueError(f"'{model_key}' is not a transformer embedding model")

        self.model_key = model_key
        self.hf_id: str = spec["hf_id"]
        self.dim: int = spec["dim"]
        self.max_length: int = spec["max_tokens"]
        self.pooling: str = spec["pooling"]
        self.trust_remote_code: bool = spec["trust_remote_code"]
        self.cache_dir = cache_dir or MODEL_CACHE_DIR
        self.device = device
        self._model: Any = None
        self._tokenizer: Any = None

    def _load_model(self) -> None:
        if self._model is not None:
            return

        try:
            import torch  # noqa: F401
            from transformers import AutoModel, AutoTokenizer
        except ImportError:
            raise ImportError(
                "torch and transformers are required for neural embeddings.\n"
                "Install with:  pip install droog[embeddings]"
            )

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Loading embedding model '%s' (%s)", self.model_key, self.hf_id)
        try:
            self._tokenizer = AutoTokenizer.from_pretrained(
                self.hf_id,
                cache_dir=str(self.cache_dir),
                trust_remote_code=self.trust_remote_code,
            )
            self._model = AutoModel.from_pretrained(
                self.hf_id,
                cache_dir=str(self.cache_dir),
                trust_remote_code=self.trust_remote_code,
            )
            self._model.eval()
            self._model.to(self.device)
        except Exception as exc:
            raise RuntimeError(
                f"Failed to load embedding model '{self.model_key}' ({self.hf_id}): {exc}"
            ) from exc

    def _pool(self, last_hidden_states: Any, attention_mask: Any) -> Any:
        if self.pooling == "cls":
            return last_hidden_states[:, 0]
        mask = attention_mask.unsqueeze(-1).expand(last_hidden_states.size()).float()
        summed = (last_hidden_states * mask).sum(dim=1)
        return summed / mask.sum(dim=1).clamp(min=1e-9)

    def _encode(self, texts: List[str]) -> List[List[float]]:
        import torch
        import torch.nn.functional as F

        self._load_model()
        batch = self._tokenizer(
            texts,
            max_length=self.max_length,
            padding=True,
            truncation=True,
            return_tensors="pt",
        )
        batch = {k: v.to(self.device) for k, v in batch.items()}
        with torch.no_grad():
            outputs = self._model(**batch)
        pooled = self._pool(outputs.last_hidden_state, batch["attention_mask"])
        return F.normalize(pooled, p=2, dim=1).cpu().tolist()

    def embed_text(self, text: str) -> List[float]:
        return self._encode([text])[0]

    def embed_documents(self, texts: List[str], batch_size: int = 16) -> List[List[float]]:
        vectors: List[List[float]] = []
        for i in range(0, len(texts), batch_size):
            vectors.extend(self._encode(texts[i:i + batch_size]))
        return vectors

    def embed_many(self, texts: Iterable[str]) -> List[List[float]]:
        return self.embed_documents(list(texts))


Embedder = Union[CharHashEmbeddingModel, TokenHashEmbeddingModel, TransformerEmbedder]


# ===================================================================
# Factory
# ===================================================================

def get_embedder(
    model_key: Optional[str] = None,
    cache_dir: Optional[Path] = None,
    device: str = "cpu",
) -> Embedder:
    """Return the configured embedder.

    Resolution order: explicit ``model_key``, then ``[embeddings].model``
    from the config file, then ``char-hash``. Unknown keys and transformer
    models without ``torch``/``transformers`` fall back to ``char-hash``
    with a warning.
    """
    if model_key is None:
        from .config_manager import load_embedding_config
        model_key = load_embedding_config().get("model") or DEFAULT_EMBEDDING_MODEL

    if model_key == "char-hash":
        return CharHashEmbeddingModel()
    if model_key == "token-hash":
        return TokenHashEmbeddingModel()

    if model_key not in EMBEDDING_MODELS:
        logger.warning("Unknown embedding model '%s', falling back to char-hash.", model_key)
        return CharHashEmbeddingModel()

    try:
        import torch  # noqa: F401
        import transformers  # noqa: F401
    except ImportError:
        logger.warning(
            "Embedding model '%s' requires torch + transformers. "
            "Falling back to char-hash. Install with: pip install droog[embeddings]",
            model_key,
        )
        return CharHashEmbeddingModel()
    return TransformerEmbedder(model_key=model_key, cache_dir=cache_dir, device=device)


# ===================================================================
# Generator
# ===================================================================

def symbol_to_text(symbol: Symbol) -> str:
    """Flatten a symbol into the text that gets embedded."""
    text = f"{symbol.kind} {symbol.name}"
    if symbol.signature:
        text += f" {symbol.signature}"
    if symbol.return_type:
        text += f" returns {symbol.return_type}"
    if symbol.parameters:
        params = ", ".join(f"{p.type} {p.name}".strip() for p in symbol.parameters)
        text += f" parameters: {params}"
    if symbol.raw_code:
        snippet = _WHITESPACE_RE.sub(" ", symbol.raw_code[:SNIPPET_CHARS]).strip()
        text += f" code: {snippet}"
    return text


class EmbeddingGenerator:
    """Turns symbols into :class:`Embedding` records with one embedder."""

    def __init__(self, embedder: Optional[Embedder] = None) -> None:
        self.embedder = embedder or get_embedder()

    @property
    def model_key(self) -> str:
        return getattr(self.embedder, "model_key", DEFAULT_EMBEDDING_MODEL)

    def generate_embedding(self, symbol: Symbol) -> List[float]:
        return self.embedder.embed_text(symbol_to_text(symbol))

    def generate_embeddings(self, symbols: Sequence[Symbol]) -> List[Embedding]:
        """Embed every symbol; failures are logged and skipped."""
        embeddings: List[Embedding] = []
        for symbol in symbols:
            try:
                vector = self.generate_embedding(symbol)
            except Exception as exc:
                logger.warning("Failed to generate embedding for %s: %s", symbol.name, exc)
                continue
            embeddings.append(Embedding(symbol=symbol, vector=vector, model_key=self.model_key))
        return embeddings


# ===================================================================
# Utility
# ===================================================================

def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Cosine similarity in ``[-1, 1]``.

    Empty, zero-norm or different-length vectors give ``0.0``.
    """
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a < 1e-12 or norm_b < 1e-12:
        return 0.0
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


def _l2_normalize(vec: List[float]) -> List[float]:
    """Unit-normalise *vec*; a zero vector is returned unchanged."""
    norm = math.sqrt(sum(v * v for v in vec))
    if norm < 1e-12:
        return vec
    return [v / norm for v in vec]
