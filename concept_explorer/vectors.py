"""
Vector Store for ConceptExplorer
================================

Holds per-sentence embeddings supplied by an external embedder. The store
is a pure data holder: it never re-embeds, and nothing is cached across
analysis runs.

An embedding provider is either an object with an ``embed(text)`` method
or a plain callable ``text -> vector``. It must be deterministic for
identical text within a run.

Text-unit windows:
  Sentence vectors can be smoothed over neighbouring sentences of the same
  juror. A window of 1 is the raw sentence; a window of w averages the w
  sentences centered on it (clipped at the juror's block boundaries).

Basic Usage:
    >>> store = VectorStore.from_records(records, embedder=model)
    >>> X = store.unit_vectors(window=2)   # (n, d), rows L2-normalized

License: MIT
"""

import numpy as np
from numpy.linalg import norm
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .config import STANCES
from .errors import InputError, ExternalServiceError
from .models import Sentence

__all__ = [
    'VectorStore',
    'normalize_rows',
    'get_embed_fn',
    'embed_phrases',
]


def normalize_rows(X: np.ndarray) -> np.ndarray:
    """L2-normalize the rows of X (zero rows stay zero)."""
    X = np.asarray(X, dtype=float)
    if X.ndim == 1:
        return X / (norm(X) + 1e-10)
    return X / (norm(X, axis=1, keepdims=True) + 1e-10)


def get_embed_fn(provider: Any) -> Callable[[str], np.ndarray]:
    """Return a text -> vector function for an embedder object or callable."""
    if provider is None:
        raise InputError("An embedding provider is required for sentences without embeddings")
    if hasattr(provider, 'embed'):
        return provider.embed
    if callable(provider):
        return provider
    raise InputError(f"Embedding provider must be callable or have .embed(), got {type(provider)!r}")


def embed_phrases(provider: Any, phrases: Sequence[str], timeout: Optional[float] = None) -> np.ndarray:
    """
    Embed a list of phrases with the provider.

    The whole batch runs in a worker thread and is abandoned after
    `timeout` seconds (None waits indefinitely).

    Raises:
        ExternalServiceError: if the provider fails or times out
    """
    embed = get_embed_fn(provider)

    def run() -> List[np.ndarray]:
        vectors = []
        for phrase in phrases:
            try:
                vectors.append(np.asarray(embed(phrase), dtype=float))
            except Exception as e:
                raise ExternalServiceError(f"Embedding failed for {phrase!r}: {e}") from e
        return vectors

    pool = ThreadPoolExecutor(max_workers=1)
    future = pool.submit(run)
    try:
        vectors = future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        raise ExternalServiceError(f"Embedding {len(phrases)} phrases timed out after {timeout}s")
    finally:
        pool.shutdown(wait=False)
    dims = {v.size for v in vectors}
    if len(dims) > 1:
        raise ExternalServiceError(f"Embedder returned vectors of mixed dimensions {sorted(dims)}")
    return np.vstack([v.ravel() for v in vectors]) if vectors else np.zeros((0, 0))


# =============================================================================
# Vector Store
# =============================================================================

class VectorStore:
    """
    Read-only store of stance-tagged sentences and their embeddings.

    Attributes:
        sentences: Input sentences in corpus order
        ids, texts, jurors, stances: Per-sentence columns
        embeddings: (n, d) row-normalized embedding matrix
        dim: Embedding dimension
    """

    def __init__(self, sentences: Sequence[Sentence]):
        if not sentences:
            raise InputError("Corpus is empty: at least one sentence is required")

        self.sentences = list(sentences)
        self.ids = [s.id for s in self.sentences]
        if len(set(self.ids)) != len(self.ids):
            raise InputError("Sentence ids must be unique")
        self.texts = [s.text for s in self.sentences]
        self.jurors = [s.juror for s in self.sentences]
        self.stances = [s.stance if s.stance in STANCES else 'neutral' for s in self.sentences]

        dims = {len(np.ravel(s.embedding)) for s in self.sentences}
        if len(dims) != 1:
            raise InputError(f"All embeddings must share one dimension, got {sorted(dims)}")
        self.dim = dims.pop()
        if self.dim == 0:
            raise InputError("Embeddings must be non-empty")

        raw = np.vstack([np.ravel(s.embedding).astype(float) for s in self.sentences])
        if not np.all(np.isfinite(raw)):
            raise InputError("Embeddings contain NaN or infinite values")
        self.embeddings = normalize_rows(raw)
        self.index = {sid: i for i, sid in enumerate(self.ids)}

        # Juror blocks in order of first appearance, sentences in corpus order
        self.juror_blocks: 'OrderedDict[str, List[int]]' = OrderedDict()
        for i, juror in enumerate(self.jurors):
            self.juror_blocks.setdefault(juror, []).append(i)

        self._unit_cache: Dict[int, np.ndarray] = {}

    @classmethod
    def from_records(
        cls,
        records: Iterable[Dict[str, Any]],
        embedder: Any = None,
        timeout: Optional[float] = None
    ) -> 'VectorStore':
        """
        Build a store from plain dicts.

        Each record needs 'juror' and 'text'; 'id' defaults to
        "<juror>:<position>", 'stance' to 'neutral'. Records without an
        'embedding' are embedded with `embedder` in one batch bounded by
        `timeout` seconds.
        """
        records = list(records)
        for pos, rec in enumerate(records):
            if 'juror' not in rec or 'text' not in rec:
                raise InputError(f"Record {pos} needs 'juror' and 'text' fields")

        missing = [pos for pos, rec in enumerate(records) if rec.get('embedding') is None]
        embedded: Dict[int, np.ndarray] = {}
        if missing:
            vectors = embed_phrases(embedder, [records[pos]['text'] for pos in missing], timeout)
            embedded = dict(zip(missing, vectors))

        sentences = []
        for pos, rec in enumerate(records):
            embedding = embedded[pos] if pos in embedded else rec['embedding']
            sentences.append(Sentence(
                id=str(rec.get('id', f"{rec['juror']}:{pos}")),
                juror=str(rec['juror']),
                text=str(rec['text']),
                stance=str(rec.get('stance', 'neutral')),
                embedding=np.asarray(embedding, dtype=float),
            ))
        return cls(sentences)

    def __len__(self) -> int:
        return len(self.sentences)

    def __repr__(self) -> str:
        return (f"VectorStore(sentences={len(self)}, jurors={len(self.juror_blocks)}, "
                f"dim={self.dim})")

    # =========================================================================
    # Text-Unit Windows
    # =========================================================================

    def unit_vectors(self, window: int = 1) -> np.ndarray:
        """
        Sentence vectors smoothed over a centered window within each juror.

        Args:
            window: Number of sentences per unit (1 = raw sentences)

        Returns:
            (n, d) row-normalized matrix aligned with self.ids
        """
        if window < 1:
            raise InputError(f"window must be >= 1, got {window}")
        if window == 1:
            return self.embeddings
        if window in self._unit_cache:
            return self._unit_cache[window]

        before = (window - 1) // 2
        after = window - 1 - before
        out = np.empty_like(self.embeddings)
        for rows in self.juror_blocks.values():
            for pos, row in enumerate(rows):
                lo = max(0, pos - before)
                hi = min(len(rows), pos + after + 1)
                out[row] = self.embeddings[rows[lo:hi]].mean(axis=0)
        out = normalize_rows(out)
        self._unit_cache[window] = out
        return out

    def juror_centroids(self, vectors: Optional[np.ndarray] = None) -> Dict[str, np.ndarray]:
        """Normalized mean sentence vector per juror."""
        X = self.embeddings if vectors is None else vectors
        return {
            juror: normalize_rows(X[rows].mean(axis=0))
            for juror, rows in self.juror_blocks.items()
        }
