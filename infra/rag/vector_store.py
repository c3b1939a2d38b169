import json
import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, List, Optional

import numpy as np
from pydantic import ValidationError

from app.settings import settings
from domain.schemas import Chunk
from infra.rag.embeddings import HASH_SCHEME

logger = logging.getLogger(__name__)


@dataclass
class Corpus:
    chunks: List[Chunk] = field(default_factory=list)
    scheme: str = HASH_SCHEME
    dim: Optional[int] = None
    model: Optional[str] = None
    created_at: Optional[str] = None
    # one row per chunk, stacked once at load
    matrix: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))

    def rows_with_tag(self, tag: str) -> np.ndarray:
        return np.array([i for i, c in enumerate(self.chunks) if tag in c.tags], dtype=np.intp)


class CorpusStore:
    """Owns the on-disk vector store file and its in-memory copy.

    The file is read once and the parsed corpus is kept until `invalidate()`.
    Readers never mutate the cached corpus.
    """

    def __init__(self, path: str):
        self.path = path
        self._corpus: Optional[Corpus] = None
        self._lock = threading.Lock()

    def load(self) -> Corpus:
        if self._corpus is not None:
            return self._corpus
        with self._lock:
            if self._corpus is None:
                self._corpus = self._read()
        return self._corpus

    def invalidate(self) -> None:
        with self._lock:
            self._corpus = None

    def _read(self) -> Corpus:
        if not os.path.isfile(self.path):
            logger.info("No vector store at %s, retrieval will return placeholders", self.path)
            return Corpus()
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
            desc = raw.get("embedding") or {}
            chunks = [Chunk.model_validate(c) for c in raw.get("chunks", [])]
            matrix = np.asarray([c.embedding for c in chunks], dtype=np.float64) if chunks else np.zeros((0, 0))
        except (OSError, ValueError, AttributeError, ValidationError) as exc:
            logger.warning("Vector store %s unreadable, treating as empty: %s", self.path, exc)
            return Corpus()
        logger.info("Loaded %d chunks from %s", len(chunks), self.path)
        return Corpus(
            chunks=chunks,
            scheme=desc.get("scheme", HASH_SCHEME),
            dim=desc.get("dim"),
            model=desc.get("model"),
            created_at=raw.get("created_at"),
            matrix=matrix,
        )

    def save(self, chunks: List[Chunk], scheme: str = HASH_SCHEME,
             dim: Optional[int] = None, model: Optional[str] = None) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        payload: Dict = {
            "created_at": datetime.now(timezone.utc).isoformat(),
            "embedding": {"scheme": scheme, "dim": dim, "model": model},
            "chunks": [c.model_dump() for c in chunks],
        }
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        self.invalidate()


@lru_cache
def get_corpus_store() -> CorpusStore:
    return CorpusStore(settings.VECTOR_STORE_PATH)
