import logging
import os
import re
from typing import Dict, List, Optional

import numpy as np

from app.settings import Settings, settings
from domain.errors import RemoteCallError, TextExtractionError
from domain.schemas import Chunk
from infra.pdf.parser import parse_pdf_text
from infra.rag.embeddings import (
    HASH_SCHEME,
    OPENAI_SCHEME,
    embed_texts,
    hash_embedding,
    provider_embeddings_available,
)
from infra.rag.vector_store import Corpus, CorpusStore, get_corpus_store

logger = logging.getLogger("evaluation_pipeline")

MIN_CHUNK_CHARS = 40
_BLANK_LINES = re.compile(r"\n{2,}")


def cosine_scores(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Cosine of each row against the query, over their common leading dimensions."""
    n = min(matrix.shape[1], query.shape[0])
    m, q = matrix[:, :n], query[:n]
    return m @ q / (np.linalg.norm(m, axis=1) * np.linalg.norm(q) + 1e-9)


def split_paragraphs(text: str, min_chars: int = MIN_CHUNK_CHARS) -> List[str]:
    parts = (p.strip() for p in _BLANK_LINES.split(text or ""))
    return [p for p in parts if len(p) > min_chars]


class Retriever:
    def __init__(self, store: Optional[CorpusStore] = None, cfg: Settings = settings):
        self.store = store or get_corpus_store()
        self.cfg = cfg

    async def _embed_query(self, corpus: Corpus, query: str) -> np.ndarray:
        dim = corpus.dim or self.cfg.EMBEDDING_DIM
        if corpus.scheme == OPENAI_SCHEME and provider_embeddings_available(self.cfg):
            try:
                return np.asarray((await embed_texts([query], OPENAI_SCHEME, self.cfg))[0], dtype=np.float64)
            except RemoteCallError as exc:
                logger.warning(f"Query embedding via provider failed, using hash fallback: {exc}")
        return hash_embedding(query, dim)

    async def retrieve(self, type: str, query: str, k: int = 5) -> List[str]:
        corpus = self.store.load()
        if not corpus.chunks:
            return [f"[NO_STORE] Provide ingestion first for type={type}"]
        rows = corpus.rows_with_tag(type)
        if not rows.size:
            return [f"[NO_MATCHING_CHUNKS type={type}]"]
        scores = cosine_scores(corpus.matrix[rows], await self._embed_query(corpus, query))
        # stable sort keeps corpus order among equal scores
        order = np.argsort(-scores, kind="stable")[:max(0, k)]
        return [corpus.chunks[rows[i]].text for i in order]

    async def retrieve_contexts(self, cv_text: str, project_text: str, k: Optional[int] = None) -> Dict[str, List[str]]:
        k = k if k is not None else self.cfg.RAG_TOP_K
        return {
            "job_description": await self.retrieve("job_description", cv_text, k),
            "rubric_cv": await self.retrieve("rubric_cv", cv_text, k),
            "case_brief": await self.retrieve("case_brief", project_text, k),
            "rubric_project": await self.retrieve("rubric_project", project_text, k),
        }


async def ingest_text(text: str, tags: List[str], source: str,
                      scheme: str = HASH_SCHEME, cfg: Settings = settings) -> List[Chunk]:
    parts = split_paragraphs(text)
    vectors = await embed_texts(parts, scheme, cfg)
    base = os.path.basename(source)
    return [
        Chunk(id=f"{base}-{i}", text=part, embedding=vec, tags=list(tags))
        for i, (part, vec) in enumerate(zip(parts, vectors))
    ]


def read_source_text(path: str) -> str:
    if path.lower().endswith(".pdf"):
        try:
            return parse_pdf_text(path)
        except Exception as exc:
            raise TextExtractionError(f"Failed to read {os.path.basename(path)}: {exc}") from exc
    with open(path, "r", encoding="utf-8") as fh:
        return fh.read()


async def ingest_document(path: str, tags: List[str], scheme: str = HASH_SCHEME,
                          cfg: Settings = settings) -> List[Chunk]:
    chunks = await ingest_text(read_source_text(path), tags, path, scheme, cfg)
    logger.info(f"Ingested {len(chunks)} chunks from {path} tags={tags}")
    return chunks
