"""Build the local vector store from reference documents.

Usage:
    python -m ingest.ingest_all docs/job_description.pdf:job_description \
        docs/case_brief.pdf:case_brief docs/rubric_cv.pdf:rubric_cv \
        docs/rubric_project.pdf:rubric_project

Each argument is `path:tag[,tag...]`. Existing chunks are replaced.
"""
import os
import sys
import asyncio
import logging
from typing import List, Optional, Tuple

from app.settings import Settings, settings
from domain.errors import RemoteCallError, TextExtractionError
from domain.schemas import CONTEXT_TYPES, Chunk
from infra.rag.embeddings import HASH_SCHEME, OPENAI_SCHEME, provider_embeddings_available
from infra.rag.retriever import ingest_document
from infra.rag.vector_store import CorpusStore, get_corpus_store

log = logging.getLogger("ingest_all")


def parse_source_arg(spec: str) -> Tuple[str, List[str]]:
    path, sep, tag_str = spec.rpartition(":")
    if not sep or not path or not tag_str:
        raise ValueError(f"expected path:tag, got {spec!r}")
    tags = [t.strip() for t in tag_str.split(",") if t.strip()]
    unknown = [t for t in tags if t not in CONTEXT_TYPES]
    if unknown:
        raise ValueError(f"unknown tag(s) {unknown}; expected one of {list(CONTEXT_TYPES)}")
    return path, tags


async def main(sources: List[str], store: Optional[CorpusStore] = None,
               cfg: Settings = settings, use_provider: bool = True) -> List[Chunk]:
    store = store or get_corpus_store()
    scheme = OPENAI_SCHEME if use_provider and provider_embeddings_available(cfg) else HASH_SCHEME
    log.info(f"Embedding scheme: {scheme}")

    chunks: List[Chunk] = []
    for spec in sources:
        try:
            path, tags = parse_source_arg(spec)
        except ValueError as e:
            log.warning(f"Skip invalid source {spec}: {e}")
            continue
        if not os.path.isfile(path):
            log.warning(f"File not found: {path}")
            continue
        try:
            chunks.extend(await ingest_document(path, tags, scheme, cfg))
        except (OSError, TextExtractionError, RemoteCallError) as e:
            log.warning(f"Failed to ingest {path}: {e}")

    if not chunks:
        log.error(f"No chunks ingested, keeping existing vector store at {store.path}")
        return chunks

    dim = len(chunks[0].embedding)
    model = cfg.OPENAI_EMBEDDING_MODEL if scheme == OPENAI_SCHEME else None
    store.save(chunks, scheme=scheme, dim=dim, model=model)
    log.info(f"Vector store saved to {store.path}. Total chunks: {len(chunks)}")
    return chunks


if __name__ == "__main__":
    import argparse
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    for noisy_logger in ("httpx", "httpcore"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    parser = argparse.ArgumentParser(
        description="Ingest job description, case brief and rubric documents into the local vector store")
    parser.add_argument("sources", nargs="+",
                        help="path:tag pairs, tag one of " + ", ".join(CONTEXT_TYPES))
    parser.add_argument("--hash-only", action="store_true",
                        help="Use the deterministic hash embedding even when a provider key is set")
    args = parser.parse_args()
    if not asyncio.run(main(args.sources, use_provider=not args.hash_only)):
        sys.exit(1)
