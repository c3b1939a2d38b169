from collections import Counter
from fastapi import APIRouter, Depends
from infra.rag.vector_store import CorpusStore, get_corpus_store

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/vector-store/health")
def vector_store_health(store: CorpusStore = Depends(get_corpus_store)):
    corpus = store.load()
    tags = Counter(tag for chunk in corpus.chunks for tag in chunk.tags)
    return {
        "status": "ok" if corpus.chunks else "empty",
        "path": store.path,
        "chunk_count": len(corpus.chunks),
        "embedding_scheme": corpus.scheme,
        "tags": dict(tags),
        "created_at": corpus.created_at,
    }
