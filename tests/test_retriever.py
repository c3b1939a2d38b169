"""
Tests for the local corpus, hash embeddings and top-k retrieval.
"""

import asyncio
import json

import numpy as np
import pytest

from infra.rag.embeddings import HASH_SCHEME, hash_embedding
from infra.rag.retriever import Retriever, cosine_scores, ingest_text, split_paragraphs
from infra.rag.vector_store import CorpusStore


class TestHashEmbedding:
    def test_deterministic(self):
        assert np.array_equal(hash_embedding("Python FastAPI backend"), hash_embedding("Python FastAPI backend"))

    def test_unit_norm(self):
        vec = hash_embedding("Python FastAPI backend with PostgreSQL")
        assert vec.shape == (256,)
        assert np.linalg.norm(vec) == pytest.approx(1.0)

    def test_case_and_punctuation_ignored(self):
        assert np.array_equal(hash_embedding("Node.js, Docker!"), hash_embedding("node js docker"))

    def test_empty_text_is_zero_vector(self):
        assert not hash_embedding("", 16).any()


class TestCosineScores:
    def test_identical_vectors(self):
        vec = hash_embedding("retrieval augmented generation")
        assert cosine_scores(vec[np.newaxis, :], vec)[0] == pytest.approx(1.0, abs=1e-6)

    def test_zero_vector_does_not_divide_by_zero(self):
        assert cosine_scores(np.zeros((1, 2)), np.zeros(2))[0] == 0.0

    def test_uses_common_prefix(self):
        scores = cosine_scores(np.array([[1.0, 0.0, 5.0]]), np.array([1.0, 0.0]))
        assert scores[0] == pytest.approx(1.0, abs=1e-6)

    def test_one_score_per_row(self):
        matrix = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        scores = cosine_scores(matrix, np.array([1.0, 0.0]))
        assert scores == pytest.approx([1.0, 0.0, 1 / np.sqrt(2)], abs=1e-6)


class TestSplitParagraphs:
    def test_blank_lines_split_and_short_parts_dropped(self):
        text = (
            "Backend engineers build APIs, databases and integrations for our platform.\n\n"
            "Short.\n\n\n"
            "Experience with cloud deployment on AWS or GCP is a strong plus for this role."
        )
        parts = split_paragraphs(text)
        assert len(parts) == 2
        assert parts[0].startswith("Backend engineers")
        assert parts[1].startswith("Experience with cloud")

    def test_empty(self):
        assert split_paragraphs("") == []


class TestCorpusStore:
    def test_missing_file_is_empty(self, corpus_store):
        assert corpus_store.load().chunks == []

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{ this is not json", encoding="utf-8")
        assert CorpusStore(str(path)).load().chunks == []

    def test_save_writes_descriptor(self, corpus_store, make_chunks, store_path):
        chunks = make_chunks([("Rubric text for CV technical skills assessment.", ["rubric_cv"])])
        corpus_store.save(chunks, scheme=HASH_SCHEME, dim=256)

        with open(store_path, encoding="utf-8") as fh:
            raw = json.load(fh)
        assert raw["embedding"] == {"scheme": "hash", "dim": 256, "model": None}
        assert raw["chunks"][0]["tags"] == ["rubric_cv"]
        assert "created_at" in raw

        corpus = corpus_store.load()
        assert corpus.scheme == "hash"
        assert corpus.dim == 256
        assert [c.id for c in corpus.chunks] == ["chunk-0"]
        assert corpus.matrix.shape == (1, 256)

    def test_load_is_cached_until_invalidated(self, corpus_store, make_chunks, store_path):
        corpus_store.save(make_chunks([("first corpus version text", ["case_brief"])]))
        first = corpus_store.load()
        assert corpus_store.load() is first

        other = CorpusStore(store_path)
        other.save(make_chunks([("a", ["case_brief"]), ("b", ["case_brief"])]))
        assert len(corpus_store.load().chunks) == 1

        corpus_store.invalidate()
        assert len(corpus_store.load().chunks) == 2


class TestRetriever:
    """Placeholders, ordering and tag filtering."""

    def test_empty_store_returns_single_placeholder(self, corpus_store, mock_settings):
        result = asyncio.run(Retriever(corpus_store, mock_settings).retrieve("rubric_cv", "python", 3))
        assert result == ["[NO_STORE] Provide ingestion first for type=rubric_cv"]

    def test_no_matching_tag_placeholder(self, corpus_store, make_chunks, mock_settings):
        corpus_store.save(make_chunks([("Job description for backend role", ["job_description"])]))
        result = asyncio.run(Retriever(corpus_store, mock_settings).retrieve("rubric_cv", "python", 3))
        assert result == ["[NO_MATCHING_CHUNKS type=rubric_cv]"]

    def test_top_k_ordered_by_similarity(self, corpus_store, make_chunks, mock_settings):
        texts = [
            "Evaluate documentation quality and README completeness",
            "Python FastAPI backend service with PostgreSQL database",
            "Creativity and extra features beyond requirements",
            "Resilience with retries timeouts and error handling",
            "Correctness of prompt design and chaining",
        ]
        corpus_store.save(make_chunks([(t, ["rubric_project"]) for t in texts]))
        query = "Python FastAPI backend service with PostgreSQL database"

        result = asyncio.run(Retriever(corpus_store, mock_settings).retrieve("rubric_project", query, 2))

        qvec = hash_embedding(query)
        scores = cosine_scores(np.array([hash_embedding(t) for t in texts]), qvec)
        expected = [texts[i] for i in np.argsort(-scores, kind="stable")[:2]]
        assert len(result) == 2
        assert result == expected
        assert result[0] == query

    def test_ties_keep_corpus_order(self, corpus_store, make_chunks, mock_settings):
        corpus_store.save(make_chunks([
            ("alpha beta gamma", ["case_brief"]),
            ("gamma beta alpha", ["case_brief"]),
            ("beta gamma alpha", ["case_brief"]),
        ]))
        result = asyncio.run(Retriever(corpus_store, mock_settings).retrieve("case_brief", "alpha", 3))
        assert result == ["alpha beta gamma", "gamma beta alpha", "beta gamma alpha"]

    def test_only_tagged_chunks_considered(self, corpus_store, make_chunks, mock_settings):
        corpus_store.save(make_chunks([
            ("backend python role", ["job_description"]),
            ("backend python rubric", ["rubric_cv"]),
        ]))
        result = asyncio.run(Retriever(corpus_store, mock_settings).retrieve("rubric_cv", "backend python", 5))
        assert result == ["backend python rubric"]

    def test_retrieve_contexts_covers_all_types(self, corpus_store, mock_settings):
        contexts = asyncio.run(Retriever(corpus_store, mock_settings).retrieve_contexts("cv", "project"))
        assert set(contexts) == {"job_description", "rubric_cv", "case_brief", "rubric_project"}
        assert all(len(v) == 1 and v[0].startswith("[NO_STORE]") for v in contexts.values())


class TestIngestText:
    def test_chunks_tagged_and_named_after_source(self, mock_settings):
        text = (
            "The candidate should build a RAG pipeline over the provided documents.\n\n"
            "tiny\n\n"
            "The service must expose upload, evaluate and result endpoints to clients."
        )
        chunks = asyncio.run(ingest_text(text, ["case_brief"], "docs/case_brief.pdf", HASH_SCHEME, mock_settings))
        assert [c.id for c in chunks] == ["case_brief.pdf-0", "case_brief.pdf-1"]
        assert all(c.tags == ["case_brief"] for c in chunks)
        assert all(len(c.embedding) == mock_settings.EMBEDDING_DIM for c in chunks)
